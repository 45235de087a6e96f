"""
Integration tests for health and metrics endpoints.
"""


class TestHealth:

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json()['database'] == 'connected'

    def test_kv_health(self, client):
        data = client.get('/health/kv').get_json()
        assert data['kv'] == 'connected'

    def test_metrics_endpoint(self, client):
        response = client.get('/metrics')
        assert response.status_code == 200
        assert b'http_requests_total' in response.data
