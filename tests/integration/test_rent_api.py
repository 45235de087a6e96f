"""
Integration tests for the owner's rent management endpoints.
"""

from decimal import Decimal

from livenzo.models import RentStatus
from livenzo.services import notification_service


class TestAccess:

    def test_requires_login(self, client):
        response = client.get('/rent/renters')
        assert response.status_code == 401

    def test_renter_cannot_use_owner_endpoints(self, login, renter):
        client = login(renter)
        response = client.get('/rent/renters')
        assert response.status_code == 403

    def test_other_owner_cannot_swipe(self, login, other_owner, rent, relationship):
        client = login(other_owner)
        response = client.post(f'/rent/{relationship.id}/swipe', json={'offset': 150})
        assert response.status_code == 403


class TestSwipe:

    def test_right_swipe_marks_paid(self, login, owner, rent, relationship, session):
        client = login(owner)
        rid = relationship.id

        response = client.post(f'/rent/{rid}/swipe', json={'offset': 150, 'velocity': 0})
        assert response.status_code == 200
        data = response.get_json()
        assert data['triggered'] is True
        assert data['direction'] == 'right'
        assert data['previous_status'] == 'pending'
        assert data['rent_status'] == 'paid'
        assert data['payment']['status'] == 'paid'
        assert data['payment']['payment_method'] == 'manual_swipe'

        listing = client.get('/rent/renters').get_json()
        row = listing['renters'][0]
        assert row['relationship_id'] == rid
        assert row['status'] == 'paid'
        assert row['latest_payment']['status'] == 'paid'

    def test_short_swipe_does_nothing(self, login, owner, rent, relationship, session):
        client = login(owner)
        response = client.post(f'/rent/{relationship.id}/swipe', json={'offset': 60, 'velocity': 100})
        data = response.get_json()
        assert response.status_code == 200
        assert data['triggered'] is False
        assert data['hint'] == 'right'
        assert session.query(RentStatus).one().status == 'pending'

    def test_flick_left_marks_unpaid_and_reminds(self, login, owner, renter, rent, relationship, notifier):
        client = login(owner)
        response = client.post(f'/rent/{relationship.id}/swipe', json={'offset': -40, 'velocity': -600})
        assert response.status_code == 200
        assert response.get_json()['rent_status'] == 'unpaid'
        assert notifier.calls[0][0] == notification_service.RENT_REMINDER
        assert notifier.calls[0][1] == renter.id

    def test_swipe_on_paid_month_is_rejected(self, login, owner, rent, relationship, session):
        client = login(owner)
        client.post(f'/rent/{relationship.id}/swipe', json={'offset': 150})

        response = client.post(f'/rent/{relationship.id}/swipe', json={'offset': -150})
        assert response.status_code == 409
        data = response.get_json()
        assert data['status'] == 'error'
        assert data['reason'] == 'already_paid'
        assert data['message'] == 'Rent for this month is already paid'
        assert session.query(RentStatus).one().status == 'paid'

    def test_swipe_without_rent(self, login, owner, relationship):
        client = login(owner)
        response = client.post(f'/rent/{relationship.id}/swipe', json={'offset': 150})
        assert response.status_code == 409
        assert response.get_json()['reason'] == 'no_rent_set'

    def test_bad_offset(self, login, owner, rent, relationship):
        client = login(owner)
        response = client.post(f'/rent/{relationship.id}/swipe', json={'offset': 'far'})
        assert response.status_code == 400

    def test_non_finite_offset_is_rejected(self, login, owner, rent, relationship, session):
        client = login(owner)
        response = client.post(
            f'/rent/{relationship.id}/swipe', data='{"offset": Infinity}', content_type='application/json'
        )
        assert response.status_code == 400
        assert client.post(f'/rent/{relationship.id}/swipe', json={'velocity': 'NaN'}).status_code == 400
        assert session.query(RentStatus).one().status == 'pending'


class TestStatusButtons:

    def test_unpaid_then_paid(self, login, owner, rent, relationship):
        client = login(owner)
        rid = relationship.id
        assert client.post(f'/rent/{rid}/status', json={'action': 'unpaid'}).status_code == 200
        response = client.post(f'/rent/{rid}/status', json={'action': 'paid'})
        assert response.get_json()['previous_status'] == 'unpaid'
        assert response.get_json()['rent_status'] == 'paid'

    def test_unsupported_action(self, login, owner, rent, relationship):
        client = login(owner)
        response = client.post(f'/rent/{relationship.id}/status', json={'action': 'refund'})
        assert response.status_code == 409
        assert response.get_json()['reason'] == 'unsupported_action'


class TestMonthlyRentAndViews:

    def test_set_monthly_rent(self, login, owner, relationship):
        client = login(owner)
        response = client.post(f'/rent/{relationship.id}/monthly-rent',
                               json={'amount': '15000', 'due_date': '2030-01-05'})
        assert response.status_code == 200
        data = response.get_json()
        assert data['rent_status'] == 'pending'
        assert Decimal(data['amount']) == Decimal('15000')
        assert data['due_date'] == '2030-01-05'

    def test_monthly_rent_rejects_negative(self, login, owner, relationship):
        client = login(owner)
        response = client.post(f'/rent/{relationship.id}/monthly-rent', json={'amount': '-1'})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'amount'

    def test_history(self, login, owner, rent, relationship):
        client = login(owner)
        data = client.get(f'/rent/{relationship.id}/history').get_json()
        assert len(data['history']) == 12
        assert data['history'][0]['billing_month'] == rent.billing_month

    def test_meter_photos_empty(self, login, owner, rent, relationship):
        client = login(owner)
        data = client.get(f'/rent/{relationship.id}/meter-photos').get_json()
        assert data['photos'] == []

    def test_invalid_billing_month(self, login, owner, relationship):
        client = login(owner)
        response = client.get('/rent/renters?billing_month=2025-13')
        assert response.status_code == 400


class TestTutorialFlag:

    def test_flag_round_trip(self, login, owner):
        client = login(owner)
        assert client.get('/rent/tutorial').get_json()['seen'] is False
        assert client.post('/rent/tutorial', json={'seen': True}).status_code == 200
        assert client.get('/rent/tutorial').get_json()['seen'] is True

    def test_flag_is_per_user(self, login, owner, renter):
        client = login(owner)
        client.post('/rent/tutorial', json={'seen': True})
        client = login(renter)
        assert client.get('/rent/tutorial').get_json()['seen'] is False
