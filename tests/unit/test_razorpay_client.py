"""
Unit tests for Razorpay signatures and amount conversion.
"""

from decimal import Decimal

import pytest
from livenzo.services.razorpay_client import RazorpayClient, to_paise


class TestRazorpayClient:

    def test_to_paise(self):
        assert to_paise(Decimal('12850')) == 1285000
        assert to_paise('850.505') == 85051

    def test_requires_keys(self, app):
        app.config['RAZORPAY_KEY_ID'] = None
        try:
            with pytest.raises(ValueError):
                RazorpayClient()
        finally:
            app.config['RAZORPAY_KEY_ID'] = 'rzp_test_key'

    def test_payment_signature(self, sign):
        client = RazorpayClient()
        signature = sign('rzp_test_secret', 'order_1|pay_1')
        assert client.verify_payment_signature('order_1', 'pay_1', signature)
        assert not client.verify_payment_signature('order_1', 'pay_2', signature)
        assert not client.verify_payment_signature('order_1', 'pay_1', None)

    def test_webhook_signature(self, sign):
        client = RazorpayClient()
        body = b'{"event":"payment.captured"}'
        assert client.verify_webhook_signature(body, sign('rzp_webhook_secret', body))
        assert not client.verify_webhook_signature(body, sign('other', body))
        assert not client.verify_webhook_signature(body, '')
