"""
Integration tests for notification rendering and dispatch.
"""

from decimal import Decimal

import pytest
from livenzo.services import notification_service
from livenzo.services.notification_service import render_notification, send_notification


class TestNotifications:

    def test_render_reminder(self, renter):
        subject, body = render_notification(notification_service.RENT_REMINDER, renter, {
            'billing_month': '2025-03',
            'amount': Decimal('120000'),
        })
        assert subject == 'Rent reminder for 2025-03'
        assert 'Hi Renter One' in body
        assert '₹1,20,000' in body

    def test_render_unknown_type(self, renter):
        with pytest.raises(ValueError):
            render_notification('birthday', renter, {})

    def test_suppressed_mail_counts_as_sent(self, renter):
        assert send_notification(notification_service.PAYMENT_RECEIVED, renter.id, {'amount': 10}) is True

    def test_missing_recipient(self):
        assert send_notification(notification_service.PAYMENT_RECEIVED, 4242, {}) is False

    def test_delivery_runs_on_background_thread(self, app, renter, monkeypatch):
        started = []
        sent = []

        class RecordingThread:
            def __init__(self, target, args, daemon):
                self.target = target
                self.args = args
                self.daemon = daemon

            def start(self):
                started.append(self)

        monkeypatch.setitem(app.config, 'MAIL_SUPPRESS_SEND', False)
        monkeypatch.setitem(app.config, 'MAIL_USERNAME', 'mailer@test.com')
        monkeypatch.setitem(app.config, 'MAIL_ASYNC', True)
        monkeypatch.setattr(notification_service.threading, 'Thread', RecordingThread)
        monkeypatch.setattr(notification_service.mail, 'send', sent.append)

        assert send_notification(notification_service.PAYMENT_RECEIVED, renter.id, {'amount': 10}) is True
        assert sent == []
        assert started[0].daemon is True

        started[0].target(*started[0].args)
        assert sent[0].recipients == [renter.email]
