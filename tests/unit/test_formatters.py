"""
Unit tests for amount and billing month helpers.
"""

from datetime import date
from decimal import Decimal

import pytest
from livenzo.utils.formatters import (
    current_billing_month, money_inr, parse_amount, parse_billing_month, recent_billing_months
)


class TestParseAmount:

    @pytest.mark.parametrize('raw,expected', [
        ('850', Decimal('850')),
        (' 850.50 ', Decimal('850.50')),
        (850, Decimal('850')),
        (850.1, Decimal('850.1')),
        ('0', Decimal('0')),
    ])
    def test_valid(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize('raw', ['-5', 'abc', 'inf', None, '', True])
    def test_invalid(self, raw):
        with pytest.raises(ValueError, match='Please enter a valid amount'):
            parse_amount(raw)

    def test_blank_allowed(self):
        assert parse_amount('', allow_blank=True) is None
        assert parse_amount(None, allow_blank=True) is None

    def test_zero_rejected_when_not_allowed(self):
        with pytest.raises(ValueError, match='greater than 0'):
            parse_amount('0', 'rent amount', allow_zero=False)


class TestMoneyInr:

    @pytest.mark.parametrize('value,expected', [
        (850, '₹850'),
        (12850, '₹12,850'),
        (120000, '₹1,20,000'),
        (Decimal('12345678.50'), '₹1,23,45,678.5'),
        (Decimal('12000.00'), '₹12,000'),
        (None, '-'),
    ])
    def test_format(self, value, expected):
        assert money_inr(value) == expected


class TestBillingMonth:

    def test_current(self):
        assert current_billing_month(date(2025, 3, 15)) == '2025-03'

    def test_parse_defaults_to_current(self):
        assert parse_billing_month(None) == current_billing_month()
        assert parse_billing_month('2024-12') == '2024-12'

    @pytest.mark.parametrize('value', ['2024-13', '2024-1', 'March', '2024/03'])
    def test_parse_invalid(self, value):
        with pytest.raises(ValueError):
            parse_billing_month(value)

    def test_recent_months_cross_year(self):
        assert recent_billing_months(3, date(2025, 2, 10)) == ['2025-02', '2025-01', '2024-12']
