"""
Formatting and parsing helpers for amounts and billing months.
Amounts are shown the Indian way (lakh grouping) with a rupee sign.
"""
from decimal import Decimal, InvalidOperation
from datetime import date
from typing import Union, Optional, List
import re

_MONTH_RE = re.compile(r'^\d{4}-(0[1-9]|1[0-2])$')


def parse_amount(
    value: Union[int, float, Decimal, str, None],
    field: str = 'amount',
    allow_blank: bool = False,
    allow_zero: bool = True
) -> Optional[Decimal]:
    """
    Parse a user-entered currency amount into a Decimal.

    Args:
        value: Raw input (form string, JSON number or Decimal)
        field: Field name used in error messages
        allow_blank: Treat None/"" as "not entered" and return None
        allow_zero: Accept 0 as a valid amount

    Returns:
        Decimal amount, or None for blank input when allowed

    Raises:
        ValueError: For non-numeric, non-finite or negative input

    Examples:
        parse_amount("850") -> Decimal("850")
        parse_amount("", allow_blank=True) -> None
        parse_amount("-5") -> ValueError
    """
    if value is None or (isinstance(value, str) and value.strip() == ''):
        if allow_blank:
            return None
        raise ValueError(f'Please enter a valid {field}')

    if isinstance(value, bool):
        raise ValueError(f'Please enter a valid {field}')

    try:
        # Floats go through str() so 850.1 stays 850.1
        num = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f'Please enter a valid {field}')

    if not num.is_finite():
        raise ValueError(f'Please enter a valid {field}')
    if num < 0:
        raise ValueError(f'Please enter a valid {field}')
    if num == 0 and not allow_zero:
        raise ValueError(f'The {field} must be greater than 0')
    return num


def money_inr(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Format an amount with Indian digit grouping.

    Examples:
        money_inr(12850) -> "₹12,850"
        money_inr(120000) -> "₹1,20,000"
        money_inr(Decimal("850.50")) -> "₹850.5"
        money_inr(None) -> "-"
    """
    if value is None or value == "":
        return "-"
    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = '-' if num < 0 else ''
    num = abs(num)
    text = format(num, 'f')
    if '.' in text:
        integer_part, decimal_part = text.split('.')
        decimal_part = decimal_part.rstrip('0')
    else:
        integer_part, decimal_part = text, ''

    # Last three digits, then groups of two
    if len(integer_part) > 3:
        head, tail = integer_part[:-3], integer_part[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        integer_part = ','.join(groups + [tail])

    result = f"₹{sign}{integer_part}"
    if decimal_part:
        result += f".{decimal_part}"
    return result


def current_billing_month(today: Optional[date] = None) -> str:
    """Billing month key (YYYY-MM) for the given day."""
    today = today or date.today()
    return today.strftime('%Y-%m')


def parse_billing_month(value: Optional[str]) -> str:
    """
    Validate a YYYY-MM billing month; None means the current month.

    Raises:
        ValueError: If the value is not a YYYY-MM string
    """
    if value is None or value == '':
        return current_billing_month()
    value = str(value).strip()
    if not _MONTH_RE.match(value):
        raise ValueError(f'Invalid billing month: {value!r}. Expected YYYY-MM')
    return value


def recent_billing_months(count: int, today: Optional[date] = None) -> List[str]:
    """The last `count` billing months, newest first."""
    today = today or date.today()
    year, month = today.year, today.month
    months = []
    for _ in range(count):
        months.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return months
