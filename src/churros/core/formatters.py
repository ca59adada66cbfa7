"""Brazilian phone and currency formatting helpers."""

import re

PHONE_MAX_DIGITS = 11


def unformat_phone(value: str) -> str:
    """Strip everything but digits."""
    return re.sub(r"\D", "", value)


def format_phone(value: str) -> str:
    """
    Format a phone number as (XX) XXXXX-XXXX while it is being typed.

    Partial input is formatted as far as it goes; extra digits are dropped.
    """
    digits = unformat_phone(value)[:PHONE_MAX_DIGITS]
    if len(digits) <= 2:
        return digits
    if len(digits) <= 7:
        return f"({digits[:2]}) {digits[2:]}"
    return f"({digits[:2]}) {digits[2:7]}-{digits[7:]}"


def format_brl(value: float) -> str:
    """Format a number as 1.234,56 (no currency symbol)."""
    us = f"{value:,.2f}"
    return us.replace(",", "_").replace(".", ",").replace("_", ".")


def unformat_currency(value: str) -> float:
    """Parse 1.234,56 back into 1234.56. Unparseable input gives 0.0."""
    if not value:
        return 0.0
    cleaned = re.sub(r"[^\d,.-]", "", value).replace(".", "").replace(",", ".")
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def format_currency(value: str | float) -> str:
    """
    Normalize a typed or stored amount to 1.234,56.

    Strings containing a comma are read as Brazilian notation, otherwise a
    dot is taken as the decimal separator.
    """
    if isinstance(value, (int, float)):
        return format_brl(value)
    if "," in value:
        return format_brl(unformat_currency(value))
    cleaned = re.sub(r"[^\d.-]", "", value)
    try:
        return format_brl(float(cleaned))
    except ValueError:
        return format_brl(0)


def format_currency_input(value: str) -> str:
    """Cash-register style entry: digits are cents, so "1234" becomes "12,34"."""
    digits = unformat_phone(value)
    if not digits:
        return ""
    return format_brl(int(digits) / 100)


def format_money(value: float) -> str:
    """Format with the currency symbol, e.g. R$ 1.234,56."""
    return f"R$ {format_brl(value)}"
