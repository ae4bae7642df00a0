"""
Phone number normalization for the SMS provider.

Numbers are reduced to the provider format: country code 91 followed by
the 10-digit subscriber number, no leading '+'.
"""

import re

_WHITESPACE = re.compile(r"\s+")
_TEN_DIGITS = re.compile(r"^[0-9]{10}$")
_INDIAN_FULL = re.compile(r"^91[0-9]{10}$")


def normalize_phone_number(raw: str) -> str:
    """
    Normalize user-entered phone text to a provider-ready number.

    Never raises; input that matches no rule is returned with whitespace
    removed.

    Examples:
        >>> normalize_phone_number("98765 43210")
        '919876543210'
        >>> normalize_phone_number("+919876543210")
        '919876543210'
        >>> normalize_phone_number("09876543210")
        '919876543210'
    """
    if not raw:
        return raw

    number = _WHITESPACE.sub("", str(raw))

    if number.startswith("0"):
        number = number[1:]
    if number.startswith("+91"):
        return number[1:]
    if _TEN_DIGITS.match(number):
        return f"91{number}"
    if _INDIAN_FULL.match(number):
        return number
    if number.startswith("+"):
        return number[1:]

    return number
