"""
Tests for phone number normalization.
"""

import pytest

from app.phone import normalize_phone_number


class TestNormalizePhoneNumber:
    """Canonical provider format is 91 followed by ten digits."""

    @pytest.mark.parametrize("raw", [
        "9876543210",
        "+919876543210",
        "09876543210",
        "919876543210",
        "98765 43210",
        " +91 98765 43210 ",
        "+91\t9876543210",
    ])
    def test_indian_numbers_normalize(self, raw):
        assert normalize_phone_number(raw) == "919876543210"

    def test_empty_string_unchanged(self):
        assert normalize_phone_number("") == ""

    def test_none_unchanged(self):
        assert normalize_phone_number(None) is None

    def test_idempotent(self):
        once = normalize_phone_number("09876543210")
        assert normalize_phone_number(once) == once

    def test_other_country_code_plus_removed(self):
        assert normalize_phone_number("+14155550100") == "14155550100"

    def test_short_number_returned_as_is(self):
        assert normalize_phone_number("12345") == "12345"

    def test_leading_zero_only_dropped_once(self):
        assert normalize_phone_number("0012345") == "012345"

    def test_non_digit_text_not_rejected(self):
        assert normalize_phone_number("call me") == "callme"
