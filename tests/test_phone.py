"""Tests for phone-number canonicalization and code formatting."""

import pytest

from core.errors import InvalidNumberError, MissingNumberError
from core.phone import canonicalize_number, format_pairing_code, normalize_user_id


class TestCanonicalizeNumber:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("16502530000", "16502530000"),
            ("+1 (650) 253-0000", "16502530000"),
            ("+44 7911 123456", "447911123456"),
        ],
    )
    def test_valid_numbers(self, raw, expected):
        assert canonicalize_number(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_missing_number(self, raw):
        with pytest.raises(MissingNumberError) as info:
            canonicalize_number(raw)
        assert info.value.http_status == 418

    @pytest.mark.parametrize("raw", ["abc", "123", "1650253", "999999999999999"])
    def test_invalid_number(self, raw):
        with pytest.raises(InvalidNumberError) as info:
            canonicalize_number(raw)
        assert info.value.http_status == 400


class TestFormatPairingCode:
    def test_groups_of_four(self):
        assert format_pairing_code("ABCDEFGH") == "ABCD-EFGH"

    def test_uneven_tail(self):
        assert format_pairing_code("ABCDEFGHIJ") == "ABCD-EFGH-IJ"

    def test_custom_separator(self):
        assert format_pairing_code("ABCDEF", group_size=3, separator=" ") == "ABC DEF"

    def test_empty_code(self):
        assert format_pairing_code("") == ""


class TestNormalizeUserId:
    def test_strips_device_suffix(self):
        assert normalize_user_id("123:4@s.whatsapp.net", fallback_number="9") == "123@s.whatsapp.net"

    def test_plain_id_untouched(self):
        assert normalize_user_id("123@s.whatsapp.net", fallback_number="9") == "123@s.whatsapp.net"

    def test_fallback_when_unknown(self):
        assert normalize_user_id(None, fallback_number="16502530000") == "16502530000@s.whatsapp.net"
