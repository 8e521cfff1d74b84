"""Tests for field validation utilities."""

from datetime import UTC, datetime

import pytest

from venservice.utils.booking_number import (
    generate_confirmation_id,
    generate_session_id,
    make_confirmation_id_factory,
    to_base36,
)
from venservice.utils.validators import (
    is_card_expired,
    luhn_checksum_valid,
    mask_sensitive_data,
    normalize_phone,
    validate_card_number,
    validate_cnic,
    validate_email,
    validate_iban,
    validate_mobile_wallet_number,
    validate_pakistani_phone,
)

NOW = datetime(2026, 3, 10, tzinfo=UTC)


class TestLuhn:
    def test_known_valid_number(self):
        assert luhn_checksum_valid("4532015112830366")

    def test_known_invalid_number(self):
        assert not luhn_checksum_valid("1234567890123456")

    def test_empty_is_invalid(self):
        assert not luhn_checksum_valid("")

    def test_card_number_ignores_spaces_but_checks_length(self):
        assert validate_card_number("4532 0151 1283 0366")
        assert not validate_card_number("0")

    def test_non_ascii_digits_are_rejected(self):
        # Arabic-Indic rendering of 4532015112830366
        arabic_indic = "\u0664\u0665\u0663\u0662\u0660\u0661\u0665\u0661\u0661\u0662\u0668\u0663\u0660\u0663\u0666\u0666"

        assert not validate_card_number(arabic_indic)
        assert not luhn_checksum_valid(arabic_indic)
        assert not validate_cnic("\u0663" * 13)
        assert not is_card_expired("12/30", NOW)
        assert is_card_expired("\u0661\u0662/\u0663\u0660", NOW)


class TestCardExpiry:
    def test_future_expiry_is_valid(self):
        assert not is_card_expired("12/30", NOW)

    def test_past_expiry_is_expired(self):
        assert is_card_expired("01/20", NOW)

    def test_current_month_is_expired(self):
        assert is_card_expired("03/26", NOW)

    def test_next_month_is_valid(self):
        assert not is_card_expired("04/26", NOW)

    @pytest.mark.parametrize("expiry", ["13/30", "1/30", "12-30", ""])
    def test_malformed_counts_as_expired(self, expiry):
        assert is_card_expired(expiry, NOW)


class TestPhones:
    @pytest.mark.parametrize("phone", ["03001234567", "+923001234567", "0300 1234567"])
    def test_passenger_phone_accepts(self, phone):
        assert validate_pakistani_phone(phone)

    @pytest.mark.parametrize("phone", ["3001234567", "0300123456", "+9230012345678"])
    def test_passenger_phone_rejects(self, phone):
        assert not validate_pakistani_phone(phone)

    def test_wallet_number_formats(self):
        assert validate_mobile_wallet_number("0300-1234567")
        assert validate_mobile_wallet_number("00923001234567")
        assert not validate_mobile_wallet_number("0200-1234567")

    @pytest.mark.parametrize(
        "phone",
        ["03001234567", "+923001234567", "00923001234567", "3001234567", "0300-123 4567"],
    )
    def test_normalize_phone(self, phone):
        assert normalize_phone(phone) == "+923001234567"


def test_email():
    assert validate_email("a@b.pk")
    assert not validate_email("not-an-email")


def test_cnic():
    assert validate_cnic("12345-1234567-1")
    assert validate_cnic("1234512345671")
    assert not validate_cnic("1234-12345678-1")


def test_iban():
    assert validate_iban("PK36SCBL0000001123456702")
    assert validate_iban("pk36 scbl 0000 0011 2345 6702")
    assert not validate_iban("PK36SCBL00000011234567")
    assert validate_iban("GB29NWBK60161331926819")


def test_mask_sensitive_data():
    assert mask_sensitive_data("4532015112830366") == "************0366"
    assert mask_sensitive_data("123") == "***"


class TestConfirmationIds:
    def test_base36(self):
        assert to_base36(0) == "0"
        assert to_base36(35) == "Z"
        assert to_base36(36) == "10"

    def test_confirmation_id_format(self):
        confirmation_id = generate_confirmation_id(now=NOW)
        assert confirmation_id.startswith("VEN-")
        assert confirmation_id[4:].isalnum()

    def test_factory_never_repeats_within_a_millisecond(self):
        factory = make_confirmation_id_factory(clock=lambda: NOW)
        assert factory() != factory()

    def test_session_ids_are_unique(self):
        assert generate_session_id() != generate_session_id()
        assert generate_session_id().startswith("rs_")
