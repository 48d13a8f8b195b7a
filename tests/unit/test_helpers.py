"""
Unit tests for small helpers: money, email hygiene, datetimes, request
metadata, referral codes and error payloads.
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from app.services.webhooks.identity import (
    generate_referral_code,
    primary_email,
    referral_code_prefix,
)
from app.utils.datetime_utils import ensure_aware, parse_iso_datetime
from app.utils.email_utils import emails_match, has_plus_addressing, is_disposable_email, normalize_email
from app.utils.exceptions import MissingPayoutDestinationError, NotFoundError, PaymentProcessorError
from app.utils.money import format_money, to_money
from app.utils.request_context import client_ip, request_meta


class TestMoney:
    """Test cent-precision conversion."""

    def test_to_money(self):
        assert to_money("12.345") == Decimal("12.35")
        assert to_money(0.1) == Decimal("0.10")
        assert to_money(7) == Decimal("7.00")
        assert to_money(None) == Decimal("0.00")
        assert to_money("") == Decimal("0.00")

    def test_invalid_value(self):
        with pytest.raises(ValueError):
            to_money("twelve")

    def test_format_money(self):
        assert format_money(Decimal("30")) == "30.00"
        assert format_money(Decimal("12.005")) == "12.01"


class TestEmailUtils:
    """Test email normalization and hygiene checks."""

    def test_normalize(self):
        assert normalize_email("John.Doe+promo@Example.com") == "johndoe@example.com"
        assert normalize_email("  j_o-h.n@example.com ") == "john@example.com"
        assert normalize_email("not-an-email") == "not-an-email"

    def test_disposable(self):
        assert is_disposable_email("x@mailinator.com")
        assert not is_disposable_email("x@example.com")

    def test_plus_addressing(self):
        assert has_plus_addressing("me+tag@example.com")
        assert not has_plus_addressing("me@example+com")

    def test_emails_match(self):
        assert emails_match("Jane@Example.com", " jane@example.com")
        assert not emails_match(None, "jane@example.com")
        assert not emails_match("", "")


class TestDatetimeUtils:
    """Test timestamp parsing."""

    def test_parse_zulu(self):
        assert parse_iso_datetime("2026-01-02T03:04:05Z") == datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)

    def test_parse_invalid(self):
        assert parse_iso_datetime("yesterday") is None
        assert parse_iso_datetime(None) is None

    def test_ensure_aware(self):
        naive = datetime(2026, 1, 1)
        assert ensure_aware(naive).tzinfo is UTC


class TestRequestMeta:
    """Test client metadata extraction."""

    def test_forwarded_for_first_hop(self):
        assert client_ip({"x-forwarded-for": "203.0.113.7, 10.0.0.1"}) == "203.0.113.7"

    def test_fallback_headers(self):
        assert client_ip({"x-real-ip": "198.51.100.2"}) == "198.51.100.2"
        assert client_ip({}) is None

    def test_request_meta(self):
        meta = request_meta({"user-agent": "Shopify-Captain-Hook"}, endpoint="/webhooks/storefront")

        assert meta.user_agent == "Shopify-Captain-Hook"
        assert meta.endpoint == "/webhooks/storefront"
        assert meta.ip_address is None


class TestReferralCodes:
    """Test referral code derivation."""

    def test_prefix_from_names(self):
        assert referral_code_prefix("Jane", "Doe", "jane@example.com") == "JANDOE"

    def test_prefix_from_first_name_only(self):
        assert referral_code_prefix("Christopher", None, "c@example.com") == "CHRIS"

    def test_prefix_from_email(self):
        assert referral_code_prefix(None, None, "mary.k@example.com") == "MARY"

    def test_prefix_strips_non_letters(self):
        assert referral_code_prefix("Jo", "O'Ng", "x@example.com") == "JOON"

    def test_short_prefix_falls_back(self):
        assert referral_code_prefix(None, None, "a1@example.com") == "AFF"

    def test_generated_code_shape(self):
        code = generate_referral_code("Jane", "Doe", "jane@example.com")

        assert code.startswith("JANDOE")
        assert len(code) == 10
        assert code == code.upper()

    def test_primary_email_preferred(self):
        user = {
            "email_addresses": [
                {"id": "e1", "email_address": "old@example.com"},
                {"id": "e2", "email_address": "main@example.com"},
            ],
            "primary_email_address_id": "e2",
        }
        assert primary_email(user) == "main@example.com"

    def test_primary_email_fallbacks(self):
        assert primary_email({"email_addresses": [{"id": "e1", "email_address": "a@x.com"}]}) == "a@x.com"
        assert primary_email({}) is None


class TestErrorPayloads:
    """Test structured error responses."""

    def test_to_dict_includes_context(self):
        error = MissingPayoutDestinationError("Some affiliates lack a PayPal email", affiliates=["JANDOE1A2B"])

        assert error.to_dict() == {
            "error": "Some affiliates lack a PayPal email",
            "error_code": "missing_payout_destination",
            "affiliates": ["JANDOE1A2B"],
        }
        assert error.http_status == 400

    def test_external_error_carries_service(self):
        error = PaymentProcessorError("boom", service="paypal", status=503)

        assert error.service == "paypal"
        assert error.to_dict()["status"] == 503
        assert error.http_status == 502

    def test_not_found_status(self):
        assert NotFoundError("Affiliate not found").http_status == 404
