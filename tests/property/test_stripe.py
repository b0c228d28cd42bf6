"""Property-based tests for Stripe billing.

Feature: automator
Property 15: Webhook signatures are verified
"""

import asyncio
import hashlib
import hmac
import json
from typing import Any, Dict, List
from unittest.mock import patch
from urllib.parse import parse_qs

import httpx
import pytest
from hypothesis import given, settings, strategies as st

from automator.services.stripe_service import (
    PLANS,
    StripeService,
    WEBHOOK_TOLERANCE_SECONDS,
    is_transient_stripe_error,
    resolve_plan,
)
from automator.utils.errors import BillingError, ConfigurationError, StripeAPIError

SECRET = "whsec_test"
NOW = 1_741_600_000


def sign(payload: bytes, timestamp: int, secret: str = SECRET) -> str:
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


class FakeStripe:
    """Records requests and answers the endpoints the service uses."""

    def __init__(self, existing_customer: bool = False, fail_with: int = 0) -> None:
        self.existing_customer = existing_customer
        self.fail_with = fail_with
        self.requests: List[httpx.Request] = []

    def form(self, index: int) -> Dict[str, str]:
        return {k: v[0] for k, v in parse_qs(self.requests[index].content.decode()).items()}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with:
            return httpx.Response(self.fail_with, json={"error": {"message": "No such price"}})

        path = request.url.path
        if request.method == "GET" and path == "/v1/customers":
            data = [{"id": "cus_existing"}] if self.existing_customer else []
            return httpx.Response(200, json={"data": data})
        if path == "/v1/customers":
            return httpx.Response(200, json={"id": "cus_new"})
        if path == "/v1/checkout/sessions":
            return httpx.Response(200, json={"id": "cs_1", "url": "https://checkout.stripe.com/cs_1"})
        if path == "/v1/billing_portal/sessions":
            return httpx.Response(200, json={"url": "https://billing.stripe.com/p_1"})
        return httpx.Response(404, json={"error": {"message": "unknown"}})


def make_service(fake: Any = None, webhook_secret: str = SECRET) -> StripeService:
    transport = httpx.MockTransport(fake) if fake is not None else None
    return StripeService(
        "sk_test",
        webhook_secret=webhook_secret,
        app_origin="https://automator.example/",
        transport=transport,
    )


class TestProperty15WebhookSignature:
    """
    Property 15: Webhook signature

    *For any* payload, a signature made with the webhook secret within the
    tolerance window SHALL verify, and any tampering SHALL be rejected.
    """

    @settings(max_examples=100, deadline=None)
    @given(
        event_type=st.text(min_size=1, max_size=30),
        skew=st.integers(min_value=-WEBHOOK_TOLERANCE_SECONDS, max_value=WEBHOOK_TOLERANCE_SECONDS),
    )
    def test_valid_signature_verifies(self, event_type: str, skew: int) -> None:
        payload = json.dumps({"type": event_type, "data": {"object": {}}}).encode()
        service = make_service()

        event = service.verify_webhook_signature(payload, sign(payload, NOW + skew), now=NOW)

        assert event["type"] == event_type

    @settings(max_examples=100, deadline=None)
    @given(extra=st.binary(min_size=1, max_size=20))
    def test_tampered_payload_rejected(self, extra: bytes) -> None:
        payload = b'{"type": "checkout.session.completed"}'
        signature = sign(payload, NOW)
        with pytest.raises(BillingError, match="Invalid signature"):
            make_service().verify_webhook_signature(payload + extra, signature, now=NOW)

    @settings(max_examples=50, deadline=None)
    @given(age=st.integers(min_value=WEBHOOK_TOLERANCE_SECONDS + 1, max_value=10**6))
    def test_old_timestamp_rejected(self, age: int) -> None:
        payload = b"{}"
        with pytest.raises(BillingError, match="Timestamp too old"):
            make_service().verify_webhook_signature(payload, sign(payload, NOW - age), now=NOW)

    def test_wrong_secret_rejected(self) -> None:
        payload = b"{}"
        with pytest.raises(BillingError):
            make_service().verify_webhook_signature(payload, sign(payload, NOW, "whsec_other"), now=NOW)

    @pytest.mark.parametrize("header", ["", "garbage", "t=abc,v1=00", "v1=00"])
    def test_malformed_header_rejected(self, header: str) -> None:
        with pytest.raises(BillingError, match="Invalid signature format"):
            make_service().verify_webhook_signature(b"{}", header, now=NOW)

    def test_missing_secret_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            make_service(webhook_secret="").verify_webhook_signature(b"{}", sign(b"{}", NOW), now=NOW)


class TestPlans:
    def test_premium_is_an_alias_for_pro(self) -> None:
        assert resolve_plan("Premium") is PLANS["Pro"]

    def test_unknown_package(self) -> None:
        with pytest.raises(BillingError):
            resolve_plan("Platinum")

    def test_secret_key_required(self) -> None:
        with pytest.raises(ConfigurationError):
            StripeService("")


class TestCheckout:
    def test_checkout_creates_customer_and_session(self) -> None:
        fake = FakeStripe()
        service = make_service(fake)

        result = asyncio.run(
            service.create_checkout_session(PLANS["Basic"], email="a@example.com", user_id="u-1")
        )

        assert result.checkout_url == "https://checkout.stripe.com/cs_1"
        assert result.customer_id == "cus_new"
        assert [r.url.path for r in fake.requests] == [
            "/v1/customers",
            "/v1/customers",
            "/v1/checkout/sessions",
        ]
        assert fake.form(1)["metadata[supabase_user_id]"] == "u-1"

        session = fake.form(2)
        assert session["mode"] == "subscription"
        assert session["customer"] == "cus_new"
        assert session["line_items[0][price_data][unit_amount]"] == "1900"
        assert session["line_items[0][price_data][currency]"] == "eur"
        assert session["metadata[tier]"] == "Basic"
        assert session["success_url"] == "https://automator.example/account?checkout_success=true"
        assert fake.requests[2].headers["Authorization"] == "Bearer sk_test"

    def test_existing_customer_is_reused(self) -> None:
        fake = FakeStripe(existing_customer=True)

        result = asyncio.run(
            make_service(fake).create_checkout_session(
                PLANS["Pro"], email="a@example.com", origin="http://localhost:5173"
            )
        )

        assert result.customer_id == "cus_existing"
        assert len(fake.requests) == 2
        assert fake.form(1)["cancel_url"] == "http://localhost:5173/packages?checkout_canceled=true"

    def test_portal_session(self) -> None:
        fake = FakeStripe()
        url = asyncio.run(
            make_service(fake).create_billing_portal_session("cus_1", "https://automator.example/account")
        )
        assert url == "https://billing.stripe.com/p_1"
        assert fake.form(0) == {"customer": "cus_1", "return_url": "https://automator.example/account"}

    def test_api_error_is_raised(self) -> None:
        with pytest.raises(StripeAPIError) as exc_info:
            asyncio.run(make_service(FakeStripe(fail_with=400)).find_or_create_customer("a@example.com"))
        assert exc_info.value.status_code == 400
        assert "No such price" in str(exc_info.value)


class FlakyStripe(FakeStripe):
    """Fails the first ``failures`` requests before answering normally."""

    def __init__(self, failures: int, error: Any) -> None:
        super().__init__()
        self.failures = failures
        self.error = error
        self.attempts = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.attempts += 1
        if self.attempts <= self.failures:
            if isinstance(self.error, Exception):
                raise self.error
            return httpx.Response(self.error, json={"error": {"message": "Too many requests"}})
        return super().__call__(request)


async def no_sleep(delay: float) -> None:
    return None


class TestTransientErrors:
    @pytest.mark.parametrize(
        "error",
        [429, httpx.ConnectError("connection refused"), httpx.ConnectTimeout("timed out")],
        ids=["rate-limited", "connect-error", "connect-timeout"],
    )
    def test_transient_failures_are_retried(self, error: Any) -> None:
        fake = FlakyStripe(failures=2, error=error)

        with patch("automator.utils.retry.asyncio.sleep", no_sleep):
            url = asyncio.run(make_service(fake).create_billing_portal_session("cus_1", "https://a.example"))

        assert url == "https://billing.stripe.com/p_1"
        assert fake.attempts == 3

    def test_retries_are_bounded(self) -> None:
        fake = FlakyStripe(failures=10, error=429)

        with patch("automator.utils.retry.asyncio.sleep", no_sleep):
            with pytest.raises(StripeAPIError) as exc_info:
                asyncio.run(make_service(fake).find_or_create_customer("a@example.com"))

        assert exc_info.value.status_code == 429
        assert fake.attempts == 3

    @pytest.mark.parametrize(
        "error",
        [400, 500, httpx.ReadTimeout("read timed out")],
        ids=["bad-request", "server-error", "read-timeout"],
    )
    def test_other_failures_are_not_resent(self, error: Any) -> None:
        fake = FlakyStripe(failures=1, error=error)

        with patch("automator.utils.retry.asyncio.sleep", no_sleep):
            with pytest.raises(StripeAPIError):
                asyncio.run(make_service(fake).find_or_create_customer("a@example.com"))

        assert fake.attempts == 1

    def test_is_transient_stripe_error(self) -> None:
        assert is_transient_stripe_error(StripeAPIError(429, "slow down"))
        assert not is_transient_stripe_error(StripeAPIError(402, "card declined"))
        assert not is_transient_stripe_error(ValueError("other"))
