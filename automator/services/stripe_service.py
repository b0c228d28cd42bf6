"""
Stripe Service for Automator Subscriptions

Handles checkout sessions, the customer billing portal and webhook
verification. Talks to the Stripe REST API directly with httpx.
"""

import hashlib
import hmac
import json
import logging
import time
from typing import Any, Literal, Optional

import httpx
from pydantic import BaseModel, Field

from automator.utils.errors import BillingError, ConfigurationError, StripeAPIError
from automator.utils.retry import with_retry

logger = logging.getLogger(__name__)

PaidTier = Literal["Basic", "Pro", "Enterprise"]

# Signed webhook payloads older than this are rejected
WEBHOOK_TOLERANCE_SECONDS = 300


def is_transient_stripe_error(exc: Exception) -> bool:
    """Rate limits and connections that never reached Stripe are safe to resend."""
    if not isinstance(exc, StripeAPIError):
        return False
    if exc.status_code == 429:
        return True
    return isinstance(exc.__cause__, (httpx.ConnectError, httpx.ConnectTimeout))


class SubscriptionPlan(BaseModel):
    """Subscription plan configuration."""

    tier: PaidTier
    name: str
    amount_cents: int  # EUR, billed monthly
    interval: Literal["month", "year"] = "month"
    generations_per_month: int
    features: list[str] = Field(default_factory=list)


class CheckoutResult(BaseModel):
    """Result from creating a checkout session."""

    checkout_url: str
    session_id: str
    customer_id: str


PLANS: dict[str, SubscriptionPlan] = {
    "Basic": SubscriptionPlan(
        tier="Basic",
        name="Basic",
        amount_cents=1900,
        generations_per_month=3,
        features=[
            "3 complete course generations per month",
            "Lesson plans, slides, trainer notes and exercises",
        ],
    ),
    "Pro": SubscriptionPlan(
        tier="Pro",
        name="Pro",
        amount_cents=4900,
        generations_per_month=10,
        features=[
            "10 complete course generations per month",
            "Everything in Basic",
            "Priority generation",
        ],
    ),
    "Enterprise": SubscriptionPlan(
        tier="Enterprise",
        name="Enterprise",
        amount_cents=12900,
        generations_per_month=30,
        features=[
            "30 complete course generations per month",
            "Everything in Pro",
            "Dedicated support",
        ],
    ),
}

# English pricing page sells Pro as "Premium"
PLAN_ALIASES = {"Premium": "Pro"}


def resolve_plan(package_name: str) -> SubscriptionPlan:
    """
    Look up a plan by package name.

    Raises:
        BillingError: If the package is unknown
    """
    plan = PLANS.get(PLAN_ALIASES.get(package_name, package_name))
    if plan is None:
        raise BillingError(f"Unknown package: {package_name}")
    return plan


class StripeService:
    """Stripe integration for Automator subscriptions."""

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str = "",
        app_origin: str = "http://localhost:3000",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not secret_key:
            raise ConfigurationError("Stripe secret key required. Set STRIPE_SECRET_KEY in .env")
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.app_origin = app_origin.rstrip("/")
        self.base_url = "https://api.stripe.com/v1"
        self._transport = transport

    @property
    def _headers(self) -> dict[str, str]:
        """Auth headers for Stripe API."""
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/x-www-form-urlencoded",
        }

    @with_retry(
        max_attempts=3,
        base_delay=0.5,
        exceptions=(StripeAPIError,),
        retry_if=is_transient_stripe_error,
    )
    async def _request(
        self,
        method: str,
        path: str,
        data: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=self._headers,
                    data=data,
                    params=params,
                )
            except httpx.HTTPError as e:
                raise StripeAPIError(0, str(e)) from e

        if response.is_error:
            try:
                message = response.json().get("error", {}).get("message", response.text)
            except ValueError:
                message = response.text
            raise StripeAPIError(response.status_code, message)
        return response.json()

    async def find_or_create_customer(self, email: str, user_id: Optional[str] = None) -> str:
        """Return the Stripe customer for an email, creating one if needed."""
        existing = await self._request("GET", "/customers", params={"email": email, "limit": 1})
        if existing.get("data"):
            customer_id = existing["data"][0]["id"]
            logger.info(f"Found existing Stripe customer {customer_id}")
            return customer_id

        data = {"email": email}
        if user_id:
            data["metadata[supabase_user_id]"] = user_id
        customer = await self._request("POST", "/customers", data=data)
        logger.info(f"Created Stripe customer {customer['id']}")
        return customer["id"]

    async def create_checkout_session(
        self,
        plan: SubscriptionPlan,
        email: str,
        user_id: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> CheckoutResult:
        """
        Create a subscription Checkout Session for a plan.

        Returns URL to redirect the customer to Stripe's hosted checkout.
        """
        customer_id = await self.find_or_create_customer(email, user_id)
        origin = (origin or self.app_origin).rstrip("/")

        data = {
            "mode": "subscription",
            "customer": customer_id,
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": "eur",
            "line_items[0][price_data][unit_amount]": str(plan.amount_cents),
            "line_items[0][price_data][recurring][interval]": plan.interval,
            "line_items[0][price_data][product_data][name]": f"{plan.name} Subscription",
            "line_items[0][price_data][product_data][description]": (
                f"Automator {plan.name} subscription plan"
            ),
            "metadata[tier]": plan.tier,
            "success_url": f"{origin}/account?checkout_success=true",
            "cancel_url": f"{origin}/packages?checkout_canceled=true",
        }
        result = await self._request("POST", "/checkout/sessions", data=data)
        logger.info(f"Checkout session created: {result['id']}")

        return CheckoutResult(
            checkout_url=result["url"],
            session_id=result["id"],
            customer_id=customer_id,
        )

    async def create_billing_portal_session(self, customer_id: str, return_url: str) -> str:
        """
        Create a Stripe Billing Portal session.

        Allows customers to manage their subscription, update payment, etc.
        """
        result = await self._request(
            "POST",
            "/billing_portal/sessions",
            data={"customer": customer_id, "return_url": return_url},
        )
        return result["url"]

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
        now: Optional[float] = None,
    ) -> dict[str, Any]:
        """
        Verify a Stripe webhook signature and return the event.

        Raises:
            BillingError: If the secret is missing or the signature is invalid
        """
        if not self.webhook_secret:
            raise ConfigurationError("Webhook secret not configured")

        elements: dict[str, str] = {}
        for item in signature.split(","):
            key, sep, value = item.partition("=")
            if sep:
                elements.setdefault(key.strip(), value.strip())

        timestamp = elements.get("t")
        v1_signature = elements.get("v1")
        if not timestamp or not v1_signature or not timestamp.isdigit():
            raise BillingError("Invalid signature format")

        now = time.time() if now is None else now
        if abs(now - int(timestamp)) > WEBHOOK_TOLERANCE_SECONDS:
            raise BillingError("Timestamp too old")

        signed_payload = f"{timestamp}.".encode() + payload
        expected = hmac.new(
            self.webhook_secret.encode(),
            signed_payload,
            hashlib.sha256,
        ).hexdigest()

        if not hmac.compare_digest(expected, v1_signature):
            raise BillingError("Invalid signature")

        return json.loads(payload)


def create_stripe_service(**kwargs: Any) -> StripeService:
    """Create a StripeService instance with settings defaults."""
    from automator.config import get_settings

    settings = get_settings()
    kwargs.setdefault("secret_key", settings.stripe_secret_key)
    kwargs.setdefault("webhook_secret", settings.stripe_webhook_secret)
    kwargs.setdefault("app_origin", settings.app_origin)
    return StripeService(**kwargs)
