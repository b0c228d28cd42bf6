"""
Account API Routes

Remaining generations, subscription checkout, billing portal, Stripe
webhooks and generated-course history. Uses Supabase for subscriber rows
and Stripe for payments.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from automator.api.deps import (
    get_stripe_service_dep,
    require_database_service,
    require_generations_service,
    require_user,
)
from automator.models.account import GeneratedCourse, Subscriber
from automator.models.job import utc_now
from automator.services.auth import AuthUser
from automator.services.database import DatabaseService
from automator.services.generations import GenerationsService
from automator.services.stripe_service import PLANS, StripeService, resolve_plan
from automator.utils.errors import BillingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/account", tags=["account"])


class GenerationsResponse(BaseModel):
    """Remaining generations for the current user."""

    model_config = ConfigDict(populate_by_name=True)

    generations_left: int = Field(alias="generationsLeft")
    subscription_tier: str = Field(alias="subscriptionTier")
    is_admin: bool = Field(alias="isAdmin")


class CheckoutRequest(BaseModel):
    """Request to create a checkout session."""

    model_config = ConfigDict(populate_by_name=True)

    package_name: str = Field(min_length=1, alias="packageName")


class PortalRequest(BaseModel):
    """Request to open the billing portal."""

    model_config = ConfigDict(populate_by_name=True)

    return_url: Optional[str] = Field(default=None, alias="returnUrl")


class UrlResponse(BaseModel):
    """Redirect target for the web client."""

    url: str


@router.get("/generations", response_model=GenerationsResponse)
async def get_generations(
    user: AuthUser = Depends(require_user),
    generations: GenerationsService = Depends(require_generations_service),
) -> GenerationsResponse:
    """Generations left this month, after any monthly reset."""
    if generations.is_admin(user):
        return GenerationsResponse(
            generations_left=await generations.available(user),
            subscription_tier="Enterprise",
            is_admin=True,
        )

    subscriber = await generations.refresh_monthly(user)
    return GenerationsResponse(
        generations_left=subscriber.generations_left or 0,
        subscription_tier=subscriber.subscription_tier,
        is_admin=False,
    )


@router.post("/checkout", response_model=UrlResponse)
async def create_checkout(
    body: CheckoutRequest,
    request: Request,
    user: AuthUser = Depends(require_user),
    db: DatabaseService = Depends(require_database_service),
    stripe: StripeService = Depends(get_stripe_service_dep),
) -> UrlResponse:
    """
    Create a Stripe Checkout session for a subscription package.

    Returns URL to redirect user to Stripe's hosted checkout page.
    """
    try:
        plan = resolve_plan(body.package_name)
    except BillingError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = await stripe.create_checkout_session(
        plan,
        email=user.email,
        user_id=user.id,
        origin=request.headers.get("origin"),
    )

    # Pending until the webhook confirms payment
    existing = await db.get_subscriber_by_email(user.email)
    subscriber = (existing or Subscriber(email=user.email)).model_copy(
        update={"user_id": user.id, "stripe_customer_id": result.customer_id}
    )
    await db.upsert_subscriber(subscriber)
    logger.info(f"Checkout for {user.email}: {plan.tier} ({result.session_id})")

    return UrlResponse(url=result.checkout_url)


@router.post("/portal", response_model=UrlResponse)
async def create_portal(
    body: PortalRequest,
    user: AuthUser = Depends(require_user),
    db: DatabaseService = Depends(require_database_service),
    stripe: StripeService = Depends(get_stripe_service_dep),
) -> UrlResponse:
    """
    Get Stripe Billing Portal URL for the user to manage their subscription.
    """
    subscriber = await db.get_subscriber(user.id)
    if subscriber is None or not subscriber.stripe_customer_id:
        raise HTTPException(status_code=404, detail="No Stripe customer found for this user")

    return_url = body.return_url or f"{stripe.app_origin}/account"
    url = await stripe.create_billing_portal_session(subscriber.stripe_customer_id, return_url)
    return UrlResponse(url=url)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(alias="Stripe-Signature"),
    stripe: StripeService = Depends(get_stripe_service_dep),
    db: DatabaseService = Depends(require_database_service),
    generations: GenerationsService = Depends(require_generations_service),
) -> dict[str, Any]:
    """
    Handle Stripe webhook events.

    Key events:
    - checkout.session.completed: Subscription paid, tier granted
    - customer.subscription.deleted: Subscription cancelled, back to Free
    - invoice.payment_failed: Payment failed (logged)
    """
    payload = await request.body()

    try:
        event = stripe.verify_webhook_signature(payload, stripe_signature)
    except BillingError as e:
        raise HTTPException(status_code=400, detail=str(e))

    event_type = event.get("type")
    data = event.get("data", {}).get("object", {})
    customer_id = data.get("customer")

    if event_type == "checkout.session.completed":
        tier = (data.get("metadata") or {}).get("tier", "Pro")
        email = data.get("customer_email") or (data.get("customer_details") or {}).get("email")
        if not email and customer_id:
            subscriber = await db.get_subscriber_by_customer(customer_id)
            email = subscriber.email if subscriber else None
        if not email:
            logger.warning(f"Checkout completed for unknown customer {customer_id}")
            return {"status": "ignored"}

        try:
            plan = resolve_plan(tier)
        except BillingError:
            logger.warning(f"Unknown tier {tier} in checkout metadata, granting Pro")
            plan = PLANS["Pro"]
        await generations.set_tier(
            email, plan.tier, subscribed=True, stripe_customer_id=customer_id
        )
        logger.info(f"New {tier} subscriber: {email}")

    elif event_type == "customer.subscription.deleted":
        subscriber = await db.get_subscriber_by_customer(customer_id) if customer_id else None
        if subscriber is None:
            logger.warning(f"Subscription cancelled for unknown customer {customer_id}")
            return {"status": "ignored"}
        await generations.set_tier(subscriber.email, "Free", subscribed=False)
        logger.info(f"Subscription cancelled for {subscriber.email}")

    elif event_type == "invoice.payment_failed":
        logger.warning(f"Payment failed for customer: {customer_id}")

    return {"status": "ok"}


@router.get("/plans")
async def get_plans() -> dict[str, Any]:
    """Get available subscription plans."""
    return {
        tier: {
            "name": plan.name,
            "price_monthly": plan.amount_cents / 100,
            "currency": "eur",
            "generations_per_month": plan.generations_per_month,
            "features": plan.features,
        }
        for tier, plan in PLANS.items()
    }


@router.get("/courses", response_model=list[GeneratedCourse])
async def list_courses(
    user: AuthUser = Depends(require_user),
    db: DatabaseService = Depends(require_database_service),
) -> list[GeneratedCourse]:
    """Generated courses of the current user that have not expired yet."""
    return await db.list_courses(user.id)


@router.get("/courses/{course_id}", response_model=GeneratedCourse)
async def get_course(
    course_id: str,
    user: AuthUser = Depends(require_user),
    db: DatabaseService = Depends(require_database_service),
) -> GeneratedCourse:
    """One generated course of the current user, with its sections."""
    course = await db.get_course(course_id)
    if course is None or course.user_id != user.id or course.expires_at <= utc_now():
        raise HTTPException(status_code=404, detail="Course not found")
    return course
