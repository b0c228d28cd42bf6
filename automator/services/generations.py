"""
Generation Quota Service

Tracks how many course generations each subscriber has left in the current
month. Quotas come from the subscription tier and reset when a new calendar
month starts. The admin account is never limited.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from automator.models.account import Subscriber, SubscriptionTier
from automator.models.job import utc_now
from automator.services.auth import AuthUser
from automator.services.database import DatabaseService
from automator.services.stripe_service import PLANS
from automator.utils.errors import QuotaExceededError

logger = logging.getLogger(__name__)

TIER_GENERATIONS: dict[str, int] = {
    "Free": 1,
    **{tier: plan.generations_per_month for tier, plan in PLANS.items()},
}

ADMIN_GENERATIONS = 999999


def calculate_initial_generations(tier: Optional[str]) -> int:
    """Monthly generation allowance for a tier (unknown tiers get the Free allowance)."""
    return TIER_GENERATIONS.get(tier or "Free", TIER_GENERATIONS["Free"])


def needs_monthly_reset(last_generation: Optional[datetime], now: datetime) -> bool:
    if last_generation is None:
        return True
    return (last_generation.year, last_generation.month) != (now.year, now.month)


class GenerationsService:
    """Quota checks and bookkeeping on the ``subscribers`` table."""

    def __init__(
        self,
        db: DatabaseService,
        admin_email: str,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.db = db
        self.admin_email = admin_email.lower()
        self.clock = clock

    def is_admin(self, user: AuthUser) -> bool:
        return bool(user.email) and user.email.lower() == self.admin_email

    async def get_or_create_subscriber(self, user: AuthUser) -> Subscriber:
        """Fetch the user's subscriber row, creating a Free one on first use."""
        subscriber = await self.db.get_subscriber(user.id)
        if subscriber is None:
            subscriber = Subscriber(
                user_id=user.id,
                email=user.email,
                subscription_tier="Free",
                generations_left=calculate_initial_generations("Free"),
            )
            await self.db.upsert_subscriber(subscriber)
            logger.info(f"Created Free subscriber for {user.email}")
        return subscriber

    async def refresh_monthly(self, user: AuthUser) -> Subscriber:
        """
        Reset the user's allowance when a new month has started.

        Returns:
            The subscriber as it stands after any reset
        """
        subscriber = await self.get_or_create_subscriber(user)
        now = self.clock()
        if subscriber.generations_left is None or (
            subscriber.last_generation_date is not None
            and needs_monthly_reset(subscriber.last_generation_date, now)
        ):
            allowance = calculate_initial_generations(subscriber.subscription_tier)
            await self.db.update_subscriber(user.id, generations_left=allowance)
            subscriber = subscriber.model_copy(update={"generations_left": allowance})
            logger.info(f"Generations reset for {user.id}: {allowance}")
        return subscriber

    async def available(self, user: AuthUser) -> int:
        """Generations the user can still request this month."""
        if self.is_admin(user):
            return ADMIN_GENERATIONS
        subscriber = await self.refresh_monthly(user)
        return subscriber.generations_left or 0

    async def ensure_available(self, user: AuthUser) -> int:
        """
        Raises:
            QuotaExceededError: If the user has no generations left
        """
        remaining = await self.available(user)
        if remaining <= 0:
            raise QuotaExceededError(
                f"No generations left for this month on the current plan ({user.email})"
            )
        return remaining

    async def decrement(self, user: AuthUser) -> int:
        """
        Consume one generation.

        Returns:
            Generations left afterwards

        Raises:
            QuotaExceededError: If the user has no generations left
        """
        if self.is_admin(user):
            logger.info("Admin user, generations not decremented")
            return ADMIN_GENERATIONS

        current = await self.ensure_available(user)
        remaining = max(0, current - 1)
        await self.db.update_subscriber(
            user.id,
            generations_left=remaining,
            last_generation_date=self.clock(),
        )
        logger.info(f"Generations updated for {user.id}: {current} -> {remaining}")
        return remaining

    async def set_tier(self, email: str, tier: SubscriptionTier, **fields: object) -> bool:
        """Apply a tier change (from billing) and grant that tier's allowance."""
        return await self.db.update_subscriber_by_email(
            email,
            subscription_tier=tier,
            generations_left=calculate_initial_generations(tier),
            **fields,
        )
