"""
Plan management: active plan lookup, remaining limits and upgrades.
Plan status is memoised per user in an injected PlanCache.
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional, Tuple
import logging
import math

import pytz
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from core.plan_cache import PlanCache
from storage.database import SessionLocal, User
from storage.usage import UsageStats

logger = logging.getLogger(__name__)


class PlanType(str, Enum):
    WEEKEND = "weekend"
    VACATION = "vacation"
    EXTENDED = "extended"


class PlanLimits(BaseModel):
    max_travelers: int
    max_scans: float
    max_days: int
    max_trips: int


PLAN_LIMITS: Dict[PlanType, PlanLimits] = {
    PlanType.WEEKEND: PlanLimits(max_travelers=4, max_scans=50, max_days=7, max_trips=1),
    PlanType.VACATION: PlanLimits(max_travelers=8, max_scans=200, max_days=14, max_trips=2),
    PlanType.EXTENDED: PlanLimits(max_travelers=15, max_scans=math.inf, max_days=30, max_trips=5),
}

# Features gated behind an active plan.
FEATURES = ("scan", "trip", "travelers")


class Plan(BaseModel):
    type: PlanType
    started_at: datetime
    expires_at: datetime


class PlanStatus(BaseModel):
    has_plan: bool
    plan: Optional[Plan] = None


class RemainingLimits(BaseModel):
    scans_remaining: float
    trips_remaining: int
    travelers_remaining: int
    days_remaining: int


def as_utc(value: datetime) -> datetime:
    """Stored datetimes are naive UTC."""
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


class PlanService:
    def __init__(self, cache: PlanCache, usage: UsageStats):
        self.cache = cache
        self.usage = usage

    def check_user_plan(self, telegram_id: int) -> PlanStatus:
        cached = self.cache.get(telegram_id)
        if cached is not None:
            logger.debug(f"Using cached plan data for user: {telegram_id}")
            return cached

        logger.info(f"Checking plan in database for user: {telegram_id}")
        now = datetime.now(pytz.UTC)
        try:
            with SessionLocal() as session:
                user = session.get(User, telegram_id)
                if not user or not user.plan_type or not user.plan_expires_at or as_utc(user.plan_expires_at) <= now:
                    status = PlanStatus(has_plan=False)
                else:
                    status = PlanStatus(has_plan=True, plan=Plan(
                        type=PlanType(user.plan_type),
                        started_at=as_utc(user.plan_started_at or user.plan_expires_at),
                        expires_at=as_utc(user.plan_expires_at),
                    ))
        except SQLAlchemyError as e:
            logger.error(f"Database error in check_user_plan for {telegram_id}: {e}")
            # Fail-safe: no plan, and nothing cached
            return PlanStatus(has_plan=False)

        self.cache.set(telegram_id, status)
        return status

    def check_premium_access(self, telegram_id: int, feature: str) -> bool:
        """Any active plan grants every feature."""
        status = self.check_user_plan(telegram_id)
        logger.info(f"Premium access for user {telegram_id}, feature {feature}: {status.has_plan}")
        return status.has_plan

    async def get_user_plan_limits(self, telegram_id: int) -> Optional[RemainingLimits]:
        status = self.check_user_plan(telegram_id)
        if not status.has_plan or not status.plan:
            return None

        limits = PLAN_LIMITS[status.plan.type]
        stats = await self.usage.get_stats(telegram_id)
        seconds_left = (status.plan.expires_at - datetime.now(pytz.UTC)).total_seconds()

        return RemainingLimits(
            scans_remaining=limits.max_scans - stats["scans"],
            trips_remaining=limits.max_trips - stats["trips"],
            travelers_remaining=limits.max_travelers - stats["travelers"],
            days_remaining=math.ceil(seconds_left / 86400),
        )

    def hours_until_expiry(self, telegram_id: int) -> Optional[int]:
        status = self.check_user_plan(telegram_id)
        if not status.plan:
            return None
        seconds_left = (status.plan.expires_at - datetime.now(pytz.UTC)).total_seconds()
        return math.ceil(seconds_left / 3600)

    async def update_user_plan(self, telegram_id: int, plan_type: PlanType) -> Tuple[bool, str]:
        """
        Activate or extend a plan.

        An active plan is extended from its current expiry, otherwise the new
        plan starts now. Usage counters are reset and the cached status dropped.
        """
        plan_type = PlanType(plan_type)
        status = self.check_user_plan(telegram_id)
        now = datetime.now(pytz.UTC)
        start = now
        if status.has_plan and status.plan and status.plan.expires_at > now:
            start = status.plan.expires_at
        expires = start + timedelta(days=PLAN_LIMITS[plan_type].max_days)

        try:
            with SessionLocal() as session:
                user = session.get(User, telegram_id)
                if not user:
                    return False, "User not found"
                user.plan_type = plan_type.value
                user.plan_started_at = start.replace(tzinfo=None)
                user.plan_expires_at = expires.replace(tzinfo=None)
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error updating plan for {telegram_id}: {e}")
            return False, "Failed to update plan"

        await self.usage.reset(telegram_id)
        self.cache.invalidate(telegram_id)
        logger.info(f"Updated plan for user {telegram_id} to {plan_type.value}, expires {expires}")

        return True, "Plan upgraded" if status.has_plan else "Plan activated"
