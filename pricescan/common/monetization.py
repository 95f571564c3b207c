from __future__ import annotations
from datetime import timedelta
from math import ceil
from typing import Dict, List, Optional
from urllib.parse import quote, urlencode

from sqlalchemy.orm import Session

from pricescan.common.logger import logger
from pricescan.common.Schemas.account_schemas import ScanLimit, SubscriptionPlan, SubscriptionStatus
from pricescan.db import CRUD
from pricescan.db.Models.user_models import utcnow

FREE_TIER = "free"
SUBSCRIPTION_DAYS = 30

SUBSCRIPTION_PLANS: List[SubscriptionPlan] = [
    SubscriptionPlan(
        id="free",
        name="Free",
        price="0.00",
        features=[
            "10 scans per day",
            "Basic price comparison",
            "Scan history (7 days)",
            "Community support",
        ],
        daily_scan_limit=10,
    ),
    SubscriptionPlan(
        id="premium",
        name="Premium",
        price="4.99",
        features=[
            "Unlimited scans",
            "Price alerts & notifications",
            "Advanced analytics",
            "Extended scan history (90 days)",
            "Priority support",
            "Export data",
        ],
        price_alerts=True,
        bulk_scanning=True,
        analytics=True,
    ),
    SubscriptionPlan(
        id="business",
        name="Business",
        price="19.99",
        features=[
            "Everything in Premium",
            "API access (1000 calls/month)",
            "Bulk scanning tools",
            "Team collaboration",
            "Custom integrations",
            "Dedicated support",
        ],
        price_alerts=True,
        bulk_scanning=True,
        analytics=True,
        api_access=True,
    ),
]

_PLANS_BY_ID: Dict[str, SubscriptionPlan] = {p.id: p for p in SUBSCRIPTION_PLANS}

# feature name -> plan flag
FEATURE_FLAGS = {
    "price_alerts": "price_alerts",
    "bulk_scanning": "bulk_scanning",
    "analytics": "analytics",
    "api_access": "api_access",
}


def get_plan(plan_id: str) -> Optional[SubscriptionPlan]:
    return _PLANS_BY_ID.get(plan_id)

# ---------------- Subscriptions ---------------- #

def check_subscription_status(db: Session, user_id: str) -> SubscriptionStatus:
    """Paid tiers past their expiry are downgraded to free on read."""
    user = CRUD.get_user(db, user_id)
    if user is None:
        return SubscriptionStatus(is_active=False, tier=FREE_TIER)

    tier = user.subscription_tier or FREE_TIER
    if tier == FREE_TIER:
        return SubscriptionStatus(is_active=True, tier=FREE_TIER)

    now = utcnow()
    expires_at = user.subscription_expires_at
    if expires_at is None or expires_at < now:
        logger.info("Subscription of %s expired, downgrading to free", user_id)
        CRUD.update_user_subscription(db, user_id, FREE_TIER, None)
        return SubscriptionStatus(is_active=False, tier=FREE_TIER)

    days_remaining = ceil((expires_at - now).total_seconds() / 86400)
    return SubscriptionStatus(is_active=True, tier=tier, expires_at=expires_at, days_remaining=days_remaining)


def subscribe(db: Session, user_id: str, plan_id: str) -> SubscriptionStatus:
    plan = get_plan(plan_id)
    if plan is None:
        raise ValueError(f"Unknown plan '{plan_id}'")
    expires_at = None if plan.id == FREE_TIER else utcnow() + timedelta(days=SUBSCRIPTION_DAYS)
    if CRUD.update_user_subscription(db, user_id, plan.id, expires_at) is None:
        raise LookupError(f"User {user_id} not found")
    logger.info("User %s subscribed to %s", user_id, plan.id)
    return check_subscription_status(db, user_id)


def check_scan_limit(db: Session, user_id: str) -> ScanLimit:
    user = CRUD.get_user(db, user_id)
    if user is None:
        return ScanLimit(can_scan=False, scans_used=0, scans_remaining=0)

    status = check_subscription_status(db, user_id)
    plan = get_plan(status.tier)
    if plan is None or plan.daily_scan_limit is None:
        return ScanLimit(can_scan=True, scans_used=0, scans_remaining=-1)

    now = utcnow()
    reset_time = now + timedelta(days=1)
    last_reset = user.last_scan_reset_date
    if last_reset is None or last_reset.date() != now.date():
        CRUD.reset_daily_scan_count(db, user_id)
        return ScanLimit(
            can_scan=True, scans_used=0, scans_remaining=plan.daily_scan_limit, reset_time=reset_time
        )

    used = user.daily_scans_count or 0
    remaining = max(0, plan.daily_scan_limit - used)
    return ScanLimit(can_scan=remaining > 0, scans_used=used, scans_remaining=remaining, reset_time=reset_time)


def has_feature_access(db: Session, user_id: str, feature: str) -> bool:
    status = check_subscription_status(db, user_id)
    plan = get_plan(status.tier)
    if plan is None:
        return False
    flag = FEATURE_FLAGS.get(feature)
    if flag is None:
        return True  # basic features
    return bool(getattr(plan, flag))

# ---------------- Affiliate links ---------------- #

def generate_affiliate_url(
    db: Session,
    user_id: Optional[str],
    product_id: int,
    retailer_id: int,
    original_url: str,
) -> str:
    """
    Wrap a retailer link with the affiliate redirect and log the click.
    Retailers without an affiliate program get the original link back.
    """
    retailer = CRUD.get_retailer(db, retailer_id)
    if retailer is None or not retailer.affiliate_program or not retailer.affiliate_base_url:
        return original_url

    CRUD.track_affiliate_click(
        db,
        {
            "user_id": user_id,
            "product_id": product_id,
            "retailer_id": retailer_id,
            "affiliate_url": original_url,
            "commission_rate": retailer.affiliate_commission_rate or "0%",
            "estimated_commission": "0.00",
        },
    )
    params = urlencode({"ref": "pricescan", "uid": user_id or "anonymous", "pid": str(product_id)})
    return f"{retailer.affiliate_base_url}?{params}&url={quote(original_url, safe='')}"
