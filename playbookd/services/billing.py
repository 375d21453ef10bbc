"""
Athlete subscription tiers and Stripe webhook handling.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe

from playbookd import db as store
from playbookd import settings

logger = logging.getLogger(__name__)

UTC = timezone.utc

TIER_ACCESS: Dict[str, Dict[str, Any]] = {
    "none": {
        "maxVideoSubmissions": 0,
        "maxCoaches": 1,
        "hasAIAssistant": False,
        "hasCoachFeed": False,
        "hasPriorityQueue": False,
    },
    "basic": {
        "maxVideoSubmissions": 2,
        "maxCoaches": 3,
        "hasAIAssistant": False,
        "hasCoachFeed": False,
        "hasPriorityQueue": False,
    },
    "elite": {
        "maxVideoSubmissions": -1,  # unlimited
        "maxCoaches": -1,
        "hasAIAssistant": True,
        "hasCoachFeed": True,
        "hasPriorityQueue": True,
    },
}
PAID_TIERS = ("basic", "elite")
ACTIVE_STATUSES = ("active", "trialing")


def configure_stripe() -> None:
    stripe.api_key = settings.STRIPE_SECRET_KEY


# ---------------------------------------------------------------------------
# tier math
# ---------------------------------------------------------------------------
def is_subscription_active(user: Optional[dict]) -> bool:
    sub = (user or {}).get("subscription") or {}
    return sub.get("status") in ACTIVE_STATUSES


def current_tier(user: Optional[dict]) -> str:
    sub = (user or {}).get("subscription") or {}
    tier = sub.get("tier") or "none"
    if tier not in TIER_ACCESS or not is_subscription_active(user):
        return "none"
    return tier


def _month_start(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(UTC)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def submissions_this_month(uid: str, now: Optional[datetime] = None) -> int:
    return store.submissions.count_documents({
        "athleteUid": uid,
        "createdAt": {"$gte": _month_start(now)},
    })


def can_submit_video(user: dict, now: Optional[datetime] = None) -> bool:
    limit = TIER_ACCESS[current_tier(user)]["maxVideoSubmissions"]
    if limit == -1:
        return True
    return submissions_this_month(user["uid"], now) < limit


def coach_limit(user: dict) -> int:
    """How many coaches (assigned plus followed) the athlete's tier allows; -1 is unlimited."""
    return TIER_ACCESS[current_tier(user)]["maxCoaches"]


def can_add_coach(user: dict, current_count: int) -> bool:
    limit = coach_limit(user)
    return limit == -1 or current_count < limit


def subscription_summary(user: dict, now: Optional[datetime] = None) -> Dict[str, Any]:
    tier = current_tier(user)
    access = TIER_ACCESS[tier]
    limit = access["maxVideoSubmissions"]
    used = submissions_this_month(user["uid"], now)
    sub = user.get("subscription") or {}
    return {
        "tier": tier,
        "status": sub.get("status") or "none",
        "isActive": is_subscription_active(user),
        "videoSubmissions": {
            "used": used,
            "limit": limit,
            "remaining": -1 if limit == -1 else max(0, limit - used),
        },
        "access": access,
        "currentPeriodEnd": sub.get("currentPeriodEnd"),
        "cancelAtPeriodEnd": bool(sub.get("cancelAtPeriodEnd", False)),
    }


def tier_for_price(price_id: Optional[str]) -> Optional[str]:
    if price_id and price_id == settings.STRIPE_PRICE_BASIC:
        return "basic"
    if price_id and price_id == settings.STRIPE_PRICE_ELITE:
        return "elite"
    return None


def price_for_tier(tier: str) -> str:
    return {"basic": settings.STRIPE_PRICE_BASIC, "elite": settings.STRIPE_PRICE_ELITE}.get(tier, "")


# ---------------------------------------------------------------------------
# user writes
# ---------------------------------------------------------------------------
def apply_tier(uid: str, tier: str, status: str, extra: Optional[Dict[str, Any]] = None) -> bool:
    access = TIER_ACCESS[tier]
    update: Dict[str, Any] = {
        "subscription.tier": tier,
        "subscription.status": status,
        "updatedAt": datetime.now(UTC),
    }
    update.update({f"access.{k}": v for k, v in access.items()})
    for k, v in (extra or {}).items():
        update[f"subscription.{k}"] = v
    res = store.users.update_one({"_id": uid}, {"$set": update})
    if not res.matched_count:
        logger.warning("subscription update for unknown user", extra={"uid": uid, "tier": tier})
        return False
    logger.info("subscription updated", extra={"uid": uid, "tier": tier, "status": status})
    return True


def _period_end(obj: Any) -> Optional[datetime]:
    ts = obj.get("current_period_end")
    return datetime.fromtimestamp(ts, UTC) if ts else None


def _subscription_price(subscription: Any) -> Optional[str]:
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    return (items[0].get("price") or {}).get("id")


def _uid_for_subscription(subscription_id: str) -> Optional[str]:
    user = store.users.find_one({"subscription.stripeSubscriptionId": subscription_id}, {"_id": 1})
    return user["_id"] if user else None


# ---------------------------------------------------------------------------
# webhook events
# ---------------------------------------------------------------------------
def handle_checkout_completed(session: Any) -> Optional[str]:
    metadata = session.get("metadata") or {}
    uid, tier = metadata.get("uid"), metadata.get("tier")
    if not uid or tier not in PAID_TIERS:
        logger.info("checkout completed without uid/tier metadata", extra={"session": session.get("id")})
        return None
    extra = {"stripeCustomerId": session.get("customer")}
    if session.get("subscription"):
        extra["stripeSubscriptionId"] = session.get("subscription")
    apply_tier(uid, tier, "active", extra)
    return uid


def handle_subscription_changed(subscription: Any) -> Optional[str]:
    metadata = subscription.get("metadata") or {}
    uid = metadata.get("uid") or _uid_for_subscription(subscription.get("id"))
    tier = metadata.get("tier") or tier_for_price(_subscription_price(subscription))
    if not uid or tier not in PAID_TIERS:
        logger.info("subscription event without resolvable uid/tier", extra={"subscription": subscription.get("id")})
        return None
    apply_tier(uid, tier, subscription.get("status") or "active", {
        "stripeSubscriptionId": subscription.get("id"),
        "stripeCustomerId": subscription.get("customer"),
        "currentPeriodEnd": _period_end(subscription),
        "cancelAtPeriodEnd": bool(subscription.get("cancel_at_period_end", False)),
    })
    return uid


def handle_subscription_deleted(subscription: Any) -> Optional[str]:
    metadata = subscription.get("metadata") or {}
    uid = metadata.get("uid") or _uid_for_subscription(subscription.get("id"))
    if not uid:
        return None
    apply_tier(uid, "none", "canceled", {"cancelAtPeriodEnd": False})
    return uid


def handle_payment_failed(invoice: Any) -> Optional[str]:
    subscription_id = invoice.get("subscription")
    if not subscription_id:
        return None
    uid = _uid_for_subscription(subscription_id)
    if not uid:
        try:
            subscription = stripe.Subscription.retrieve(subscription_id)
        except stripe.StripeError as e:
            logger.error("could not load subscription for failed payment",
                         extra={"subscription": subscription_id, "error": str(e)})
            return None
        metadata = getattr(subscription, "metadata", None) or {}
        uid = metadata["uid"] if "uid" in metadata else None
    if not uid:
        return None
    store.users.update_one(
        {"_id": uid},
        {"$set": {"subscription.status": "past_due", "updatedAt": datetime.now(UTC)}},
    )
    logger.warning("subscription payment failed", extra={"uid": uid, "subscription": subscription_id})
    return uid


EVENT_HANDLERS = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.created": handle_subscription_changed,
    "customer.subscription.updated": handle_subscription_changed,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_failed": handle_payment_failed,
}


def dispatch_event(event: Any) -> Optional[str]:
    """Run the handler for one verified Stripe event; unknown types are ignored."""
    handler = EVENT_HANDLERS.get(event.get("type"))
    if handler is None:
        logger.debug("ignoring stripe event", extra={"type": event.get("type")})
        return None
    return handler(event["data"]["object"])
