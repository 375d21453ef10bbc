# playbookd/routes/billing.py
import json
import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from playbookd import db as store
from playbookd import settings
from playbookd.auth import get_current_user
from playbookd.schemas.billing import CheckoutRequest
from playbookd.services.billing import (
    apply_tier,
    dispatch_event,
    price_for_tier,
    subscription_summary,
)
from playbookd.utils.logger import log_activity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing"])


@router.post("/billing/checkout")
def create_checkout(body: CheckoutRequest, current_user: dict = Depends(get_current_user)):
    price_id = price_for_tier(body.tier)
    if not settings.STRIPE_SECRET_KEY or not price_id:
        raise HTTPException(status_code=503, detail="Billing is not configured")

    try:
        session = stripe.checkout.Session.create(
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=f"{settings.BASE_URL}/dashboard/billing?payment=success&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.BASE_URL}/dashboard/billing?payment=cancelled",
            customer_email=current_user.get("email"),
            client_reference_id=current_user["uid"],
            metadata={"uid": current_user["uid"], "tier": body.tier},
            subscription_data={"metadata": {"uid": current_user["uid"], "tier": body.tier}},
        )
    except stripe.StripeError as e:
        logger.error("stripe checkout failed", extra={"uid": current_user["uid"], "error": str(e)})
        raise HTTPException(status_code=502, detail="Could not create checkout session")

    log_activity(user_id=current_user["uid"], action="billing_checkout", metadata={"tier": body.tier})
    return {"sessionId": session.id, "url": session.url}


@router.get("/billing/verify-session")
def verify_session(session_id: str = Query(..., min_length=1), current_user: dict = Depends(get_current_user)):
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.StripeError as e:
        logger.warning("stripe session lookup failed", extra={"session": session_id, "error": str(e)})
        raise HTTPException(status_code=400, detail="Could not verify checkout session")

    metadata = getattr(session, "metadata", None) or {}
    uid = metadata["uid"] if "uid" in metadata else None
    tier = metadata["tier"] if "tier" in metadata else None
    if uid != current_user["uid"]:
        raise HTTPException(status_code=403, detail="This checkout session belongs to another account")

    paid = getattr(session, "payment_status", None) == "paid"
    if paid and tier:
        extra = {"stripeCustomerId": getattr(session, "customer", None)}
        if getattr(session, "subscription", None):
            extra["stripeSubscriptionId"] = session.subscription
        apply_tier(uid, tier, "active", extra)

    return {"paid": paid, "tier": tier if paid else None}


@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request):
    if not settings.STRIPE_WEBHOOK_SECRET:
        # never accept unsigned events
        logger.error("stripe webhook rejected: secret not configured")
        raise HTTPException(status_code=500, detail="Webhook not configured")

    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")
    try:
        stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        logger.warning("stripe webhook signature verification failed")
        raise HTTPException(status_code=400, detail="Invalid signature")

    event = json.loads(payload)
    uid = dispatch_event(event)
    logger.info("stripe event processed", extra={"type": event.get("type"), "uid": uid})
    return {"received": True}


@router.get("/billing/summary")
def billing_summary(current_user: dict = Depends(get_current_user)):
    user = store.users.find_one({"_id": current_user["uid"]}) or {}
    return subscription_summary({**current_user, "subscription": user.get("subscription") or {}})
