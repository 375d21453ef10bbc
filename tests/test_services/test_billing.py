import stripe

from playbookd import settings
from playbookd.services.billing import (
    can_add_coach,
    can_submit_video,
    coach_limit,
    current_tier,
    dispatch_event,
    subscription_summary,
    tier_for_price,
)


def _user(uid="u1", **subscription):
    return {"uid": uid, "subscription": subscription}


def test_current_tier_requires_active_subscription():
    assert current_tier(_user(tier="elite", status="active")) == "elite"
    assert current_tier(_user(tier="basic", status="trialing")) == "basic"
    assert current_tier(_user(tier="elite", status="canceled")) == "none"
    assert current_tier(_user(tier="platinum", status="active")) == "none"
    assert current_tier({}) == "none"


def test_coach_limits_by_tier():
    free = _user()
    basic = _user(tier="basic", status="active")
    elite = _user(tier="elite", status="trialing")

    assert coach_limit(free) == 1
    assert can_add_coach(free, 0) and not can_add_coach(free, 1)
    assert can_add_coach(basic, 2) and not can_add_coach(basic, 3)
    assert coach_limit(elite) == -1
    assert can_add_coach(elite, 50)


def test_submission_limits(mock_db):
    assert can_submit_video(_user(tier="elite", status="active")) is True
    assert can_submit_video(_user(tier="basic", status="active")) is True
    assert can_submit_video(_user()) is False


def test_summary_for_basic_tier(mock_db):
    summary = subscription_summary(_user(tier="basic", status="active"))
    assert summary["tier"] == "basic"
    assert summary["isActive"] is True
    assert summary["videoSubmissions"] == {"used": 0, "limit": 2, "remaining": 2}
    assert summary["access"]["hasAIAssistant"] is False


def test_tier_for_price(monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_PRICE_BASIC", "price_basic")
    monkeypatch.setattr(settings, "STRIPE_PRICE_ELITE", "price_elite")
    assert tier_for_price("price_basic") == "basic"
    assert tier_for_price("price_elite") == "elite"
    assert tier_for_price("price_other") is None
    assert tier_for_price(None) is None


def test_checkout_completed_applies_tier(mock_db):
    mock_db.users.insert_one({"_id": "u1", "email": "a@example.com"})
    uid = dispatch_event({
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_1",
            "customer": "cus_1",
            "subscription": "sub_1",
            "metadata": {"uid": "u1", "tier": "elite"},
        }},
    })
    assert uid == "u1"

    user = mock_db.users.find_one({"_id": "u1"})
    assert user["subscription"]["tier"] == "elite"
    assert user["subscription"]["status"] == "active"
    assert user["subscription"]["stripeSubscriptionId"] == "sub_1"
    assert user["access"]["hasAIAssistant"] is True


def test_checkout_without_metadata_is_ignored(mock_db):
    assert dispatch_event({"type": "checkout.session.completed", "data": {"object": {"id": "cs_2"}}}) is None


def test_subscription_updated_resolves_user_by_subscription_id(mock_db, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_PRICE_BASIC", "price_basic")
    mock_db.users.insert_one({"_id": "u2", "subscription": {"stripeSubscriptionId": "sub_2", "tier": "elite"}})

    uid = dispatch_event({
        "type": "customer.subscription.updated",
        "data": {"object": {
            "id": "sub_2",
            "customer": "cus_2",
            "status": "active",
            "cancel_at_period_end": True,
            "current_period_end": 1767225600,
            "items": {"data": [{"price": {"id": "price_basic"}}]},
        }},
    })
    assert uid == "u2"

    sub = mock_db.users.find_one({"_id": "u2"})["subscription"]
    assert sub["tier"] == "basic"
    assert sub["cancelAtPeriodEnd"] is True
    assert sub["currentPeriodEnd"] is not None


def test_subscription_deleted_drops_to_none(mock_db):
    mock_db.users.insert_one({"_id": "u3", "subscription": {"stripeSubscriptionId": "sub_3", "tier": "elite", "status": "active"}})
    dispatch_event({"type": "customer.subscription.deleted", "data": {"object": {"id": "sub_3"}}})

    user = mock_db.users.find_one({"_id": "u3"})
    assert user["subscription"]["tier"] == "none"
    assert user["subscription"]["status"] == "canceled"
    assert user["access"]["maxVideoSubmissions"] == 0


def test_payment_failed_marks_past_due(mock_db, monkeypatch):
    mock_db.users.insert_one({"_id": "u4", "subscription": {"tier": "basic", "status": "active"}})

    class FakeSubscription:
        metadata = {"uid": "u4"}

    monkeypatch.setattr(stripe.Subscription, "retrieve", lambda sub_id: FakeSubscription())
    uid = dispatch_event({"type": "invoice.payment_failed", "data": {"object": {"subscription": "sub_4"}}})

    assert uid == "u4"
    assert mock_db.users.find_one({"_id": "u4"})["subscription"]["status"] == "past_due"


def test_payment_failed_survives_stripe_errors(mock_db, monkeypatch):
    mock_db.users.insert_one({"_id": "u5", "subscription": {"tier": "basic", "status": "active"}})

    def unavailable(sub_id):
        raise stripe.StripeError("api down")

    monkeypatch.setattr(stripe.Subscription, "retrieve", unavailable)
    event = {"type": "invoice.payment_failed", "data": {"object": {"subscription": "sub_5"}}}

    assert dispatch_event(event) is None
    assert mock_db.users.find_one({"_id": "u5"})["subscription"]["status"] == "active"


def test_unknown_event_types_are_ignored(mock_db):
    assert dispatch_event({"type": "customer.created", "data": {"object": {}}}) is None
