# linkvault_app/services/billing.py
# -*- coding: utf-8 -*-
"""Stripe sessions and the subscription state machine fed by webhooks."""
from __future__ import annotations
import json
import logging
from dataclasses import dataclass

import stripe
from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import InvalidSignature, NotFound, ValidationError
from ..extensions import db
from ..models.account import (
    Account, PLAN_FREE, PLAN_PREMIUM, STATUS_ACTIVE, STATUS_CANCELLED, STATUS_INACTIVE,
)
from ..models.billing import BillingEvent
from . import accounts

log = logging.getLogger(__name__)

APPLIED = "applied"
IGNORED = "ignored"
DROPPED = "dropped"
STALE = "stale"
DUPLICATE = "duplicate"

ANY = "*"


def _stripe():
    stripe.api_key = current_app.config["STRIPE_SECRET_KEY"]
    return stripe


def _get(obj, key, default=None):
    """Read a field from a dict or a StripeObject."""
    if obj is None:
        return default
    getter = getattr(obj, "get", None)
    if callable(getter):
        return getter(key, default)
    return getattr(obj, key, default)


@dataclass(frozen=True)
class Transition:
    plan: str
    status: str
    store_subscription: bool = False
    clear_subscription: bool = False
    upsert: bool = False


# (event type, provider subscription status) -> target state.
# Targets are assigned, never toggled, so replaying an event is harmless.
TRANSITIONS = {
    ("customer.subscription.created", ANY):
        Transition(PLAN_PREMIUM, STATUS_ACTIVE, store_subscription=True, upsert=True),
    ("customer.subscription.updated", "active"):
        Transition(PLAN_PREMIUM, STATUS_ACTIVE, store_subscription=True),
    ("customer.subscription.updated", "canceled"):
        Transition(PLAN_FREE, STATUS_CANCELLED, store_subscription=True),
    ("customer.subscription.updated", ANY):
        Transition(PLAN_FREE, STATUS_INACTIVE, store_subscription=True),
    ("customer.subscription.deleted", ANY):
        Transition(PLAN_FREE, STATUS_CANCELLED, clear_subscription=True),
    ("invoice.payment_succeeded", ANY):
        Transition(PLAN_PREMIUM, STATUS_ACTIVE),
}

# recognised but never change state
LOG_ONLY = {"checkout.session.completed", "invoice.payment_failed"}


@dataclass
class EventResult:
    outcome: str
    user_id: str | None = None
    subscription_id: str | None = None


def lookup_transition(event_type: str, status: str | None) -> Transition | None:
    return TRANSITIONS.get((event_type, status)) or TRANSITIONS.get((event_type, ANY))


def _invoice_subscription_id(invoice) -> str | None:
    sub = _get(invoice, "subscription")
    if not sub:
        # newer API versions nest it under parent.subscription_details
        details = _get(_get(invoice, "parent"), "subscription_details")
        sub = _get(details, "subscription")
    if isinstance(sub, str) or sub is None:
        return sub
    return _get(sub, "id")


def resolve_event(event: dict) -> tuple[str | None, str | None, str | None]:
    """Returns (user_id, subscription_id, provider status) for an event."""
    event_type = event.get("type") or ""
    obj = (event.get("data") or {}).get("object") or {}

    if event_type.startswith("customer.subscription."):
        return _get(_get(obj, "metadata"), "userId"), _get(obj, "id"), _get(obj, "status")

    if event_type.startswith("invoice."):
        sub_id = _invoice_subscription_id(obj)
        if not sub_id:
            return None, None, None
        sub = _stripe().Subscription.retrieve(sub_id)
        return _get(_get(sub, "metadata"), "userId"), sub_id, _get(sub, "status")

    if event_type == "checkout.session.completed":
        return _get(_get(obj, "metadata"), "userId"), _get(obj, "subscription"), None

    return None, None, None


def apply_event(event: dict) -> EventResult:
    """Apply one verified provider event to the account it names."""
    event_type = event.get("type") or ""
    if event_type not in LOG_ONLY and not any(k[0] == event_type for k in TRANSITIONS):
        log.info("Unhandled billing event type: %s", event_type)
        return EventResult(IGNORED)

    user_id, sub_id, status = resolve_event(event)
    if not user_id:
        log.info("Dropping %s %s: no userId in metadata", event_type, event.get("id"))
        return EventResult(DROPPED, subscription_id=sub_id)

    if event_type in LOG_ONLY:
        log.info("%s for user %s (subscription %s)", event_type, user_id, sub_id)
        return EventResult(IGNORED, user_id, sub_id)

    transition = lookup_transition(event_type, status)
    if transition.upsert:
        accounts.get_or_create_account(user_id)

    fields = {"plan": transition.plan, "subscription_status": transition.status}
    if transition.store_subscription:
        fields["subscription_id"] = sub_id
    if transition.clear_subscription:
        fields["subscription_id"] = None

    guards = []
    created = event.get("created")
    if isinstance(created, int):
        fields["billing_event_at"] = created
        guards.append(or_(Account.billing_event_at.is_(None), Account.billing_event_at <= created))

    if accounts.update_account(user_id, *guards, **fields) is None:
        if accounts.find_account(user_id) is None:
            log.info("Dropping %s: no account for user %s", event_type, user_id)
            return EventResult(DROPPED, user_id, sub_id)
        log.info("Skipping stale %s for user %s (created %s)", event_type, user_id, created)
        return EventResult(STALE, user_id, sub_id)

    log.info("%s: user %s -> %s/%s", event_type, user_id, transition.plan, transition.status)
    return EventResult(APPLIED, user_id, sub_id)


def verify_event(payload: bytes | str, signature: str | None) -> dict:
    """Check the Stripe-Signature header and return the decoded event."""
    if not signature:
        log.warning("Webhook without Stripe-Signature header")
        raise InvalidSignature("Missing signature")
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET") or ""
    tolerance = int(current_app.config.get("STRIPE_WEBHOOK_TOLERANCE", 300))
    try:
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        stripe.WebhookSignature.verify_header(text, signature, secret, tolerance)
    except (stripe.SignatureVerificationError, UnicodeDecodeError):
        log.warning("Webhook signature verification failed")
        raise InvalidSignature("Invalid signature")
    try:
        event = json.loads(text)
    except ValueError:
        raise ValidationError("Invalid payload")
    if not isinstance(event, dict):
        raise ValidationError("Invalid payload")
    return event


def handle_webhook(payload: bytes | str, signature: str | None) -> EventResult:
    event = verify_event(payload, signature)
    event_id = event.get("id")
    if event_id and BillingEvent.query.filter_by(event_id=event_id).first():
        log.info("Billing event %s already processed", event_id)
        return EventResult(DUPLICATE)

    result = apply_event(event)

    if event_id:
        db.session.add(BillingEvent(
            event_id=event_id,
            event_type=event.get("type") or "",
            user_id=result.user_id,
            subscription_id=result.subscription_id,
            outcome=result.outcome,
        ))
        try:
            db.session.commit()
        except IntegrityError:
            # concurrent delivery of the same id recorded it first
            db.session.rollback()
    return result


def configured_prices() -> dict:
    cfg = current_app.config
    return {"monthly": cfg.get("STRIPE_PRICE_MONTHLY") or None, "annual": cfg.get("STRIPE_PRICE_ANNUAL") or None}


def create_checkout_session(account: Account, price_id: str, is_annual: bool = False) -> dict:
    if not price_id:
        raise ValidationError("Price ID is required")
    s = _stripe()
    cfg = current_app.config
    sess = s.checkout.Session.create(
        mode="subscription",
        customer_email=account.email,
        line_items=[{"price": price_id, "quantity": 1}],
        payment_method_types=["card", "link"],
        success_url=cfg["STRIPE_SUCCESS_URL"],
        cancel_url=cfg["STRIPE_CANCEL_URL"],
        metadata={
            "userId": account.user_id,
            "plan": PLAN_PREMIUM,
            "isAnnual": "true" if is_annual else "false",
        },
        subscription_data={"metadata": {"userId": account.user_id, "plan": PLAN_PREMIUM}},
    )
    return {"sessionId": _get(sess, "id"), "url": _get(sess, "url")}


def create_portal_session(account: Account | None) -> dict:
    if not account or not account.subscription_id:
        raise NotFound("No active subscription found")
    s = _stripe()
    sub = s.Subscription.retrieve(account.subscription_id)
    customer = _get(sub, "customer")
    if not isinstance(customer, str):
        customer = _get(customer, "id")
    portal = s.billing_portal.Session.create(
        customer=customer,
        return_url=current_app.config["STRIPE_PORTAL_RETURN_URL"],
    )
    return {"url": _get(portal, "url")}
