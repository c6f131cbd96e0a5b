# tests/test_billing.py
from __future__ import annotations

import json
import time

import pytest
import stripe

from conftest import account_of, make_account, make_event, sign_payload, subscription_obj
from linkvault_app.errors import InvalidSignature
from linkvault_app.models import BillingEvent
from linkvault_app.services import billing, entitlements


def _apply(event_type, obj, **kw):
    return billing.apply_event(make_event(event_type, obj, **kw))


def test_subscription_created_upgrades_and_upserts(db_session, user_id):
    result = _apply("customer.subscription.created", subscription_obj(user_id, "sub_A"))
    assert result.outcome == "applied"
    acct = account_of(db_session, user_id)
    assert (acct.plan, acct.subscription_status, acct.subscription_id) == ("premium", "active", "sub_A")

    limits = entitlements.get_user_limits(user_id)
    assert limits.links_limit == -1
    assert limits.can_create_link is True


def test_premium_ignores_prior_counter(db_session, user_id):
    make_account(db_session, user_id, links_created=12)
    assert entitlements.get_user_limits(user_id).can_create_link is False
    _apply("customer.subscription.created", subscription_obj(user_id))
    limits = entitlements.get_user_limits(user_id)
    assert limits.can_create_link is True
    assert limits.links_used == 12


@pytest.mark.parametrize("status,plan,sub_status", [
    ("active", "premium", "active"),
    ("canceled", "free", "cancelled"),
    ("past_due", "free", "inactive"),
    ("unpaid", "free", "inactive"),
])
def test_subscription_updated_transitions(db_session, user_id, status, plan, sub_status):
    make_account(db_session, user_id, plan="premium", subscription_status="active", subscription_id="sub_1")
    _apply("customer.subscription.updated", subscription_obj(user_id, "sub_1", status=status))
    acct = account_of(db_session, user_id)
    assert (acct.plan, acct.subscription_status, acct.subscription_id) == (plan, sub_status, "sub_1")
    expected_links = -1 if plan == "premium" else 5
    assert acct.max_links == expected_links


def test_subscription_deleted_twice_is_idempotent(db_session, user_id):
    make_account(db_session, user_id, plan="premium", subscription_status="active", subscription_id="sub_1")
    event = make_event("customer.subscription.deleted", subscription_obj(user_id, "sub_1", status="canceled"))

    billing.apply_event(event)
    once = account_of(db_session, user_id)
    snapshot = (once.plan, once.subscription_status, once.subscription_id, once.max_links, once.max_file_bytes)
    assert snapshot == ("free", "cancelled", None, 5, 10 * 1024 * 1024)

    assert billing.apply_event(event).outcome == "applied"
    twice = account_of(db_session, user_id)
    assert (twice.plan, twice.subscription_status, twice.subscription_id,
            twice.max_links, twice.max_file_bytes) == snapshot


def test_stale_event_does_not_undo_newer_state(db_session, user_id):
    now = int(time.time())
    _apply("customer.subscription.created", subscription_obj(user_id), created=now - 100)
    _apply("customer.subscription.deleted", subscription_obj(user_id, status="canceled"), created=now)
    late = _apply("customer.subscription.updated", subscription_obj(user_id), created=now - 50)
    assert late.outcome == "stale"
    assert account_of(db_session, user_id).plan == "free"


def test_event_without_user_is_dropped(db_session):
    assert _apply("customer.subscription.created", subscription_obj(None)).outcome == "dropped"


def test_update_for_unknown_account_is_dropped(db_session, user_id):
    assert _apply("customer.subscription.updated", subscription_obj(user_id)).outcome == "dropped"
    assert account_of(db_session, user_id) is None


def test_checkout_completed_changes_nothing(db_session, user_id):
    make_account(db_session, user_id)
    obj = {"id": "cs_1", "subscription": "sub_1", "metadata": {"userId": user_id}}
    assert _apply("checkout.session.completed", obj).outcome == "ignored"
    assert account_of(db_session, user_id).plan == "free"


def test_unhandled_event_type_is_ignored(db_session):
    assert _apply("customer.created", {"id": "cus_1"}).outcome == "ignored"


def _retrieve_returning(monkeypatch, user_id, calls=None):
    def _retrieve(sub_id, **k):
        if calls is not None:
            calls.append(sub_id)
        return {"id": sub_id, "status": "active", "customer": "cus_1", "metadata": {"userId": user_id}}
    monkeypatch.setattr(stripe.Subscription, "retrieve", staticmethod(_retrieve))


def test_invoice_paid_reaffirms_premium(db_session, user_id, monkeypatch):
    make_account(db_session, user_id, plan="free", subscription_status="inactive", subscription_id="sub_9")
    calls = []
    _retrieve_returning(monkeypatch, user_id, calls)
    result = _apply("invoice.payment_succeeded", {"id": "in_1", "subscription": "sub_9"})
    assert result.outcome == "applied"
    assert calls == ["sub_9"]
    acct = account_of(db_session, user_id)
    assert (acct.plan, acct.subscription_status) == ("premium", "active")


def test_invoice_subscription_from_parent_details(db_session, user_id, monkeypatch):
    make_account(db_session, user_id)
    _retrieve_returning(monkeypatch, user_id)
    invoice = {"id": "in_2", "parent": {"subscription_details": {"subscription": "sub_7"}}}
    assert _apply("invoice.payment_succeeded", invoice).outcome == "applied"


def test_invoice_failed_is_log_only(db_session, user_id, monkeypatch):
    make_account(db_session, user_id, plan="premium", subscription_status="active")
    _retrieve_returning(monkeypatch, user_id)
    assert _apply("invoice.payment_failed", {"id": "in_3", "subscription": "sub_1"}).outcome == "ignored"
    assert account_of(db_session, user_id).plan == "premium"


def test_invoice_without_subscription_is_dropped(db_session):
    assert _apply("invoice.payment_succeeded", {"id": "in_4"}).outcome == "dropped"


# ---------- signature verification ----------
def test_verify_event_accepts_valid_signature(app):
    payload = json.dumps(make_event("customer.created", {"id": "cus_1"}))
    with app.app_context():
        event = billing.verify_event(payload.encode(), sign_payload(payload))
    assert event["type"] == "customer.created"


@pytest.mark.parametrize("signature", [
    None,
    "",
    "t=1,v1=deadbeef",
])
def test_verify_event_rejects_bad_signature(app, signature):
    payload = json.dumps(make_event("customer.created", {"id": "cus_1"}))
    with app.app_context(), pytest.raises(InvalidSignature):
        billing.verify_event(payload, signature)


def test_verify_event_rejects_wrong_secret(app):
    payload = json.dumps(make_event("customer.created", {"id": "cus_1"}))
    with app.app_context(), pytest.raises(InvalidSignature):
        billing.verify_event(payload, sign_payload(payload, secret="whsec_other"))


def test_handle_webhook_records_and_skips_replays(db_session, user_id):
    event = make_event("customer.subscription.created", subscription_obj(user_id, "sub_R"), event_id="evt_replay")
    payload = json.dumps(event)

    assert billing.handle_webhook(payload, sign_payload(payload)).outcome == "applied"
    assert billing.handle_webhook(payload, sign_payload(payload)).outcome == "duplicate"

    rows = BillingEvent.query.filter_by(event_id="evt_replay").all()
    assert len(rows) == 1
    assert rows[0].outcome == "applied"
    assert rows[0].user_id == user_id
