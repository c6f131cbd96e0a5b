# linkvault_app/services/accounts.py
# -*- coding: utf-8 -*-
"""Account record store.

Every mutation here is a single-row UPDATE, so each one is atomic on its own;
nothing in this module holds a lock across statements.
"""
from __future__ import annotations
from sqlalchemy import update, case, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models.account import Account, PLAN_FREE, STATUS_INACTIVE
from .plans import PLAN_LIMITS, UNLIMITED, limits_for


def placeholder_email(user_id: str) -> str:
    return f"user-{user_id}@example.com"


def find_account(user_id: str) -> Account | None:
    return Account.query.filter_by(user_id=user_id).first()


def get_or_create_account(user_id: str, email: str | None = None) -> Account:
    acct = find_account(user_id)
    if acct:
        if email and email != acct.email and acct.email == placeholder_email(user_id):
            # account was created by a webhook before the user signed in
            _update(user_id, {"email": email})
            db.session.commit()
            acct = find_account(user_id)
        return acct
    limits = limits_for(PLAN_FREE)
    acct = Account(
        user_id=user_id,
        email=email or placeholder_email(user_id),
        plan=PLAN_FREE,
        subscription_status=STATUS_INACTIVE,
        links_created=0,
        total_file_bytes=0,
        ad_credits=0,
        max_links=limits["max_links"],
        max_file_bytes=limits["max_file_bytes"],
    )
    db.session.add(acct)
    try:
        db.session.commit()
    except IntegrityError:
        # another request created it first
        db.session.rollback()
        acct = find_account(user_id)
    return acct


def _projected(key: str):
    """SQL expression of PLAN_LIMITS[plan][key] evaluated against the row's own plan."""
    whens = [(Account.plan == plan, limits[key]) for plan, limits in PLAN_LIMITS.items()]
    return case(*whens, else_=PLAN_LIMITS[PLAN_FREE][key])


def _update(user_id: str, values: dict, *guards) -> int:
    stmt = (
        update(Account)
        .where(Account.user_id == user_id, *guards)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount


def increment_account(user_id: str, email: str | None = None, **deltas: int) -> Account:
    """Upsert-with-increment; returns the post-update record."""
    get_or_create_account(user_id, email)
    _update(user_id, {name: getattr(Account, name) + delta for name, delta in deltas.items()})
    db.session.commit()
    return find_account(user_id)


def update_account(user_id: str, *guards, **fields) -> Account | None:
    """Find-and-update returning the post-update record.

    Returns None when no row matched (missing account or a guard failed).
    Setting ``plan`` always rewrites the cached limit projection with it.
    """
    if "plan" in fields:
        limits = limits_for(fields["plan"])
        fields["max_links"] = limits["max_links"]
        fields["max_file_bytes"] = limits["max_file_bytes"]
    if not _update(user_id, fields, *guards):
        db.session.rollback()
        return None
    db.session.commit()
    return find_account(user_id)


def ratchet_usage(user_id: str, live_links: int, file_bytes: int) -> Account | None:
    """Raise links_created to live_links (never lower it), store the current footprint
    and re-project the plan limits from the stored plan."""
    _update(user_id, {
        "links_created": case(
            (Account.links_created < live_links, live_links),
            else_=Account.links_created,
        ),
        "total_file_bytes": file_bytes,
        "max_links": _projected("max_links"),
        "max_file_bytes": _projected("max_file_bytes"),
    })
    db.session.commit()
    return find_account(user_id)


def spend_link_slot(user_id: str) -> str | None:
    """Account for one new link inside the caller's transaction (no commit).

    Returns "quota" when a plan slot was used, "credit" when an ad credit paid
    for it, None when neither guard holds.
    """
    within_quota = or_(Account.max_links == UNLIMITED, Account.links_created < Account.max_links)
    if _update(user_id, {"links_created": Account.links_created + 1}, within_quota):
        return "quota"
    if _update(
        user_id,
        {"links_created": Account.links_created + 1, "ad_credits": Account.ad_credits - 1},
        Account.ad_credits > 0,
    ):
        return "credit"
    return None
