# linkvault_app/services/entitlements.py
# -*- coding: utf-8 -*-
"""Plan limits, usage accounting and ad credits.

The link counter on ``Account`` is cumulative: it only moves up, either by one
per created link or by the reconcile ratchet. Deleting links never gives quota
back.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, asdict
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import QuotaExceeded, FileQuotaExceeded, SlugTaken, StorageUnavailable
from ..extensions import db
from ..models.account import Account, AdCreditClaim, PLAN_FREE, PLAN_PREMIUM
from . import accounts, links
from .plans import MIB, PLAN_LIMITS, is_unlimited

log = logging.getLogger(__name__)

MODE_FAIL_OPEN = "fail-open"
MODE_STRICT = "strict"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.title() for p in rest)


@dataclass
class UserLimits:
    can_create_link: bool
    can_upload_file: bool
    max_file_size: int
    total_file_size_used: int
    links_used: int
    links_limit: int
    plan: str
    ad_credits: int

    @classmethod
    def fallback(cls) -> "UserLimits":
        free = PLAN_LIMITS[PLAN_FREE]
        return cls(
            can_create_link=True,
            can_upload_file=True,
            max_file_size=free["max_file_bytes"],
            total_file_size_used=0,
            links_used=0,
            links_limit=free["max_links"],
            plan=PLAN_FREE,
            ad_credits=0,
        )

    def to_dict(self) -> dict:
        return {_camel(k): v for k, v in asdict(self).items()}


@dataclass
class FileUploadCheck:
    can_upload: bool
    total_size_after: int
    error: str | None = None

    def to_dict(self) -> dict:
        data = {"canUpload": self.can_upload, "totalSizeAfter": self.total_size_after}
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class AdCreditAward:
    credits: int
    awarded: int
    already_claimed: bool = False

    def to_dict(self) -> dict:
        return {"credits": self.credits, "awarded": self.awarded, "alreadyClaimed": self.already_claimed}


def enforcement_mode() -> str:
    mode = (current_app.config.get("QUOTA_ENFORCEMENT_MODE") or MODE_FAIL_OPEN).lower()
    return MODE_STRICT if mode == MODE_STRICT else MODE_FAIL_OPEN


def reconcile_account(user_id: str, email: str | None = None) -> Account:
    """Bring the stored usage in line with the live links.

    links_created becomes max(stored, live count); total_file_bytes becomes the
    current footprint; plan limits are re-projected. Safe to run any number of times.
    """
    accounts.get_or_create_account(user_id, email)
    live = links.count_links(user_id)
    file_bytes = links.sum_file_bytes(user_id)
    return accounts.ratchet_usage(user_id, live, file_bytes)


def limits_from_account(acct: Account) -> UserLimits:
    max_links = acct.max_links
    used = acct.links_created or 0
    credits = acct.ad_credits or 0
    return UserLimits(
        can_create_link=is_unlimited(max_links) or used < max_links or credits > 0,
        can_upload_file=acct.plan == PLAN_PREMIUM or acct.max_file_bytes > 0,
        max_file_size=acct.max_file_bytes,
        total_file_size_used=acct.total_file_bytes or 0,
        links_used=used,
        links_limit=max_links,
        plan=acct.plan,
        ad_credits=credits,
    )


def get_user_limits(user_id: str, email: str | None = None) -> UserLimits:
    try:
        return limits_from_account(reconcile_account(user_id, email))
    except SQLAlchemyError:
        db.session.rollback()
        if enforcement_mode() == MODE_STRICT:
            log.exception("Limits unavailable for %s (strict mode)", user_id)
            raise StorageUnavailable("Usage limits are temporarily unavailable. Try again later.")
        log.exception("Limits unavailable for %s, serving free-plan fallback", user_id)
        return UserLimits.fallback()


def _size_of(entry) -> int:
    if isinstance(entry, dict):
        entry = entry.get("size_bytes", entry.get("size"))
    if isinstance(entry, bool) or not isinstance(entry, (int, float)):
        return 0
    return int(entry)


def _mb(value: int) -> float:
    return round(value / MIB, 1)


def _file_check(limits: UserLimits, files: Iterable) -> FileUploadCheck:
    total_after = limits.total_file_size_used + sum(_size_of(f) for f in files)
    if limits.plan == PLAN_PREMIUM or is_unlimited(limits.max_file_size):
        return FileUploadCheck(True, total_after)
    if total_after > limits.max_file_size:
        return FileUploadCheck(
            False,
            total_after,
            f"Total file storage limit exceeded. You've used {_mb(limits.total_file_size_used)}MB "
            f"and this upload would make it {_mb(total_after)}MB, but your limit is "
            f"{_mb(limits.max_file_size)}MB. Upgrade to Premium for unlimited storage.",
        )
    return FileUploadCheck(True, total_after)


def check_file_upload_limit(user_id: str, candidate_files: Iterable) -> FileUploadCheck:
    """Advisory storage check for files that are not stored yet.

    Entries may be byte counts or mappings with ``size``/``size_bytes``.
    """
    return _file_check(get_user_limits(user_id), candidate_files)


def record_link_created(user_id: str) -> str:
    """Charge one link to the account inside the caller's transaction.

    Returns "quota" or "credit". When neither a plan slot nor a credit is left
    the transaction is rolled back and QuotaExceeded is raised.
    """
    spent = accounts.spend_link_slot(user_id)
    if spent:
        return spent
    db.session.rollback()
    acct = accounts.find_account(user_id)
    used = acct.links_created if acct else 0
    limit = acct.max_links if acct else PLAN_LIMITS[PLAN_FREE]["max_links"]
    raise QuotaExceeded(used, limit)


def award_ad_credit(user_id: str, impression_id: str | None = None, email: str | None = None) -> AdCreditAward:
    reward = int(current_app.config.get("AD_CREDIT_REWARD", 2))
    accounts.get_or_create_account(user_id, email)
    if impression_id:
        db.session.add(AdCreditClaim(user_id=user_id, impression_id=impression_id, credits=reward))
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            acct = accounts.find_account(user_id)
            log.info("Ad impression %s already claimed by %s", impression_id, user_id)
            return AdCreditAward(credits=acct.ad_credits, awarded=0, already_claimed=True)
    acct = accounts.increment_account(user_id, email, ad_credits=reward)
    return AdCreditAward(credits=acct.ad_credits, awarded=reward)


def create_link(user_id: str, data, origin: str, email: str | None = None):
    """Full creation flow: limits, validation, storage, slug, insert, charge."""
    limits = get_user_limits(user_id, email)
    if not limits.can_create_link:
        raise QuotaExceeded(limits.links_used, limits.links_limit)

    fields, files = links.validate_link_payload(data)
    if files:
        check = _file_check(limits, files)
        if not check.can_upload:
            raise FileQuotaExceeded(check.error, limits.total_file_size_used, limits.max_file_size, limits.plan)

    slug = links.resolve_slug(data.get("customSlug"), fields["title"])
    try:
        link = links.add_link(user_id, fields, files, slug, links.share_url_for(origin, slug))
        spent = record_link_created(user_id)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise SlugTaken(slug)
    log.info("Link %s created for %s (%s)", link.id, user_id, spent)
    return link
