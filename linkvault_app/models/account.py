# linkvault_app/models/account.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime
from ..extensions import db

PLAN_FREE = "free"
PLAN_PREMIUM = "premium"

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUS_CANCELLED = "cancelled"


class Account(db.Model):
    __tablename__ = "accounts"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(120), unique=True, nullable=False, index=True)
    email = db.Column(db.String(180), nullable=False)

    plan = db.Column(db.String(20), nullable=False, default=PLAN_FREE)              # free | premium
    subscription_id = db.Column(db.String(120), nullable=True)
    subscription_status = db.Column(db.String(20), nullable=False, default=STATUS_INACTIVE)

    # cumulative: never lowered, not even when links are deleted
    links_created = db.Column(db.Integer, nullable=False, default=0)
    # current footprint, recomputed on every reconcile
    total_file_bytes = db.Column(db.BigInteger, nullable=False, default=0)
    ad_credits = db.Column(db.Integer, nullable=False, default=0)

    # projection of PLAN_LIMITS[plan]; -1 = unlimited
    max_links = db.Column(db.Integer, nullable=False, default=5)
    max_file_bytes = db.Column(db.BigInteger, nullable=False, default=10 * 1024 * 1024)

    # provider timestamp (epoch seconds) of the last applied billing event
    billing_event_at = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Account {self.user_id} {self.plan}>"


class AdCreditClaim(db.Model):
    __tablename__ = "ad_credit_claims"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(120), nullable=False, index=True)
    impression_id = db.Column(db.String(120), nullable=False)
    credits = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "impression_id", name="uq_ad_claim_user_impression"),
    )
