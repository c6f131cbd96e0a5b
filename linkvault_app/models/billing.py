# linkvault_app/models/billing.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime
from ..extensions import db


class BillingEvent(db.Model):
    """Provider events already applied; a redelivered id is acknowledged and skipped."""
    __tablename__ = "billing_events"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.String(255), unique=True, nullable=False, index=True)
    event_type = db.Column(db.String(100), nullable=False, index=True)
    user_id = db.Column(db.String(120), nullable=True, index=True)
    subscription_id = db.Column(db.String(120), nullable=True)
    outcome = db.Column(db.String(40), nullable=False)     # applied, ignored, dropped, stale
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<BillingEvent {self.event_id} - {self.event_type}>"
