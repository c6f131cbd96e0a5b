# linkvault_app/models/setting.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime
from ..extensions import db


class UserSettings(db.Model):
    __tablename__ = "user_settings"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(120), unique=True, nullable=False, index=True)
    theme = db.Column(db.String(10), nullable=False, default="dark")          # dark | light
    notifications = db.Column(db.Boolean, nullable=False, default=True)
    public_profile = db.Column(db.Boolean, nullable=False, default=False)
    default_category = db.Column(db.String(20), nullable=False, default="work")
    auto_delete = db.Column(db.Boolean, nullable=False, default=False, index=True)
    auto_delete_days = db.Column(db.Integer, nullable=False, default=30)      # 1..365
    link_expiration = db.Column(db.Boolean, nullable=False, default=False)
    link_expiration_days = db.Column(db.Integer, nullable=False, default=7)   # 1..365
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "theme": self.theme,
            "notifications": bool(self.notifications),
            "publicProfile": bool(self.public_profile),
            "defaultCategory": self.default_category,
            "autoDelete": bool(self.auto_delete),
            "autoDeleteDays": self.auto_delete_days,
            "linkExpiration": bool(self.link_expiration),
            "linkExpirationDays": self.link_expiration_days,
        }
