# linkvault_app/services/settings.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..models import UserSettings, CATEGORIES
from .links import list_links, delete_all_links

THEMES = ("dark", "light")
BOOL_FIELDS = {
    "notifications": "notifications",
    "publicProfile": "public_profile",
    "autoDelete": "auto_delete",
    "linkExpiration": "link_expiration",
}
DAY_FIELDS = {
    "autoDeleteDays": "auto_delete_days",
    "linkExpirationDays": "link_expiration_days",
}


def get_user_settings(user_id: str) -> UserSettings:
    """Settings row for the user, created with defaults on first read."""
    s = UserSettings.query.filter_by(user_id=user_id).first()
    if s:
        return s
    s = UserSettings(user_id=user_id)
    db.session.add(s)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        s = UserSettings.query.filter_by(user_id=user_id).first()
    return s


def _days(key: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 365:
        raise ValidationError(f"{key} must be an integer between 1 and 365")
    return value


def update_user_settings(user_id: str, data) -> UserSettings:
    """Partial update; keys left out of ``data`` keep their value."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON body")

    values = {}
    if data.get("theme") is not None:
        if data["theme"] not in THEMES:
            raise ValidationError("theme must be 'dark' or 'light'")
        values["theme"] = data["theme"]
    if data.get("defaultCategory") is not None:
        if data["defaultCategory"] not in CATEGORIES:
            raise ValidationError(f"defaultCategory must be one of: {', '.join(CATEGORIES)}")
        values["default_category"] = data["defaultCategory"]
    for key, column in BOOL_FIELDS.items():
        if data.get(key) is not None:
            if not isinstance(data[key], bool):
                raise ValidationError(f"{key} must be a boolean")
            values[column] = data[key]
    for key, column in DAY_FIELDS.items():
        if data.get(key) is not None:
            values[column] = _days(key, data[key])

    s = get_user_settings(user_id)
    for column, value in values.items():
        setattr(s, column, value)
    db.session.commit()
    return s


def export_user_data(user_id: str, email: str | None = None, now: datetime | None = None) -> dict:
    links = list_links(user_id)
    s = UserSettings.query.filter_by(user_id=user_id).first()
    now = now or datetime.utcnow()
    return {
        "user": {"id": user_id, "email": email},
        "settings": s.to_dict() if s else {},
        "links": [_export_link(l) for l in links],
        "exportDate": now.isoformat() + "Z",
        "totalLinks": len(links),
    }


def _export_link(link) -> dict:
    data = link.to_dict(include_owner=False)
    data.pop("id", None)
    return data


def export_filename(now: datetime | None = None) -> str:
    return f"linkvault-export-{(now or datetime.utcnow()).strftime('%Y-%m-%d')}.json"
