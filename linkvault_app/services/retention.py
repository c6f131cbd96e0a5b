# linkvault_app/services/retention.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import logging
from datetime import datetime, timedelta

from ..extensions import scheduler
from ..models.link import Link
from ..models.setting import UserSettings
from .links import delete_links

log = logging.getLogger(__name__)

JOB_ID = "retention-sweep"


def _cutoff(settings: UserSettings, now: datetime) -> datetime:
    return now - timedelta(days=settings.auto_delete_days)


def _sweep(settings: UserSettings, now: datetime) -> int:
    # delete_links commits per call; links_created is never touched here
    deleted = delete_links(Link.user_id == settings.user_id, Link.created_at < _cutoff(settings, now))
    if deleted:
        log.info("Deleted %s old links for user %s", deleted, settings.user_id)
    return deleted


def sweep_expired_links(now: datetime | None = None) -> dict:
    """Purge links older than each opted-in user's auto-delete window.

    Users are swept one by one with independent commits; an interrupted run
    simply leaves the rest for the next one.
    """
    now = now or datetime.utcnow()
    opted_in = UserSettings.query.filter_by(auto_delete=True).order_by(UserSettings.id).all()
    total = 0
    for settings in opted_in:
        total += _sweep(settings, now)
    return {"total_deleted": total, "users": len(opted_in)}


def sweep_expired_links_for_user(user_id: str, now: datetime | None = None) -> dict:
    settings = UserSettings.query.filter_by(user_id=user_id).first()
    if not settings or not settings.auto_delete:
        return {"deleted_count": 0, "auto_delete": False}
    return {"deleted_count": _sweep(settings, now or datetime.utcnow()), "auto_delete": True}


def run_scheduled_sweep(app) -> dict:
    with app.app_context():
        result = sweep_expired_links()
    log.info("Retention sweep done: %s links across %s users", result["total_deleted"], result["users"])
    return result


def schedule_retention_sweep(app):
    """Register the daily sweep on the shared BackgroundScheduler."""
    return scheduler.add_job(
        run_scheduled_sweep,
        "cron",
        args=[app],
        id=JOB_ID,
        hour=app.config.get("SWEEP_HOUR", 3),
        minute=app.config.get("SWEEP_MINUTE", 0),
        replace_existing=True,
    )
