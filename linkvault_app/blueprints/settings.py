# linkvault_app/blueprints/settings.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import json
from flask import Blueprint, request, jsonify, Response

from ..decorators import login_required, cron_required, current_user_id, current_user_email
from ..services import settings as settings_service
from ..services.retention import sweep_expired_links, sweep_expired_links_for_user

bp = Blueprint("settings", __name__, url_prefix="/api")


@bp.get("/settings")
@login_required
def get_settings():
    return jsonify(settings=settings_service.get_user_settings(current_user_id()).to_dict())


@bp.put("/settings")
@login_required
def update_settings():
    s = settings_service.update_user_settings(current_user_id(), request.get_json(silent=True))
    return jsonify(settings=s.to_dict(), message="Settings updated successfully")


@bp.get("/settings/export")
@login_required
def export_data():
    payload = settings_service.export_user_data(current_user_id(), current_user_email())
    return Response(
        json.dumps(payload, indent=2),
        mimetype="application/json",
        headers={"Content-Disposition": f'attachment; filename="{settings_service.export_filename()}"'},
    )


@bp.delete("/settings/delete-all")
@login_required
def delete_all():
    deleted = settings_service.delete_all_links(current_user_id())
    return jsonify(message=f"Successfully deleted {deleted} links", deletedCount=deleted)


# -------- retention sweep --------
@bp.get("/cleanup")
@cron_required
def cleanup_all():
    result = sweep_expired_links()
    return jsonify(message="Cleanup completed", totalDeleted=result["total_deleted"], users=result["users"])


@bp.post("/cleanup")
@login_required
def cleanup_mine():
    result = sweep_expired_links_for_user(current_user_id())
    return jsonify(
        message="User cleanup completed",
        deletedCount=result["deleted_count"],
        autoDelete=result["auto_delete"],
    )
