# linkvault_app/blueprints/links.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, request, jsonify, current_app

from ..decorators import login_required, current_user_id, current_user_email
from ..services import entitlements
from ..services import links as link_service

bp = Blueprint("links", __name__, url_prefix="/api/links")


def request_origin() -> str:
    """Origin used to build share URLs; over-long headers fall back to the configured base."""
    origin = request.headers.get("Origin")
    if link_service.usable_origin(origin):
        return origin
    return current_app.config.get("BASE_URL") or request.host_url


@bp.get("")
@login_required
def list_links():
    uid = current_user_id()
    items = link_service.list_links(uid)
    limits = entitlements.get_user_limits(uid, current_user_email())
    return jsonify(links=[l.to_dict() for l in items], userLimits=limits.to_dict())


@bp.post("")
@login_required
def create_link():
    data = request.get_json(silent=True)
    link = entitlements.create_link(current_user_id(), data or {}, request_origin(), current_user_email())
    return jsonify(link=link.to_dict()), 201


@bp.put("/<int:link_id>")
@login_required
def update_link(link_id: int):
    link = link_service.update_link(current_user_id(), link_id, request.get_json(silent=True), request_origin())
    return jsonify(link=link.to_dict())


@bp.delete("/<int:link_id>")
@login_required
def delete_link(link_id: int):
    link_service.delete_link(current_user_id(), link_id)
    return jsonify(message="Link deleted successfully")
