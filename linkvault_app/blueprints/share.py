# linkvault_app/blueprints/share.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, jsonify

from ..errors import NotFound
from ..services.links import increment_counter

bp = Blueprint("share", __name__, url_prefix="/api")


# public: no ownership check on either counter
@bp.get("/share/<slug>")
def shared_link(slug: str):
    link = increment_counter("views", slug=slug)
    if not link:
        raise NotFound("Link not found")
    return jsonify(link=link.to_dict(include_owner=False))


@bp.post("/track/<int:link_id>")
def track_click(link_id: int):
    link = increment_counter("clicks", link_id=link_id)
    if not link:
        raise NotFound("Link not found")
    return jsonify(message="Click tracked", clicks=link.clicks)
