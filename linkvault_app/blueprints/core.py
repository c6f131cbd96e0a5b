# linkvault_app/blueprints/core.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, jsonify, current_app

bp = Blueprint("core", __name__)


@bp.get("/health")
def health():
    return jsonify(status="ok", started_at=current_app.config.get("STARTED_AT"))
