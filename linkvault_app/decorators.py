# linkvault_app/decorators.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import hmac
from functools import wraps
from flask import session, jsonify, request, current_app


def current_user_id() -> str | None:
    """Identity set by the external sign-in flow in session['user']."""
    data = session.get("user")
    if not data:
        return None
    uid = data.get("id")
    return str(uid) if uid else None


def current_user_email() -> str | None:
    data = session.get("user") or {}
    return data.get("email")


def login_required(view_func):
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        if not current_user_id():
            return jsonify(error="Unauthorized"), 401
        return view_func(*args, **kwargs)
    return wrapper


def cron_required(view_func):
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        secret = current_app.config.get("CRON_SECRET") or ""
        header = request.headers.get("Authorization", "")
        if not secret or not hmac.compare_digest(header, f"Bearer {secret}"):
            return jsonify(error="Unauthorized"), 401
        return view_func(*args, **kwargs)
    return wrapper
