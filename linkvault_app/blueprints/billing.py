# linkvault_app/blueprints/billing.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, request, jsonify

from ..decorators import login_required, current_user_id, current_user_email
from ..services import billing
from ..services.accounts import find_account, get_or_create_account

bp = Blueprint("billing", __name__, url_prefix="/api/stripe")


@bp.get("/prices")
def prices():
    return jsonify(prices=billing.configured_prices())


@bp.post("/checkout")
@login_required
def checkout():
    """Creates the Stripe Checkout Session (subscription mode)."""
    data = request.get_json(silent=True) or {}
    account = get_or_create_account(current_user_id(), current_user_email())
    return jsonify(billing.create_checkout_session(account, data.get("priceId"), bool(data.get("isAnnual"))))


@bp.post("/customer-portal")
@login_required
def customer_portal():
    return jsonify(billing.create_portal_session(find_account(current_user_id())))


# -------- Stripe Webhook --------
@bp.post("/webhook")  # configure the endpoint in the Stripe Dashboard
def stripe_webhook():
    result = billing.handle_webhook(request.get_data(), request.headers.get("Stripe-Signature"))
    return jsonify(received=True, outcome=result.outcome)
