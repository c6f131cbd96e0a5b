# linkvault_app/blueprints/subscription.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, request, jsonify

from ..decorators import login_required, current_user_id, current_user_email
from ..errors import ValidationError
from ..services import entitlements

bp = Blueprint("subscription", __name__, url_prefix="/api")


@bp.get("/subscription/limits")
@login_required
def limits():
    return jsonify(entitlements.get_user_limits(current_user_id(), current_user_email()).to_dict())


@bp.post("/ads/credit")
@login_required
def ad_credit():
    data = request.get_json(silent=True) or {}
    impression_id = data.get("impressionId")
    if impression_id is not None and (not isinstance(impression_id, str) or len(impression_id) > 120):
        raise ValidationError("impressionId must be a string of at most 120 characters")
    award = entitlements.award_ad_credit(current_user_id(), impression_id or None, current_user_email())
    message = "Ad already rewarded" if award.already_claimed else "Ad credit awarded successfully"
    return jsonify(message=message, adCredits=award.credits, awarded=award.awarded)
