# linkvault_app/services/plans.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from ..models.account import PLAN_FREE, PLAN_PREMIUM

MIB = 1024 * 1024
UNLIMITED = -1

PLAN_LIMITS = {
    PLAN_FREE: {
        "max_links": 5,                 # cumulative links ever created
        "max_file_bytes": 10 * MIB,     # current storage across all file links
    },
    PLAN_PREMIUM: {
        "max_links": UNLIMITED,
        "max_file_bytes": UNLIMITED,
    },
}


def limits_for(plan: str | None) -> dict:
    """Limits projected from the plan; unknown plans fall back to free."""
    return dict(PLAN_LIMITS.get(plan or PLAN_FREE, PLAN_LIMITS[PLAN_FREE]))


def is_unlimited(value: int | None) -> bool:
    return value == UNLIMITED
