# linkvault_app/models/__init__.py
# -*- coding: utf-8 -*-
from .account import Account, AdCreditClaim
from .link import Link, LinkFile, CATEGORIES
from .setting import UserSettings
from .billing import BillingEvent


__all__ = [
    "Account",
    "AdCreditClaim",
    "Link",
    "LinkFile",
    "CATEGORIES",
    "UserSettings",
    "BillingEvent",
]
