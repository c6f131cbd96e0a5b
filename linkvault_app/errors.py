# linkvault_app/errors.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException


class LinkVaultError(Exception):
    """Expected outcome that maps to a JSON error response."""
    status_code = 400

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"error": self.message, **self.extra}


class ValidationError(LinkVaultError):
    status_code = 400


class SlugTaken(ValidationError):
    def __init__(self, slug: str):
        super().__init__("Custom slug already exists")
        self.slug = slug


class NotFound(LinkVaultError):
    status_code = 404


class QuotaExceeded(LinkVaultError):
    status_code = 403

    def __init__(self, used: int, limit: int, message: str | None = None):
        super().__init__(
            message or "Link creation limit reached. Upgrade to Premium for unlimited links.",
            limit=limit, used=used, showAdOption=True,
        )
        self.used = used
        self.limit = limit


class FileQuotaExceeded(LinkVaultError):
    status_code = 413

    def __init__(self, message: str, used: int, limit: int, plan: str):
        super().__init__(message, totalFileSizeUsed=used, maxFileSize=limit, plan=plan)
        self.used = used
        self.limit = limit


class InvalidSignature(LinkVaultError):
    status_code = 400


class StorageUnavailable(LinkVaultError):
    status_code = 503


def register_error_handlers(app):
    @app.errorhandler(LinkVaultError)
    def _linkvault_error(e: LinkVaultError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify(error=e.description or e.name), e.code

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        current_app.logger.exception("Unhandled error")
        return jsonify(error="Internal server error"), 500
