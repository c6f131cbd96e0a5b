# tests/conftest.py
# -*- coding: utf-8 -*-
import os
import hmac
import json
import time
import uuid
import hashlib
import tempfile
from datetime import datetime

import pytest
from sqlalchemy import event

# =====================================================================================
# Test environment: set before anything imports config.py (class attributes read env)
# =====================================================================================
_fd, DB_PATH = tempfile.mkstemp(prefix="linkvault_test_", suffix=".sqlite")
os.close(_fd)
os.environ["APP_ENV"] = "testing"
os.environ["FLASK_ENV"] = "testing"
os.environ["DISABLE_SCHEDULER"] = "1"
os.environ["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{DB_PATH}"
os.environ["DATABASE_URL"] = os.environ["SQLALCHEMY_DATABASE_URI"]

WEBHOOK_SECRET = "whsec_test_123"
CRON_SECRET = "cron-test-secret"
MIB = 1024 * 1024


def _set_sqlite_pragmas(dbapi_conn, _conn_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()


# =====================================================================================
# Flask app on a temporary SQLite file, schema created once per session
# =====================================================================================
@pytest.fixture(scope="session")
def app():
    from linkvault_app.wsgi import create_app
    from linkvault_app.extensions import db

    app = create_app()
    with app.app_context():
        # PRAGMAs on every connection the engine opens
        event.listen(db.engine, "connect", _set_sqlite_pragmas)
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    try:
        os.remove(DB_PATH)
    except OSError:
        pass


@pytest.fixture(autouse=True)
def _clean_tables(app):
    """Every test starts from empty tables."""
    yield
    from linkvault_app.extensions import db
    with app.app_context():
        db.session.remove()
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    from linkvault_app.extensions import db
    with app.app_context():
        try:
            yield db.session
        finally:
            db.session.rollback()
            db.session.close()


# =====================================================================================
# Stripe SDK mocks (no network). Calls are recorded in stripe_calls.
# =====================================================================================
class _StripeObj:
    def __init__(self, **k):
        self.__dict__.update(k)

    def get(self, k, d=None):
        return getattr(self, k, d)


@pytest.fixture
def stripe_calls():
    return []


@pytest.fixture(autouse=True)
def _mock_externals(monkeypatch, stripe_calls):
    import stripe

    def _checkout(**k):
        stripe_calls.append(("checkout", k))
        return _StripeObj(id="cs_test_123", url="https://stripe.example/checkout/session/test_123")

    def _portal(**k):
        stripe_calls.append(("portal", k))
        return _StripeObj(url="https://stripe.example/portal/session/test_123")

    def _retrieve(sub_id, **k):
        stripe_calls.append(("retrieve", sub_id))
        return {"id": sub_id, "customer": "cus_test_123", "status": "active", "metadata": {}}

    monkeypatch.setattr(stripe.checkout.Session, "create", staticmethod(_checkout), raising=False)
    monkeypatch.setattr(stripe.billing_portal.Session, "create", staticmethod(_portal), raising=False)
    monkeypatch.setattr(stripe.Subscription, "retrieve", staticmethod(_retrieve), raising=False)
    yield


# =====================================================================================
# Users and logged-in clients (identity comes from session["user"])
# =====================================================================================
def new_user_id() -> str:
    return f"user_{uuid.uuid4().hex[:10]}"


@pytest.fixture
def user_id():
    return new_user_id()


@pytest.fixture
def logged_client(client, user_id):
    with client.session_transaction() as sess:
        sess["user"] = {"id": user_id, "email": f"{user_id}@test.com"}
    return client


# =====================================================================================
# Factories
# =====================================================================================
def make_account(db_session, user_id, **fields):
    from linkvault_app.services.accounts import get_or_create_account, update_account
    get_or_create_account(user_id)
    if fields:
        update_account(user_id, **fields)
    return account_of(db_session, user_id)


def account_of(db_session, user_id):
    """Fresh read of the account (drops anything cached in the session)."""
    from linkvault_app.models import Account
    db_session.expire_all()
    return Account.query.filter_by(user_id=user_id).first()


def make_link(db_session, user_id, *, title="Docs", created_at=None, files=None, slug=None):
    """Insert a link directly, bypassing entitlements (seeded data)."""
    from linkvault_app.models import Link, LinkFile
    slug = slug or f"{title.lower()}-{uuid.uuid4().hex[:8]}"
    link = Link(
        user_id=user_id,
        title=title,
        url=None if files else "https://example.com",
        is_file=bool(files),
        custom_slug=slug,
        share_url=f"http://localhost/share/{slug}",
        created_at=created_at or datetime.utcnow(),
    )
    for pos, size in enumerate(files or []):
        link.files.append(LinkFile(position=pos, file_key=f"f{pos}", name=f"f{pos}.bin",
                                   mime_type="application/octet-stream", size_bytes=size, payload="AA=="))
    db_session.add(link)
    db_session.commit()
    return link


def file_entry(size, name="doc.pdf"):
    return {"id": uuid.uuid4().hex[:8], "name": name, "type": "application/pdf", "size": size, "data": "JVBERi0x"}


# =====================================================================================
# Webhook signing (real HMAC, verified by the Stripe SDK)
# =====================================================================================
def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
    ts = int(timestamp if timestamp is not None else time.time())
    sig = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def make_event(event_type, obj, *, event_id=None, created=None):
    return {
        "id": event_id or f"evt_{uuid.uuid4().hex[:12]}",
        "object": "event",
        "type": event_type,
        "created": created if created is not None else int(time.time()),
        "data": {"object": obj},
    }


def subscription_obj(user_id, sub_id="sub_123", status="active"):
    metadata = {"userId": user_id, "plan": "premium"} if user_id else {}
    return {"id": sub_id, "object": "subscription", "status": status, "customer": "cus_test_123", "metadata": metadata}


@pytest.fixture
def post_webhook(client):
    def _post(event, signature=None):
        payload = json.dumps(event)
        sig = signature if signature is not None else sign_payload(payload)
        return client.post(
            "/api/stripe/webhook",
            data=payload,
            headers={"Stripe-Signature": sig, "Content-Type": "application/json"},
        )
    return _post
