# linkvault_app/extensions.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import click
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import text


db = SQLAlchemy()
migrate = Migrate()
scheduler = BackgroundScheduler(daemon=True)


def init_extensions(app):
    # DB/Migrate
    db.init_app(app)
    migrate.init_app(app, db)


def register_cli(app):
    @app.cli.command("init-db")
    def init_db_cmd():
        """Create the tables (DEV/MVP). In production use: flask db upgrade."""
        with app.app_context():
            # sanity check
            db.session.execute(text("SELECT 1"))
            db.create_all()
            click.echo("Tables created.")

    @app.cli.command("sweep-links")
    def sweep_links_cmd():
        """Delete links past each user's auto-delete window."""
        from .services.retention import sweep_expired_links
        with app.app_context():
            result = sweep_expired_links()
            click.echo(f"Deleted {result['total_deleted']} links across {result['users']} users.")

    @app.cli.command("reconcile-accounts")
    @click.option("--user-id", "user_ids", multiple=True, help="Limit to these user ids.")
    def reconcile_accounts_cmd(user_ids):
        """Re-run the usage reconcile step for every (or the given) account."""
        from .models import Account
        from .services.entitlements import reconcile_account
        with app.app_context():
            ids = list(user_ids) or [uid for (uid,) in db.session.query(Account.user_id).all()]
            for uid in ids:
                acct = reconcile_account(uid)
                click.echo(f"{uid}: links_created={acct.links_created} total_file_bytes={acct.total_file_bytes}")
            click.echo(f"Reconciled {len(ids)} accounts.")
