# linkvault_app/__init__.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
import os
from datetime import datetime

from flask import Flask
from config import Config, TestingConfig, StagingConfig, ProductionConfig
from .extensions import db, migrate, scheduler, init_extensions, register_cli
from .errors import register_error_handlers
from .services.retention import schedule_retention_sweep
from .blueprints.core import bp as core_bp
from .blueprints.links import bp as links_bp
from .blueprints.share import bp as share_bp
from .blueprints.subscription import bp as subscription_bp
from .blueprints.billing import bp as billing_bp
from .blueprints.settings import bp as settings_bp

CONFIGS = {
    "testing": TestingConfig,
    "staging": StagingConfig,
    "production": ProductionConfig,
}


def create_app(config_object: type[Config] | None = None) -> Flask:
    app = Flask(__name__)
    app_env = os.getenv("APP_ENV", "").lower()
    app.config.from_object(config_object or CONFIGS.get(app_env, Config))

    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Extensions (DB/Migrate)
    init_extensions(app)
    register_error_handlers(app)
    app.config["STARTED_AT"] = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S UTC")

    # Blueprints
    app.register_blueprint(core_bp)
    app.register_blueprint(links_bp)
    app.register_blueprint(share_bp)
    app.register_blueprint(subscription_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(settings_bp)
    # CLI (flask init-db, sweep-links, reconcile-accounts)
    register_cli(app)

    # Scheduler (daily retention sweep at SWEEP_HOUR:SWEEP_MINUTE)
    if not app.config.get("TESTING") and os.getenv("DISABLE_SCHEDULER") != "1":
        schedule_retention_sweep(app)
        if not scheduler.running:
            scheduler.start()

    return app


__all__ = ["create_app", "db", "migrate"]
