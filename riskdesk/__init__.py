"""
riskdesk/__init__.py
Flask application factory with Flasgger OpenAPI support
"""

from flask import Flask
from flask_cors import CORS
from flasgger import Flasgger
import logging

from config.settings import get_config


def create_app(config_name: str = "production", db_manager=None, provider=None) -> Flask:
    """
    Application factory pattern

    Creates and configures Flask app with:
    - CORS support
    - Flasgger for OpenAPI/Swagger
    - Portfolio store, price provider and risk orchestrator wired per app

    Args:
        config_name: development, production or testing
        db_manager: Existing DatabaseManager (created from configuration when omitted)
        provider: Price history provider (a yfinance DataManager when omitted)
    """
    from riskdesk.core.data_manager import DataManager
    from riskdesk.core.portfolio_manager import PortfolioManager
    from riskdesk.core.risk_service import RiskSummaryOrchestrator
    from riskdesk.db import init_db_manager

    app = Flask(__name__)
    config = get_config(config_name)

    # Enable CORS for all API routes
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    app.config["JSON_SORT_KEYS"] = False
    app.config["TESTING"] = config_name == "testing"

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if db_manager is None:
        db_manager = init_db_manager(config.DATABASE_URL())
    if provider is None:
        provider = DataManager(
            db_manager=db_manager,
            cache_ttl_hours=config.CACHE_TTL_HOURS(),
            min_request_interval=config.MIN_REQUEST_INTERVAL(),
        )

    store = PortfolioManager(db_manager)
    app.extensions["riskdesk"] = {
        "db_manager": db_manager,
        "store": store,
        "provider": provider,
        "orchestrator": RiskSummaryOrchestrator(store, provider, config.RISK_THRESHOLDS()),
    }

    swagger_config = {
        "headers": [],
        "specs": [
            {
                "endpoint": "apispec",
                "route": "/apispec.json",
                "rule_filter": lambda rule: True,
                "model_filter": lambda tag: True,
            }
        ],
        "static_url_path": "/flasgger_static",
        "swagger_ui": True,
        "specs_route": "/api/docs",
        "uiversion": 3,
        "info": {
            "title": "Risk Desk API",
            "version": "1.0.0",
            "description": (
                "Portfolio risk summaries, per-portfolio risk breakdowns, alerts "
                "and recommended position actions. Callers identify the user "
                "with the X-User-Id header."
            ),
        },
        "schemes": ["http", "https"],
    }

    Flasgger(app, config=swagger_config)

    from riskdesk.api.routes import api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    return app
