#!/usr/bin/env python3
"""
main.py - Main application entry point
"""

import os
import sys
import logging
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from riskdesk import create_app
from riskdesk.db import init_db_manager
from config.settings import get_config, Config


def setup_logging():
    """Setup application logging"""
    os.makedirs("logs", exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler("logs/riskdesk.log", mode="a"),
        ],
    )

    return logging.getLogger(__name__)


def check_environment():
    """Create working directories and report configuration problems"""
    logger = logging.getLogger(__name__)

    try:
        os.makedirs("data", exist_ok=True)

        config_issues = Config.validate_config()
        if config_issues:
            logger.error("Configuration issues found:")
            for issue in config_issues:
                logger.error(f"  - {issue}")
            return False

        logger.info("Environment check passed")
        return True

    except Exception as e:
        logger.error(f"Environment check failed: {e}")
        return False


def print_startup_info(config_class):
    """Print startup information"""
    thresholds = config_class.RISK_THRESHOLDS()

    startup_info = f"""
{'=' * 60}
>> Risk Desk Starting
{'=' * 60}
Configuration: {config_class.__name__}
Database: {config_class.DATABASE_URL()}
Risk thresholds: v{thresholds.version} (lookback {thresholds.lookback_days}d, rf {thresholds.risk_free_rate_pct}%)
Host: {config_class.API_HOST()}:{config_class.API_PORT()}
{'=' * 60}
    """

    print(startup_info)


def build_app(config_name=None):
    """Create the Flask app with its database initialized"""
    config_class = get_config(config_name)
    db_manager = init_db_manager(config_class.DATABASE_URL())

    app = create_app(config_name or os.getenv("FLASK_ENV", "production"), db_manager=db_manager)
    app.config.from_object(config_class)
    return app


def main():
    """Main application function"""
    logger = setup_logging()

    try:
        config_class = get_config()
        print_startup_info(config_class)

        if not check_environment():
            logger.error("Environment check failed, aborting startup")
            return 1

        app = build_app()

        debug = os.getenv("FLASK_ENV") == "development"
        host = config_class.API_HOST()
        port = config_class.API_PORT()
        logger.info(f"Starting Flask application on {host}:{port}")
        app.run(host=host, port=port, debug=debug, use_reloader=False)
        return 0

    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
        return 0

    except Exception as e:
        logger.error(f"Application startup failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
