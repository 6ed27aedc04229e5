"""
BDD Test Environment Setup and Teardown

Run with ``behave bdd``. Each scenario gets its own in-memory database,
created by the "risk desk is initialized" step and disposed here.
"""

import sys
import logging
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


def before_all(context):
    """Configure logging for the suite."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    logging.getLogger("yfinance").setLevel(logging.CRITICAL)
    context.logger = logging.getLogger("bdd.tests")
    context.logger.info("BDD risk suite starting...")


def before_scenario(context, scenario):
    context.logger.info(f"Running scenario: {scenario.name}")
    context.last_error = None
    context.db_manager = None


def after_scenario(context, scenario):
    status = "PASSED" if scenario.status == "passed" else "FAILED"
    context.logger.info(f"Scenario '{scenario.name}' {status}")

    if context.db_manager is not None:
        context.db_manager.close()


def after_all(context):
    context.logger.info("BDD risk suite completed")
