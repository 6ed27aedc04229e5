"""
tests/conftest.py
Pytest configuration and fixtures
"""

import logging
import warnings
import pytest

from config.settings import Config, RiskThresholds


def pytest_configure(config):
    """Configure pytest with custom settings"""
    # Library internals (pandas, yfinance, werkzeug) warn about things outside our control
    warnings.filterwarnings("ignore", category=ResourceWarning)
    warnings.filterwarnings("ignore", category=DeprecationWarning)
    warnings.filterwarnings("ignore", category=FutureWarning)

    config.addinivalue_line("filterwarnings", "ignore::ResourceWarning")
    config.addinivalue_line("filterwarnings", "ignore::DeprecationWarning")
    config.addinivalue_line("filterwarnings", "ignore::FutureWarning")

    logging.getLogger("yfinance").setLevel(logging.CRITICAL)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point configuration at a missing file so every test sees the defaults"""
    monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "config.json"))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    Config.reload()
    yield
    Config.reload()


@pytest.fixture
def thresholds() -> RiskThresholds:
    return RiskThresholds()
