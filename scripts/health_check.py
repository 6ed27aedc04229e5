#!/usr/bin/env python3
"""
scripts/health_check.py
Quick health check for a risk desk deployment
"""

import sys
import os
from datetime import datetime
from typing import List, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

CheckResult = Tuple[bool, str]


def build_session(retries: int = 3, backoff_factor: float = 0.5) -> requests.Session:
    """HTTP session that retries transient API failures"""
    session = requests.Session()
    retry_strategy = Retry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 504],
        allowed_methods=["GET", "POST"],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def check_database() -> CheckResult:
    """Check database connectivity"""
    try:
        from riskdesk.db import DatabaseManager
        from config.settings import Config

        db_manager = DatabaseManager(Config.DATABASE_URL())
        try:
            if db_manager.test_connection():
                return True, f"Database connection successful ({db_manager.safe_url})"
            return False, "Database connection failed"
        finally:
            db_manager.close()
    except Exception as e:
        return False, f"Database error: {str(e)}"


def check_configuration() -> CheckResult:
    try:
        from config.settings import Config

        issues = Config.validate_config()
        if issues:
            return False, "; ".join(issues)
        return True, f"Risk thresholds v{Config.RISK_THRESHOLDS().version} valid"
    except Exception as e:
        return False, f"Configuration error: {str(e)}"


def check_price_provider(ticker: str = "AAPL") -> CheckResult:
    """Check that daily closes can be downloaded"""
    try:
        from riskdesk.core.data_manager import DataManager

        series = DataManager().get_price_series(ticker, lookback_days=5)
        if series.is_empty:
            return False, f"No price history returned for {ticker}"
        return True, f"Price provider working, last close {series.as_of.date()}"
    except Exception as e:
        return False, f"Price provider error: {str(e)}"


def check_api_endpoints(
    base_url: str = "http://localhost:5000",
    user_id: str = "healthcheck",
    session: requests.Session = None,
) -> List[CheckResult]:
    """Check API endpoints"""
    session = session or build_session()
    headers = {"X-User-Id": user_id}
    endpoints = ["/api/health", "/api/risk/summary", "/api/risk/alerts"]
    results = []

    for endpoint in endpoints:
        try:
            response = session.get(f"{base_url}{endpoint}", headers=headers, timeout=30)
            if response.status_code == 200:
                results.append((True, f"{endpoint}: OK ({response.status_code})"))
            else:
                results.append((False, f"{endpoint}: Failed ({response.status_code})"))
        except requests.RequestException as e:
            results.append((False, f"{endpoint}: Connection error - {str(e)}"))

    return results


def main(argv: List[str] = None) -> int:
    """Run all checks and return a process exit code"""
    argv = sys.argv[1:] if argv is None else argv

    print("Risk Desk Health Check")
    print("=" * 50)
    print(f"Timestamp: {datetime.now().isoformat()}")
    print()

    checks = [
        ("Configuration", check_configuration),
        ("Database", check_database),
        ("Price Provider", check_price_provider),
    ]

    results = []
    for name, check_func in checks:
        print(f"Checking {name}...", end=" ")
        success, message = check_func()
        print(f"{'OK' if success else 'FAIL'} {message}")
        results.append((name, success, message))

    if argv and argv[0] == "--api":
        base_url = argv[1] if len(argv) > 1 else "http://localhost:5000"
        print(f"\nChecking API endpoints at {base_url}...")
        for success, message in check_api_endpoints(base_url):
            print(f"{'OK' if success else 'FAIL'} {message}")
            results.append(("API", success, message))

    print("\n" + "=" * 50)
    passed = sum(1 for _, success, _ in results if success)
    print(f"Health Check Summary: {passed}/{len(results)} checks passed")

    return 0 if passed == len(results) else 1


if __name__ == "__main__":
    sys.exit(main())
