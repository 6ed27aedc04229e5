"""
riskdesk/api/routes.py - REST API endpoints for portfolio risk with Flasgger documentation
"""

from flask import Blueprint, Response, current_app, g, jsonify, request
from datetime import datetime
from functools import wraps
import logging
from typing import Tuple

from riskdesk.core.entities import AlertSeverity
from riskdesk.core.errors import PortfolioNotFoundError
from riskdesk.core.risk_service import RiskSummaryOrchestrator

api_bp = Blueprint("api", __name__)
logger = logging.getLogger(__name__)

USER_HEADER = "X-User-Id"


def _services() -> dict:
    return current_app.extensions["riskdesk"]


def _orchestrator() -> RiskSummaryOrchestrator:
    return _services()["orchestrator"]


def require_user(f):
    """
    Decorator requiring the caller's user id in the X-User-Id header

    The id is stored on ``flask.g.user_id`` for the wrapped view.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = request.headers.get(USER_HEADER, "").strip()
        if not user_id:
            return (
                jsonify(
                    {
                        "error": f"Missing {USER_HEADER} header",
                        "timestamp": datetime.now().isoformat(),
                    }
                ),
                400,
            )
        g.user_id = user_id
        return f(*args, **kwargs)

    return decorated_function


# ============================================================================
# HEALTH ENDPOINTS
# ============================================================================


@api_bp.route("/health", methods=["GET"])
def health_check() -> Tuple[Response, int]:
    """
    Get service health status
    ---
    tags:
      - health
    responses:
      200:
        description: Service healthy
        schema:
          type: object
          properties:
            status:
              type: string
              enum: ['healthy', 'unhealthy']
            timestamp:
              type: string
              description: Health check timestamp (ISO8601)
            database:
              type: string
              description: Database connection status
            risk_thresholds_version:
              type: string
              description: Version of the active risk threshold set
            version:
              type: string
      503:
        description: Database unreachable
    """
    try:
        connected = _services()["db_manager"].test_connection()
        health_status = {
            "status": "healthy" if connected else "unhealthy",
            "timestamp": datetime.now().isoformat(),
            "database": "connected" if connected else "unreachable",
            "risk_thresholds_version": _orchestrator().thresholds.version,
            "version": "1.0.0",
        }
        return jsonify(health_status), 200 if connected else 503

    except Exception as e:
        logger.error(f"Health check error: {e}")
        return (
            jsonify(
                {
                    "status": "unhealthy",
                    "error": str(e),
                    "timestamp": datetime.now().isoformat(),
                }
            ),
            503,
        )


# ============================================================================
# RISK ENDPOINTS
# ============================================================================


@api_bp.route("/risk/summary", methods=["GET"])
@require_user
def get_risk_summary() -> Tuple[Response, int]:
    """
    Get the value-weighted risk summary across all of the user's portfolios
    ---
    tags:
      - risk
    parameters:
      - name: X-User-Id
        in: header
        type: string
        required: true
    responses:
      200:
        description: Overall risk summary
        schema:
          type: object
          properties:
            user_id:
              type: string
            risk_level:
              type: string
              enum: ['Low', 'Medium', 'High', 'Critical']
            weighted_risk_score:
              type: number
              description: Value-weighted risk score on a 0-100 scale
            total_value:
              type: number
            portfolio_count:
              type: integer
            critical_alerts:
              type: integer
            high_alerts:
              type: integer
            portfolios:
              type: array
              items:
                type: object
            generated_at:
              type: string
            degraded:
              type: boolean
              description: True when some price history did not arrive in time
      400:
        description: Missing X-User-Id header
      500:
        description: Server error
    """
    try:
        summary = _orchestrator().summarize(g.user_id)
        return jsonify(summary.to_dict()), 200

    except Exception as e:
        logger.error(f"Risk summary API error: {e}")
        return jsonify({"error": str(e)}), 500


@api_bp.route("/risk/portfolio/<portfolio_id>", methods=["GET"])
@require_user
def get_portfolio_risk(portfolio_id: str) -> Tuple[Response, int]:
    """
    Get the full risk breakdown for one portfolio
    ---
    tags:
      - risk
    parameters:
      - name: portfolio_id
        in: path
        type: string
        required: true
      - name: X-User-Id
        in: header
        type: string
        required: true
    responses:
      200:
        description: Portfolio risk summary with per-position risks and alerts
        schema:
          type: object
          properties:
            portfolio_id:
              type: string
            total_value:
              type: number
            weighted_return_pct:
              type: number
            weighted_volatility_pct:
              type: number
            sharpe_ratio:
              type: number
            avg_risk_score:
              type: number
            concentration_risk:
              type: string
            diversification_score:
              type: number
            risk_level:
              type: string
            position_risks:
              type: array
              items:
                type: object
            alerts:
              type: array
              items:
                type: object
            skipped:
              type: array
              items:
                type: object
            estimated:
              type: boolean
            degraded:
              type: boolean
      400:
        description: Missing X-User-Id header
      404:
        description: Portfolio not found for this user
      500:
        description: Server error
    """
    try:
        summary = _orchestrator().detail(portfolio_id, user_id=g.user_id)
        return jsonify(summary.to_dict()), 200

    except PortfolioNotFoundError as e:
        return (
            jsonify(
                {
                    "error": str(e),
                    "portfolio_id": portfolio_id,
                    "timestamp": datetime.now().isoformat(),
                }
            ),
            404,
        )
    except Exception as e:
        logger.error(f"Portfolio risk API error for {portfolio_id}: {e}")
        return jsonify({"error": str(e)}), 500


@api_bp.route("/risk/alerts", methods=["GET"])
@require_user
def get_risk_alerts() -> Tuple[Response, int]:
    """
    Get all risk alerts for the user, most severe first
    ---
    tags:
      - risk
    parameters:
      - name: X-User-Id
        in: header
        type: string
        required: true
      - name: severity
        in: query
        type: string
        enum: ['LOW', 'MEDIUM', 'HIGH', 'CRITICAL']
        required: false
        description: Only return alerts at or above this severity
      - name: limit
        in: query
        type: integer
        required: false
    responses:
      200:
        description: Sorted alerts
        schema:
          type: object
          properties:
            alerts:
              type: array
              items:
                type: object
            count:
              type: integer
            timestamp:
              type: string
      400:
        description: Missing header or invalid query parameter
      500:
        description: Server error
    """
    try:
        min_severity = request.args.get("severity")
        limit = request.args.get("limit", type=int)

        if min_severity is not None:
            try:
                threshold = AlertSeverity(min_severity.upper())
            except ValueError:
                return jsonify({"error": f"Invalid severity: {min_severity}"}), 400
        else:
            threshold = AlertSeverity.LOW

        if limit is not None and limit < 1:
            return jsonify({"error": "limit must be a positive integer"}), 400

        alerts = [
            alert
            for alert in _orchestrator().user_alerts(g.user_id)
            if alert.severity.rank >= threshold.rank
        ]
        if limit is not None:
            alerts = alerts[:limit]

        return (
            jsonify(
                {
                    "alerts": [alert.to_dict() for alert in alerts],
                    "count": len(alerts),
                    "timestamp": datetime.now().isoformat(),
                }
            ),
            200,
        )

    except Exception as e:
        logger.error(f"Risk alerts API error: {e}")
        return jsonify({"error": str(e)}), 500


@api_bp.route("/risk/update-decisions", methods=["POST"])
@require_user
def update_decisions() -> Tuple[Response, int]:
    """
    Recompute risk and return a recommended action for every position
    ---
    tags:
      - risk
    parameters:
      - name: X-User-Id
        in: header
        type: string
        required: true
    responses:
      200:
        description: One decision per position; positions are not modified
        schema:
          type: object
          properties:
            decisions:
              type: array
              items:
                type: object
                properties:
                  ticker:
                    type: string
                  portfolio_id:
                    type: string
                  action:
                    type: string
                    enum: ['SELL', 'HOLD', 'REDUCE', 'MONITOR']
                  reason:
                    type: string
                  risk_level:
                    type: string
                  performance_score:
                    type: integer
                    description: Signed strength score from period high, momentum, entry and stop distance
            count:
              type: integer
            timestamp:
              type: string
      400:
        description: Missing X-User-Id header
      500:
        description: Server error
    """
    try:
        decisions = _orchestrator().update_decisions(g.user_id)
        return (
            jsonify(
                {
                    "decisions": [decision.to_dict() for decision in decisions],
                    "count": len(decisions),
                    "timestamp": datetime.now().isoformat(),
                }
            ),
            200,
        )

    except Exception as e:
        logger.error(f"Update decisions API error: {e}")
        return jsonify({"error": str(e)}), 500
