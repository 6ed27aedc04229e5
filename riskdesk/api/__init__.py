"""
riskdesk/api/__init__.py
API package initialization
"""

from .routes import api_bp, require_user

__all__ = ["api_bp", "require_user"]
