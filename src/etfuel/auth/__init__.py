"""
Email/password login, registration and profile routes.
"""

from etfuel.auth.router import router
from etfuel.auth.service import AuthService

__all__ = ["AuthService", "router"]
