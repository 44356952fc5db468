"""
Client-side session handling for the etfuel API.
"""

from etfuel.client.config import ClientConfig
from etfuel.client.session import AuthResult, SessionStore

__all__ = ["AuthResult", "ClientConfig", "SessionStore"]
