"""
Gym Recommendation Engine Server

Usage: uvicorn server:app --reload --port 8000
"""

from .app import app, create_app
from .config import ServerConfig
from .state import AppState

__all__ = [
    "app",
    "create_app",
    "AppState",
    "ServerConfig",
]
