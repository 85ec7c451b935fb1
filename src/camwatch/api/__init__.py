"""
API module for CamWatch.

Provides:
- FastAPI server for operator commands
- REST endpoints for status, preview and settings
"""

from .server import create_app, set_components, start_server

__all__ = ["create_app", "set_components", "start_server"]
