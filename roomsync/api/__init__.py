"""
API Module - REST and WebSocket interface for the admin console and devices.

Usage:
    from roomsync.api import create_app
    app = create_app()

    # Run with uvicorn
    uvicorn roomsync.api.app:app --reload
"""

from .service import APIService, build_controller
from .app import create_app

__all__ = [
    "APIService",
    "build_controller",
    "create_app",
]
