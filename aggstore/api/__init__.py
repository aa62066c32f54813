"""
HTTP surface for aggstore.

The app factory wires an event store and aggregate routers into FastAPI
with default error handling.
"""

from .app import create_app
from .config import Settings
from .dependencies import store_dependency

__all__ = [
    "Settings",
    "create_app",
    "store_dependency",
]
