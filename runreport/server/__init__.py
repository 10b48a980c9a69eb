"""Live runner server: broadcast channel and aiohttp application."""

from .broadcast import BroadcastChannel
from .app import create_app, run_server

__all__ = [
    "BroadcastChannel",
    "create_app",
    "run_server",
]
