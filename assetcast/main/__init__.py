"""
Main module - Main/Composition Root Layer

Entry points of the service. Wires settings, infrastructure adapters and
use cases together for the FastAPI app and the Celery worker.
"""

from .config import AppSettings, get_settings
from .container import AppContainer, get_container, init_container

__all__ = [
    "AppSettings",
    "get_settings",
    "AppContainer",
    "init_container",
    "get_container",
]
