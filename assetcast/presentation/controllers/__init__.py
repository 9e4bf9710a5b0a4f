"""
Controllers Package - Presentation Layer

FastAPI routers mapping HTTP requests onto the application use cases.
"""

from .pipelines_controller import router as pipelines_router
from .system_controller import router as system_router

__all__ = ["pipelines_router", "system_router"]
