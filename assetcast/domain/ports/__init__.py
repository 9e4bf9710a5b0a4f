"""
Domain Ports Package

Protocols for cross-cutting services: health checks, distributed locks and
background cycle dispatch.
"""

from .cycle_dispatcher import ICycleDispatcher
from .distributed_lock import ILockProvider
from .health_check import IHealthCheckService

__all__ = ["ICycleDispatcher", "IHealthCheckService", "ILockProvider"]
