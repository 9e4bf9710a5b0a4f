"""
Domain Gateways Package

Interfaces of the external services the scheduler drives: the ML job
launcher, the analytical store, the message bus and the artifact store.
"""

from .analytical_store import IAnalyticalStoreLoader
from .job_launcher import IJobLauncher
from .message_bus import IMessageBus
from .object_store import IObjectStore

__all__ = ["IAnalyticalStoreLoader", "IJobLauncher", "IMessageBus", "IObjectStore"]
