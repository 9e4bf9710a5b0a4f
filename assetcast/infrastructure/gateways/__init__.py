"""Adapters for the external services the scheduler talks to."""

from .bigquery_loader import BigQueryLoader
from .gridfs_object_store import GridFSObjectStore
from .rabbitmq_message_bus import RabbitMQMessageBus
from .vertex_job_launcher import VertexJobLauncher

__all__ = [
    "BigQueryLoader",
    "GridFSObjectStore",
    "RabbitMQMessageBus",
    "VertexJobLauncher",
]
