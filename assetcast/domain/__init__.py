"""
Domain Layer Package

Entities, pure scheduling and time-series services, and the repository,
gateway and port interfaces the forecasting core depends on. Nothing in here
knows about MongoDB, Redis, RabbitMQ or HTTP.
"""

from assetcast.domain import entities, gateways, ports, repositories, services

__all__ = ["entities", "gateways", "ports", "repositories", "services"]
