"""
Presentation Layer Package

HTTP surface of the service: pipeline management, cycle triggers, health.
"""

from assetcast.presentation import controllers

__all__ = ["controllers"]
