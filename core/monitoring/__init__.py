"""Monitoring module for workflow graph runner."""

from core.monitoring.logging import configure_logging

__all__ = ["configure_logging"]
