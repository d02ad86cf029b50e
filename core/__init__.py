"""Workflow Graph Runner core engine."""

__version__ = "1.0.0"
