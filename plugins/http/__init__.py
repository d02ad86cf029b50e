"""HTTP plugin."""

from plugins.http.nodes import HTTPRequestNode

__all__ = ["HTTPRequestNode"]
