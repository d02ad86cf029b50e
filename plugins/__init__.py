"""Node adapters and the adapter registry."""

from plugins.base import AdapterInfo, BranchResult, NodeAdapter, execution_data
from plugins.registry import AdapterRegistry, create_registry

__all__ = [
    "AdapterInfo",
    "AdapterRegistry",
    "BranchResult",
    "NodeAdapter",
    "create_registry",
    "execution_data",
]
