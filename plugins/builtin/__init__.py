"""Builtin control flow and data nodes."""

from plugins.builtin.nodes import DelayNode, IfElseNode, SetDataNode

__all__ = ["DelayNode", "IfElseNode", "SetDataNode"]
