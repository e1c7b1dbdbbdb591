"""
Query — Graph queries and node reference resolution
"""

from .engine import QueryEngine, Reached
from .resolver import NodeResolver, ResolveStatus, ResolveResult, format_resolve_prompt

__all__ = [
    "QueryEngine", "Reached",
    "NodeResolver", "ResolveStatus", "ResolveResult", "format_resolve_prompt",
]
