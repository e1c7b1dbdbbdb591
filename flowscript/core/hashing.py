"""
Content hashing — deterministic identity for IR elements

Same semantic content = same id. This is what deduplicates nodes that
share (type, content, modifiers).
"""

import hashlib
from typing import Any, Dict, List, Optional

import orjson


def hash_content(data: Dict[str, Any]) -> str:
    """
    SHA-256 over sorted-key JSON.

    Returns:
        64-character lowercase hex digest
    """
    normalized = orjson.dumps(data, option=orjson.OPT_SORT_KEYS)
    return hashlib.sha256(normalized).hexdigest()


def node_id(node_type: str, content: str, modifiers: List[str]) -> str:
    return hash_content({"type": node_type, "content": content, "modifiers": list(modifiers)})


def block_id(children: List[str], modifiers: List[str]) -> str:
    return hash_content({"type": "block", "children": list(children), "modifiers": list(modifiers)})


def wrapped_block_id(node_type: str, content: str, children: List[str], modifiers: List[str]) -> str:
    """Id for a block re-tagged by its introducing marker (thought:, ?, ...)."""
    return hash_content({
        "type": node_type,
        "content": content,
        "children": list(children),
        "modifiers": list(modifiers),
    })


def relationship_id(rel_type: str, source: str, target: str, axis_label: Optional[str] = None) -> str:
    return hash_content({"type": rel_type, "source": source, "target": target, "axis_label": axis_label})


def state_id(state_type: str, fields: Dict[str, str]) -> str:
    return hash_content({"type": state_type, "fields": dict(fields)})
