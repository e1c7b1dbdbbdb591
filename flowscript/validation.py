"""
Validation — structural conformance of IR JSON

The schema lives here as a dict and is checked with a Draft 7
jsonschema validator, collecting every error rather than the first.
Semantic checks (cycles, orphans, missing decisions) belong to the
linter, not here.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from jsonschema import Draft7Validator

from .core.ir import IR_VERSION, NodeType, RelationType, StateType


HASH_PATTERN = "^[a-f0-9]{64}$"

PROVENANCE_SCHEMA = {
    "type": "object",
    "required": ["source_file", "line_number"],
    "properties": {
        "source_file": {"type": "string"},
        "line_number": {"type": "integer", "minimum": 1},
        "timestamp": {"type": "string"},
    },
}

IR_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "FlowScript IR",
    "type": "object",
    "required": ["version", "nodes", "relationships", "states", "invariants"],
    "properties": {
        "version": {"const": IR_VERSION},
        "nodes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "type", "content", "provenance"],
                "properties": {
                    "id": {"type": "string", "pattern": HASH_PATTERN},
                    "type": {"enum": [t.value for t in NodeType]},
                    "content": {"type": "string"},
                    "provenance": PROVENANCE_SCHEMA,
                    "children": {
                        "type": "array",
                        "items": {"type": "string", "pattern": HASH_PATTERN},
                    },
                    "modifiers": {
                        "type": "array",
                        "items": {"enum": ["urgent", "strong_positive", "high_confidence", "low_confidence"]},
                        "uniqueItems": True,
                    },
                    "ext": {"type": "object"},
                },
            },
        },
        "relationships": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "type", "source", "target", "provenance"],
                "properties": {
                    "id": {"type": "string", "pattern": HASH_PATTERN},
                    "type": {"enum": [t.value for t in RelationType]},
                    "source": {"type": "string", "pattern": HASH_PATTERN},
                    "target": {"type": "string", "pattern": HASH_PATTERN},
                    "axis_label": {"type": ["string", "null"]},
                    "feedback": {"type": "boolean"},
                    "provenance": PROVENANCE_SCHEMA,
                },
                # Tensions always carry the key, even when null
                "if": {"properties": {"type": {"const": "tension"}}},
                "then": {"required": ["axis_label"]},
            },
        },
        "states": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "type", "node_id", "fields", "provenance"],
                "properties": {
                    "id": {"type": "string", "pattern": HASH_PATTERN},
                    "type": {"enum": [t.value for t in StateType]},
                    "node_id": {"type": "string", "pattern": "^([a-f0-9]{64})?$"},
                    "fields": {"type": "object", "additionalProperties": {"type": "string"}},
                    "provenance": PROVENANCE_SCHEMA,
                },
            },
        },
        "invariants": {
            "type": "object",
            "additionalProperties": {"type": "boolean"},
        },
        "metadata": {"type": "object"},
    },
}


@dataclass
class ValidationResult:
    valid: bool
    errors: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}


_validator = Draft7Validator(IR_SCHEMA)


def _error_path(error) -> str:
    parts = [str(p) for p in error.absolute_path]
    return "/" + "/".join(parts) if parts else "/"


def validate_ir(ir_dict: Dict[str, Any]) -> ValidationResult:
    """
    Validate an IR dict (as produced by IR.to_dict() or loaded from JSON).

    Errors come back sorted by path, each as {path, message, validator}.
    """
    errors = sorted(_validator.iter_errors(ir_dict), key=lambda e: list(map(str, e.absolute_path)))
    return ValidationResult(
        valid=not errors,
        errors=[
            {"path": _error_path(e), "message": e.message, "validator": e.validator}
            for e in errors
        ],
    )
