"""
IDCodec — Deterministic hash-based node aliasing with AA-BB format

Node ids are 64-char sha256 hex digests. Nobody types those, so output
shows a 5-char code (AA-BB) derived from the id, and input accepts it back.

Key properties:
- DETERMINISTIC: Same id always produces same code (hash-based)
- STATELESS: Decoding scans candidate ids, nothing is stored
- READABLE: AA-BB format is distinct from hex prefixes

Usage:
    codec = IDCodec()
    code = codec.encode(node.id)                  # "KM-XP" (always same)
    full_id = codec.decode("KM-XP", ir_node_ids)   # back to the 64-char id

Code space: 26^4 = 456,976 combinations
"""

import re
from typing import List, Optional

import xxhash


# Two uppercase letters, dash, two uppercase letters
CODE_PATTERN = re.compile(r'^[A-Z]{2}-[A-Z]{2}$')


class IDCodec:
    """Deterministic AA-BB aliases for node ids, via xxhash."""

    def encode(self, full_id: str) -> str:
        """
        Generate deterministic code for an id.

        Returns:
            5-char code in AA-BB format (e.g., "KM-XP")
        """
        if not full_id:
            return full_id

        normalized = self._normalize_id(full_id)
        return self._hash_to_code(normalized)

    def decode(self, code: str, candidate_ids: Optional[List[str]] = None) -> str:
        """
        Resolve code to full id by scanning candidates.

        Returns:
            Full id if found, original code otherwise (passthrough)
        """
        if not code:
            return code

        code_upper = code.upper()
        if not self.is_short_code(code_upper) or not candidate_ids:
            return code

        for candidate in candidate_ids:
            if self.encode(candidate) == code_upper:
                return candidate

        return code

    def decode_all(self, code: str, candidate_ids: List[str]) -> List[str]:
        """Every candidate carrying this code. Collisions are possible in large documents."""
        if not self.is_short_code(code):
            return []
        code_upper = code.upper()
        return [c for c in candidate_ids if self.encode(c) == code_upper]

    def is_short_code(self, value: str) -> bool:
        """Check if value matches AA-BB code format."""
        if not value:
            return False
        return bool(CODE_PATTERN.match(value.upper()))

    def format_with_code(self, full_id: str, display_text: str) -> str:
        """
        Format display with code only (id hidden).

        Example:
            format_with_code(node.id, "Use Redis")  ->  "[KM-XP] Use Redis"
        """
        return f"[{self.encode(full_id)}] {display_text}"

    def _normalize_id(self, full_id: str) -> str:
        # First 8 hex chars, the display length
        return full_id[:8] if len(full_id) > 8 else full_id

    def _hash_to_code(self, normalized_id: str) -> str:
        """Map xxhash32 of the normalized id onto the 26^4 code space."""
        h = xxhash.xxh32(normalized_id.encode()).intdigest()

        n = h % (26 ** 4)

        c0 = n % 26
        c1 = (n // 26) % 26
        c2 = (n // 676) % 26
        c3 = (n // 17576) % 26

        return f"{chr(65 + c3)}{chr(65 + c2)}-{chr(65 + c1)}{chr(65 + c0)}"
