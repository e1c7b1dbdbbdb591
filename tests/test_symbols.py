"""
Tests for Symbols — Visual vocabulary validation

Tests Unicode/ASCII detection, safe printing and truncation.
"""

import io
from unittest.mock import patch

from flowscript.presentation.symbols import (
    ASCII, UNICODE, get_symbols, safe_print, supports_unicode, truncate,
)


class TestSymbolSets:
    """Test symbol set completeness."""

    def test_ascii_is_printable(self):
        """ASCII symbols are all printable ASCII."""
        for sym in vars(ASCII).values():
            assert all(32 <= ord(c) <= 126 for c in sym), f"Non-printable ASCII in {sym}"

    def test_sets_share_fields(self):
        assert set(vars(UNICODE)) == set(vars(ASCII))
        assert UNICODE.tension == "⇄"
        assert ASCII.tension == "><"


class TestSymbolSelection:
    """Test symbol set selection logic."""

    def test_explicit_preferences(self):
        assert get_symbols("unicode") is UNICODE
        assert get_symbols("ascii") is ASCII

    def test_ascii_only_env(self, monkeypatch):
        """FLOWSCRIPT_ASCII_ONLY forces ASCII."""
        monkeypatch.setenv("FLOWSCRIPT_ASCII_ONLY", "1")
        assert supports_unicode() is False
        assert get_symbols("auto") is ASCII

    def test_unicode_env(self, monkeypatch):
        monkeypatch.delenv("FLOWSCRIPT_ASCII_ONLY", raising=False)
        monkeypatch.setenv("FLOWSCRIPT_UNICODE", "yes")
        assert supports_unicode() is True

    def test_cp_encoding_means_ascii(self, monkeypatch):
        """Windows code pages get ASCII."""
        monkeypatch.delenv("FLOWSCRIPT_ASCII_ONLY", raising=False)
        monkeypatch.delenv("FLOWSCRIPT_UNICODE", raising=False)
        fake = io.TextIOWrapper(io.BytesIO(), encoding="cp1252")
        with patch("sys.stdout", fake):
            assert supports_unicode() is False


class TestSafeOutput:
    """Encoding-safe printing and truncation."""

    def test_safe_print_falls_back_to_ascii(self):
        stream = io.TextIOWrapper(io.BytesIO(), encoding="ascii")
        safe_print("A → B ✓", file=stream)
        stream.flush()
        assert stream.buffer.getvalue().decode("ascii") == "A -> B [x]\n"

    def test_safe_print_replaces_unknown(self):
        stream = io.TextIOWrapper(io.BytesIO(), encoding="ascii")
        safe_print("café", file=stream)
        stream.flush()
        assert stream.buffer.getvalue().decode("ascii") == "caf?\n"

    def test_truncate(self):
        assert truncate("short", 10) == "short"
        assert truncate("a" * 20, 10) == "aaaaaaa..."
        assert truncate("a" * 20, 10, full=True) == "a" * 20
        assert truncate("", 10) == ""
