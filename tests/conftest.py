"""
Shared pytest fixtures for the FlowScript test suite.

Usage in tests:
    def test_something(ir_factory):
        a, b = ir_factory.chain("A", "B")
        ir = ir_factory.build()

    def test_parsed(parse_text):
        ir = parse_text("A -> B")
"""

import pytest

from flowscript.config import ConfigManager
from flowscript.core.parser import FlowScriptParser
from flowscript.presentation.symbols import UNICODE
from tests.factories import IRFactory


@pytest.fixture(scope="session")
def fs_parser():
    """One grammar for the whole session; parse() holds no state between calls."""
    return FlowScriptParser()


@pytest.fixture
def parse_text(fs_parser):
    """
    Parse a FlowScript string into IR.

    Example:
        def test_chain(parse_text):
            ir = parse_text("A -> B")
            assert len(ir.relationships) == 1
    """
    def _parse(source: str, source_file: str = "test.fs"):
        return fs_parser.parse(source, source_file)
    return _parse


@pytest.fixture
def ir_factory():
    """Empty IRFactory for hand-built graphs."""
    return IRFactory()


@pytest.fixture
def symbols():
    """Unicode symbol set, independent of the terminal running the tests."""
    return UNICODE


@pytest.fixture(autouse=True)
def isolated_user_config(tmp_path, monkeypatch):
    """
    Point the user config at a temp dir and clear env overrides.

    Keeps a developer's ~/.flowscript/config.yaml out of every test.
    """
    user_dir = tmp_path / "home" / ".flowscript"
    monkeypatch.setattr(ConfigManager, "USER_CONFIG_DIR", user_dir)
    monkeypatch.setattr(ConfigManager, "USER_CONFIG_FILE", user_dir / "config.yaml")
    for name in ("FLOWSCRIPT_SYMBOLS", "FLOWSCRIPT_FORMAT",
                 "FLOWSCRIPT_MAX_NESTING_DEPTH", "FLOWSCRIPT_MAX_CHAIN_LENGTH",
                 "FLOWSCRIPT_PROJECT_PATH"):
        monkeypatch.delenv(name, raising=False)
    return user_dir
