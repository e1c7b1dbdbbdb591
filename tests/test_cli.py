"""
Tests for the flowscript CLI — argument wiring, output and exit codes

Runs main() in-process against files in tmp_path. Output is ASCII
(FLOWSCRIPT_SYMBOLS=ascii) so assertions do not depend on the terminal.
"""

from unittest.mock import patch

import orjson
import pytest

from flowscript.cli import FlowScriptCLI, build_parser, main
from flowscript.commands import get_registered_commands
from flowscript.core.errors import QueryError
from flowscript.query.engine import QueryEngine

from tests.factories import BLOCKED_DOC, DECISION_DOC, UNLABELED_TENSION_DOC


@pytest.fixture(autouse=True)
def ascii_output(monkeypatch):
    monkeypatch.setenv("FLOWSCRIPT_SYMBOLS", "ascii")


@pytest.fixture
def run(tmp_path, capsys):
    """Run the CLI against tmp_path; returns (exit code, stdout, stderr)."""
    def _run(*argv):
        code = main(["--project", str(tmp_path), *argv])
        captured = capsys.readouterr()
        return code, captured.out, captured.err
    return _run


@pytest.fixture
def write_doc(tmp_path):
    def _write(source, name="notes.fs"):
        path = tmp_path / name
        path.write_text(source, encoding="utf-8")
        return str(path)
    return _write


@pytest.fixture
def write_ir(tmp_path, parse_text):
    def _write(source, name="notes.json"):
        path = tmp_path / name
        path.write_text(parse_text(source, "notes.fs").to_json(), encoding="utf-8")
        return str(path)
    return _write


class TestGlobal:
    """Top-level behavior."""

    def test_no_command_prints_help(self, run):
        code, out, _ = run()
        assert code == 0
        assert "usage: flowscript" in out

    def test_commands_registered(self):
        build_parser()
        assert get_registered_commands() == ["parse", "lint", "validate", "query", "config"]

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert capsys.readouterr().out.startswith("flowscript ")

    def test_format_json_from_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FLOWSCRIPT_FORMAT", "json")
        assert FlowScriptCLI(tmp_path).json_output is True


class TestParse:
    """flowscript parse"""

    def test_stdout(self, run, write_doc):
        code, out, _ = run("parse", write_doc("A -> B"))
        assert code == 0
        ir = orjson.loads(out)
        assert ir["version"] == "1.0.0"
        assert [n["content"] for n in ir["nodes"]] == ["A", "B"]

    def test_output_file(self, run, write_doc, tmp_path):
        out_path = tmp_path / "out.json"
        code, out, _ = run("parse", write_doc("A -> B"), "-o", str(out_path), "--compact")
        assert code == 0
        assert "[OK] Parsed" in out
        text = out_path.read_text(encoding="utf-8")
        assert "\n  " not in text
        assert len(orjson.loads(text)["relationships"]) == 1

    def test_indentation_error(self, run, write_doc):
        code, out, err = run("parse", write_doc("A\n\tB"))
        assert code == 1
        assert out == ""
        assert err.startswith("Error: Tabs not allowed")

    def test_missing_file(self, run, tmp_path):
        code, _, err = run("parse", str(tmp_path / "missing.fs"))
        assert code == 1
        assert "Error: File not found" in err


class TestLint:
    """flowscript lint"""

    def test_clean(self, run, write_doc):
        path = write_doc(DECISION_DOC)
        code, out, _ = run("lint", path)
        assert code == 0
        assert out.strip() == f"{path}: No issues found [OK]"

    def test_errors_fail(self, run, write_doc):
        code, out, _ = run("lint", write_doc(UNLABELED_TENSION_DOC))
        assert code == 1
        assert "E001" in out
        assert "1 error, 0 warnings" in out

    def test_warnings_pass(self, run, write_doc):
        code, out, _ = run("lint", write_doc('[parking] rewrite -> later'))
        assert code == 0
        assert "W001" in out

    def test_json(self, run, write_doc):
        code, out, _ = run("lint", write_doc(BLOCKED_DOC), "--json")
        data = orjson.loads(out)
        assert code == 1
        assert data["errors"] == 1
        assert data["results"][0]["rule_code"] == "E002"

    def test_disabled_rule_from_config(self, run, write_doc):
        assert run("config", "--set", "lint.disabled_rules=E001")[0] == 0
        assert run("lint", write_doc(UNLABELED_TENSION_DOC))[0] == 0


class TestValidate:
    """flowscript validate"""

    def test_valid(self, run, write_ir):
        path = write_ir(DECISION_DOC)
        code, out, _ = run("validate", path)
        assert code == 0
        assert out.strip() == f"[OK] {path}: Valid IR"

    def test_invalid_verbose(self, run, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{"version": "1.0.0"}', encoding="utf-8")
        code, out, _ = run("validate", str(path), "-v")
        assert code == 1
        assert "4 validation error(s)" in out
        assert "  - /: 'nodes' is a required property" in out

    def test_invalid_terse(self, run, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{}", encoding="utf-8")
        _, out, _ = run("validate", str(path))
        assert "Use --verbose" in out

    def test_json(self, run, write_ir):
        code, out, _ = run("--json", "validate", write_ir("A -> B"))
        assert code == 0
        assert orjson.loads(out)["valid"] is True

    def test_not_json(self, run, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("not json", encoding="utf-8")
        code, _, err = run("validate", str(path))
        assert code == 1
        assert err.startswith("Error: Invalid JSON")


class TestQuery:
    """flowscript query ..."""

    def test_why_by_text(self, run, write_ir):
        code, out, _ = run("query", "why", "A", write_ir("A <- B\nB <- C"))
        assert code == 0
        assert "Root cause: [" in out
        assert "] C" in out

    def test_why_json(self, run, write_ir):
        code, out, _ = run("--json", "query", "why", "A", write_ir("A <- B\nB <- C"), "-f", "minimal")
        assert code == 0
        assert orjson.loads(out) == {"root_cause": "C", "chain": ["C", "B"]}

    def test_max_depth(self, run, write_ir):
        _, out, _ = run("--json", "query", "why", "A", write_ir("A <- B\nB <- C"),
                        "-f", "minimal", "-d", "1")
        assert orjson.loads(out)["root_cause"] == "B"

    def test_unresolved_node(self, run, write_ir):
        code, out, _ = run("query", "why", "kubernetes", write_ir("A -> B"))
        assert code == 1
        assert 'No match for "kubernetes"' in out

    def test_what_if(self, run, write_ir):
        code, out, _ = run("query", "what-if", "A", write_ir("A -> B\nB -> C"), "-f", "summary")
        assert code == 0
        assert out.startswith("A affects 2 downstream considerations")

    def test_tensions_axis_filter(self, run, write_ir):
        path = write_ir("speed ><[cost] quality\nspeed ><[risk] safety")
        code, out, _ = run("--json", "query", "tensions", path, "-a", "risk", "-g", "none")
        assert code == 0
        data = orjson.loads(out)
        assert [t["axis"] for t in data["tensions"]] == ["risk"]

    def test_blocked(self, run, write_ir):
        path = write_ir('[blocked(reason: "vendor", since: "2025-01-01")] API -> launch')
        code, out, _ = run("query", "blocked", path)
        assert code == 0
        assert "reason: vendor" in out

    def test_alternatives(self, run, write_ir):
        code, out, _ = run("query", "alternatives", "which database", write_ir(DECISION_DOC))
        assert code == 0
        assert "Chosen: postgres" in out

    def test_alternatives_needs_question(self, run, write_ir):
        code, _, err = run("query", "alternatives", "A", write_ir("A -> B"))
        assert code == 1
        assert "is not a question" in err

    def test_query_error_reported(self, run, write_ir):
        path = write_ir(BLOCKED_DOC)
        with patch.object(QueryEngine, "blocked", side_effect=QueryError("index corrupted")):
            code, _, err = run("query", "blocked", path)
        assert code == 1
        assert err.strip() == "Error: index corrupted"

    def test_subcommand_required(self, run):
        with pytest.raises(SystemExit) as exc:
            run("query")
        assert exc.value.code == 2


class TestConfig:
    """flowscript config"""

    def test_show(self, run):
        code, out, _ = run("config")
        assert code == 0
        assert "Configuration:" in out

    def test_set(self, run, tmp_path):
        code, out, _ = run("config", "--set", "lint.max_chain_length=12")
        assert code == 0
        assert "[OK] Set lint.max_chain_length = 12" in out
        assert (tmp_path / ".flowscript" / "config.yaml").exists()

    def test_set_user(self, run, isolated_user_config):
        assert run("config", "--set", "display.format=json", "--user")[0] == 0
        assert (isolated_user_config / "config.yaml").exists()

    def test_bad_format(self, run):
        code, out, _ = run("config", "--set", "lint.max_chain_length")
        assert code == 1
        assert "Use format KEY=VALUE" in out

    def test_bad_value(self, run):
        code, out, _ = run("config", "--set", "display.symbols=emoji")
        assert code == 1
        assert "[ERR] Unknown symbols setting" in out
