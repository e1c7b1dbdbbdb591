"""
Configuration — Centralized settings management

Config hierarchy (highest to lowest priority):
  1. Environment variables
  2. Project config (.flowscript/config.yaml)
  3. User config (~/.flowscript/config.yaml)
  4. Defaults

Sections:
  parser   indentation width
  lint     rule thresholds, orphan exemptions, disabled rule codes
  query    default traversal depth
  display  symbol set and output format
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .core.ir import NodeType
from .presentation.symbols import get_symbols

logger = logging.getLogger(__name__)


RULE_CODES = ("E001", "E002", "E003", "E004", "E005", "E006", "W001", "W002", "W003")

ENV_OVERRIDES = {
    "FLOWSCRIPT_SYMBOLS": ("display", "symbols"),
    "FLOWSCRIPT_FORMAT": ("display", "format"),
    "FLOWSCRIPT_MAX_NESTING_DEPTH": ("lint", "max_nesting_depth"),
    "FLOWSCRIPT_MAX_CHAIN_LENGTH": ("lint", "max_chain_length"),
}


def _as_int(value: Any, default: Optional[int]) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v) for v in value]


@dataclass
class ParserConfig:
    """Indentation preprocessing."""
    indent_size: int = 2

    def validate(self) -> Optional[str]:
        """Validate config. Returns error message or None if valid."""
        if not isinstance(self.indent_size, int) or self.indent_size < 1:
            return f"Invalid indent_size '{self.indent_size}'. Must be a positive integer"
        return None


@dataclass
class LintConfig:
    """Linter thresholds and rule selection."""
    max_nesting_depth: int = 5
    max_chain_length: int = 10
    orphan_exempt_types: List[str] = field(default_factory=lambda: ["action", "completion"])
    disabled_rules: List[str] = field(default_factory=list)

    def validate(self) -> Optional[str]:
        """Validate config. Returns error message or None if valid."""
        if self.max_nesting_depth < 1:
            return f"Invalid max_nesting_depth '{self.max_nesting_depth}'. Must be at least 1"
        if self.max_chain_length < 1:
            return f"Invalid max_chain_length '{self.max_chain_length}'. Must be at least 1"

        valid_types = [t.value for t in NodeType]
        for node_type in self.orphan_exempt_types:
            if node_type not in valid_types:
                return f"Unknown node type '{node_type}'. Valid: {', '.join(valid_types)}"

        for code in self.disabled_rules:
            if code not in RULE_CODES:
                return f"Unknown rule '{code}'. Valid: {', '.join(RULE_CODES)}"
        return None


@dataclass
class QueryConfig:
    """Query traversal defaults."""
    default_max_depth: Optional[int] = None  # None = bounded by node count

    def validate(self) -> Optional[str]:
        """Validate config. Returns error message or None if valid."""
        if self.default_max_depth is not None and self.default_max_depth < 1:
            return f"Invalid default_max_depth '{self.default_max_depth}'. Must be at least 1"
        return None


@dataclass
class DisplayConfig:
    """Display preferences."""
    symbols: str = "auto"  # "unicode" | "ascii" | "auto"
    format: str = "text"   # "text" | "json"

    def validate(self) -> Optional[str]:
        """Validate config. Returns error message or None if valid."""
        valid_symbols = ("unicode", "ascii", "auto")
        if self.symbols not in valid_symbols:
            return f"Unknown symbols setting '{self.symbols}'. Valid: {', '.join(valid_symbols)}"

        valid_formats = ("text", "json")
        if self.format not in valid_formats:
            return f"Unknown format '{self.format}'. Valid: {', '.join(valid_formats)}"
        return None


@dataclass
class Config:
    """Application configuration."""
    parser: ParserConfig = field(default_factory=ParserConfig)
    lint: LintConfig = field(default_factory=LintConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)

    def validate(self) -> Optional[str]:
        for section in (self.parser, self.lint, self.query, self.display):
            error = section.validate()
            if error:
                return error
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "parser": {
                "indent_size": self.parser.indent_size
            },
            "lint": {
                "max_nesting_depth": self.lint.max_nesting_depth,
                "max_chain_length": self.lint.max_chain_length,
                "orphan_exempt_types": list(self.lint.orphan_exempt_types),
                "disabled_rules": list(self.lint.disabled_rules)
            },
            "query": {
                "default_max_depth": self.query.default_max_depth
            },
            "display": {
                "symbols": self.display.symbols,
                "format": self.display.format
            }
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create from dictionary."""
        parser_data = data.get("parser") or {}
        lint_data = data.get("lint") or {}
        query_data = data.get("query") or {}
        display_data = data.get("display") or {}

        exempt = lint_data.get("orphan_exempt_types")
        return cls(
            parser=ParserConfig(
                indent_size=_as_int(parser_data.get("indent_size"), 2)
            ),
            lint=LintConfig(
                max_nesting_depth=_as_int(lint_data.get("max_nesting_depth"), 5),
                max_chain_length=_as_int(lint_data.get("max_chain_length"), 10),
                orphan_exempt_types=_as_list(exempt) if exempt is not None else ["action", "completion"],
                disabled_rules=_as_list(lint_data.get("disabled_rules"))
            ),
            query=QueryConfig(
                default_max_depth=_as_int(query_data.get("default_max_depth"), None)
            ),
            display=DisplayConfig(
                symbols=display_data.get("symbols", "auto"),
                format=display_data.get("format", "text")
            )
        )


class ConfigManager:
    """
    Manages configuration loading and persistence.

    Hierarchy:
      1. Project config (.flowscript/config.yaml)
      2. User config (~/.flowscript/config.yaml)
      3. Defaults
    Environment variables are applied over the loaded files.
    """

    USER_CONFIG_DIR = Path.home() / ".flowscript"
    USER_CONFIG_FILE = USER_CONFIG_DIR / "config.yaml"
    PROJECT_CONFIG_DIR = ".flowscript"
    PROJECT_CONFIG_FILE = "config.yaml"

    # section -> setting -> converter for string input
    SETTINGS = {
        "parser": {"indent_size": int},
        "lint": {
            "max_nesting_depth": int,
            "max_chain_length": int,
            "orphan_exempt_types": _as_list,
            "disabled_rules": _as_list,
        },
        "query": {"default_max_depth": lambda v: None if v.lower() in ("none", "") else int(v)},
        "display": {"symbols": str, "format": str},
    }

    def __init__(self, project_dir: Optional[Path] = None):
        self.project_dir = Path(project_dir) if project_dir else Path.cwd()
        self._config: Optional[Config] = None

    @property
    def project_config_path(self) -> Path:
        return self.project_dir / self.PROJECT_CONFIG_DIR / self.PROJECT_CONFIG_FILE

    @property
    def user_config_path(self) -> Path:
        return self.USER_CONFIG_FILE

    def _read_yaml(self, path: Path) -> Dict[str, Any]:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Ignoring unreadable config %s: %s", path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring config %s: top level must be a mapping", path)
            return {}
        return data

    def load(self) -> Config:
        """Load configuration from all sources."""
        if self._config is not None:
            return self._config

        # Start with defaults
        config_data: Dict[str, Any] = {}

        # Layer 1: User config
        if self.user_config_path.exists():
            config_data = self._merge(config_data, self._read_yaml(self.user_config_path))

        # Layer 2: Project config (higher priority)
        if self.project_config_path.exists():
            config_data = self._merge(config_data, self._read_yaml(self.project_config_path))

        # Layer 3: Environment overrides
        for env_key, (section, setting) in ENV_OVERRIDES.items():
            if os.environ.get(env_key):
                config_data.setdefault(section, {})[setting] = os.environ[env_key]

        self._config = Config.from_dict(config_data)
        return self._config

    def save_project(self, config: Config):
        """Save configuration to project config file."""
        self.project_config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.project_config_path, 'w', encoding="utf-8") as f:
            yaml.dump(config.to_dict(), f, default_flow_style=False)

        self._config = config

    def save_user(self, config: Config):
        """Save configuration to user config file."""
        self.user_config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.user_config_path, 'w', encoding="utf-8") as f:
            yaml.dump(config.to_dict(), f, default_flow_style=False)

        self._config = config

    def set(self, key: str, value: str, scope: str = "project") -> Optional[str]:
        """
        Set a configuration value.

        Args:
            key: Dot-separated key (e.g., "lint.max_nesting_depth")
            value: Value to set
            scope: "project" or "user"

        Returns:
            Error message or None if successful
        """
        config = self.load()

        parts = key.split(".")
        if len(parts) != 2:
            return f"Invalid key format: {key}. Use 'section.setting' (e.g., 'display.symbols')"

        section, setting = parts
        if section not in self.SETTINGS:
            return f"Unknown section: {section}. Valid: {', '.join(self.SETTINGS)}"

        settings = self.SETTINGS[section]
        if setting not in settings:
            return f"Unknown {section} setting: {setting}. Valid: {', '.join(settings)}"

        try:
            converted = settings[setting](value)
        except ValueError:
            return f"Invalid value for {key}: {value}"

        section_config = getattr(config, section)
        setattr(section_config, setting, converted)
        error = section_config.validate()
        if error:
            return error

        if scope == "project":
            self.save_project(config)
        else:
            self.save_user(config)

        return None

    def get(self, key: str) -> Optional[str]:
        """Get a configuration value as display text."""
        config = self.load()

        parts = key.split(".")
        if len(parts) != 2:
            return None

        section, setting = parts
        if setting not in self.SETTINGS.get(section, {}):
            return None

        value = getattr(getattr(config, section), setting)
        if isinstance(value, list):
            return ", ".join(value)
        return str(value)

    def _merge(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dicts, override wins."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge(result[key], value)
            else:
                result[key] = value
        return result

    def display(self) -> str:
        """Format config for display."""
        config = self.load()
        symbols = get_symbols(config.display.symbols)

        error = config.validate()
        status = f"{symbols.check_fail} {error}" if error else f"{symbols.check_pass} Valid"
        max_depth = config.query.default_max_depth
        lines = [
            "Configuration:",
            f"  Status: {status}",
            "",
            "Parser:",
            f"  Indent size: {config.parser.indent_size}",
            "",
            "Lint:",
            f"  Max nesting depth: {config.lint.max_nesting_depth}",
            f"  Max chain length: {config.lint.max_chain_length}",
            f"  Orphan-exempt types: {', '.join(config.lint.orphan_exempt_types) or '(none)'}",
            f"  Disabled rules: {', '.join(config.lint.disabled_rules) or '(none)'}",
            "",
            "Query:",
            f"  Default max depth: {max_depth if max_depth is not None else 'node count'}",
            "",
            "Display:",
            f"  Symbols: {config.display.symbols}",
            f"  Format: {config.display.format}",
            "",
            "Config files:",
            f"  User: {self.user_config_path}",
            f"  Project: {self.project_config_path}",
        ]

        return "\n".join(lines)


# Convenience function
def get_config(project_dir: Optional[Path] = None) -> Config:
    """Load configuration for a project."""
    return ConfigManager(project_dir).load()
