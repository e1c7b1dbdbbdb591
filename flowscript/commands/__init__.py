"""
Commands — one module per CLI verb, registered by convention

A command module provides:
  XxxCommand                 the implementation, a BaseCommand subclass
  register_parser(subparsers) adds its argparse subparser
  handle(cli, args)           runs it and returns the exit code
  COMMAND_NAME                optional; defaults to the module name minus "_cmd"

cli.build_parser() calls register_all(); main() calls dispatch().
"""

import importlib
import logging
from typing import Any, Callable, Dict, List

from .base import BaseCommand

logger = logging.getLogger(__name__)

# Help lists commands in this order
COMMAND_MODULES = [
    'parse_cmd',
    'lint_cmd',
    'validate_cmd',
    'query_cmd',
    'config_cmd',
]

_handlers: Dict[str, Callable] = {}


def register_all(subparsers) -> None:
    """Import every module in COMMAND_MODULES, add its subparser and remember its handler."""
    _handlers.clear()

    for module_name in COMMAND_MODULES:
        try:
            module = importlib.import_module(f'.{module_name}', __package__)
        except ImportError as e:
            # One broken module must not take the whole CLI down
            logger.warning("Could not load command module '%s': %s", module_name, e)
            continue

        register = getattr(module, 'register_parser', None)
        if register is not None:
            register(subparsers)

        handler = getattr(module, 'handle', None)
        if handler is not None:
            name = getattr(module, 'COMMAND_NAME', None) or module_name[:-len('_cmd')]
            _handlers[name] = handler


def dispatch(command: str, cli: Any, args: Any) -> Any:
    """
    Run the handler registered for `command`.

    Raises:
        KeyError: nothing registered under that name
    """
    handler = _handlers.get(command)
    if handler is None:
        raise KeyError(f"Unknown command: {command}. Available: {', '.join(_handlers)}")
    return handler(cli, args)


def get_registered_commands() -> List[str]:
    return list(_handlers)


__all__ = ['BaseCommand', 'register_all', 'dispatch', 'get_registered_commands']
