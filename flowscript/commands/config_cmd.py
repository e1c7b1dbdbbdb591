"""
ConfigCommand — Configuration display and updates
"""

from ..commands.base import BaseCommand


class ConfigCommand(BaseCommand):
    """Command for viewing and setting configuration values."""

    def show_config(self) -> int:
        """Show current configuration."""
        self.emit(self.config_manager.display())
        return 0

    def set_config(self, key: str, value: str, scope: str = "project") -> int:
        """Set a configuration value."""
        symbols = self.symbols
        error = self.config_manager.set(key, value, scope)

        if error:
            self.emit(f"{symbols.check_fail} {error}")
            return 1

        if scope == "project":
            path = self.config_manager.project_config_path
        else:
            path = self.config_manager.user_config_path
        self.emit(f"{symbols.check_pass} Set {key} = {value}\n  Saved to {path}")
        return 0


# =============================================================================
# Command Registration (Self-Registration Pattern)
# =============================================================================

COMMAND_NAME = 'config'


def register_parser(subparsers):
    """Register config command parser."""
    p = subparsers.add_parser('config', help='View or set configuration')
    p.add_argument('--set', metavar='KEY=VALUE',
                   help='Set config value (e.g., lint.max_nesting_depth=4)')
    p.add_argument('--user', action='store_true',
                   help='Apply to user config instead of project')
    return p


def handle(cli, args):
    """Handle config command dispatch."""
    if args.set:
        if '=' not in args.set:
            print("Error: Use format KEY=VALUE (e.g., display.symbols=ascii)")
            return 1
        key, value = args.set.split('=', 1)
        scope = "user" if args.user else "project"
        return cli._config_cmd.set_config(key, value, scope)
    return cli._config_cmd.show_config()
