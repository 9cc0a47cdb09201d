"""
Config CLI commands.

Commands for managing the settings file (~/.mend/config.yaml, or
$MEND_HOME/config.yaml).
"""

from cli.config.init import cmd_init
from cli.config.show import cmd_config_show
from cli.config.set import cmd_config_set, cmd_config_unset


def setup_parser(subparsers):
    """Setup init and config command parsers."""
    init_parser = subparsers.add_parser('init', help='Create the settings file with defaults')
    init_parser.add_argument('--force', action='store_true', help='Overwrite an existing settings file')
    init_parser.set_defaults(func=cmd_init)

    config_parser = subparsers.add_parser('config', help='Show or change settings')
    config_subparsers = config_parser.add_subparsers(dest='config_command', help='Config command')
    config_subparsers.required = True

    # mend config show [--json] [--reveal-keys]
    show_parser = config_subparsers.add_parser('show', help='Print the effective settings')
    show_parser.add_argument('--json', action='store_true', help='Output as JSON')
    show_parser.add_argument('--reveal-keys', action='store_true', help='Print the API key unmasked')
    show_parser.set_defaults(func=cmd_config_show)

    # mend config set <key> <value>
    set_parser = config_subparsers.add_parser('set', help='Change one setting')
    set_parser.add_argument('key', help='Setting name (e.g. gemini_model, apply_mode, max_attempts)')
    set_parser.add_argument('value', help='New value; converted to the setting\'s type')
    set_parser.set_defaults(func=cmd_config_set)

    # mend config unset <key>
    unset_parser = config_subparsers.add_parser('unset', help='Restore one setting to its default')
    unset_parser.add_argument('key', help='Setting name')
    unset_parser.set_defaults(func=cmd_config_unset)
