"""
mend config set / unset - change one setting.
"""

from pydantic import ValidationError

from infra.config import RepairSettings, SettingsManager


def _known(key: str) -> bool:
    if key in RepairSettings.model_fields:
        return True
    print(f"✗ Unknown setting '{key}'")
    print(f"  Available: {', '.join(RepairSettings.model_fields)}")
    return False


def _report(key: str, settings: RepairSettings) -> None:
    if key == 'gemini_api_key':
        print(f"✓ Set {key}")
    else:
        print(f"✓ Set {key} = {getattr(settings, key)}")


def cmd_config_set(args):
    """Set a configuration value.

    The raw string goes to RepairSettings, which coerces "5", "true",
    "30.0" and paths to the field's type.
    """
    manager = SettingsManager(getattr(args, 'home', None))
    if not _known(args.key):
        return

    try:
        settings = manager.update({args.key: args.value})
    except ValidationError as e:
        print(f"✗ Failed to set {args.key}: {e.errors()[0]['msg']}")
        return
    _report(args.key, settings)


def cmd_config_unset(args):
    """Restore a setting to its schema default."""
    manager = SettingsManager(getattr(args, 'home', None))
    if not _known(args.key):
        return

    default = RepairSettings.model_fields[args.key].default
    if args.key == 'log_dir':
        default = manager.home / "logs"
    settings = manager.update({args.key: default})
    _report(args.key, settings)
