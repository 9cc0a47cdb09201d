"""
mend config show command - Display settings.
"""

import json

from infra.config import SettingsManager


def cmd_config_show(args):
    """Show settings."""
    manager = SettingsManager(getattr(args, 'home', None))
    settings = manager.load()

    key = settings.resolve_api_key()
    display_key = key if args.reveal_keys else _mask_key(key)

    if args.json:
        data = settings.model_dump(mode="json")
        data['gemini_api_key'] = display_key
        print(json.dumps(data, indent=2, default=str))
        return

    source = manager.config_path if manager.exists() else "(defaults, no config file)"
    print(f"\n📋 mend settings")
    print(f"   Path: {source}\n")

    print("API key:")
    print(f"  gemini: {display_key}")

    print("\nSettings:")
    for name, value in settings.model_dump().items():
        if name == 'gemini_api_key':
            continue
        print(f"  {name}: {value}")
    print()


def _mask_key(value: str) -> str:
    """Mask an API key for display."""
    if not value:
        return "(not set)"
    if len(value) <= 8:
        return "****"
    return value[:4] + "..." + value[-4:]
