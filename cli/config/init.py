"""
mend init command - Create the settings file.
"""

from infra.config import RepairSettings, SettingsManager


def cmd_init(args):
    """Create the settings file with defaults."""
    manager = SettingsManager(getattr(args, 'home', None))

    if manager.exists() and not args.force:
        print(f"✗ Config already exists at: {manager.config_path}")
        print("  Use --force to overwrite")
        return

    settings = RepairSettings()
    manager.save(settings)
    print(f"✓ Created config at: {manager.config_path}")

    print("\nConfiguration summary:")
    print(f"  Model: {settings.gemini_model} ({settings.api_version})")
    print(f"  Apply mode: {settings.apply_mode}")
    print(f"  Attempts: {settings.max_attempts} per block, {settings.batch_max_attempts} in fix-all")
    print(f"  Parser backend: {settings.oracle_backend}")

    print("\nAPI key:")
    if settings.resolve_api_key():
        print("  ✓ gemini: configured")
    else:
        print(f"  ○ gemini: not set (using {settings.gemini_api_key})")
