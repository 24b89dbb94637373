#!/usr/bin/env python3
"""Check a configuration file against the Expiry Notifier schema.

Usage:
    python verify_config.py                 # checks config.example.yaml
    python verify_config.py config.yaml
"""

import sys
from pathlib import Path

from expiry_notifier.config.exceptions import ConfigurationError
from expiry_notifier.config.loader import _read_yaml, build_app_config
from expiry_notifier.config.validators import check_config_warnings


def verify_config_structure(config_file: Path) -> bool:
    """Validate config_file and print a short summary."""
    if not config_file.exists():
        print(f"✗ {config_file} not found")
        return False

    try:
        config = build_app_config(_read_yaml(config_file))
    except ConfigurationError as e:
        print(f"✗ {config_file} validation failed:")
        print(e)
        return False

    notifications = config.notifications
    print(f"✓ {config_file} structure is valid")
    print(f"  - Check interval: {config.check_interval} ({config.check_interval_seconds}s)")
    print(f"  - Lookahead: {notifications.lookahead_days} days")
    print(f"  - Trigger days: {', '.join(str(d) for d in notifications.trigger_days)}")
    tiers = ", ".join(f"{bp.tier.value}>={bp.min_days}" for bp in notifications.tier_breakpoints)
    print(f"  - Tiers: {tiers}, else {notifications.fallback_tier.value}")

    for warning in check_config_warnings(config):
        print(f"  ! {warning}")
    return True


if __name__ == "__main__":
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("config.example.yaml")
    success = verify_config_structure(path)
    sys.exit(0 if success else 1)
