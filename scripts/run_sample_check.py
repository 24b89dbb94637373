#!/usr/bin/env python3
"""Sample check harness for end-to-end validation.

Seeds a database with the fixture inventory (teams, certificates and
service IDs expiring relative to now), runs one expiry check with a
recording SMTP transport, and prints what would have been sent. No SMTP
server or network access is needed.

Usage:
    # In-memory database, default fixtures
    python scripts/run_sample_check.py

    # Keep the database for inspection
    python scripts/run_sample_check.py --database /tmp/expiry_sample.db

    # Custom config and fixtures
    python scripts/run_sample_check.py --config config.example.yaml --fixtures tests/fixtures/sample_inventory.yaml
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from expiry_notifier.config.exceptions import ConfigurationError
from expiry_notifier.config.loader import _read_yaml, build_app_config
from expiry_notifier.domain.models import TriggeredBy
from expiry_notifier.logging import configure_logging
from expiry_notifier.notifications.service import NotificationDispatcher
from expiry_notifier.persistence.database import close_database, get_session, init_database
from expiry_notifier.pipeline import ExpiryCheckRunner
from expiry_notifier.utils.timestamps import utc_now
from tests.helpers.inventory import DEFAULT_INVENTORY, RecordingSMTPClient, seed_inventory


def print_header(title: str):
    """Print a formatted section header."""
    width = 80
    print("\n" + "=" * width)
    print(f" {title}")
    print("=" * width + "\n")


def print_outcomes(result):
    print_header("Expiry Check Summary")

    counts = result.to_dict()["counts"]
    rows = [("Items checked", result.total_items)] + [
        (status, count) for status, count in counts.items()
    ] + [
        ("Degraded", "Yes" if result.degraded else "No"),
        ("Duration (seconds)", f"{result.duration_seconds:.2f}"),
    ]
    label_width = max(len(label) for label, _ in rows)
    for label, value in rows:
        print(f"  {label:<{label_width}}  {value}")

    print_header("Per-Item Outcomes")
    for outcome in result.outcomes:
        print(f"{outcome.item_type:<12} {outcome.item_name:<28} {outcome.days_remaining:>4}d  {outcome.status.value}")
        if outcome.recipients:
            print(f"{'':<12} -> {', '.join(outcome.recipients)}")
        if outcome.error:
            print(f"{'':<12} !! {outcome.error}")


def main():
    """Main entry point for the sample check harness."""
    parser = argparse.ArgumentParser(
        description="Run a sample expiry check against fixture data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: built-in defaults)",
    )
    parser.add_argument(
        "--fixtures",
        type=Path,
        default=DEFAULT_INVENTORY,
        help=f"Path to inventory YAML (default: {DEFAULT_INVENTORY})",
    )
    parser.add_argument(
        "--database",
        default="sqlite:///:memory:",
        help="Database URL or file path (default: in-memory SQLite)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: WARNING)",
    )
    args = parser.parse_args()

    configure_logging(level=args.log_level, format_type="key-value")

    try:
        app_config = build_app_config(_read_yaml(args.config) if args.config else {})
    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1

    database_url = args.database if "://" in args.database else f"sqlite:///{args.database}"
    init_database(database_url)

    try:
        now = utc_now()
        with get_session() as session:
            counts = seed_inventory(session, now, args.fixtures)
        print(
            f"Seeded {counts['teams']} team(s), {counts['certificates']} certificate(s), "
            f"{counts['service_ids']} service ID(s)"
        )

        smtp = RecordingSMTPClient()
        dispatcher = NotificationDispatcher(
            smtp,
            notifications_config=app_config.notifications,
            subject_prefix=app_config.email.subject_prefix,
        )
        runner = ExpiryCheckRunner(app_config, dispatcher, clock=lambda: now)
        result = runner.check_and_send_notifications(TriggeredBy.ADMIN)

        print_outcomes(result)

        print_header("Messages Captured")
        for message in smtp.sent:
            print(f"To: {message['to']}\nSubject: {message['subject']}\n")
    finally:
        close_database()

    return 1 if result.degraded else 0


if __name__ == "__main__":
    sys.exit(main())
