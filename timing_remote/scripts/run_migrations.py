#!/usr/bin/env python3
"""Create or upgrade the database schema.

Usage:
    python -m timing_remote.scripts.run_migrations [upgrade|current]
"""

import argparse
import sys

from timing_remote.config import get_settings
from timing_remote.core.exceptions import TimingRemoteError
from timing_remote.core.logging import setup_logging
from timing_remote.db import MigrationRunner, open_store


def upgrade(runner: MigrationRunner) -> None:
    """Run migrations to latest version."""
    version = runner.ensure_schema()
    print(f"✓ Schema at version {version}")


def current(runner: MigrationRunner) -> None:
    """Show current version."""
    print(f"Current schema version: {runner.current_version()} (supported: {runner.schema.version})")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run database migrations")
    parser.add_argument(
        "command",
        choices=["upgrade", "current"],
        default="upgrade",
        nargs="?",
        help="Migration command to run",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json, settings.log_file)
    try:
        store = open_store(settings)
    except TimingRemoteError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    try:
        runner = MigrationRunner(store)
        if args.command == "upgrade":
            upgrade(runner)
        else:
            current(runner)
    except TimingRemoteError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
