"""CLI script to create an admin account.

Usage:
    python -m timing_remote.scripts.create_admin --name Admin --email admin@example.com --password 'YourP@ss1'

The schema is created or upgraded first. An existing account with the same
email is left untouched.
"""

from __future__ import annotations

import argparse
import sys

from timing_remote.auth.password import hash_password
from timing_remote.config import get_settings
from timing_remote.core.exceptions import DuplicateEmailError, TimingRemoteError
from timing_remote.core.logging import setup_logging
from timing_remote.db import MigrationRunner, open_store
from timing_remote.db.types import Account, AccountType


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create a timing_remote admin account")
    parser.add_argument("--name", required=True, help="Display name")
    parser.add_argument("--email", required=True, help="Admin email")
    parser.add_argument("--password", required=True, help="Admin password")
    args = parser.parse_args(argv)

    if "@" not in args.email:
        print("Error: invalid email address", file=sys.stderr)
        return 1

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json, settings.log_file)
    try:
        store = open_store(settings)
    except TimingRemoteError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    try:
        MigrationRunner(store).ensure_schema()
        admin = Account(
            name=args.name,
            email=args.email,
            password=hash_password(args.password),
            type=AccountType.ADMIN,
        )
        store.add_account(admin)
    except DuplicateEmailError:
        print(f"An account with email '{args.email}' already exists.", file=sys.stderr)
        return 1
    except TimingRemoteError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    finally:
        store.close()

    print(f"Admin account '{args.email}' created with id {admin.id}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
