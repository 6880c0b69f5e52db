#!/usr/bin/env python3
"""
Provision a back-office administrator.

Usage:
  python scripts/create_admin.py --email admin@carz.com --name "Admin User"
  python scripts/create_admin.py --email ops@carz.com --name Ops --role SUPER_ADMIN
  python scripts/create_admin.py --email admin@carz.com --name Admin --password-stdin < pw.txt

The password is prompted for (twice) unless --password-stdin is given; it is
never accepted as a command-line argument, where it would land in shell
history and the process table.

Environment variables (see core/config.py):
  DATABASE_URL   Admin store location. Overridden by --database-url.
  BCRYPT_ROUNDS  Work factor for the new hash.
"""

import argparse
import getpass
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy.exc import IntegrityError  # noqa: E402

from auth.errors import StoreUnavailable  # noqa: E402
from auth.models import AdminCredential  # noqa: E402
from auth.passwords import PasswordHasher  # noqa: E402
from auth.store import AdminStore  # noqa: E402
from core.config import get_settings  # noqa: E402

_ROLES = ("ADMIN", "SUPER_ADMIN")
_MIN_PASSWORD_LENGTH = 8


def _read_password(from_stdin: bool) -> str | None:
    if from_stdin:
        return sys.stdin.readline().rstrip("\n")
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Repeat password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    return first


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a back-office administrator account.")
    parser.add_argument("--email", required=True, help="Login identifier (stored lower-cased)")
    parser.add_argument("--name", required=True, help="Display name")
    parser.add_argument("--role", choices=_ROLES, default="ADMIN")
    parser.add_argument("--password-stdin", action="store_true", help="Read the password from stdin")
    parser.add_argument("--database-url", help="Override DATABASE_URL")
    args = parser.parse_args(argv)

    settings = get_settings()
    password = _read_password(args.password_stdin)
    if password is None:
        return 1
    if len(password) < _MIN_PASSWORD_LENGTH:
        print(f"  [!] Password must be at least {_MIN_PASSWORD_LENGTH} characters.")
        return 1

    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    store = AdminStore(args.database_url or settings.database_url)
    try:
        admin_id = store.create_admin(
            AdminCredential(
                identifier=args.email,
                secret_hash=hasher.hash(password),
                name=args.name,
                role=args.role,
            )
        )
    except IntegrityError:
        print(f"  [!] An admin with email {args.email!r} already exists.")
        return 1
    except StoreUnavailable as exc:
        print(f"  [!] Could not create admin: {exc}")
        return 2
    finally:
        store.close()

    print(f"  Created admin #{admin_id} ({args.email.strip().lower()}, {args.role})")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")
    sys.exit(main())
