#!/usr/bin/env python3
"""
AskHub accounts -- operator CLI for the account and session store.

Usage:
  python main.py create-user --username admin --email admin@askhub.local --password s3cret --role admin
  python main.py sign-in --username admin --password s3cret
  python main.py show-user 1b4e28ba-2fa1-11d2-883f-0016d3cca427
  python main.py delete-user --token <admin token> 1b4e28ba-2fa1-11d2-883f-0016d3cca427
  python main.py sign-out --token <token>

Environment variables:
  SECRET_KEY     Session token signing key (>= 32 chars). Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL of the account store (default: local SQLite file).
  DEBUG          Set to true for local development.

Exit status is 0 on success and 1 when the operation is rejected. Rejections
print as "<code>: <message>".
"""

import argparse
import logging
import sys
from typing import Optional

from auth.errors import AuthError
from auth.models import Account
from auth.service import AdminGate, AuthSessionManager
from auth.store import AuthDatabase
from auth.tokens import encode_basic_credentials
from core.config import get_settings

logger = logging.getLogger("askhub.cli")


def _print_account(account: Account) -> None:
    print(f"  uuid:       {account.uuid}")
    print(f"  username:   {account.username}")
    print(f"  email:      {account.email}")
    print(f"  role:       {account.role}")
    if account.first_name or account.last_name:
        print(f"  name:       {' '.join(p for p in (account.first_name, account.last_name) if p)}")
    if account.last_login:
        print(f"  last login: {account.last_login.isoformat()}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="askhub-accounts",
        description="Manage AskHub accounts and sessions.",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-user", help="Register an account (use --role admin to bootstrap an admin)")
    create.add_argument("--username", required=True)
    create.add_argument("--email", required=True)
    create.add_argument("--password", required=True)
    create.add_argument("--role", choices=["admin", "nonadmin"], default=None, help="Default: configured default role")
    create.add_argument("--first-name", default=None)
    create.add_argument("--last-name", default=None)

    sign_in = sub.add_parser("sign-in", help="Open a session and print its token")
    sign_in.add_argument("--username", required=True)
    sign_in.add_argument("--password", required=True)

    sign_out = sub.add_parser("sign-out", help="Terminate the session for a token")
    sign_out.add_argument("--token", required=True)

    show = sub.add_parser("show-user", help="Print an account by uuid")
    show.add_argument("uuid")

    delete = sub.add_parser("delete-user", help="Delete an account (requires an admin session token)")
    delete.add_argument("--token", required=True, help="Session token of an admin account")
    delete.add_argument("uuid")

    return parser


def _run(args: argparse.Namespace, manager: AuthSessionManager) -> None:
    if args.command == "create-user":
        draft = Account(role=args.role or "", first_name=args.first_name, last_name=args.last_name)
        account = manager.sign_up(draft, args.username, args.email, args.password)
        print("Account created.")
        _print_account(account)

    elif args.command == "sign-in":
        session = manager.sign_in(encode_basic_credentials(args.username, args.password))
        print(f"  token:      {session.access_token}")
        print(f"  expires at: {session.expires_at.isoformat()}")

    elif args.command == "sign-out":
        account = manager.sign_out(args.token)
        print(f"Signed out {account.username}.")

    elif args.command == "show-user":
        _print_account(manager.fetch_by_id(args.uuid))

    elif args.command == "delete-user":
        account = AdminGate(manager).delete_user(args.token, args.uuid)
        print(f"Deleted {account.username} ({account.uuid}).")


def main(argv: Optional[list[str]] = None, manager: Optional[AuthSessionManager] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    db: Optional[AuthDatabase] = None
    if manager is None:
        db = AuthDatabase(settings.database_url)
        manager = AuthSessionManager(db, settings)
    try:
        _run(args, manager)
    except AuthError as exc:
        print(f"  [!] {exc.code}: {exc.message}", file=sys.stderr)
        return 1
    finally:
        if db is not None:
            db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
