"""Command-line interface for the book inventory service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from getpass import getpass
from typing import Sequence

from pydantic import ValidationError

from inventory.api import RegisterRequest, create_app
from inventory.config import Settings, load_settings
from inventory.database import Database
from inventory.errors import ConflictError, NotFoundError
from inventory.models import Account, Role
from inventory.passwords import PasswordHasher, password_problem

logger = logging.getLogger("inventory.main")

MIN_PASSWORD_LENGTH = 8


def _default_port() -> int:
    raw = os.getenv("PORT")
    return int(raw) if raw else 3000


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Book inventory service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the inventory database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the API (default: $PORT or 3000)",
    )

    create_parser = subparsers.add_parser("create-user", help="Create a login account")
    create_parser.add_argument("email", help="Unique email address for login")
    create_parser.add_argument("--name", default=None, help="Optional display name")
    create_parser.add_argument(
        "--admin",
        action="store_true",
        help="Create the account with the administrator role",
    )

    subparsers.add_parser("list-users", help="List registered accounts")

    role_parser = subparsers.add_parser("set-role", help="Change the role of an account")
    role_parser.add_argument("email", help="Email address of the account")
    role_parser.add_argument("role", choices=[role.value for role in Role], help="New role")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "create-user", "list-users", "set-role"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, settings: Settings, database: Database, host: str, port: int | None) -> None:
    import uvicorn

    port = port or _default_port()
    logger.info("Starting inventory API on http://%s:%s", host, port)

    app = create_app(settings=settings, database=database)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass(f"Password (min {MIN_PASSWORD_LENGTH} characters): ")
        if len(password) < MIN_PASSWORD_LENGTH:
            print("Password is too short. Please try again.")
            continue
        problem = password_problem(password)
        if problem is not None:
            print(f"Password {problem}. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def _create_user(
    database: Database,
    hasher: PasswordHasher,
    *,
    email: str,
    name: str | None,
    admin: bool,
) -> int:
    password = _prompt_for_password()
    if password is None:
        print("Aborted creating user.", file=sys.stderr)
        return 1

    try:
        request = RegisterRequest(email=email, password=password, name=name)
    except ValidationError as exc:
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"]) or "input"
            print(f"Error: {field}: {error['msg']}", file=sys.stderr)
        return 1

    account = Account.create(
        email=str(request.email),
        password_hash=hasher.hash(request.password),
        name=request.name,
        role=Role.ADMIN if admin else Role.USER,
    )
    try:
        created = database.create_account(account)
    except ConflictError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created {created.role.value.lower()} account {created.id} <{created.email}>")
    return 0


def _list_users(database: Database) -> int:
    accounts = database.list_accounts()
    if not accounts:
        print("No users are currently registered.")
        return 0

    print(f"{len(accounts)} user(s) found:")
    print(f"{'ID':<36}  {'Email':<32}  {'Role':<5}  Created")
    print("-" * 100)
    for account in accounts:
        created = account.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{account.id:<36}  {account.email:<32}  {account.role.value:<5}  {created}")
    return 0


def _set_role(database: Database, *, email: str, role: str) -> int:
    account = database.find_account_by_email(email)
    if account is None:
        print(f"Error: no account registered for {email}", file=sys.stderr)
        return 1

    try:
        updated = database.update_account(account.with_role(Role(role)))
    except NotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"{updated.email} now has role {updated.role.value}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = load_settings()
    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(settings=settings, database=database, host=args.host, port=args.port)
        return 0
    if args.command == "init-db":
        print("Database initialisation complete.")
        return 0
    if args.command == "create-user":
        hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
        return _create_user(database, hasher, email=args.email, name=args.name, admin=args.admin)
    if args.command == "list-users":
        return _list_users(database)
    if args.command == "set-role":
        return _set_role(database, email=args.email, role=args.role)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
