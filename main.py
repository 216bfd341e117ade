#!/usr/bin/env python3
"""
Loverse -- account and Digest helper commands.

Usage:
  python main.py ha1 alice
  python main.py ha1 alice --realm Loverse
  python main.py create-user alice --nickname Alice
  python main.py digest alice --challenge 'Digest realm="Loverse", qop="auth", nonce="...", opaque="..."'
  python main.py digest alice --challenge '...' --method GET --uri /login

Passwords are always read with a hidden prompt, never from argv, so they do
not end up in shell history or the process list.

Environment variables:
  AUTH_DB_URL   Credential database used by create-user (see core/config.py).
  DIGEST_REALM  Realm baked into stored HA1 values.
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from auth.digest import REALM, build_authorization_header, derive_credential_hash, parse_authorization_header
from auth.models import User
from auth.store import UserStore
from core.config import get_settings
from core.errors import AppError
from core.validation import validate_nickname, validate_password, validate_username


def _read_password(confirm: bool = False) -> str:
    password = getpass.getpass("  Password: ")
    if confirm and getpass.getpass("  Repeat password: ") != password:
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return password


def cmd_ha1(args: argparse.Namespace) -> int:
    """Print the HA1 a user row would store for these credentials."""
    print(derive_credential_hash(args.username, _read_password(), realm=args.realm))
    return 0


def cmd_create_user(args: argparse.Namespace) -> int:
    """Insert a user into the configured credential store."""
    password = _read_password(confirm=True)
    nickname = args.nickname or args.username
    try:
        validate_username(args.username)
        validate_password(password)
        validate_nickname(nickname)
    except AppError as exc:
        print(f"  [!] {exc.message}")
        return 1

    settings = get_settings()
    store = UserStore(settings.auth_db_url)
    try:
        user_id = store.create_user(
            User(
                username=args.username,
                ha1=derive_credential_hash(args.username, password, realm=settings.digest_realm),
                nickname=nickname,
            )
        )
    except IntegrityError:
        print(f"  [!] User '{args.username}' already exists.")
        return 1
    finally:
        store.close()

    print(f"  Created user '{args.username}' (id={user_id}).")
    return 0


def cmd_digest(args: argparse.Namespace) -> int:
    """Print an Authorization header answering a WWW-Authenticate challenge."""
    challenge = parse_authorization_header(args.challenge)
    if challenge is None or "realm" not in challenge or "nonce" not in challenge:
        print("  [!] Not a Digest challenge. Paste the full WWW-Authenticate value.")
        return 1
    header = build_authorization_header(
        args.username,
        _read_password(),
        args.method,
        args.uri,
        challenge,
    )
    print(header)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="loverse",
        description="Account and Digest authentication helpers for Loverse.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p_ha1 = sub.add_parser("ha1", help="Print MD5(username:realm:password)")
    p_ha1.add_argument("username")
    p_ha1.add_argument("--realm", default=REALM, help=f"Digest realm (default: {REALM})")
    p_ha1.set_defaults(func=cmd_ha1)

    p_create = sub.add_parser("create-user", help="Create an account in the credential store")
    p_create.add_argument("username")
    p_create.add_argument("--nickname", default=None, help="Display name (default: the username)")
    p_create.set_defaults(func=cmd_create_user)

    p_digest = sub.add_parser("digest", help="Answer a Digest challenge")
    p_digest.add_argument("username")
    p_digest.add_argument("--challenge", required=True, metavar="HEADER", help="WWW-Authenticate value")
    p_digest.add_argument("--method", default="GET")
    p_digest.add_argument("--uri", default="/login")
    p_digest.set_defaults(func=cmd_digest)

    args = parser.parse_args()
    if not getattr(args, "func", None):
        parser.print_help()
        return
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
