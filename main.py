#!/usr/bin/env python3
"""
bros-auth admin CLI -- account and session housekeeping against the auth DB.

Usage:
  python main.py create-user alice --password s3cret
  python main.py create-user alice            # prompts for the password
  python main.py list-users
  python main.py purge-sessions
  python main.py revoke-sessions alice
  python main.py --db-url sqlite:///other.db list-users

Environment variables:
  DATABASE_URL  Used when --db-url is not given (read through core.config).
"""

from __future__ import annotations

import argparse
import getpass
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.sessions import SessionManager
from auth.store import SessionStore, UserStore, build_engine
from auth.tokens import MAX_PASSWORD_BYTES, hash_password, password_too_long


def _resolve_db_url(db_url: Optional[str]) -> str:
    if db_url:
        return db_url
    from core.config import get_settings

    return get_settings().database_url


def _create_user(users: UserStore, username: str, password: Optional[str]) -> int:
    if password is None:
        password = getpass.getpass(f"Password for {username}: ")
    if not password:
        print("  [!] Password must not be empty.")
        return 1
    if password_too_long(password):
        print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        return 1
    try:
        user_id = users.create_user(User(username=username, hashed_password=hash_password(password)))
    except IntegrityError:
        print(f"  [!] User '{username}' already exists.")
        return 1
    print(f"Created user {username} ({user_id})")
    return 0


def _list_users(users: UserStore) -> int:
    for user in users.list_users():
        print(f"{user.id}  {user.username}  {user.created_at.isoformat()}")
    return 0


def _purge_sessions(sessions: SessionManager) -> int:
    count = sessions.delete_expired_sessions()
    print(f"Deleted {count} expired session(s).")
    return 0


def _revoke_sessions(users: UserStore, sessions: SessionManager, username: str) -> int:
    user = users.get_by_username(username)
    if user is None:
        print(f"  [!] No user named '{username}'.")
        return 1
    sessions.invalidate_all_sessions_for_user(user.id)
    print(f"Revoked all sessions for {username}.")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="bros-auth",
        description="Manage bros-auth users and sessions.",
    )
    parser.add_argument(
        "--db-url",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL from settings)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create a user that can sign in")
    create.add_argument("username")
    create.add_argument("--password", default=None, help="Password (prompted when omitted)")

    sub.add_parser("list-users", help="List all users")
    sub.add_parser("purge-sessions", help="Delete every expired session record")

    revoke = sub.add_parser("revoke-sessions", help="Log a user out everywhere")
    revoke.add_argument("username")

    args = parser.parse_args(argv)

    engine = build_engine(_resolve_db_url(args.db_url))
    users = UserStore(engine)
    sessions = SessionManager(SessionStore(engine))
    try:
        if args.command == "create-user":
            return _create_user(users, args.username, args.password)
        if args.command == "list-users":
            return _list_users(users)
        if args.command == "purge-sessions":
            return _purge_sessions(sessions)
        return _revoke_sessions(users, sessions, args.username)
    finally:
        engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")
    raise SystemExit(main())
