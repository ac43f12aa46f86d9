#!/usr/bin/env python3
"""
Fabric QR Server -- operator command line.

The HTTP API has no registration or catalogue-write endpoints, so accounts
and materials are managed from here.

Usage:
  python main.py serve
  python main.py create-user admin admin@example.com --password 's3cret!' --admin
  python main.py create-user scanner scan@example.com --password 'pw' --can-scan-qr
  python main.py set-password alice 'new-password'
  python main.py import-materials catalogue.json

Environment variables (or .env):
  MONGO_URI        MongoDB connection string (required for everything but serve)
  MONGO_DATABASE   Database name (default: fabric_qr)
  JWT_SECRET       Token signing secret
  PORT             Listen port for serve (default: 5000)
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from auth.models import User, build_credentials
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings
from materials.ingest import parse_materials_json
from materials.store import MaterialStore


def cmd_create_user(args: argparse.Namespace, database: Database) -> int:
    """Create an account. Needs --password, --google-id, or both."""
    username = args.username.strip()
    if not username or len(username) > 255:
        print("Invalid username length.", file=sys.stderr)
        return 1
    if not args.password and not args.google_id:
        print("Give --password, --google-id, or both.", file=sys.stderr)
        return 1

    store = UserStore(database)
    store.ensure_indexes()
    user = User(
        username=username,
        email=args.email.strip(),
        credentials=build_credentials(
            hash_password(args.password) if args.password else None,
            args.google_id,
        ),
        can_scan_qr=args.can_scan_qr,
        is_admin=args.admin,
    )
    try:
        user_id = store.create_user(user)
    except DuplicateKeyError:
        print(f"A user with that username, email or Google id already exists ({username}).", file=sys.stderr)
        return 1
    role = "admin" if user.is_admin else "user"
    print(f"Created {role} '{username}' (id {user_id}).")
    return 0


def cmd_set_password(args: argparse.Namespace, database: Database) -> int:
    """Set or replace a password. A Google-only account becomes usable with both methods."""
    store = UserStore(database)
    user = store.get_by_username(args.username)
    if user is None or user.id is None:
        print(f"No user named '{args.username}'.", file=sys.stderr)
        return 1
    store.set_password(user.id, args.password)
    print(f"Password updated for '{args.username}'.")
    return 0


def cmd_import_materials(args: argparse.Namespace, database: Database) -> int:
    """Upsert every material in a JSON file by qrCodeId."""
    file_path = Path(args.path).resolve()
    if not file_path.is_file():
        print(f"  [!] '{args.path}' is not a readable file.", file=sys.stderr)
        return 1
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"  [!] Could not read file '{args.path}': {e}", file=sys.stderr)
        return 1

    parsed = parse_materials_json(content)
    store = MaterialStore(database)
    store.ensure_indexes()
    created = replaced = 0
    for material in parsed.records:
        if store.upsert(material):
            created += 1
        else:
            replaced += 1

    print(f"  {created} material(s) created, {replaced} replaced, {len(parsed.skipped)} skipped.")
    for reason in parsed.skipped:
        print(f"  [!] skipped {reason}")
    return 0 if parsed.records or not parsed.skipped else 1


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "asgi:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fabric-qr",
        description="Fabric QR server: run the API and manage accounts and materials.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: PORT or 5000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")

    create = sub.add_parser("create-user", help="Create an account")
    create.add_argument("username")
    create.add_argument("email")
    create.add_argument("--password", default=None, help="Enable password login with this password")
    create.add_argument("--google-id", default=None, help="Link a Google account id")
    create.add_argument("--admin", action="store_true", help="Grant administrator privilege")
    create.add_argument("--can-scan-qr", action="store_true", help="Grant the QR-scan capability")

    set_pw = sub.add_parser("set-password", help="Set or replace an account password")
    set_pw.add_argument("username")
    set_pw.add_argument("password")

    importer = sub.add_parser("import-materials", help="Load materials from a JSON array file")
    importer.add_argument("path", metavar="PATH")
    return parser


_DB_COMMANDS = {
    "create-user": cmd_create_user,
    "set-password": cmd_set_password,
    "import-materials": cmd_import_materials,
}


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "serve":
        return cmd_serve(args)

    settings = get_settings()
    if not settings.database_configured:
        print("MONGO_URI is not configured.", file=sys.stderr)
        return 2

    client: MongoClient = MongoClient(settings.mongo_uri, tz_aware=True)
    try:
        return _DB_COMMANDS[args.command](args, client[settings.mongo_database])
    except PyMongoError as exc:
        print(f"  [!] Database error: {exc}", file=sys.stderr)
        return 1
    finally:
        client.close()


if __name__ == "__main__":
    sys.exit(main())
