#!/usr/bin/env python3
"""
NexusX auth service -- command-line entry point.

Usage:
  python main.py serve
  python main.py serve --port 8000 --reload
  python main.py init-db
  python main.py init-db --drop

Configuration comes from the environment (or .env); see core/config.py.
  DATABASE_URL or DB_HOST / DB_PORT / DB_NAME / DB_USER / DB_PASSWORD
  REDIS_URL    or REDIS_HOST / REDIS_PORT / REDIS_PASSWORD
  SECRET_KEY   required unless DEBUG=true
"""

import argparse
import sys

from core.config import get_settings


def _init_db(drop: bool) -> int:
    """Create the users table, optionally dropping it first."""
    from auth.store import UserStore

    settings = get_settings()
    if drop and not settings.debug:
        print("  [!] --drop is only allowed with DEBUG=true.")
        return 1

    store = UserStore(settings.database_url_resolved, create_schema=False)
    try:
        store.init_schema(drop=drop)
    finally:
        store.close()
    print("Database schema initialized" + (" (users table recreated)." if drop else "."))
    return 0


def _serve(host: str | None, port: int | None, reload: bool) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "asgi:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="nexusx-auth",
        description="Email/password and Google authentication service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve
  DEBUG=true python main.py serve --reload
  python main.py init-db
        """,
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP API under uvicorn")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST setting)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: PORT setting)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development)")

    init_db = sub.add_parser("init-db", help="Create the users table")
    init_db.add_argument(
        "--drop",
        action="store_true",
        help="Drop the users table first. Destroys all accounts; requires DEBUG=true.",
    )

    args = parser.parse_args(argv)

    if args.command == "serve":
        return _serve(args.host, args.port, args.reload)
    if args.command == "init-db":
        return _init_db(args.drop)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
