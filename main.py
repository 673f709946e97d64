#!/usr/bin/env python3
"""
tokenward -- credential authentication service with refresh-token rotation.

Usage:
  python main.py seed-roles              # create the default USER role
  python main.py seed-roles USER ADMIN   # create several roles
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload

Environment variables (see core/config.py for the full list):
  SECRET_KEY     JWT signing key, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL. Defaults to a SQLite file next to auth/.
  API_URL        Public base URL used in activation links.
  SMTP_HOST ...  Mail relay. Without it, activation links are only logged.

Registration needs the default role to exist, so run seed-roles once per
fresh database before serving traffic.
"""

import argparse
import logging
import sys

from core.config import get_settings

logger = logging.getLogger("tokenward.cli")


def seed_roles(names: list[str]) -> int:
    """Create each role that does not exist yet. Returns a process exit code."""
    from auth.store import UserStore

    settings = get_settings()
    store = UserStore(settings.database_url)
    try:
        existing = {r.name for r in store.list_roles()}
        for name in names or [settings.default_role]:
            role = store.ensure_role(name)
            state = "exists" if name in existing else "created"
            print(f"  {role.name:<12} id={role.id} ({state})")
    finally:
        store.close()
    return 0


def serve(host: str, port: int, reload: bool) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=host, port=port, reload=reload)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="tokenward -- registration, activation, login and token rotation.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_seed = sub.add_parser("seed-roles", help="Create roles (default: the DEFAULT_ROLE setting).")
    p_seed.add_argument("names", nargs="*", metavar="NAME", help="Role names to create.")

    p_serve = sub.add_parser("serve", help="Run the HTTP API under uvicorn.")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development).")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")

    try:
        if args.command == "seed-roles":
            return seed_roles(args.names)
        return serve(args.host, args.port, args.reload)
    except ValueError as e:
        # Settings validation (e.g. missing SECRET_KEY) -- print, don't trace.
        print(f"  [!] {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
