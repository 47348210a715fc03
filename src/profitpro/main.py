from __future__ import annotations

import argparse
import getpass
import logging
import sys

from profitpro.application.container import build_container
from profitpro.config import get_app_paths, load_settings
from profitpro.logging_config import setup_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="profitpro", description="ProfitPro setup commands.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create or migrate the database.")

    setup = sub.add_parser("setup-admin", help="Create the first admin account.")
    setup.add_argument("--email", required=True)
    setup.add_argument("--first-name", required=True)
    setup.add_argument("--last-name", required=True)
    setup.add_argument("--password", help="Prompted for when omitted.")

    grant = sub.add_parser("set-admin", help="Grant the admin role to an existing user.")
    grant.add_argument("email")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=logging.INFO)

    try:
        settings = load_settings()
        container = build_container(settings, default_db_path=paths.db_path)
    except Exception as e:
        print(f"ERROR: Startup failed: {e}", file=sys.stderr)
        return 1

    if args.command == "init-db":
        print(f"Database ready ({settings.backend}).")
        return 0

    if args.command == "setup-admin":
        password = args.password or getpass.getpass("Password: ")
        result = container.actions.setup_admin(args.email, password, args.first_name, args.last_name)
    else:
        result = container.actions.set_admin_role(args.email)

    print(result.message, file=sys.stdout if result.success else sys.stderr)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
