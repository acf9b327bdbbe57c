from __future__ import annotations

import argparse
import getpass
import json
import os

from auralis_portal import messages
from auralis_portal.client import AuthError, PortalClient
from auralis_portal.endpoints import ResolverConfig
from auralis_portal.home import (
    PortalPaths,
    anchor_home,
    ensure_portal_layout,
    resolve_portal_home,
)
from auralis_portal.session import ClientContext
from auralis_portal.storage import CookieJar, JsonFileStorage

DEFAULT_PORTAL_URL = "http://localhost:3000"


def build_client_context(paths: PortalPaths) -> ClientContext:
    return ClientContext(
        storage=JsonFileStorage(paths.storage_path),
        cookies=CookieJar(paths.cookies_path),
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="auralis-portal", description="Auralis portal tools")
    p.add_argument("--home", help="AURALIS_HOME path (client state and logs)")
    p.add_argument(
        "--portal",
        default=os.environ.get("AURALIS_PORTAL_URL") or DEFAULT_PORTAL_URL,
        help="Portal origin used for /api/auth/* calls",
    )
    sub = p.add_subparsers(dest="command")

    sub.add_parser("serve", help="Run the portal web server")

    for name, help_text in (
        ("login", "Sign in and store the token"),
        ("register", "Create an account"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("username")
        cmd.add_argument("--password", help="Prompted for when omitted")

    sub.add_parser("logout", help="End the session and clear stored tokens")
    sub.add_parser("whoami", help="Show the profile of the stored session")

    api_url = sub.add_parser("api-url", help="Print the direct backend URL for a path")
    api_url.add_argument("path", nargs="?", default="/")
    return p


def main(argv: list[str] | None = None) -> int:
    p = _build_parser()
    args = p.parse_args(argv)

    if args.command is None:
        p.print_help()
        return 2

    home = anchor_home(args.home) if args.home else resolve_portal_home()

    if args.command == "serve":
        from auralis_portal.__main__ import main as serve

        # The app resolves its home from the environment at startup.
        os.environ["AURALIS_HOME"] = str(home)
        serve()
        return 0

    paths = ensure_portal_layout(home)
    try:
        context = build_client_context(paths)
    except ValueError as exc:
        print(f"Unreadable client state under {paths.state_dir}: {exc}")
        return 2

    with PortalClient(args.portal, context, resolver_config=ResolverConfig.from_env()) as client:
        try:
            if args.command == "login":
                password = args.password or getpass.getpass("Password: ")
                client.login(args.username, password)
                print(messages.LOGIN_OK)
            elif args.command == "register":
                password = args.password or getpass.getpass("Password: ")
                client.register(args.username, password)
                print(messages.REGISTER_SUCCESS)
            elif args.command == "logout":
                client.logout()
                print(messages.LOGGED_OUT)
            elif args.command == "whoami":
                print(json.dumps(client.profile(), ensure_ascii=False, indent=2))
            elif args.command == "api-url":
                print(client.api_url(args.path))
        except AuthError as exc:
            print(exc.message)
            return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
