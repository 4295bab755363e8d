"""Command-line dashboard for the user admin API.

    admin-dashboard login alice@example.com
    admin-dashboard users list --search smith --status active
    admin-dashboard users add bob@example.com Bob Stone
    admin-dashboard users edit 7 --inactive
    admin-dashboard users delete 7 --yes
"""

import argparse
import getpass
import logging
import sys
from datetime import datetime

import httpx

from .client import APIError, DashboardClient, DEFAULT_NEW_USER_PASSWORD
from .config import settings

logger = logging.getLogger(__name__)


def format_date(value: str) -> str:
    """ISO timestamp -> 'Jan 5, 2025'."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return value or ""
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def render_users(page: dict) -> str:
    """Render one page of users as a fixed-width table with a page footer."""
    headers = ("ID", "Name", "Email", "Status", "Created")
    rows = [
        (
            str(u["id"]),
            f"{u['firstName']} {u['lastName']}",
            u["email"],
            "Active" if u["isActive"] else "Inactive",
            format_date(u.get("createdAt", "")),
        )
        for u in page.get("users", [])
    ]
    if not rows:
        lines = ["No users found."]
    else:
        widths = [max(len(h), *(len(r[i]) for r in rows)) for i, h in enumerate(headers)]
        fmt = "  ".join(f"{{:<{w}}}" for w in widths)
        lines = [fmt.format(*headers), fmt.format(*("-" * w for w in widths))]
        lines += [fmt.format(*row) for row in rows]

    p = page.get("pagination") or {}
    if p:
        lines.append(
            f"Page {p['currentPage']} of {p['totalPages']} ({p['totalItems']} users)"
        )
    return "\n".join(lines)


# ==================== Commands ====================

def cmd_login(client: DashboardClient, args) -> int:
    password = args.password or getpass.getpass("Password: ")
    user = client.login(args.email, password)
    print(f"Logged in as {user['firstName']} {user['lastName']} <{user['email']}>")
    return 0


def cmd_logout(client: DashboardClient, args) -> int:
    client.logout()
    print("Logged out.")
    return 0


def cmd_whoami(client: DashboardClient, args) -> int:
    if not client.is_authenticated:
        print("Not logged in.")
        return 1
    user = client.me()
    print(f"#{user['id']} {user['firstName']} {user['lastName']} <{user['email']}>")
    return 0


def cmd_users_list(client: DashboardClient, args) -> int:
    page = client.list_users(page=args.page, limit=args.limit, search=args.search, status=args.status)
    print(render_users(page))
    return 0


def cmd_users_add(client: DashboardClient, args) -> int:
    user = client.create_user(
        args.email,
        args.first_name,
        args.last_name,
        is_active=not args.inactive,
        password=args.password,
    )
    print(f"Created user #{user['id']} <{user['email']}>")
    if not args.password:
        print(f'Default password is "{DEFAULT_NEW_USER_PASSWORD}".')
    return 0


def cmd_users_edit(client: DashboardClient, args) -> int:
    is_active = None
    if args.active:
        is_active = True
    elif args.inactive:
        is_active = False
    user = client.update_user(
        args.id,
        first_name=args.first_name,
        last_name=args.last_name,
        email=args.email,
        is_active=is_active,
    )
    print(f"Updated user #{user['id']} <{user['email']}>")
    return 0


def cmd_users_delete(client: DashboardClient, args) -> int:
    if not args.yes:
        answer = input(f"Are you sure you want to delete user #{args.id}? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("Aborted.")
            return 1
    print(client.delete_user(args.id))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="admin-dashboard", description="Manage user accounts.")
    parser.add_argument("--api-url", default=settings.ADMIN_API_URL, help=f"API base URL. Default: {settings.ADMIN_API_URL}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("login", help="Log in and store the token.")
    p.add_argument("email")
    p.add_argument("--password", help="Prompted for when omitted.")
    p.set_defaults(func=cmd_login)

    sub.add_parser("logout", help="Forget the stored token.").set_defaults(func=cmd_logout)
    sub.add_parser("whoami", help="Show the logged-in account.").set_defaults(func=cmd_whoami)

    users = sub.add_parser("users", help="User management.").add_subparsers(dest="action", required=True)

    p = users.add_parser("list", help="List users.")
    p.add_argument("--search", help="Match first name, last name or email.")
    p.add_argument("--status", choices=["all", "active", "inactive"], default="all")
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--limit", type=int, default=10)
    p.set_defaults(func=cmd_users_list)

    p = users.add_parser("add", help="Create a user.")
    p.add_argument("email")
    p.add_argument("first_name")
    p.add_argument("last_name")
    p.add_argument("--password", help=f'Defaults to "{DEFAULT_NEW_USER_PASSWORD}".')
    p.add_argument("--inactive", action="store_true", help="Create the account deactivated.")
    p.set_defaults(func=cmd_users_add)

    p = users.add_parser("edit", help="Update a user.")
    p.add_argument("id", type=int)
    p.add_argument("--first-name")
    p.add_argument("--last-name")
    p.add_argument("--email")
    status = p.add_mutually_exclusive_group()
    status.add_argument("--active", action="store_true")
    status.add_argument("--inactive", action="store_true")
    p.set_defaults(func=cmd_users_edit)

    p = users.add_parser("delete", help="Delete a user.")
    p.add_argument("id", type=int)
    p.add_argument("--yes", action="store_true", help="Skip the confirmation prompt.")
    p.set_defaults(func=cmd_users_delete)

    return parser


def main(argv: list[str] | None = None, client: DashboardClient | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    owns_client = client is None
    client = client or DashboardClient(base_url=args.api_url)
    try:
        return args.func(client, args)
    except APIError as e:
        if e.status_code == 401 and args.command != "login":
            print(f"Error: {e.message}. Run 'admin-dashboard login' first.", file=sys.stderr)
        else:
            print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except httpx.HTTPError as e:
        logger.debug("Request failed", exc_info=True)
        print(f"Error: could not reach {args.api_url} ({e})", file=sys.stderr)
        return 2
    finally:
        if owns_client:
            client.close()


if __name__ == "__main__":
    sys.exit(main())
