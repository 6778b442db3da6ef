#!/usr/bin/env python3
"""
LUNES AUTOLOGIN - LunesHost Dashboard Login Bot

CLI entry point with argparse supporting login and check actions.
Drives a local Chrome over the DevTools protocol, clears the Turnstile
challenge on the login form and reports server status to WeChat Work.
All credentials and configuration from .env and config/site.json.

Usage:
    python main.py login
    python main.py login --only user@example.com
    python main.py check
"""

import argparse
import sys

from dotenv import load_dotenv


# --- Load environment variables BEFORE any lunes imports ---
# platform_settings(), the notifier and USERS_JSON all read os.getenv().
load_dotenv()


from lunes.browser import debug_port_open, proxy_config, proxy_reachable
from lunes.platform_config import platform_settings
from lunes.site_config import SiteConfig, load_users
from lunes.utils import log, mask_email


# --- Version ---
VERSION = "0.1.0"


def _build_cli():
    """Create and configure the argparse CLI parser.

    Returns:
        argparse.ArgumentParser: Configured parser with login/check actions
        and the --only flag.
    """
    parser = argparse.ArgumentParser(
        prog="lunes-autologin",
        description="LUNES AUTOLOGIN - LunesHost Dashboard Login Bot",
        epilog=(
            "Examples:\n"
            "  python main.py login\n"
            "  python main.py login --only user@example.com\n"
            "  python main.py check\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "action",
        choices=["login", "check"],
        help="Action to perform: login (all accounts from USERS_JSON), "
             "check (validate configuration, proxy and Chrome debug port)",
    )

    parser.add_argument(
        "--only", "-o",
        dest="only",
        default=None,
        metavar="EMAIL",
        help="Process only the account with this email",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"LUNES AUTOLOGIN v{VERSION}",
    )

    return parser


def _log_system_info(settings, site, action):
    """Log system information at startup for debugging.

    Args:
        settings: Dict from platform_settings().
        site: SiteConfig in use.
        action: Action being performed (login/check).
    """
    log("=" * 60)
    log(f"LUNES AUTOLOGIN v{VERSION} - Starting")
    log("=" * 60)
    log(f"[SYSTEM] Action: {action}")
    log(f"[SYSTEM] Site: {site.name} ({site.base_url})")
    log(f"[SYSTEM] Platform: {settings['system']}")
    log(f"[SYSTEM] Headless: {settings['headless']}")
    log(f"[SYSTEM] Display Required: {settings['display_required']}")
    log(f"[SYSTEM] Chrome: {settings['chrome_path']} (port={settings['debug_port']})")
    log(f"[SYSTEM] Profile Dir: {settings['profile_dir']}")
    log(f"[SYSTEM] Debug Dir: {settings['debug_dir']}")
    log("=" * 60)


def _run_check(settings, users):
    """Validate configuration without logging in.

    Returns:
        bool: True if accounts are configured and proxy/Chrome checks pass.
    """
    ok = True

    if users:
        log(f"[CHECK] Accounts: {len(users)} "
            f"({', '.join(mask_email(u['username']) for u in users)})")
    else:
        log("[CHECK] FAIL: no valid accounts in USERS_JSON")
        ok = False

    try:
        proxy = proxy_config()
    except ValueError as e:
        log(f"[CHECK] FAIL: {e}")
        return False

    if proxy:
        if proxy_reachable(proxy):
            log(f"[CHECK] Proxy OK: {proxy['server']}")
        else:
            log(f"[CHECK] FAIL: proxy unreachable: {proxy['server']}")
            ok = False
    else:
        log("[CHECK] No proxy configured")

    if debug_port_open(settings["debug_port"]):
        log(f"[CHECK] Chrome debug port {settings['debug_port']} is open")
    else:
        log(f"[CHECK] Chrome debug port {settings['debug_port']} closed "
            f"- it will be started on login")

    return ok


def _run_login(users, only=None):
    """Execute the login flow for every selected account.

    Returns:
        bool: True if every processed account logged in.
    """
    from lunes.login import filter_users, run_all

    selected = filter_users(users, only)
    if not selected:
        log(f"[LOGIN] No account matches --only {mask_email(only)}")
        return False

    log(f"[LOGIN] Login flow starting - {len(selected)} account(s)")
    try:
        reports = run_all(selected)
    except Exception as e:
        log(f"[LOGIN] Login flow failed - {type(e).__name__}: {e}")
        return False

    for report in reports:
        status = "OK" if report.success else f"FAILED ({report.reason})"
        log(f"[RESULT] {report.masked}: {status} after {report.attempts} attempt(s)")

    return all(report.success for report in reports)


def main():
    """Main entry point - parse CLI args and dispatch to appropriate flow."""
    parser = _build_cli()
    args = parser.parse_args()

    try:
        settings = platform_settings()
    except ValueError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)

    site = SiteConfig()
    _log_system_info(settings, site, args.action)

    users = load_users()

    if args.action == "check":
        success = _run_check(settings, users)
    else:
        if not users:
            log("[ERROR] USERS_JSON has no valid accounts")
            sys.exit(1)
        success = _run_login(users, args.only)

    # Final status
    if success:
        log(f"[RESULT] {args.action} - SUCCESS")
        sys.exit(0)
    else:
        log(f"[RESULT] {args.action} - FAILED")
        sys.exit(1)


if __name__ == "__main__":
    main()
