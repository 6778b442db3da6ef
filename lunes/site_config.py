"""
LUNES AUTOLOGIN - Site & Account Configuration

Loads the dashboard site config from config/site.json (falling back to the
built-in DEFAULT_SITE_CONFIG template), builds dashboard URLs, exposes the
3-tier login selectors and login-result checks, and loads the account list
from the USERS_JSON environment variable.
"""

import json
import os
import warnings

from lunes.utils import log


# --- Default Site Template ---
# Used when config/site.json is missing or unreadable. Every form field has
# 3-tier selectors: primary, fallback_1, fallback_2.
DEFAULT_SITE_CONFIG = {
    "name": "LunesHost",
    "base_url": "https://betadash.lunes.host",
    "paths": {
        "login": "/login?next=/",
        "logout": "/logout",
        "server_detail_glob": "**/servers/**",
    },
    "selectors": {
        "login": {
            "email": {
                "primary": "input#email",
                "fallback_1": "input[name='email']",
                "fallback_2": "input[type='email']",
                "hint": "Email input on the login form"
            },
            "password": {
                "primary": "input#password",
                "fallback_1": "input[name='password']",
                "fallback_2": "input[type='password']",
                "hint": "Password input on the login form"
            },
            "submit_button": {
                "primary": "button[type='submit']",
                "fallback_1": "button:has-text('Login')",
                "fallback_2": "button:has-text('Sign in')",
                "hint": "Login button on the login form"
            }
        },
        "dashboard": {
            "server_card": {
                "primary": "a.server-card",
                "fallback_1": "a[href*='/servers/']",
                "fallback_2": "",
                "hint": "Server card link on the server list"
            },
            "insights_heading": {
                "primary": "text=\"Server Insights\"",
                "fallback_1": "",
                "fallback_2": "",
                "hint": "Server Insights section on the server detail page"
            }
        }
    },
    # Login failure text shown on the login page after submission
    "error_text_pattern": "incorrect|invalid|error|failed",
}


_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_SITE_JSON = os.path.join(_PROJECT_ROOT, "config", "site.json")


class SiteConfig:
    """Dashboard site configuration.

    Usage:
        site = SiteConfig()
        url = site.url("login")
        selectors = site.selectors("login")
    """

    def __init__(self, path=None):
        """Load the site config from path (default: config/site.json)."""
        self._path = path or _SITE_JSON
        self._config = self._load()

    def _load(self):
        """Load config JSON, falling back to DEFAULT_SITE_CONFIG.

        A missing file silently uses the template; an unreadable one warns
        first.

        Returns:
            dict: Site configuration.
        """
        if not os.path.exists(self._path):
            return DEFAULT_SITE_CONFIG

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            warnings.warn(
                f"Site config unreadable ({self._path}): {e} "
                f"- falling back to the default template"
            )
            return DEFAULT_SITE_CONFIG

        if not data.get("base_url") or not data.get("selectors"):
            warnings.warn(
                f"Site config {self._path} lacks base_url/selectors "
                f"- falling back to the default template"
            )
            return DEFAULT_SITE_CONFIG

        return data

    @property
    def name(self) -> str:
        return self._config.get("name", DEFAULT_SITE_CONFIG["name"])

    @property
    def base_url(self) -> str:
        return os.getenv("LUNES_BASE_URL", self._config["base_url"]).rstrip("/")

    @property
    def error_text_pattern(self) -> str:
        return self._config.get(
            "error_text_pattern", DEFAULT_SITE_CONFIG["error_text_pattern"]
        )

    def path(self, page: str) -> str:
        """Configured path for a page name, empty string if not configured."""
        return self._config.get("paths", {}).get(page, "")

    def url(self, page: str) -> str:
        """Build the absolute dashboard URL for a page.

        Args:
            page: Page name from the "paths" section ("login", "logout").

        Returns:
            str: e.g. "https://betadash.lunes.host/login?next=/"

        Raises:
            ValueError: If the page has no configured path.
        """
        path = self.path(page)
        if not path:
            raise ValueError(
                f"No path configured for page '{page}'. "
                f"Known pages: {', '.join(sorted(self._config.get('paths', {})))}"
            )
        return f"{self.base_url}{path}"

    def selectors(self, page: str) -> dict:
        """3-tier selector dict for one page ("login" or "dashboard")."""
        return self._config.get("selectors", {}).get(page, {})

    def login_succeeded(self, url: str) -> bool:
        """Post-submit URL check: left the login page without an error page."""
        return "/login" not in url and "/error" not in url

    def login_failed(self, url: str) -> bool:
        """Post-submit URL check: still on the login page with an error flag."""
        return "/login" in url and "error" in url


def load_users(raw=None):
    """Load accounts from USERS_JSON.

    Accepts either a JSON array of {"username", "password"} objects or an
    object with a "users" array.

    Args:
        raw: JSON string (default: USERS_JSON environment variable).

    Returns:
        list: Account dicts with username and password; invalid JSON or
              entries missing either field are logged and skipped.
    """
    raw = raw if raw is not None else os.getenv("USERS_JSON", "")
    if not raw:
        return []

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        log(f"[CONFIG] USERS_JSON parse error: {e}")
        return []

    users = parsed if isinstance(parsed, list) else (
        parsed.get("users", []) if isinstance(parsed, dict) else []
    )

    valid = []
    for index, user in enumerate(users, start=1):
        if not isinstance(user, dict) or not user.get("username") or not user.get("password"):
            log(f"[CONFIG] USERS_JSON entry {index} skipped: username/password missing")
            continue
        valid.append({"username": user["username"], "password": user["password"]})

    return valid
