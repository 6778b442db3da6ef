"""
LUNES AUTOLOGIN - Login Flow

Logs every configured account into the LunesHost dashboard, clears the
Turnstile challenge on the login form, opens the first server and reports
its insights through WeChat Work.

Accounts come from USERS_JSON; site URLs and selectors from config/site.json.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from lunes.browser import (
    close_browser,
    connect_browser,
    ensure_page,
    goto,
    launch_chrome,
    proxy_config,
    proxy_reachable,
)
from lunes.challenge_solver import (
    OUTCOME_ERROR,
    OUTCOME_TIMEOUT,
    attempt_verification,
)
from lunes.notifier import WechatNotifier
from lunes.platform_config import platform_settings
from lunes.server_insights import (
    DEFAULT_INSIGHTS_HEADING,
    format_insights,
    read_server_insights,
)
from lunes.site_config import SiteConfig
from lunes.utils import (
    capture_screenshot,
    find_element,
    human_type,
    log,
    mask_email,
    run_step,
    safe_username,
    save_screenshot,
)


DEFAULT_MAX_ATTEMPTS = 2

# Fixed flow pauses (ms)
LOGOUT_WAIT_MS = 2000
LOGIN_PAGE_WAIT_MS = 2000
FORM_SETTLE_MS = 500
SUBMIT_WAIT_MS = 4000
SERVER_LIST_WAIT_MS = 3000
SERVER_DETAIL_WAIT_MS = 3000
ACCOUNT_PAUSE_MS = 5000

FIELD_TIMEOUT_MS = 10000
ERROR_TEXT_TIMEOUT_MS = 2000

# Verification outcomes that make a failed login worth another run
RETRYABLE_OUTCOMES = (OUTCOME_TIMEOUT, OUTCOME_ERROR)


@dataclass
class LoginReport:
    """Result of processing one account."""
    username: str
    success: bool = False
    attempts: int = 0
    credential_error: bool = False
    reason: Optional[str] = None
    verifications: list = field(default_factory=list)
    server_opened: bool = False
    insights: dict = field(default_factory=dict)
    # Outcome of the latest verification in the current run, reset per run
    last_outcome: Optional[str] = None

    @property
    def masked(self):
        return mask_email(self.username)

    def retryable(self):
        """A failed run is retried only when the challenge was the likely cause."""
        return (not self.success and not self.credential_error
                and self.last_outcome in RETRYABLE_OUTCOMES)


def max_attempts_from_env():
    """LOGIN_MAX_ATTEMPTS from .env, DEFAULT_MAX_ATTEMPTS if unset or invalid."""
    raw = os.getenv("LOGIN_MAX_ATTEMPTS", "")
    if not raw:
        return DEFAULT_MAX_ATTEMPTS
    try:
        value = int(raw)
    except ValueError:
        log(f"[LOGIN] Invalid LOGIN_MAX_ATTEMPTS '{raw}', using {DEFAULT_MAX_ATTEMPTS}")
        return DEFAULT_MAX_ATTEMPTS
    return max(1, value)


class LoginSession:
    """Runs the dashboard login for accounts on one attached browser context.

    Usage:
        session = LoginSession(context, page, SiteConfig(), WechatNotifier())
        report = session.login_account({"username": ..., "password": ...})
    """

    def __init__(self, context, page, site, notifier, max_attempts=None):
        self.context = context
        self.page = page
        self.site = site
        self.notifier = notifier
        self.max_attempts = max_attempts or max_attempts_from_env()

    # --- Challenge ---

    def _verify(self, report, label):
        result = attempt_verification(self.page, label)
        report.verifications.append({"label": label, **result.to_dict()})
        report.last_outcome = result.outcome
        if result.outcome in RETRYABLE_OUTCOMES:
            log(f"[LOGIN] Verification '{label}' ended with {result.outcome}"
                f"{': ' + result.detail if result.detail else ''} - continuing")
        return result

    # --- Form ---

    def _fill_form(self, page, user):
        selectors = self.site.selectors("login")

        log("[LOGIN] Filling email...")
        email = find_element(page, selectors, "email", timeout=FIELD_TIMEOUT_MS)
        email.fill("")
        human_type(email, user["username"])

        log("[LOGIN] Filling password...")
        password = find_element(page, selectors, "password", timeout=FIELD_TIMEOUT_MS)
        password.fill("")
        human_type(password, user["password"])

        page.wait_for_timeout(FORM_SETTLE_MS)
        return True

    def _submit(self, page):
        submit = find_element(
            page, self.site.selectors("login"), "submit_button", timeout=FIELD_TIMEOUT_MS
        )
        submit.click()
        log("[LOGIN] Submit clicked")
        page.wait_for_timeout(SUBMIT_WAIT_MS)
        return True

    def _error_text(self):
        """Visible login error message, "Unknown error" if none can be read."""
        try:
            locator = self.page.locator(f"text=/{self.site.error_text_pattern}/i").first
            text = locator.inner_text(timeout=ERROR_TEXT_TIMEOUT_MS).strip()
            return text or "Unknown error"
        except Exception:
            return "Unknown error"

    # --- Dashboard ---

    def _open_first_server(self):
        """Click the first server card and wait for the detail page.

        Returns:
            bool: True if the detail page was reached.
        """
        page = self.page
        try:
            card = find_element(
                page, self.site.selectors("dashboard"), "server_card",
                timeout=FIELD_TIMEOUT_MS,
            )
        except LookupError as e:
            log(f"[LOGIN] No server card: {e}")
            return False

        card.scroll_into_view_if_needed()
        page.wait_for_timeout(FORM_SETTLE_MS)
        card.click()
        log("[LOGIN] First server card clicked")

        page.wait_for_timeout(SERVER_DETAIL_WAIT_MS)
        page.wait_for_url(self.site.path("server_detail_glob"), timeout=FIELD_TIMEOUT_MS)
        log(f"[LOGIN] Server detail: {page.url}")
        return True

    def _report_dashboard(self, report):
        """Screenshots and server insights after a successful login."""
        page = self.page
        page.wait_for_timeout(SERVER_LIST_WAIT_MS)

        self.notifier.send_screenshot(capture_screenshot(page), "servers_list.png")

        if not self._open_first_server():
            self.notifier.send_text(
                f"WARNING {self.site.name}: no server card found\n"
                f"User: {report.masked}"
            )
            return

        report.server_opened = True
        self.notifier.send_screenshot(capture_screenshot(page), "server_detail.png")

        heading = self.site.selectors("dashboard").get("insights_heading", {}).get("primary")
        report.insights = read_server_insights(page, heading or DEFAULT_INSIGHTS_HEADING)
        self.notifier.send_text(format_insights(report.insights))

    # --- Flow ---

    def _run_once(self, user, report):
        """One full login run. Sets report.success / credential_error / reason."""
        self.page = ensure_page(self.context, self.page)
        page = self.page

        logout_path = self.site.path("logout")
        if logout_path:
            try:
                page.goto(self.site.url("logout"))
            except Exception as e:
                log(f"[LOGIN] Logout ignored: {type(e).__name__}: {e}")
            page.wait_for_timeout(LOGOUT_WAIT_MS)

        goto(page, self.site.url("login"))
        page.wait_for_timeout(LOGIN_PAGE_WAIT_MS)

        self._verify(report, "login-page")

        run_step("LOGIN_FORM_FILL", self._fill_form, page, user)

        self._verify(report, "before-submit")

        run_step("LOGIN_FORM_SUBMIT", self._submit, page)

        url = page.url
        if self.site.login_failed(url):
            report.credential_error = True
            report.reason = self._error_text()
            log(f"[LOGIN] Login rejected for {report.masked}: {report.reason}")
            save_screenshot(page, f"login_failed_{safe_username(user['username'])}")
            return

        if not self.site.login_succeeded(url):
            report.reason = f"Still on login page after submit ({url})"
            log(f"[LOGIN] {report.reason}")
            save_screenshot(page, f"login_unconfirmed_{safe_username(user['username'])}")
            return

        report.success = True
        report.reason = None
        log(f"[LOGIN] Login OK: {report.masked}")
        self._report_dashboard(report)

    def login_account(self, user):
        """Log one account in, retrying per the challenge retry policy.

        A run is repeated (up to max_attempts) only when it failed without a
        credential error and its last verification outcome was timeout or
        error. Exceptions are caught here, never raised.

        Args:
            user: Dict with username and password.

        Returns:
            LoginReport
        """
        report = LoginReport(username=user["username"])

        while report.attempts < self.max_attempts:
            report.attempts += 1
            report.last_outcome = None
            log(f"[LOGIN] ===== {self.site.name}: {report.masked} "
                f"(attempt {report.attempts}/{self.max_attempts}) =====")
            try:
                self._run_once(user, report)
            except Exception as e:
                report.success = False
                report.reason = f"{type(e).__name__}: {e}"
                log(f"[LOGIN] ERROR: {report.reason}")

            if report.success or not report.retryable():
                break
            if report.attempts < self.max_attempts:
                log(f"[LOGIN] Retrying {report.masked} "
                    f"(last verification: {report.last_outcome})")

        if report.credential_error:
            self.notifier.send_text(
                f"FAILED {self.site.name} login\n"
                f"User: {report.masked}\n"
                f"Reason: {report.reason}"
            )
        elif not report.success:
            self.notifier.send_text(
                f"ERROR {self.site.name} processing failed\n"
                f"User: {report.masked}\n"
                f"Error: {report.reason}"
            )

        log(f"[LOGIN] {report.masked} done: success={report.success}, "
            f"attempts={report.attempts}")
        return report

    def run(self, users):
        """Process accounts in order with a pause between them.

        Returns:
            list: LoginReport per account.
        """
        reports = []
        for index, user in enumerate(users):
            log(f"[LOGIN] Account {index + 1}/{len(users)}: {mask_email(user['username'])}")
            reports.append(self.login_account(user))
            if index < len(users) - 1:
                self.page = ensure_page(self.context, self.page)
                self.page.wait_for_timeout(ACCOUNT_PAUSE_MS)
        return reports


def run_all(users, settings=None, site=None, notifier=None):
    """Start or reuse Chrome, attach over CDP and log every account in.

    Args:
        users: Account dicts from load_users().
        settings: platform_settings() dict (default: resolved now).
        site: SiteConfig (default: config/site.json).
        notifier: WechatNotifier (default: WECHAT_KEY from .env).

    Returns:
        list: LoginReport per account.

    Raises:
        ConnectionError: If Chrome cannot be started or attached.
    """
    settings = settings or platform_settings()
    site = site or SiteConfig()
    notifier = notifier or WechatNotifier()

    proxy = proxy_config()
    if proxy and not proxy_reachable(proxy):
        log("[LOGIN] WARNING: proxy check failed - continuing anyway")

    if not launch_chrome(settings, proxy):
        raise ConnectionError(f"Chrome debug port {settings['debug_port']} not available")

    pw = browser = None
    try:
        pw, browser, context, page = connect_browser(settings["debug_port"], proxy)
        session = LoginSession(context, page, site, notifier)
        return session.run(users)
    finally:
        close_browser(pw, browser)


def filter_users(users, only=None):
    """Restrict accounts to one email (case-insensitive) when only is given."""
    if not only:
        return users
    wanted = only.strip().lower()
    return [u for u in users if u["username"].strip().lower() == wanted]
