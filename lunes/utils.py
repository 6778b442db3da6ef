"""
LUNES AUTOLOGIN - Shared Utilities

Logging with millisecond timestamps, screenshot capture (debug files and
in-memory buffers for notifications), human-like wait/typing, tiered element
finding with selector fallback, email masking and the debug-first error
handling wrapper used by every flow step.
"""

import datetime
import os
import random
import re
import time

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from lunes.platform_config import WINDOW_WIDTH, WINDOW_HEIGHT


def _debug_dirs():
    """Resolve log and screenshot directories, creating them if needed.

    Reads DEBUG_DIR on every call so tests and .env overrides apply without
    re-importing the module.

    Returns:
        tuple: (log_dir, screenshot_dir)
    """
    debug_dir = os.getenv("DEBUG_DIR") or os.path.expanduser(
        "~/lunes-autologin/debug"
    )
    log_dir = os.path.join(debug_dir, "logs")
    screenshot_dir = os.path.join(debug_dir, "screenshots")
    os.makedirs(log_dir, exist_ok=True)
    os.makedirs(screenshot_dir, exist_ok=True)
    return log_dir, screenshot_dir


# --- Logging Standard ---

def log(message):
    """Log a message to both console and daily log file with millisecond timestamps.

    Dual output:
        - Console: print() for real-time monitoring
        - File: <DEBUG_DIR>/logs/lunes_YYYY-MM-DD.log (UTF-8, append mode)

    Format: [YYYY-MM-DD HH:MM:SS.mmm] message

    Args:
        message: Log message string.
    """
    now = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
    line = f"[{now}] {message}"
    print(line)

    log_dir, _ = _debug_dirs()
    log_file = os.path.join(log_dir, f"lunes_{datetime.date.today()}.log")
    with open(log_file, "a", encoding="utf-8") as f:
        f.write(line + "\n")


def mask_email(email):
    """Hide the local part of an email address for logs and notifications.

    Examples:
        "alice@example.com" -> "ali***@example.com"
        "bob@example.com"   -> "***@example.com"
    """
    if not email or "@" not in email:
        return "***"
    name, domain = email.split("@", 1)
    if len(name) <= 3:
        return f"***@{domain}"
    return f"{name[:3]}***@{domain}"


def safe_username(email):
    """Masked email reduced to a filesystem-safe token."""
    return re.sub(r"[^a-zA-Z0-9]", "_", mask_email(email))


def file_token(text):
    """Reduce free-form text to characters safe inside a file name."""
    return re.sub(r"[^A-Za-z0-9_-]", "_", str(text))


# --- Screenshot Capture ---

def save_screenshot(page, name):
    """Capture a timestamped screenshot for debugging.

    Saves to <DEBUG_DIR>/screenshots/{YYYYMMDD_HHMMSS}_{name}.png

    Args:
        page: Playwright page object.
        name: Descriptive name for the screenshot (e.g., "login_error").
    """
    try:
        _, screenshot_dir = _debug_dirs()
        stamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        path = os.path.join(screenshot_dir, f"{stamp}_{name}.png")
        page.screenshot(path=path, full_page=True)
        log(f"[SCREENSHOT] {path}")
    except Exception as e:
        log(f"[SCREENSHOT] ERROR: screenshot failed: {type(e).__name__}: {e}")


def capture_screenshot(page):
    """Capture the visible viewport into memory for notification upload.

    Resizes the viewport to the standard window size first so every
    notification image has the same dimensions.

    Args:
        page: Playwright page object.

    Returns:
        bytes or None: PNG data, or None if capture failed.
    """
    try:
        page.set_viewport_size({"width": WINDOW_WIDTH, "height": WINDOW_HEIGHT})
        data = page.screenshot(full_page=False)
        log(f"[SCREENSHOT] Captured viewport ({len(data)} bytes)")
        return data
    except Exception as e:
        log(f"[SCREENSHOT] ERROR: capture failed: {type(e).__name__}: {e}")
        return None


# --- Human-Like Behavior ---

def human_wait(min_s=1.0, max_s=3.0):
    """Wait for a random duration to simulate human behavior.

    Args:
        min_s: Minimum wait time in seconds (default: 1.0).
        max_s: Maximum wait time in seconds (default: 3.0).
    """
    time.sleep(random.uniform(min_s, max_s))


def human_type(element, text):
    """Type text into a form field with human-like behavior.

    Pattern:
        1. Click the element first (mimics human focus behavior)
        2. Wait briefly (0.3-0.8s)
        3. Type character by character with random 50-150ms delay per keystroke
        4. Wait briefly after typing (0.5-1.5s)

    Args:
        element: Playwright ElementHandle or Locator for the input.
        text: Text string to type into the field.
    """
    element.click()
    human_wait(0.3, 0.8)
    for char in text:
        element.type(char, delay=random.randint(50, 150))
    human_wait(0.5, 1.5)


# --- Tiered Selector Fallback ---

def find_element(page, selectors, field, timeout=15000):
    """Find a page element using tiered fallback selectors.

    Tries selectors in order: primary -> fallback_1 -> fallback_2.
    Each tier gets timeout/3 milliseconds to resolve.
    On total failure, captures a screenshot and raises an exception.

    Args:
        page: Playwright page object.
        selectors: Selector dict for one page (e.g. SiteConfig.selectors("login")).
        field: Field name, e.g. "email", "password", "submit_button".
        timeout: Total timeout in milliseconds (default: 15000). Split across 3 tiers.

    Returns:
        ElementHandle: The found page element.

    Raises:
        LookupError: If all three selector tiers fail. Screenshot captured before raising.
    """
    sel = selectors.get(field, {})
    tier_timeout = timeout // 3

    for tier in ["primary", "fallback_1", "fallback_2"]:
        selector = sel.get(tier)
        if not selector:
            log(f"[SELECTOR] {field} -> {tier} not defined, skipping...")
            continue
        try:
            element = page.wait_for_selector(selector, timeout=tier_timeout)
            if element:
                log(f"[SELECTOR] {field} -> {tier} found")
                return element
        except Exception:
            log(f"[SELECTOR] {field} -> {tier} failed...")

    hint = sel.get("hint", "No hint available")
    save_screenshot(page, f"selector_not_found_{field}")
    raise LookupError(
        f"Element not found: {field}. All selector tiers failed. Hint: {hint}"
    )


# --- Debug-First Error Handling ---

def run_step(step_name, fn, page, *args, **kwargs):
    """Execute a flow step with debug-first error handling.

    Wraps any function with:
        - Start/end logging
        - Screenshot + log on TimeoutError
        - Screenshot + log on any other Exception
        - Always re-raises, never swallows errors

    Args:
        step_name: Step name for logging (e.g., "LOGIN_FORM_FILL").
        fn: Callable to execute (receives page as first arg).
        page: Playwright page object (passed to fn).
        *args: Additional positional arguments for fn.
        **kwargs: Additional keyword arguments for fn.

    Returns:
        Any: Return value of fn.
    """
    try:
        log(f"[{step_name}] Starting...")
        result = fn(page, *args, **kwargs)
        log(f"[{step_name}] OK")
        return result
    except (TimeoutError, PlaywrightTimeoutError):
        log(f"[{step_name}] TIMEOUT")
        save_screenshot(page, f"{step_name}_timeout")
        raise
    except Exception as e:
        log(f"[{step_name}] ERROR: {type(e).__name__}: {e}")
        save_screenshot(page, f"{step_name}_error")
        raise
