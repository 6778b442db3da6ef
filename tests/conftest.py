"""
LUNES AUTOLOGIN - Shared Test Fixtures

Isolated environment for every test (debug output under tmp_path, no real
credentials or webhook key) and small fake Playwright objects: a page with
frames, a CDP session recording Input.dispatchMouseEvent calls and a mouse.
"""

import pytest


ENV_VARS = [
    "USERS_JSON",
    "WECHAT_KEY",
    "CHROME_PATH",
    "CHROME_DEBUG_PORT",
    "HTTP_PROXY",
    "HEADLESS",
    "LOGIN_MAX_ATTEMPTS",
    "LUNES_BASE_URL",
]


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def clean_env(tmp_path, monkeypatch):
    """Point DEBUG_DIR/PROFILE_DIR at tmp_path and clear bot settings."""
    monkeypatch.setenv("DEBUG_DIR", str(tmp_path / "debug"))
    monkeypatch.setenv("PROFILE_DIR", str(tmp_path / "profile"))
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


# ---------------------------------------------------------------------------
# Fake Playwright objects
# ---------------------------------------------------------------------------

class FakeSession:
    """CDP session recording every command sent through it."""

    def __init__(self, fail_on=None, detach_error=None):
        self.sent = []
        self.detached = False
        self._fail_on = fail_on
        self._detach_error = detach_error

    def send(self, method, params=None):
        self.sent.append((method, params))
        if self._fail_on and params and params.get("type") == self._fail_on:
            raise RuntimeError("Target closed")
        return {}

    def detach(self):
        self.detached = True
        if self._detach_error:
            raise self._detach_error


class FakeContext:
    """Browser context handing out FakeSessions and recording init scripts."""

    def __init__(self, session=None, session_error=None):
        self.session = session or FakeSession()
        self.session_error = session_error
        self.sessions_opened = 0
        self.init_scripts = []
        self.pages = []

    def new_cdp_session(self, page):
        self.sessions_opened += 1
        if self.session_error:
            raise self.session_error
        return self.session

    def add_init_script(self, script=None):
        self.init_scripts.append(script)


class FakeMouse:
    def __init__(self, error=None):
        self.clicks = []
        self._error = error

    def click(self, x, y):
        self.clicks.append((x, y))
        if self._error:
            raise self._error


class FakeElement:
    def __init__(self, box):
        self._box = box

    def bounding_box(self):
        return self._box


_TOP = object()


class FakeFrame:
    """Frame answering the hint read and checkbox polls.

    checked: sequence of poll results; polls past its end read False.
    """

    def __init__(self, url, box=None, hint=None, checked=(), parent_frame=_TOP,
                 hint_error=None, poll_error=None):
        self.url = url
        self.parent_frame = parent_frame
        self.box = box
        self.hint = hint
        self.checked = list(checked)
        self.hint_error = hint_error
        self.poll_error = poll_error
        self.hint_reads = 0
        self.polls = 0

    def evaluate(self, expression, arg=None):
        if "__lunesChallengeHint" in expression:
            self.hint_reads += 1
            if self.hint_error:
                raise self.hint_error
            return self.hint

        self.polls += 1
        if self.poll_error:
            raise self.poll_error
        if self.polls <= len(self.checked):
            return self.checked[self.polls - 1]
        return False

    def frame_element(self):
        return FakeElement(self.box)


class FakePage:
    """Page with a main frame plus the given child frames."""

    def __init__(self, frames=(), context=None, mouse=None,
                 url="https://betadash.lunes.host/login?next=/"):
        self.url = url
        self.main_frame = FakeFrame(url, parent_frame=None)
        self.frames = [self.main_frame, *frames]
        self.context = context or FakeContext()
        self.mouse = mouse or FakeMouse()
        self.waits = []
        self.screenshots = []

    def wait_for_timeout(self, ms):
        self.waits.append(ms)

    def screenshot(self, path=None, full_page=False):
        self.screenshots.append(path)
        return b"\x89PNG"


TURNSTILE_URL = "https://challenges.cloudflare.com/cdn-cgi/challenge-platform/turnstile/if/ov2"


@pytest.fixture
def fakes():
    """Fake Playwright classes, used as fakes.Page(...), fakes.Frame(...)."""

    class Fakes:
        Page = FakePage
        Frame = FakeFrame
        Context = FakeContext
        Session = FakeSession
        Mouse = FakeMouse
        turnstile_url = TURNSTILE_URL

    return Fakes


@pytest.fixture
def box():
    """Challenge iframe box used by the end-to-end click target scenarios."""
    return {"x": 100, "y": 200, "width": 300, "height": 80}
