"""
LUNES AUTOLOGIN - Turnstile Verification Controller

Runs one bounded verification attempt against the page's challenge frame:

    searching -> located -> dispatched -> verifying -> success | timeout
    searching -> not_applicable   (no challenge frame on the page)
    any step  -> error            (unexpected exception, message kept)

Every failure is caught at the attempt boundary and reported as a
VerificationResult whose outcome is one of OUTCOMES; nothing is raised to
the caller. "not_found" is the common case and is not a failure.

Usage:
    result = attempt_verification(page, "login-page")
    if result.outcome == OUTCOME_TIMEOUT:
        ...
"""

from dataclasses import dataclass
from typing import Optional

from lunes.challenge_resolver import find_challenge_frame, resolve_click_target
from lunes.input_dispatcher import InputDispatcher
from lunes.page_bootstrap import CHECKBOX_SELECTOR, DEFAULT_BOOTSTRAP
from lunes.utils import file_token, log, save_screenshot


# --- Outcomes (reported to the caller) ---
OUTCOME_SUCCESS = "success"
OUTCOME_NOT_FOUND = "not_found"
OUTCOME_TIMEOUT = "timeout"
OUTCOME_ERROR = "error"
OUTCOMES = (OUTCOME_SUCCESS, OUTCOME_NOT_FOUND, OUTCOME_TIMEOUT, OUTCOME_ERROR)

# --- States ---
STATE_SEARCHING = "searching"
STATE_LOCATED = "located"
STATE_DISPATCHED = "dispatched"
STATE_VERIFYING = "verifying"
STATE_SUCCESS = "success"
STATE_TIMEOUT = "timeout"
STATE_ERROR = "error"
STATE_NOT_APPLICABLE = "not_applicable"

TERMINAL_STATES = {
    STATE_SUCCESS: OUTCOME_SUCCESS,
    STATE_TIMEOUT: OUTCOME_TIMEOUT,
    STATE_ERROR: OUTCOME_ERROR,
    STATE_NOT_APPLICABLE: OUTCOME_NOT_FOUND,
}

_TRANSITIONS = {
    STATE_SEARCHING: {STATE_LOCATED, STATE_NOT_APPLICABLE, STATE_ERROR},
    STATE_LOCATED: {STATE_DISPATCHED, STATE_ERROR},
    STATE_DISPATCHED: {STATE_VERIFYING, STATE_ERROR},
    STATE_VERIFYING: {STATE_SUCCESS, STATE_TIMEOUT, STATE_ERROR},
}

# Checkbox state inside the frame: light DOM first, then open shadow roots
_CHECKED_SCRIPT = """
(selector) => {
    const search = (root) => {
        const checkbox = root.querySelector(selector);
        if (checkbox) return checkbox.checked === true;
        for (const el of root.querySelectorAll('*')) {
            if (el.shadowRoot && search(el.shadowRoot)) return true;
        }
        return false;
    };
    return search(document);
}
"""


@dataclass(frozen=True)
class VerificationResult:
    """Terminal result of one verification attempt."""
    outcome: str
    detail: Optional[str] = None

    @property
    def success(self):
        return self.outcome == OUTCOME_SUCCESS

    def to_dict(self):
        data = {"outcome": self.outcome}
        if self.detail:
            data["detail"] = self.detail
        return data


class VerificationAttempt:
    """One run of the verification state machine for a single page.

    The attempt is single-use: run() may be called once.
    """

    # Settle before reading frame geometry (widget layout stabilizing)
    FRAME_SETTLE_MS = 2000

    # Settle between the click and the first poll
    DISPATCH_SETTLE_MS = 3000

    # Verification budget: POLL_MAX reads, POLL_INTERVAL_MS apart
    POLL_MAX = 10
    POLL_INTERVAL_MS = 500

    def __init__(self, page, label="-", bootstrap=None,
                 dispatcher_factory=InputDispatcher):
        self.page = page
        self.label = label
        self.bootstrap = bootstrap or DEFAULT_BOOTSTRAP
        self.dispatcher_factory = dispatcher_factory
        self.state = STATE_SEARCHING
        self.history = [STATE_SEARCHING]
        self.polls = 0
        self._started = False

    def _transition(self, state):
        if state not in _TRANSITIONS.get(self.state, set()):
            raise RuntimeError(f"invalid transition: {self.state} -> {state}")
        log(f"[CHALLENGE] [{self.label}] {self.state} -> {state}")
        self.state = state
        self.history.append(state)

    def _finish(self, state, detail=None):
        self._transition(state)
        return VerificationResult(outcome=TERMINAL_STATES[state], detail=detail)

    def _is_checked(self, frame):
        return frame.evaluate(_CHECKED_SCRIPT, CHECKBOX_SELECTOR) is True

    def run(self) -> VerificationResult:
        """Drive the attempt to a terminal state.

        Returns:
            VerificationResult: Never raises.
        """
        if self._started:
            raise RuntimeError("VerificationAttempt.run() can only be called once")

        self._started = True
        log(f"[CHALLENGE] [{self.label}] Checking for Turnstile...")

        try:
            frame = find_challenge_frame(self.page)
            if frame is None:
                log(f"[CHALLENGE] [{self.label}] No Turnstile frame on page")
                return self._finish(STATE_NOT_APPLICABLE)

            self._transition(STATE_LOCATED)
            log(f"[CHALLENGE] [{self.label}] Turnstile frame found: {frame.url}")
            self.page.wait_for_timeout(self.FRAME_SETTLE_MS)

            target = resolve_click_target(frame, self.bootstrap, self.label)
            self.dispatcher_factory(self.page, self.label).click(target)
            self._transition(STATE_DISPATCHED)

            self.page.wait_for_timeout(self.DISPATCH_SETTLE_MS)
            self._transition(STATE_VERIFYING)

            for poll in range(1, self.POLL_MAX + 1):
                self.polls = poll
                if self._is_checked(frame):
                    log(f"[CHALLENGE] [{self.label}] Turnstile verified "
                        f"(poll {poll}/{self.POLL_MAX})")
                    return self._finish(STATE_SUCCESS)
                self.page.wait_for_timeout(self.POLL_INTERVAL_MS)

            log(f"[CHALLENGE] [{self.label}] Turnstile not verified after "
                f"{self.POLL_MAX} polls")
            save_screenshot(self.page, f"turnstile_timeout_{file_token(self.label)}")
            return self._finish(STATE_TIMEOUT)

        except Exception as e:
            detail = f"{type(e).__name__}: {e}"
            log(f"[CHALLENGE] [{self.label}] ERROR in state '{self.state}': {detail}")
            save_screenshot(self.page, f"turnstile_error_{file_token(self.label)}")
            self._transition(STATE_ERROR)
            return VerificationResult(outcome=OUTCOME_ERROR, detail=detail)


def attempt_verification(page, label="-", bootstrap=None) -> VerificationResult:
    """Run one Turnstile verification attempt on the page.

    Safe to call when no challenge is present: that yields "not_found".

    Args:
        page: Playwright page whose context has the bootstrap installed.
        label: Free-form context for log lines (e.g. "login-page").
        bootstrap: PageBootstrap whose slot is read (default: DEFAULT_BOOTSTRAP).

    Returns:
        VerificationResult with outcome in OUTCOMES.
    """
    return VerificationAttempt(page, label, bootstrap).run()
