"""
LUNES AUTOLOGIN - Synthetic Input Dispatcher

Clicks the challenge checkbox at a resolved ClickTarget.

Hint-derived targets are clicked through a dedicated Chrome DevTools Protocol
session with Input.dispatchMouseEvent: a press, a jittered 50-150ms pause,
then a release at the same point. Protocol-level input is delivered as
trusted input, unlike DOM-level synthetic events. Center targets (no hint)
use a plain page.mouse.click().
"""

import random

from lunes.challenge_resolver import TARGET_HINT
from lunes.utils import log


# Pause between press and release, in milliseconds
PRESS_HOLD_MIN_MS = 50
PRESS_HOLD_MAX_MS = 150


class DispatchFailure(Exception):
    """A DevTools input command was rejected or the session was unusable."""


def _mouse_event(event_type, target):
    return {
        "type": event_type,
        "x": target.x,
        "y": target.y,
        "button": "left",
        "clickCount": 1,
    }


class InputDispatcher:
    """One-click input injector bound to a page.

    A new CDP session is opened for every click and detached afterwards,
    so a session never outlives a navigation.

    Usage:
        dispatcher = InputDispatcher(page)
        dispatcher.click(target)
    """

    def __init__(self, page, label="-"):
        self._page = page
        self._label = label

    def click(self, target):
        """Click the target with the strategy its source calls for.

        Raises:
            DispatchFailure: If the click could not be delivered.
        """
        if target.source == TARGET_HINT:
            self.press_release(target)
        else:
            self.click_center(target)

    def press_release(self, target):
        """Protocol-level press/release at the target coordinates.

        Raises:
            DispatchFailure: If the session cannot be opened or a command fails.
        """
        log(f"[CHALLENGE] [{self._label}] Precise click: "
            f"({target.x:.2f}, {target.y:.2f})")

        try:
            session = self._page.context.new_cdp_session(self._page)
        except Exception as e:
            raise DispatchFailure(
                f"could not open CDP session: {type(e).__name__}: {e}"
            ) from e

        try:
            session.send("Input.dispatchMouseEvent", _mouse_event("mousePressed", target))
            self._page.wait_for_timeout(
                random.uniform(PRESS_HOLD_MIN_MS, PRESS_HOLD_MAX_MS)
            )
            session.send("Input.dispatchMouseEvent", _mouse_event("mouseReleased", target))
        except Exception as e:
            raise DispatchFailure(
                f"Input.dispatchMouseEvent failed: {type(e).__name__}: {e}"
            ) from e
        finally:
            try:
                session.detach()
            except Exception as e:
                log(f"[CHALLENGE] [{self._label}] CDP detach failed: "
                    f"{type(e).__name__}: {e}")

    def click_center(self, target):
        """Single click through the page's standard mouse API.

        Raises:
            DispatchFailure: If the click fails.
        """
        log(f"[CHALLENGE] [{self._label}] Clicking iframe center: "
            f"({target.x:.2f}, {target.y:.2f})")
        try:
            self._page.mouse.click(target.x, target.y)
        except Exception as e:
            raise DispatchFailure(
                f"mouse click failed: {type(e).__name__}: {e}"
            ) from e
