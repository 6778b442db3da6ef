"""
LUNES AUTOLOGIN - Page Bootstrap (In-Page Instrumentation Bridge)

Versioned script registered on the browser context with add_init_script(),
so Chromium runs it before any site script in every document and every
sub-frame, including frames created after the page was opened.

Inside a challenge iframe the script:
    1. Pins MouseEvent.prototype.screenX/screenY to values drawn once per
       frame, so protocol-injected clicks report plausible, non-zero screen
       coordinates.
    2. Wraps Element.prototype.attachShadow and watches every new shadow root
       until a visible checkbox appears, then publishes its center as
       ratios of the frame viewport into a write-once window slot.

The slot is the only channel between the page and the host-side controller
(lunes.challenge_resolver reads it, never writes it).
"""

import math
import weakref
from dataclasses import dataclass

from lunes.utils import log


BOOTSTRAP_VERSION = 1

# Checkbox rendered by the widget inside its shadow root
CHECKBOX_SELECTOR = 'input[type="checkbox"]'

# Screen coordinate ranges MouseEvent.screenX/screenY are pinned within
SCREEN_X_RANGE = (800, 1200)
SCREEN_Y_RANGE = (400, 600)


@dataclass(frozen=True)
class InstrumentationHint:
    """Published center of the verification control, as ratios of its frame."""
    x_ratio: float
    y_ratio: float


def _ratio(value):
    """Coerce one published ratio, None if unusable. Rounding overshoot is clamped."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return min(1.0, max(0.0, value))


def parse_hint(raw):
    """Convert the raw slot value read from a frame into an InstrumentationHint.

    Args:
        raw: Whatever frame.evaluate() returned for the slot (dict or None).

    Returns:
        InstrumentationHint or None: None means "hint unavailable", which the
        resolver treats as a signal to fall back to the frame center.
    """
    if not isinstance(raw, dict) or raw.get("found") is not True:
        return None

    x_ratio = _ratio(raw.get("xRatio"))
    y_ratio = _ratio(raw.get("yRatio"))
    if x_ratio is None or y_ratio is None:
        return None

    return InstrumentationHint(x_ratio=x_ratio, y_ratio=y_ratio)


class PageBootstrap:
    """The in-page bridge as an explicit, versioned script object.

    Usage:
        bootstrap = PageBootstrap()
        bootstrap.install(context)      # before the first navigation
        ...
        raw = frame.evaluate(bootstrap.read_hint_script())
    """

    # Contexts this process already registered a bootstrap on, per version
    _registry = weakref.WeakKeyDictionary()

    def __init__(self, version=BOOTSTRAP_VERSION,
                 screen_x_range=SCREEN_X_RANGE, screen_y_range=SCREEN_Y_RANGE):
        for name, (low, high) in (("screen_x_range", screen_x_range),
                                  ("screen_y_range", screen_y_range)):
            if low > high:
                raise ValueError(f"{name} must be (min, max), got: ({low}, {high})")

        self.version = version
        self.screen_x_range = screen_x_range
        self.screen_y_range = screen_y_range

    @property
    def slot_name(self):
        """Window property the hint is published under."""
        return f"__lunesChallengeHint_v{self.version}"

    @property
    def guard_name(self):
        """Window property marking a frame as already bootstrapped."""
        return f"__lunesBootstrap_v{self.version}"

    def render(self) -> str:
        """Generate the JavaScript source registered as init script."""
        x_min, x_max = self.screen_x_range
        y_min, y_max = self.screen_y_range

        return f"""
(function () {{
    // Ratios are relative to the frame viewport; the top document is left alone.
    if (window.self === window.top) return;

    var GUARD = '{self.guard_name}';
    var SLOT = '{self.slot_name}';
    if (Object.prototype.hasOwnProperty.call(window, GUARD)) return;
    try {{
        Object.defineProperty(window, GUARD, {{ value: true, enumerable: false }});
    }} catch (e) {{
        return;
    }}

    function randomInt(min, max) {{
        return Math.floor(Math.random() * (max - min + 1)) + min;
    }}

    function clamp(value) {{
        return Math.min(1, Math.max(0, value));
    }}

    // Write-once cell: first publish wins, later writes are ignored.
    function publish(hint) {{
        if (Object.prototype.hasOwnProperty.call(window, SLOT)) return false;
        Object.defineProperty(window, SLOT, {{
            value: Object.freeze(hint),
            writable: false,
            configurable: false,
            enumerable: false
        }});
        return true;
    }}

    var screenX = randomInt({x_min}, {x_max});
    var screenY = randomInt({y_min}, {y_max});
    try {{
        Object.defineProperty(MouseEvent.prototype, 'screenX', {{ value: screenX }});
        Object.defineProperty(MouseEvent.prototype, 'screenY', {{ value: screenY }});
    }} catch (e) {{ }}

    function locate(root) {{
        var checkbox = root.querySelector('{CHECKBOX_SELECTOR}');
        if (!checkbox) return false;
        var rect = checkbox.getBoundingClientRect();
        if (rect.width <= 0 || rect.height <= 0) return false;
        publish({{
            xRatio: clamp((rect.left + rect.width / 2) / window.innerWidth),
            yRatio: clamp((rect.top + rect.height / 2) / window.innerHeight),
            found: true
        }});
        return true;
    }}

    function watch(root) {{
        if (locate(root)) return;
        var observer = new MutationObserver(function () {{
            if (locate(root)) observer.disconnect();
        }});
        observer.observe(root, {{ childList: true, subtree: true }});
    }}

    try {{
        var originalAttachShadow = Element.prototype.attachShadow;
        Element.prototype.attachShadow = function (init) {{
            var root = originalAttachShadow.call(this, init);
            if (root) watch(root);
            return root;
        }};
    }} catch (e) {{ }}
}})();
"""

    def read_hint_script(self) -> str:
        """Expression for frame.evaluate() returning the slot value or null."""
        return f"() => window['{self.slot_name}'] || null"

    def is_installed(self, context) -> bool:
        return self.version in self._registry.get(context, set())

    def install(self, context) -> bool:
        """Register the bootstrap on a browser context, once per version.

        Must run before navigation. Registration on the context (not the page)
        keeps it active across navigations, sub-frames and recreated pages.

        Args:
            context: Playwright BrowserContext.

        Returns:
            bool: True if registered now, False if it was already registered.
        """
        if self.is_installed(context):
            log(f"[BOOTSTRAP] v{self.version} already registered on context")
            return False

        context.add_init_script(script=self.render())
        self._registry.setdefault(context, set()).add(self.version)
        log(f"[BOOTSTRAP] v{self.version} registered (slot={self.slot_name})")
        return True


# Bootstrap shared by the browser setup (install) and the controller (read)
DEFAULT_BOOTSTRAP = PageBootstrap()
