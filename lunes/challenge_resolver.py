"""
LUNES AUTOLOGIN - Challenge Frame & Click Target Resolver

Finds the Turnstile iframe among the page's frames, reads the position hint
published by the page bootstrap, and turns it into page-level click
coordinates. Without a hint the iframe's geometric center is used; the
widget centers its checkbox, so the fallback is usually close enough.
"""

from dataclasses import dataclass

from lunes.page_bootstrap import PageBootstrap, parse_hint
from lunes.utils import log


# URL fragments identifying the challenge provider's iframe
CHALLENGE_URL_MARKERS = ("turnstile", "cloudflare", "challenges")

# Where a ClickTarget came from
TARGET_HINT = "hint"
TARGET_CENTER = "center"


class FrameLayoutError(Exception):
    """The challenge iframe has no usable on-screen box."""


@dataclass(frozen=True)
class ClickTarget:
    """Device coordinates in the top-level page's coordinate space."""
    x: float
    y: float
    source: str = TARGET_CENTER


def find_challenge_frame(page, markers=CHALLENGE_URL_MARKERS):
    """Return the first embedded frame whose URL contains a provider marker.

    page.frames lists nested frames too. The main frame is skipped: it has no
    iframe element to measure and its URL is the site's own.

    Args:
        page: Playwright page object.
        markers: URL substrings to match.

    Returns:
        Frame or None: None when no challenge is present on the page.
    """
    for frame in page.frames:
        if frame.parent_frame is None:
            continue
        url = frame.url or ""
        if any(marker in url for marker in markers):
            return frame
    return None


def read_hint(frame, bootstrap: PageBootstrap, label="-"):
    """Read the bootstrap's published hint from the challenge frame.

    Best effort: a failing evaluation (frame navigating, context destroyed)
    is logged and reported as "hint unavailable", never raised.

    Returns:
        InstrumentationHint or None
    """
    try:
        raw = frame.evaluate(bootstrap.read_hint_script())
    except Exception as e:
        log(f"[CHALLENGE] [{label}] Hint unavailable (evaluate failed): "
            f"{type(e).__name__}: {e}")
        return None

    hint = parse_hint(raw)
    if hint is None:
        log(f"[CHALLENGE] [{label}] Hint unavailable (slot empty or malformed)")
    return hint


def frame_box(frame):
    """Bounding box of the challenge iframe element within the top-level page.

    Returns:
        dict: Box with x, y, width, height keys.

    Raises:
        FrameLayoutError: If the iframe is not rendered or has an empty box.
    """
    element = frame.frame_element()
    box = element.bounding_box()
    if not box:
        raise FrameLayoutError("challenge frame has no layout box")
    if box["width"] <= 0 or box["height"] <= 0:
        raise FrameLayoutError(
            f"challenge frame has an empty layout box: "
            f"{box['width']}x{box['height']}"
        )
    return box


def compute_click_target(box, hint=None) -> ClickTarget:
    """Convert frame geometry and an optional hint into a click target.

    With a hint: box origin plus the hint ratios scaled to the box size.
    Without one: the box center.

    Args:
        box: Dict with x, y, width, height (from frame_box()).
        hint: InstrumentationHint or None.

    Returns:
        ClickTarget
    """
    if hint is None:
        return ClickTarget(
            x=box["x"] + box["width"] / 2,
            y=box["y"] + box["height"] / 2,
            source=TARGET_CENTER,
        )

    return ClickTarget(
        x=box["x"] + box["width"] * hint.x_ratio,
        y=box["y"] + box["height"] * hint.y_ratio,
        source=TARGET_HINT,
    )


def resolve_click_target(frame, bootstrap: PageBootstrap, label="-") -> ClickTarget:
    """Hint read + frame geometry + target computation for one challenge frame."""
    hint = read_hint(frame, bootstrap, label)
    box = frame_box(frame)
    target = compute_click_target(box, hint)
    log(f"[CHALLENGE] [{label}] Target ({target.source}): "
        f"({target.x:.2f}, {target.y:.2f}) in box "
        f"x={box['x']}, y={box['y']}, w={box['width']}, h={box['height']}")
    return target
