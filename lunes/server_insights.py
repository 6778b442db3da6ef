"""
LUNES AUTOLOGIN - Server Insights Scraper

Reads the "Server Insights" panel of a server detail page into a dict and
renders it as the notification text.
"""

import re

from lunes.utils import log


# Field -> pattern applied to the page's visible text (first match wins)
INSIGHT_PATTERNS = {
    "identifier": re.compile(r"Identifier\s+([a-f0-9]+)", re.IGNORECASE),
    "node": re.compile(r"Node\s+#?(\d+)", re.IGNORECASE),
    "memory": re.compile(r"Memory\s+(\d+\s*MB)", re.IGNORECASE),
    "disk": re.compile(r"Disk\s+(\d+\s*MB)", re.IGNORECASE),
    "cpu": re.compile(r"CPU\s+(\d+%)", re.IGNORECASE),
    "backups": re.compile(r"Backups\s+(\d+)", re.IGNORECASE),
    "databases": re.compile(r"Databases\s+(\d+)", re.IGNORECASE),
    "allocations": re.compile(r"Allocations\s+(\d+)", re.IGNORECASE),
}

# Display order and labels for format_insights()
INSIGHT_LABELS = (
    ("identifier", "Identifier"),
    ("node", "Node"),
    ("memory", "Memory"),
    ("disk", "Disk"),
    ("cpu", "CPU"),
    ("backups", "Backups"),
    ("databases", "Databases"),
    ("allocations", "Allocations"),
)

INSIGHTS_TIMEOUT_MS = 10000
DEFAULT_INSIGHTS_HEADING = 'text="Server Insights"'


def parse_server_insights(text):
    """Extract insight fields from page text.

    Args:
        text: Visible text of the server detail page.

    Returns:
        dict: Field name -> value for every field found (missing fields absent).
    """
    info = {}
    for field, pattern in INSIGHT_PATTERNS.items():
        match = pattern.search(text or "")
        if match:
            info[field] = match.group(1)
    return info


def format_insights(info):
    """Render insights as notification text; missing fields show as N/A."""
    lines = ["Server Insights", ""]
    for field, label in INSIGHT_LABELS:
        value = info.get(field)
        if value and field == "node":
            value = f"#{value}"
        lines.append(f"{label}: {value or 'N/A'}")
    return "\n".join(lines)


def read_server_insights(page, heading_selector=DEFAULT_INSIGHTS_HEADING):
    """Wait for the insights panel and parse it from the page body.

    Returns:
        dict: Parsed fields, empty if the panel never appeared.
    """
    try:
        page.wait_for_selector(heading_selector, timeout=INSIGHTS_TIMEOUT_MS)
        text = page.inner_text("body")
    except Exception as e:
        log(f"[LOGIN] Server insights unavailable: {type(e).__name__}: {e}")
        return {}

    info = parse_server_insights(text)
    log(f"[LOGIN] Server insights: {len(info)}/{len(INSIGHT_PATTERNS)} fields")
    return info
