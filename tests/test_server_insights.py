"""
LUNES AUTOLOGIN - Unit Tests for the Server Insights Scraper

Tests for:
- parse_server_insights(): field extraction from page text
- format_insights(): notification text, N/A for missing fields
- read_server_insights(): panel wait and failure handling
"""

from unittest.mock import MagicMock


PANEL_TEXT = """
Server Insights
Identifier 3f9a1c2e
Node #12
Memory 1024 MB
Disk 5120 MB
CPU 100%
Backups 2
Databases 1
Allocations 3
"""


# ---------------------------------------------------------------------------
# parse_server_insights() Tests
# ---------------------------------------------------------------------------

class TestParseServerInsights:
    """Tests for parse_server_insights() - regex extraction."""

    def test_full_panel(self):
        from lunes.server_insights import parse_server_insights

        assert parse_server_insights(PANEL_TEXT) == {
            "identifier": "3f9a1c2e",
            "node": "12",
            "memory": "1024 MB",
            "disk": "5120 MB",
            "cpu": "100%",
            "backups": "2",
            "databases": "1",
            "allocations": "3",
        }

    def test_node_without_hash(self):
        from lunes.server_insights import parse_server_insights

        assert parse_server_insights("Node 7")["node"] == "7"

    def test_case_insensitive(self):
        from lunes.server_insights import parse_server_insights

        info = parse_server_insights("memory 512MB\ncpu 50%")
        assert info == {"memory": "512MB", "cpu": "50%"}

    def test_empty_text(self):
        from lunes.server_insights import parse_server_insights

        assert parse_server_insights("") == {}
        assert parse_server_insights(None) == {}


# ---------------------------------------------------------------------------
# format_insights() Tests
# ---------------------------------------------------------------------------

class TestFormatInsights:
    """Tests for format_insights() - notification text."""

    def test_all_fields(self):
        from lunes.server_insights import format_insights, parse_server_insights

        text = format_insights(parse_server_insights(PANEL_TEXT))

        assert "Identifier: 3f9a1c2e" in text
        assert "Node: #12" in text
        assert "Memory: 1024 MB" in text
        assert "Allocations: 3" in text

    def test_missing_fields_na(self):
        from lunes.server_insights import format_insights

        text = format_insights({"cpu": "5%"})

        assert "CPU: 5%" in text
        assert "Node: N/A" in text
        assert text.count("N/A") == 7

    def test_field_order(self):
        from lunes.server_insights import format_insights

        lines = format_insights({}).splitlines()[2:]
        labels = [line.split(":")[0] for line in lines]
        assert labels == ["Identifier", "Node", "Memory", "Disk", "CPU",
                          "Backups", "Databases", "Allocations"]


# ---------------------------------------------------------------------------
# read_server_insights() Tests
# ---------------------------------------------------------------------------

class TestReadServerInsights:
    """Tests for read_server_insights() - page access."""

    def test_reads_body_text(self):
        from lunes.server_insights import read_server_insights

        page = MagicMock()
        page.inner_text.return_value = PANEL_TEXT

        info = read_server_insights(page)

        page.wait_for_selector.assert_called_once()
        page.inner_text.assert_called_once_with("body")
        assert info["identifier"] == "3f9a1c2e"

    def test_panel_missing_returns_empty(self):
        from lunes.server_insights import read_server_insights

        page = MagicMock()
        page.wait_for_selector.side_effect = TimeoutError("Timeout 10000ms exceeded")

        assert read_server_insights(page) == {}
        page.inner_text.assert_not_called()
