"""
Trend discovery tests (offline ports).
Run with: python -m pytest tests/ -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio

from agents.errors import FetchError
from agents.mock import MockPageFetcher, mock_trends_html
from agents.trends import TrendDiscoveryAgent, build_trends_url, parse_related_queries
from models.schemas import TrendSnapshot


def discover(fetcher, keyword="music streaming", country=None):
    agent = TrendDiscoveryAgent(fetcher)
    return asyncio.run(agent.discover(keyword, country=country))


# ─── Parsing ─────────────────────────────────────────────────────────────────

class TestParseRelatedQueries:
    def test_top_and_rising_parsed(self):
        top, rising, errors = parse_related_queries(mock_trends_html(["a", "b"], ["c"]))
        assert top == ["a", "b"]
        assert rising == ["c"]
        assert errors == []

    def test_missing_widget_is_a_diagnostic(self):
        top, rising, errors = parse_related_queries("<html><body><p>nothing</p></body></html>")
        assert top == [] and rising == []
        assert "Could not find 'Related queries' widgets" in errors[0]

    def test_widget_without_items_is_a_diagnostic(self):
        top, rising, errors = parse_related_queries(mock_trends_html([], []))
        assert top == [] and rising == []
        assert any("Top" in e and "no query items" in e for e in errors)
        assert any("Rising" in e for e in errors)

    def test_headed_sections_are_recognised(self):
        html = """
        <div class="details-widgets-container">
          <div class="widget-header-title">Related queries</div>
          <div class="fe-block">
            <span class="widget-title-label">Top</span>
            <div class="item"><span class="label-text">alpha</span></div>
          </div>
        </div>"""
        top, rising, errors = parse_related_queries(html)
        assert top == ["alpha"]
        assert rising == []


# ─── Agent ───────────────────────────────────────────────────────────────────

class TestTrendDiscoveryAgent:
    def test_duplicates_removed_by_exact_match(self):
        fetcher = MockPageFetcher(trends_top=["x", "x", "X"], trends_rising=["y"])
        snapshot = discover(fetcher)
        assert snapshot.top == ("x", "X")
        assert snapshot.rising == ("y",)
        assert snapshot.errors == ()

    def test_unreachable_source_still_returns_snapshot(self):
        fetcher = MockPageFetcher(strict=True)
        snapshot = discover(fetcher)
        assert isinstance(snapshot, TrendSnapshot)
        assert snapshot.is_empty
        assert snapshot.errors
        assert "Status: 404" in snapshot.errors[0]

    def test_block_page_title_recorded(self):
        url = build_trends_url("music streaming", "US")
        blocked = FetchError("Status 429", status_code=429,
                             content="<html><head><title>Sorry...</title></head></html>")
        snapshot = discover(MockPageFetcher(pages={url: blocked}))
        assert any("Sorry..." in e for e in snapshot.errors)

    def test_unexpected_error_is_a_diagnostic(self):
        url = build_trends_url("music streaming", "US")
        snapshot = discover(MockPageFetcher(pages={url: RuntimeError("socket closed")}))
        assert snapshot.is_empty
        assert "socket closed" in snapshot.errors[0]

    def test_country_defaults_and_override(self):
        fetcher = MockPageFetcher()
        assert discover(fetcher).country == "US"
        snapshot = discover(fetcher, country="gb")
        assert snapshot.country == "GB"
        assert fetcher.requested[-1].endswith("geo=GB&hl=en")

    def test_keyword_url_encoded(self):
        assert build_trends_url("nepali food", "US") == (
            "https://trends.google.com/trends/explore?q=nepali%20food&geo=US&hl=en"
        )

    def test_run_wraps_discover(self):
        agent = TrendDiscoveryAgent(MockPageFetcher())
        snapshot = asyncio.run(agent.run("music streaming"))
        assert snapshot.keyword == "music streaming"
        assert snapshot.top
