"""
URL discovery and webpage insight tests (offline ports).
Run with: python -m pytest tests/ -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio

import pytest

from agents.errors import FetchError, InferenceError
from agents.mock import MockInference, MockPageFetcher, MockWebSearcher, mock_article_html
from agents.webpages import (
    PageBatch,
    UrlDiscoveryAgent,
    WebpageInsightAgent,
    extract_generic_text,
    extract_readable_text,
    parse_analysis,
)
from config.settings import settings
from models.schemas import PARSE_FAILED

URLS = [
    "https://www.example.com/report",
    "https://blog.example.org/trends",
    "https://news.example.net/analysis",
]


def analyze(agent, urls, topic="music streaming"):
    return asyncio.run(agent.run(PageBatch(urls=urls, topic=topic)))


# ─── Fixtures ────────────────────────────────────────────────────────────────

@pytest.fixture
def inference():
    return MockInference()


@pytest.fixture
def agent(inference):
    return WebpageInsightAgent(MockPageFetcher(), inference)


# ─── Extraction ──────────────────────────────────────────────────────────────

class TestExtraction:
    def test_readable_text_skips_navigation(self):
        title, text = extract_readable_text(mock_article_html("https://x.com"))
        assert title == "Market notes for https://x.com"
        assert "Subscription bundles" in text
        assert "Login" not in text
        assert "Copyright" not in text

    def test_readable_text_drops_comment_thread(self):
        paragraphs = "".join(
            f"<p>Section {i}: streaming revenue grew again this year, driven by family plans, "
            "student discounts, bundled podcasts and audiobooks, while price increases in mature markets "
            "barely moved churn. Analysts expect the same pattern next year, although regional pricing, "
            "local catalogues and label negotiations will decide how fast emerging markets convert to paid tiers.</p>"
            for i in range(4)
        )
        comments = "".join(
            f"<p>Commenter {i} says great post and thanks a lot for sharing this!!</p>" for i in range(6)
        )
        html = (
            "<html><head><title>Streaming report</title></head><body>"
            f"<article>{paragraphs}</article>"
            f"<div class='comments'>{comments}</div>"
            "</body></html>"
        )
        title, text = extract_readable_text(html)
        assert title == "Streaming report"
        assert text.startswith("Section 0: streaming revenue grew again")
        assert "Section 3" in text
        assert "Commenter" not in text

    def test_readable_text_short_without_article(self):
        _, text = extract_readable_text("<html><body><div>only divs here</div></body></html>")
        assert len(text) < settings.PRIMARY_EXTRACT_MIN_CHARS

    def test_readable_text_empty_page(self):
        assert extract_readable_text("") == (None, "")

    def test_generic_text_uses_main_then_body(self):
        html = "<html><body><div id='content'>" + "word " * 40 + "</div><script>var x;</script></body></html>"
        _, text = extract_generic_text(html)
        assert text.startswith("word word")
        assert "var x" not in text

    def test_agent_falls_back_to_generic_extractor(self, inference):
        html = "<html><head><title>T</title></head><body><main>" + "Streaming revenue grew again. " * 10 + "</main></body></html>"
        url = "https://example.com/divs"
        agent = WebpageInsightAgent(MockPageFetcher(pages={url: html}), inference)
        insight = analyze(agent, [url]).insights[0]
        assert insight.success
        assert insight.title == "T"
        assert insight.content.startswith("Streaming revenue grew again.")


# ─── Parsing ─────────────────────────────────────────────────────────────────

class TestParseAnalysis:
    def test_all_sections(self):
        parsed = parse_analysis(
            "Summary: Growth is strong.\nInsight: Offline mode is missing.\n"
            "Relevance: Partially relevant, it covers adjacent markets."
        )
        assert parsed == {
            "summary": "Growth is strong.",
            "insight": "Offline mode is missing.",
            "relevance": "Partially relevant",
        }

    def test_missing_section_only_affects_that_field(self):
        parsed = parse_analysis("Summary: Only a summary here.")
        assert parsed["summary"] == "Only a summary here."
        assert parsed["insight"] == PARSE_FAILED
        assert parsed["relevance"] == PARSE_FAILED

    def test_markdown_labels_and_case(self):
        parsed = parse_analysis("**summary:** A.\n**INSIGHT:** B.\n**Relevance:** not relevant at all")
        assert parsed["summary"] == "A."
        assert parsed["insight"] == "B."
        assert parsed["relevance"] == "Not relevant"

    def test_unknown_relevance_label(self):
        assert parse_analysis("Relevance: somewhat useful")["relevance"] == PARSE_FAILED

    def test_negated_relevance_label_is_not_matched(self):
        parsed = parse_analysis("Summary: a\nInsight: b\nRelevance: Not highly relevant to the query.")
        assert parsed["relevance"] == PARSE_FAILED

    def test_label_must_open_the_section(self):
        assert parse_analysis("Relevance: I would say highly relevant")["relevance"] == PARSE_FAILED
        assert parse_analysis("Relevance: Highly relevant - covers pricing")["relevance"] == "Highly relevant"

    def test_garbage_response(self):
        parsed = parse_analysis("I cannot help with that.")
        assert set(parsed.values()) == {PARSE_FAILED}


# ─── Webpage Insight Agent ───────────────────────────────────────────────────

class TestWebpageInsightAgent:
    def test_successful_insights_in_input_order(self, agent):
        collection = analyze(agent, URLS)
        assert [i.url for i in collection.insights] == URLS
        for insight in collection.insights:
            assert insight.success
            assert insight.relevance == "Highly relevant"
            assert insight.summary and insight.insight
            assert len(insight.content) <= 500

    def test_idempotent_with_stub_ports(self, agent):
        first = analyze(agent, URLS)
        second = analyze(agent, URLS)
        assert first.insights == second.insights

    def test_short_extraction_fails_without_blocking_others(self, inference):
        short_url = "https://short.example.com/page"

        def primary(html):
            if "short-page" in html:
                return None, "x" * 10
            return extract_readable_text(html)

        def fallback(html):
            return None, "y" * 40

        fetcher = MockPageFetcher(pages={short_url: "<html><body>short-page</body></html>"})
        agent = WebpageInsightAgent(fetcher, inference, primary_extractor=primary, fallback_extractor=fallback)
        collection = analyze(agent, [URLS[0], short_url, URLS[1]])

        failed = collection.insights[1]
        assert failed.url == short_url
        assert failed.success is False
        assert failed.content is None
        assert failed.summary is None
        assert "No significant text" in failed.error
        assert collection.insights[0].success and collection.insights[2].success
        assert len(inference.calls_for("page_analysis")) == 2

    def test_fetch_failure_is_isolated(self, inference):
        fetcher = MockPageFetcher(pages={URLS[1]: FetchError("Status 503", status_code=503)})
        collection = analyze(WebpageInsightAgent(fetcher, inference), URLS)
        assert [i.success for i in collection.insights] == [True, False, True]
        assert collection.insights[1].error.startswith("Scraping failed")
        assert "1/3 pages failed" in collection.diagnostic

    def test_inference_failure_marks_page_failed(self):
        inference = MockInference(analysis_text=InferenceError("quota exceeded"))
        collection = analyze(WebpageInsightAgent(MockPageFetcher(), inference), URLS[:1])
        insight = collection.insights[0]
        assert not insight.success
        assert "quota exceeded" in insight.error
        assert insight.summary is None

    def test_excerpt_bounds(self, inference):
        agent = WebpageInsightAgent(
            MockPageFetcher(), inference,
            primary_extractor=lambda html: ("Long", "é" * 9000),
        )
        insight = analyze(agent, URLS[:1]).insights[0]
        prompt = inference.calls_for("page_analysis")[0]
        assert prompt.count("é") == 8000
        assert len(insight.content) == 500

    def test_malformed_urls_dropped(self, agent):
        collection = analyze(agent, ["not-a-url", URLS[0]])
        assert [i.url for i in collection.insights] == [URLS[0]]

    def test_no_urls_is_a_skip(self, agent):
        result = asyncio.run(agent.execute(PageBatch(urls=(), topic="x")))
        assert result.success and result.skipped
        assert result.data is None


# ─── URL Discovery Agent ─────────────────────────────────────────────────────

class TestUrlDiscoveryAgent:
    def test_search_phrase_strips_leading_phrase(self):
        searcher = MockWebSearcher()
        asyncio.run(UrlDiscoveryAgent(searcher).run("app for music streaming"))
        assert searcher.queries == ["music streaming market trends analysis"]

    def test_results_deduplicated_filtered_and_capped(self):
        urls = ["https://a.com/1", "https://a.com/1", "javascript:void(0)"] + [f"https://s{i}.com" for i in range(8)]
        result = asyncio.run(UrlDiscoveryAgent(MockWebSearcher(urls=urls)).run("q"))
        assert result[0] == "https://a.com/1"
        assert len(result) == 5
        assert len(set(result)) == 5

    def test_search_failure_yields_empty(self):
        agent = UrlDiscoveryAgent(MockWebSearcher(error=FetchError("blocked", status_code=429)))
        assert asyncio.run(agent.run("q")) == ()
