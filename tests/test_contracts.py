"""
Contract and validate() tests.
Run with: python -m pytest tests/ -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from typing import List

import pytest
from pydantic import ValidationError

from models.schemas import (
    PARSE_FAILED,
    ChartDataset,
    Competitor,
    CompetitorSet,
    GapMatrixRow,
    InsightCollection,
    NarrativeText,
    PageInsight,
    Query,
    Review,
    ReviewCollection,
    Store,
    TrendSnapshot,
)
from models.validation import Invalid, Ok, validate


# ─── validate() ──────────────────────────────────────────────────────────────

class TestValidate:
    def test_valid_value_returns_ok(self):
        outcome = validate({"rating": 4, "text": "Nice"}, Review)
        assert isinstance(outcome, Ok)
        assert outcome.ok
        assert outcome.value.rating == 4

    def test_rating_out_of_range_is_invalid(self):
        outcome = validate({"rating": 6, "text": "Too good"}, Review)
        assert isinstance(outcome, Invalid)
        assert not outcome.ok
        assert any("rating" in e for e in outcome.errors)

    def test_malformed_input_never_raises(self):
        for junk in (None, 42, "text", [1, 2], {"unexpected": True}):
            assert isinstance(validate(junk, Review), Invalid)

    def test_non_model_contract_uses_type_adapter(self):
        assert validate(["a", "b"], List[str]).value == ["a", "b"]
        assert isinstance(validate("   ", NarrativeText), Invalid)
        assert validate("  text  ", NarrativeText).value == "text"

    def test_existing_instance_passes_through(self):
        review = Review(rating=3, text="ok")
        assert validate(review, Review).value is review

    def test_describe_joins_errors(self):
        assert Invalid(["a", "b"]).describe() == "a; b"
        assert Invalid([]).describe() == "invalid value"


# ─── Query ───────────────────────────────────────────────────────────────────

class TestQuery:
    def test_thread_id_generated(self):
        a, b = Query(text="app for x"), Query(text="app for x")
        assert a.thread_id and b.thread_id and a.thread_id != b.thread_id

    def test_blank_text_rejected(self):
        with pytest.raises(ValidationError):
            Query(text="   ")

    def test_query_is_immutable(self):
        q = Query(text="app for x")
        with pytest.raises(ValidationError):
            q.text = "other"


# ─── Competitors ─────────────────────────────────────────────────────────────

class TestCompetitorContract:
    def test_store_urls_on_expected_domain_kept(self):
        c = Competitor(
            name="Spotify",
            app_store_url="https://apps.apple.com/us/app/spotify/id324684580",
            google_play_url="https://play.google.com/store/apps/details?id=com.spotify.music",
        )
        assert c.url_for(Store.APP_STORE).startswith("https://apps.apple.com/")
        assert c.url_for(Store.GOOGLE_PLAY).startswith("https://play.google.com/")

    def test_mismatched_domain_becomes_none(self):
        c = Competitor(
            name="Spotify",
            app_store_url="https://play.google.com/store/apps/details?id=com.spotify.music",
            google_play_url="https://evil-google.com/store",
        )
        assert c.app_store_url is None
        assert c.google_play_url is None

    def test_malformed_url_becomes_none(self):
        c = Competitor(name="X", app_store_url="not a url", google_play_url="")
        assert c.app_store_url is None and c.google_play_url is None

    def test_empty_name_rejected(self):
        assert isinstance(validate({"name": ""}, Competitor), Invalid)

    def test_competitor_set_requires_exactly_three(self):
        two = [{"name": "A"}, {"name": "B"}]
        assert isinstance(validate({"query": "q", "competitors": two}, CompetitorSet), Invalid)
        four = two + [{"name": "C"}, {"name": "D"}]
        assert isinstance(validate({"query": "q", "competitors": four}, CompetitorSet), Invalid)

    def test_placeholders(self):
        cs = CompetitorSet.placeholders("q", "boom")
        assert [c.name for c in cs.competitors] == ["Unknown 1", "Unknown 2", "Unknown 3"]
        assert all(c.is_placeholder for c in cs.competitors)
        assert cs.diagnostic == "boom"

    def test_placeholder_is_explicit_not_name_based(self):
        assert not Competitor(name="Unknown Mortal Orchestra").is_placeholder
        assert not Competitor(name="Unknown 1").is_placeholder


# ─── Trends / Insights / Charts ──────────────────────────────────────────────

class TestTrendSnapshot:
    def test_exact_duplicates_removed_in_order(self):
        t = TrendSnapshot(keyword="k", top=["a", "b", "a", "A"], rising=["x", "x"])
        assert t.top == ("a", "b", "A")
        assert t.rising == ("x",)

    def test_empty_snapshot_is_valid(self):
        t = TrendSnapshot(keyword="k", errors=["unreachable"])
        assert t.is_empty
        assert t.diagnostic == "unreachable"


class TestPageInsight:
    def test_failed_insight_keeps_url_and_error(self):
        p = PageInsight.failed("https://example.com/a", "Scraping failed")
        assert not p.success
        assert p.url == "https://example.com/a"
        assert p.error == "Scraping failed"
        assert p.content is None and p.summary is None

    def test_failed_without_error_gets_one(self):
        p = PageInsight(url="https://example.com", success=False)
        assert p.error

    def test_bad_url_rejected(self):
        assert isinstance(validate({"url": "ftp://x", "success": True}, PageInsight), Invalid)

    def test_collection_diagnostic_lists_failures(self):
        ok = PageInsight(url="https://a.com", success=True, summary="s", insight="i", relevance=PARSE_FAILED)
        bad = PageInsight.failed("https://b.com", "nope")
        assert InsightCollection(insights=(ok,)).diagnostic is None
        assert "https://b.com" in InsightCollection(insights=(ok, bad)).diagnostic

    def test_relevance_is_a_closed_label(self):
        page = {"url": "https://a.com", "success": True, "relevance": "Somewhat relevant"}
        assert isinstance(validate(page, PageInsight), Invalid)
        assert validate({**page, "relevance": "Not relevant"}, PageInsight).ok


class TestChartDataset:
    def test_closed_enumerations_enforced(self):
        row = {"feature": "Offline", "unmet_need": "Huge", "competitor_status": {}}
        assert isinstance(validate(row, GapMatrixRow), Invalid)
        row = {"feature": "Offline", "unmet_need": "High", "competitor_status": {"A": "Maybe"}}
        assert isinstance(validate(row, GapMatrixRow), Invalid)

    def test_bar_row_fields_optional(self):
        outcome = validate({"bar_chart_data": [{"name": "A"}]}, ChartDataset)
        assert outcome.ok
        assert outcome.value.bar_chart_data[0].rating is None

    def test_empty_dataset_carries_error(self):
        d = ChartDataset.empty("Validation failed")
        assert d.bar_chart_data == () and d.gap_matrix_data == ()
        assert d.diagnostic == "Validation failed"

    def test_competitor_status_is_read_only(self):
        row = GapMatrixRow(feature="Offline", competitor_status={"A": "Yes"})
        with pytest.raises(TypeError):
            row.competitor_status["A"] = "No"
        assert row.model_dump()["competitor_status"] == {"A": "Yes"}
        assert GapMatrixRow(feature="Sync").competitor_status == {}


class TestReviewCollection:
    def test_diagnostic_only_for_failures(self):
        assert ReviewCollection(skipped=("A",)).diagnostic is None
        assert "B: timeout" in ReviewCollection(failures={"B": "timeout"}).diagnostic

    def test_failures_are_read_only(self):
        collection = ReviewCollection(failures={"B": "timeout"})
        with pytest.raises(TypeError):
            collection.failures["C"] = "boom"
        assert collection.model_dump(mode="json")["failures"] == {"B": "timeout"}
