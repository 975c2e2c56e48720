"""
Review synthesis tests (offline ports).
Run with: python -m pytest tests/ -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio

import pytest

from agents.errors import InferenceError
from agents.mock import MockInference
from agents.reviews import ReviewSynthesisAgent
from models.schemas import Competitor

APP_STORE_URL = "https://apps.apple.com/us/app/northwind/id1"
PLAY_URL = "https://play.google.com/store/apps/details?id=com.northwind"


def five_reviews(prompt):
    reviews = [{"rating": r, "text": f"Review number {r}"} for r in (1, 2, 3, 4, 5)]
    return {"app_store_reviews": reviews, "google_play_reviews": reviews}


# ─── Fixtures ────────────────────────────────────────────────────────────────

@pytest.fixture
def competitors():
    return [
        Competitor(name="Northwind", app_store_url=APP_STORE_URL, google_play_url=PLAY_URL),
        Competitor(name="Contoso", google_play_url="https://play.google.com/store/apps/details?id=com.contoso"),
        Competitor(name="Unknown 1"),
    ]


# ─── Tests ───────────────────────────────────────────────────────────────────

class TestReviewSynthesis:
    def test_no_listing_is_skipped_not_failed(self):
        agent = ReviewSynthesisAgent(MockInference())
        assert asyncio.run(agent.synthesize(Competitor(name="Corner Cafe"))) is None

    def test_unlisted_platform_always_empty(self):
        # inference returns reviews for both platforms; only Google Play is listed
        agent = ReviewSynthesisAgent(MockInference(responses={"ReviewDraft": five_reviews}))
        bundle = asyncio.run(agent.synthesize(
            Competitor(name="Contoso", google_play_url="https://play.google.com/store/apps/details?id=com.contoso")
        ))
        assert bundle.app_store_reviews == ()
        assert len(bundle.google_play_reviews) == 3

    def test_reviews_truncated_to_three_per_platform(self):
        agent = ReviewSynthesisAgent(MockInference(responses={"ReviewDraft": five_reviews}))
        bundle = asyncio.run(agent.synthesize(
            Competitor(name="Northwind", app_store_url=APP_STORE_URL, google_play_url=PLAY_URL)
        ))
        assert [r.rating for r in bundle.app_store_reviews] == [1, 2, 3]
        assert bundle.review_count == 6

    def test_prompt_names_only_listed_platforms(self):
        inference = MockInference()
        agent = ReviewSynthesisAgent(inference)
        asyncio.run(agent.synthesize(Competitor(name="Northwind", app_store_url=APP_STORE_URL)))
        prompt = inference.calls_for("ReviewDraft")[0]
        assert "App Store" in prompt
        assert "Google Play" not in prompt

    def test_fan_out_preserves_order_and_isolates_failures(self, competitors):
        def flaky(prompt):
            if "Northwind" in prompt:
                raise InferenceError("rate limited")
            return {"app_store_reviews": [], "google_play_reviews": [{"rating": 4, "text": "Good"}]}

        agent = ReviewSynthesisAgent(MockInference(responses={"ReviewDraft": flaky}))
        collection = asyncio.run(agent.run(competitors))
        assert [b.competitor_name for b in collection.bundles] == ["Contoso"]
        assert collection.skipped == ("Unknown 1",)
        assert "Northwind" in collection.failures
        assert "rate limited" in collection.diagnostic

    def test_invalid_rating_fails_that_competitor_only(self, competitors):
        def bad_for_contoso(prompt):
            rating = 9 if "Contoso" in prompt else 5
            return {"app_store_reviews": [], "google_play_reviews": [{"rating": rating, "text": "x"}]}

        agent = ReviewSynthesisAgent(MockInference(responses={"ReviewDraft": bad_for_contoso}))
        collection = asyncio.run(agent.run(competitors))
        assert [b.competitor_name for b in collection.bundles] == ["Northwind"]
        assert list(collection.failures) == ["Contoso"]

    def test_bundle_order_matches_competitor_order(self):
        names = ["Zeta", "Alpha", "Mid"]
        listed = [Competitor(name=n, google_play_url=f"https://play.google.com/store/apps/details?id=com.{n.lower()}")
                  for n in names]
        agent = ReviewSynthesisAgent(MockInference())
        collection = asyncio.run(agent.run(listed))
        assert [b.competitor_name for b in collection.bundles] == names
