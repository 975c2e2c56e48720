"""
Review Synthesis Agent
-----------------------
Produces a small set of synthesized storefront reviews per competitor.

  - Only platforms the competitor is actually listed on are requested.
  - A platform without a listing always gets an empty review list.
  - A competitor with no listing at all is skipped (None), not failed.

Input:  Sequence[Competitor]
Output: ReviewCollection (bundles in competitor order)
"""

from typing import List, Optional, Sequence

from pydantic import BaseModel

from agents.base import Agent, fan_out
from agents.ports import InferencePort
from agents.prompts import REVIEW_SYSTEM_PROMPT, review_prompt
from config.settings import settings
from models.schemas import Competitor, Review, ReviewBundle, ReviewCollection, Store


class ReviewDraft(BaseModel):
    """Inference output contract: one review list per platform."""
    app_store_reviews: List[Review] = []
    google_play_reviews: List[Review] = []


class ReviewSynthesisAgent(Agent):

    def __init__(self, inference: InferencePort, reviews_per_platform: int = settings.REVIEWS_PER_PLATFORM):
        super().__init__(name="ReviewSynthesis")
        self.inference = inference
        self.reviews_per_platform = reviews_per_platform

    async def synthesize(self, competitor: Competitor, thread_id: str = "-") -> Optional[ReviewBundle]:
        """Reviews for one competitor, or None if it has no storefront listing."""
        stores = [s for s in (Store.APP_STORE, Store.GOOGLE_PLAY) if competitor.url_for(s)]
        if not stores:
            self.logger.info(
                f"[{thread_id}] No storefront listing for {competitor.name}. Skipping review synthesis."
            )
            return None

        draft = await self.inference.generate_structured(
            REVIEW_SYSTEM_PROMPT.format(count=self.reviews_per_platform),
            review_prompt(competitor.name, stores, self.reviews_per_platform),
            ReviewDraft,
        )

        def kept(store: Store, reviews: List[Review]):
            if store not in stores:
                return ()
            return tuple(reviews[: self.reviews_per_platform])

        return ReviewBundle(
            competitor_name=competitor.name,
            app_store_reviews=kept(Store.APP_STORE, draft.app_store_reviews),
            google_play_reviews=kept(Store.GOOGLE_PLAY, draft.google_play_reviews),
        )

    async def run(self, competitors: Sequence[Competitor], thread_id: str = "-") -> ReviewCollection:
        self.logger.info(f"[{thread_id}] Processing {len(competitors)} competitors for review synthesis")
        results = await fan_out(lambda c: self.synthesize(c, thread_id), list(competitors))

        bundles: List[ReviewBundle] = []
        skipped: List[str] = []
        failures = {}
        for competitor, result in zip(competitors, results):
            if isinstance(result, BaseException):
                self.logger.error(f"[{thread_id}] Failed to synthesize reviews for {competitor.name}: {result}")
                failures[competitor.name] = str(result) or result.__class__.__name__
            elif result is None:
                skipped.append(competitor.name)
            else:
                bundles.append(result)

        self.logger.info(
            f"[{thread_id}] Reviews synthesized for {len(bundles)} competitors "
            f"({len(skipped)} skipped, {len(failures)} failed)"
        )
        return ReviewCollection(bundles=tuple(bundles), skipped=tuple(skipped), failures=failures)
