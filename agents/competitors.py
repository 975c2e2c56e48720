"""
Competitor Discovery Agent
---------------------------
Finds exactly three competitors for a query.

  1. Ask the inference port for up to 3 names and an app / local-business
     classification.
  2. Anything other than 3 names -> web-search fallback, names derived from
     result domains, padded with "Unknown N" placeholders.
  3. Apps: resolve App Store and Google Play listings concurrently; a URL off
     the storefront's domain is dropped to None.
     Local businesses: both URL fields are forced to None.

Input:  query string
Output: CompetitorSet (never raises; degrades to 3 placeholders + error)
"""

import asyncio
import logging
import re
from typing import List, Literal, Optional, Sequence
from urllib.parse import urlparse

from pydantic import BaseModel

from agents.base import Agent
from agents.errors import InferenceError
from agents.ports import InferencePort, StoreLookup, WebSearcher
from agents.prompts import COMPETITOR_SYSTEM_PROMPT, competitor_prompt
from models.schemas import (
    COMPETITOR_COUNT,
    Competitor,
    CompetitorSet,
    NonEmptyStr,
    Store,
    placeholder_competitors,
)
from models.validation import Invalid, validate

logger = logging.getLogger(__name__)


# ─── Inference output contract ───────────────────────────────────────────────


class CompetitorDraft(BaseModel):
    name: NonEmptyStr
    app_store_url: Optional[str] = None
    google_play_url: Optional[str] = None


class CompetitorDraftList(BaseModel):
    category: Optional[Literal["app", "local_business"]] = None
    competitors: List[CompetitorDraft] = []


# ─── Helpers ─────────────────────────────────────────────────────────────────


LEADING_PHRASES = re.compile(r"^\s*(?:an?\s+)?(?:apps?|restaurants?)\s+for\s+", re.IGNORECASE)
APP_WORD = re.compile(r"\bapps?\b", re.IGNORECASE)

# Hosts that list or discuss businesses rather than being one
NON_COMPETITOR_HOSTS = (
    "wikipedia.org", "youtube.com", "reddit.com", "medium.com", "quora.com",
    "facebook.com", "instagram.com", "linkedin.com", "twitter.com", "x.com",
    "g2.com", "capterra.com", "trustpilot.com", "yelp.com", "tripadvisor.com",
    "tripadvisor.co.uk", "apps.apple.com", "play.google.com", "forbes.com",
    "techcrunch.com", "pcmag.com", "cnet.com", "theverge.com",
)

SECOND_LEVEL_SUFFIXES = ("co", "com", "org", "net", "ac", "gov")


def strip_query_prefixes(query: str) -> str:
    """'app for music streaming' -> 'music streaming'."""
    stripped = LEADING_PHRASES.sub("", query).strip()
    return stripped or query.strip()


def classify_query(query: str) -> str:
    return "app" if APP_WORD.search(query) else "local_business"


def name_from_url(url: str) -> Optional[str]:
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    if not host or any(host == h or host.endswith("." + h) for h in NON_COMPETITOR_HOSTS):
        return None
    labels = host.split(".")
    if len(labels) >= 3 and labels[-2] in SECOND_LEVEL_SUFFIXES:
        label = labels[-3]
    elif len(labels) >= 2:
        label = labels[-2]
    else:
        label = labels[0]
    name = label.replace("-", " ").strip()
    return name.title() if name else None


def names_from_urls(urls: Sequence[str]) -> List[str]:
    names: List[str] = []
    seen = set()
    for url in urls:
        name = name_from_url(url)
        if name and name.casefold() not in seen:
            seen.add(name.casefold())
            names.append(name)
    return names


def pad_competitors(competitors: Sequence[Competitor]) -> List[Competitor]:
    kept = list(competitors)[:COMPETITOR_COUNT]
    return kept + list(placeholder_competitors(COMPETITOR_COUNT - len(kept)))


def accept_store_url(url: Optional[str], store: Store, competitor: str) -> Optional[str]:
    if url and not store.owns(url):
        logger.warning(f"Invalid {store.label} URL for {competitor}: {url}")
        return None
    return url or None


# ─── Agent ───────────────────────────────────────────────────────────────────


class CompetitorDiscoveryAgent(Agent):

    def __init__(self, inference: InferencePort, searcher: WebSearcher, store_lookup: StoreLookup):
        super().__init__(name="CompetitorDiscovery")
        self.inference = inference
        self.searcher = searcher
        self.store_lookup = store_lookup

    async def run(self, query: str, thread_id: str = "-") -> CompetitorSet:
        try:
            return await self._discover(query, thread_id)
        except Exception as e:
            self.logger.error(f"[{thread_id}] Error in competitor analysis: {e}")
            return CompetitorSet.placeholders(query or "unknown", f"Analysis failed: {e}")

    async def _discover(self, query: str, thread_id: str) -> CompetitorSet:
        notes: List[str] = []
        category: Optional[str] = None
        competitors: List[Competitor] = []

        try:
            draft = await self.inference.generate_structured(
                COMPETITOR_SYSTEM_PROMPT, competitor_prompt(query), CompetitorDraftList
            )
            category = draft.category
            competitors = [
                Competitor(name=d.name, app_store_url=d.app_store_url, google_play_url=d.google_play_url)
                for d in draft.competitors
            ]
        except InferenceError as e:
            self.logger.warning(f"[{thread_id}] Competitor inference failed: {e}")
            notes.append(f"Inference failed: {e}")

        category = category or classify_query(query)

        if len(competitors) != COMPETITOR_COUNT:
            self.logger.warning(
                f"[{thread_id}] Inference returned {len(competitors)} competitors, "
                f"expected {COMPETITOR_COUNT}. Falling back to web search."
            )
            names = await self._search_names(strip_query_prefixes(query), thread_id)
            competitors = pad_competitors([Competitor(name=n) for n in names])
            if any(c.is_placeholder for c in competitors):
                notes.append(
                    f"Only {sum(not c.is_placeholder for c in competitors)} competitors found; "
                    f"padded with placeholders"
                )

        if category == "app":
            competitors = list(await asyncio.gather(*(self._resolve_listings(c) for c in competitors)))
        else:
            competitors = [Competitor(name=c.name, placeholder=c.placeholder) for c in competitors]

        outcome = validate(
            {
                "query": query,
                "category": category,
                "competitors": competitors,
                "error": "; ".join(notes) or None,
            },
            CompetitorSet,
        )
        if isinstance(outcome, Invalid):
            self.logger.error(f"[{thread_id}] Final response validation failed: {outcome.describe()}")
            return CompetitorSet.placeholders(query, "Failed to construct valid response")

        result = outcome.value
        self.logger.info(
            f"[{thread_id}] Competitors ({result.category}): "
            + ", ".join(c.name for c in result.competitors)
        )
        return result

    async def _search_names(self, phrase: str, thread_id: str) -> List[str]:
        try:
            urls = await self.searcher.search_web(phrase)
        except Exception as e:
            self.logger.warning(f"[{thread_id}] Fallback search failed for '{phrase}': {e}")
            return []
        return names_from_urls(urls)

    async def _resolve_listings(self, competitor: Competitor) -> Competitor:
        if competitor.is_placeholder:
            return Competitor(name=competitor.name, placeholder=True)
        app_store_url, google_play_url = await asyncio.gather(
            self.store_lookup.lookup_store_listing(competitor.name, Store.APP_STORE),
            self.store_lookup.lookup_store_listing(competitor.name, Store.GOOGLE_PLAY),
            return_exceptions=True,
        )
        # a lookup miss keeps the URL suggested by inference, already domain-checked
        if isinstance(app_store_url, BaseException) or not app_store_url:
            app_store_url = competitor.app_store_url
        if isinstance(google_play_url, BaseException) or not google_play_url:
            google_play_url = competitor.google_play_url
        return Competitor(
            name=competitor.name,
            app_store_url=accept_store_url(app_store_url, Store.APP_STORE, competitor.name),
            google_play_url=accept_store_url(google_play_url, Store.GOOGLE_PLAY, competitor.name),
        )
