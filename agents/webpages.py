"""
URL Discovery & Webpage Insight Agents
---------------------------------------
UrlDiscoveryAgent      query -> up to N article URLs worth reading
WebpageInsightAgent    URLs  -> one PageInsight per URL, in input order

Per-URL pipeline:
  fetch -> readable-text extraction (readability-lxml)
        -> generic-text fallback if the first pass is too short
        -> give up (failed PageInsight) if still too short
        -> truncate -> inference analysis -> tolerant Summary/Insight/Relevance parse

Each URL is isolated: one page failing never affects another.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from bs4 import BeautifulSoup
from readability import Document
from readability.readability import Unparseable

from agents.base import Agent, fan_out
from agents.competitors import strip_query_prefixes
from agents.errors import FetchError, InferenceError, StepSkipped
from agents.ports import InferencePort, PageFetcher, WebSearcher
from agents.prompts import PAGE_ANALYSIS_SYSTEM_PROMPT, page_analysis_prompt
from agents.web import dedupe, normalise_whitespace
from config.settings import settings
from models.schemas import (
    PARSE_FAILED,
    RELEVANCE_LABELS,
    InsightCollection,
    PageInsight,
    is_http_url,
)

logger = logging.getLogger(__name__)

Extractor = Callable[[str], Tuple[Optional[str], str]]


# ─── Text Extraction ─────────────────────────────────────────────────────────


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _title(soup: BeautifulSoup) -> Optional[str]:
    if soup.title:
        text = soup.title.get_text(strip=True)
        if text:
            return text
    heading = soup.find("h1")
    return heading.get_text(strip=True) if heading else None


def extract_readable_text(html: str) -> Tuple[Optional[str], str]:
    """
    Primary extractor: main article text.
    readability-lxml picks the content block; its HTML is flattened with bs4,
    one line per block element.
    """
    title = _title(_soup(html))
    if not (html or "").strip():
        return title, ""
    try:
        content_html = Document(html).summary()
    except Unparseable as e:
        logger.debug(f"Readability could not parse page: {e}")
        return title, ""

    content = BeautifulSoup(content_html, "html.parser")
    lines = (normalise_whitespace(line) for line in content.get_text(separator="\n", strip=True).splitlines())
    return title, "\n".join(line for line in lines if line)


def extract_generic_text(html: str) -> Tuple[Optional[str], str]:
    """Fallback extractor: text of the main content area, else of the whole body."""
    soup = _soup(html)
    title = _title(soup)
    for tag in soup(("script", "style", "noscript")):
        tag.decompose()

    text = ""
    for selector in ("main", "article", "#content", ".content"):
        node = soup.select_one(selector)
        if node is not None:
            text = normalise_whitespace(node.get_text(" "))
            if text:
                break
    if len(text) < settings.PRIMARY_EXTRACT_MIN_CHARS:
        body = soup.body or soup
        text = normalise_whitespace(body.get_text(" "))
    return title, text


# ─── Analysis Parsing ────────────────────────────────────────────────────────


SECTION_PATTERNS = {
    "summary": re.compile(r"\**Summary\**\s*:\**\s*([\s\S]*?)(?=\**(?:Insight|Relevance)\**\s*:|$)", re.I),
    "insight": re.compile(r"\**Insight\**\s*:\**\s*([\s\S]*?)(?=\**(?:Summary|Relevance)\**\s*:|$)", re.I),
    "relevance": re.compile(r"\**Relevance\**\s*:\**\s*([\s\S]*?)(?=\**(?:Summary|Insight)\**\s*:|$)", re.I),
}


RELEVANCE_PATTERN = re.compile(r"[\s*_]*(highly|partially|not)\s+relevant\b", re.I)


def classify_relevance(text: str) -> Optional[str]:
    """Map the start of the Relevance section onto one of the closed labels."""
    match = RELEVANCE_PATTERN.match(text)
    if not match:
        return None
    return RELEVANCE_LABELS[("highly", "partially", "not").index(match.group(1).lower())]


def parse_analysis(text: str) -> Dict[str, str]:
    """
    Split a `Summary: / Insight: / Relevance:` response into its fields.
    A missing or empty section becomes PARSE_FAILED for that field only.
    """
    parsed = {}
    for field, pattern in SECTION_PATTERNS.items():
        match = pattern.search(text or "")
        value = match.group(1).strip() if match else ""
        parsed[field] = value or PARSE_FAILED
    if parsed["relevance"] != PARSE_FAILED:
        parsed["relevance"] = classify_relevance(parsed["relevance"]) or PARSE_FAILED
    return parsed


# ─── Agents ──────────────────────────────────────────────────────────────────


def article_search_query(query: str) -> str:
    return f"{strip_query_prefixes(query)} market trends analysis"


class UrlDiscoveryAgent(Agent):
    """
    Input:  query string
    Output: tuple of URLs (may be empty)
    """

    def __init__(self, searcher: WebSearcher, max_results: int = settings.SEARCH_MAX_RESULTS):
        super().__init__(name="UrlDiscovery")
        self.searcher = searcher
        self.max_results = max_results

    async def run(self, query: str, thread_id: str = "-") -> Tuple[str, ...]:
        search = article_search_query(query)
        try:
            urls = await self.searcher.search_web(search)
        except Exception as e:
            self.logger.warning(f"[{thread_id}] URL search failed for '{search}': {e}")
            return ()
        urls = [u for u in dedupe(urls) if is_http_url(u)][: self.max_results]
        self.logger.info(f"[{thread_id}] Discovered {len(urls)} URLs for '{search}'")
        return tuple(urls)


@dataclass(frozen=True)
class PageBatch:
    urls: Sequence[str]
    topic: str


class WebpageInsightAgent(Agent):
    """
    Input:  PageBatch
    Output: InsightCollection (order matches the input URLs)
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        inference: InferencePort,
        primary_extractor: Extractor = extract_readable_text,
        fallback_extractor: Extractor = extract_generic_text,
        primary_min_chars: int = settings.PRIMARY_EXTRACT_MIN_CHARS,
        final_min_chars: int = settings.FINAL_EXTRACT_MIN_CHARS,
        excerpt_chars: int = settings.EXCERPT_MAX_CHARS,
        stored_chars: int = settings.STORED_EXCERPT_CHARS,
    ):
        super().__init__(name="WebpageInsights")
        self.fetcher = fetcher
        self.inference = inference
        self.primary_extractor = primary_extractor
        self.fallback_extractor = fallback_extractor
        self.primary_min_chars = primary_min_chars
        self.final_min_chars = final_min_chars
        self.excerpt_chars = excerpt_chars
        self.stored_chars = stored_chars

    async def run(self, batch: PageBatch, thread_id: str = "-") -> InsightCollection:
        urls = []
        for url in batch.urls:
            if is_http_url(url):
                urls.append(url.strip())
            else:
                self.logger.warning(f"[{thread_id}] Dropping malformed URL: {url!r}")
        if not urls:
            raise StepSkipped("no valid URLs to analyze")

        self.logger.info(f"[{thread_id}] Processing {len(urls)} URLs")
        results = await fan_out(lambda u: self.analyze(u, batch.topic, thread_id), urls)
        insights = [
            r if isinstance(r, PageInsight) else PageInsight.failed(u, f"Unexpected error: {r}")
            for u, r in zip(urls, results)
        ]
        ok = sum(1 for i in insights if i.success)
        self.logger.info(f"[{thread_id}] Completed {len(insights)} pages ({ok} analyzed)")
        return InsightCollection(insights=tuple(insights))

    def extract(self, html: str) -> Tuple[Optional[str], str]:
        title, text = self.primary_extractor(html)
        if len(text) < self.primary_min_chars:
            self.logger.warning(
                f"Primary extractor yielded {len(text)} chars, trying generic text extraction"
            )
            fallback_title, text = self.fallback_extractor(html)
            title = title or fallback_title
        return title, text

    async def analyze(self, url: str, topic: str, thread_id: str = "-") -> PageInsight:
        try:
            page = await self.fetcher.fetch_page(url)
        except FetchError as e:
            self.logger.warning(f"[{thread_id}] Scraping failed for {url}: {e}")
            return PageInsight.failed(url, f"Scraping failed: {e}")

        title: Optional[str] = None
        try:
            title, text = self.extract(page.content)
        except Exception as e:
            return PageInsight.failed(url, f"Text extraction failed: {e}")

        if len(text) < self.final_min_chars:
            self.logger.warning(f"[{thread_id}] Could not extract significant text from {url}")
            return PageInsight.failed(
                url, "Extraction failed: No significant text content found.", title=title
            )

        excerpt = text[: self.excerpt_chars]
        try:
            response = await self.inference.generate_text(
                PAGE_ANALYSIS_SYSTEM_PROMPT,
                page_analysis_prompt(url, title, topic, excerpt),
                max_tokens=500,
            )
        except InferenceError as e:
            self.logger.warning(f"[{thread_id}] Analysis failed for {url}: {e}")
            return PageInsight(
                url=url, title=title, success=False,
                content=excerpt[:100], error=f"LLM analysis failed: {e}",
            )

        fields = parse_analysis(response)
        return PageInsight(
            url=url,
            title=title,
            success=True,
            content=excerpt[: self.stored_chars],
            **fields,
        )
