"""
Web Retrieval Adapters
-----------------------
Concrete `PageFetcher` and `WebSearcher` implementations.

  RequestsPageFetcher  - requests.Session with retry + exponential backoff,
                         optionally proxied through the Scrapfly scrape API
                         (anti-bot + JS rendering). Blocking calls run on a
                         worker thread; a semaphore caps outbound concurrency.
  SearchEngineSearcher - runs a search results page through a PageFetcher
                         and extracts organic result links with BeautifulSoup.
"""

import asyncio
import logging
import random
import re
import time
from typing import Iterable, List, Optional
from urllib.parse import parse_qs, quote_plus, unquote, urlparse

import requests
from bs4 import BeautifulSoup

from agents.errors import FetchError
from agents.ports import FetchedPage, PageFetcher, WebSearcher
from config.settings import settings

logger = logging.getLogger(__name__)


BLOCK_STATUS_CODES = {403, 429, 503}
BLOCK_MARKERS = (
    "unusual traffic from your computer",
    "g-recaptcha",
    "captcha-form",
    "are you a robot",
)


def looks_blocked(html: str) -> bool:
    lowered = html[:20000].lower()
    return any(marker in lowered for marker in BLOCK_MARKERS)


# ─── Page Fetcher ────────────────────────────────────────────────────────────


class RequestsPageFetcher(PageFetcher):

    def __init__(
        self,
        scrapfly_key: Optional[str] = settings.SCRAPFLY_API_KEY,
        timeout: int = settings.REQUEST_TIMEOUT,
        max_retries: int = settings.MAX_RETRIES,
        max_concurrency: int = settings.MAX_CONCURRENT_REQUESTS,
        session: Optional[requests.Session] = None,
    ):
        self.scrapfly_key = scrapfly_key
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": settings.USER_AGENT})
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def fetch_page(self, url: str, render_js: bool = False) -> FetchedPage:
        async with self._semaphore:
            return await asyncio.to_thread(self._fetch_blocking, url, render_js)

    def _fetch_blocking(self, url: str, render_js: bool) -> FetchedPage:
        """HTTP GET with retry + exponential backoff. Block signals are not retried."""
        last_error: Optional[FetchError] = None
        for attempt in range(self.max_retries):
            try:
                return self._get_once(url, render_js)
            except FetchError as e:
                last_error = e
                if e.status_code in BLOCK_STATUS_CODES or (e.status_code is not None and e.status_code < 500):
                    break
            except requests.RequestException as e:
                last_error = FetchError(f"Request failed for {url}: {e}")
            if attempt < self.max_retries - 1:
                wait = (2 ** attempt) + random.uniform(0, 1)
                logger.warning(
                    f"Attempt {attempt+1} failed for {url}: {last_error}. Retrying in {wait:.1f}s"
                )
                time.sleep(wait)
        raise last_error or FetchError(f"Failed to fetch {url}")

    def _get_once(self, url: str, render_js: bool) -> FetchedPage:
        if self.scrapfly_key:
            return self._get_via_scrapfly(url, render_js)

        resp = self.session.get(url, timeout=self.timeout)
        if not resp.ok:
            raise FetchError(
                f"Status {resp.status_code} for {url}",
                status_code=resp.status_code,
                content=resp.text,
            )
        if looks_blocked(resp.text):
            raise FetchError(f"Block page returned for {url}", status_code=resp.status_code)
        return FetchedPage(url=url, content=resp.text, status_code=resp.status_code)

    def _get_via_scrapfly(self, url: str, render_js: bool) -> FetchedPage:
        params = {
            "key": self.scrapfly_key,
            "url": url,
            "asp": "true",
            "render_js": "true" if render_js else "false",
            "country": "us",
        }
        resp = self.session.get(
            settings.SCRAPFLY_ENDPOINT,
            params=params,
            timeout=self.timeout * (2 if render_js else 1),
        )
        try:
            payload = resp.json()
        except ValueError:
            raise FetchError(f"Scrapfly returned non-JSON for {url}", status_code=resp.status_code)

        result = payload.get("result") or {}
        status = result.get("status_code") or resp.status_code
        content = result.get("content")
        if not resp.ok or not result.get("success") or not content:
            reason = result.get("error") or result.get("reason") or payload.get("error") or resp.reason
            raise FetchError(f"Scraping failed: Status {status}, {reason}", status_code=status)
        if looks_blocked(content):
            raise FetchError(f"Block page returned for {url}", status_code=status)
        return FetchedPage(url=url, content=content, status_code=status)


# ─── Search ──────────────────────────────────────────────────────────────────


SEARCH_URL = "https://www.google.com/search?q={query}&hl=en"

EXCLUDED_HOST_FRAGMENTS = (
    "google.",
    "googleusercontent.com",
    "bing.com",
    "microsoft.com",
)

EXCLUDED_PATH_FRAGMENTS = (
    "/search?",
    "/signup",
    "/login",
    "/shop",
    "/product",
    "/cart",
)

RESULT_SELECTORS = (
    "div.g a[href]",
    "div[data-ved] a[href]",
    "li.b_algo a[href]",
    "a[jsname][href]",
    "a[href][ping]",
)


def unwrap_redirect(href: str) -> Optional[str]:
    """Resolve Google `/url?q=` redirect links; pass through absolute URLs."""
    if href.startswith("/url?") or "google.com/url?" in href:
        target = parse_qs(urlparse(href).query).get("q", [None])[0]
        return unquote(target) if target else None
    return href


def is_acceptable_result(url: str) -> bool:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    host = parsed.netloc.lower()
    if any(fragment in host for fragment in EXCLUDED_HOST_FRAGMENTS):
        return False
    lowered = url.lower()
    return not any(fragment in lowered for fragment in EXCLUDED_PATH_FRAGMENTS)


def extract_result_urls(html: str, limit: int = settings.SEARCH_MAX_RESULTS) -> List[str]:
    """Organic result URLs from a search page, deduplicated and order-preserving."""
    soup = BeautifulSoup(html, "html.parser")
    urls: List[str] = []
    seen = set()
    for selector in RESULT_SELECTORS:
        for link in soup.select(selector):
            url = unwrap_redirect(link.get("href", "").strip())
            if not url or url in seen or not is_acceptable_result(url):
                continue
            seen.add(url)
            urls.append(url)
            if len(urls) >= limit:
                return urls
    return urls


class SearchEngineSearcher(WebSearcher):

    def __init__(self, fetcher: PageFetcher, max_results: int = settings.SEARCH_MAX_RESULTS):
        self.fetcher = fetcher
        self.max_results = max_results

    async def search_web(self, query: str) -> List[str]:
        search_url = SEARCH_URL.format(query=quote_plus(query))
        # JS rendering first, plain HTML as the fallback
        for render_js in (True, False):
            try:
                page = await self.fetcher.fetch_page(search_url, render_js=render_js)
            except FetchError as e:
                logger.warning(f"Search fetch failed (render_js={render_js}) for '{query}': {e}")
                continue
            urls = extract_result_urls(page.content, self.max_results)
            if urls:
                logger.info(f"Search for '{query}' returned {len(urls)} URLs")
                return urls
        logger.warning(f"No search results for '{query}'")
        return []


def normalise_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def dedupe(values: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out
