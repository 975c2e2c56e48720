"""
Storefront Lookup Adapters
---------------------------
Resolve a competitor name to its listing URL on a storefront.

  App Store   - public iTunes Search API (JSON, no scraping needed)
  Google Play - Play search results page fetched through a PageFetcher
                and parsed with BeautifulSoup

Both return None on any failure; a missing listing is never an error.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import parse_qs, quote_plus, urlparse

import requests
from bs4 import BeautifulSoup

from agents.errors import FetchError
from agents.ports import PageFetcher, StoreLookup
from config.settings import settings
from models.schemas import Store

logger = logging.getLogger(__name__)


ITUNES_SEARCH_URL = "https://itunes.apple.com/search"
PLAY_SEARCH_URL = "https://play.google.com/store/search?q={term}&c=apps&hl=en"
PLAY_DETAILS_URL = "https://play.google.com/store/apps/details?id={package}&hl=en"


def pick_itunes_match(results, term: str) -> Optional[str]:
    """First result whose URL is an App Store listing and whose name contains `term`."""
    needle = term.lower()
    for result in results or []:
        url = (result or {}).get("trackViewUrl")
        name = ((result or {}).get("trackName") or "").lower()
        if not url or not url.startswith("https://apps.apple.com/"):
            continue
        if needle not in name:
            continue
        return url
    return None


def pick_play_match(html: str, term: str) -> Optional[str]:
    """Canonical details URL of the first search card whose title contains `term`."""
    soup = BeautifulSoup(html, "html.parser")
    needle = term.lower()
    for link in soup.select("a[href*='/store/apps/details?id=']"):
        title_el = link.select_one("[title]")
        title = title_el.get("title", "") if title_el else ""
        if not title:
            title = link.get_text(" ", strip=True)
        if needle not in title.lower():
            continue
        package = parse_qs(urlparse(link["href"]).query).get("id", [None])[0]
        if package:
            return PLAY_DETAILS_URL.format(package=package)
    return None


class StorefrontLookup(StoreLookup):

    def __init__(
        self,
        fetcher: PageFetcher,
        session: Optional[requests.Session] = None,
        timeout: int = settings.REQUEST_TIMEOUT,
    ):
        self.fetcher = fetcher
        self.session = session or requests.Session()
        self.timeout = timeout

    async def lookup_store_listing(self, name: str, store: Store) -> Optional[str]:
        term = (name or "").strip()
        if not term:
            return None
        try:
            if store is Store.APP_STORE:
                url = await asyncio.to_thread(self._lookup_app_store, term)
            else:
                url = await self._lookup_google_play(term)
        except (requests.RequestException, FetchError, ValueError) as e:
            logger.warning(f"{store.label} lookup failed for '{term}': {e}")
            return None
        if url:
            logger.info(f"{store.label} URL found for '{term}': {url}")
        else:
            logger.info(f"No {store.label} listing matched '{term}'")
        return url

    def _lookup_app_store(self, term: str) -> Optional[str]:
        resp = self.session.get(
            ITUNES_SEARCH_URL,
            params={"term": term, "entity": "software", "limit": 5},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return pick_itunes_match(resp.json().get("results"), term)

    async def _lookup_google_play(self, term: str) -> Optional[str]:
        page = await self.fetcher.fetch_page(PLAY_SEARCH_URL.format(term=quote_plus(term)), render_js=True)
        return pick_play_match(page.content, term)
