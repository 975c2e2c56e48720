"""
Trend Discovery Agent
----------------------
Scrapes the related-queries widgets of a Google Trends explore page.

Problems never raise: they are appended to the snapshot's `errors` log, and
a snapshot is always returned, even when it holds nothing but diagnostics.

Input:  keyword (country from settings unless overridden)
Output: TrendSnapshot
"""

from typing import List, Optional, Tuple
from urllib.parse import quote

from bs4 import BeautifulSoup

from agents.base import Agent
from agents.errors import FetchError
from agents.ports import PageFetcher
from agents.web import normalise_whitespace
from config.settings import settings
from models.schemas import TrendSnapshot

TRENDS_URL = "https://trends.google.com/trends/explore?q={keyword}&geo={country}&hl=en"

WIDGET_SELECTOR = "div.details-widgets-container, div.widget.concepts-widget"
WIDGET_TITLE_SELECTOR = "div.widget-header-title, h2.LTR-title"
ITEM_SELECTOR = ".item .label-text, .entity-info-container .label"
NO_DATA_SELECTOR = ".widget-error-title, .feed-item.no-data"


def build_trends_url(keyword: str, country: str) -> str:
    return TRENDS_URL.format(keyword=quote(keyword), country=quote(country))


def _sections(widget, label: str, css_class: str):
    """Sections of a widget tagged by class or by a `widget-title-label` heading."""
    found = list(widget.select(f".{css_class}"))
    for heading in widget.select(".widget-title-label"):
        if label.lower() in heading.get_text(strip=True).lower() and heading.parent is not None:
            if heading.parent not in found:
                found.append(heading.parent)
    return found


def _is_related_queries_widget(widget) -> bool:
    title = widget.select_one(WIDGET_TITLE_SELECTOR)
    if title is not None and "Related queries" in title.get_text(strip=True):
        return True
    return bool(_sections(widget, "Top", "widget-top-entities") or _sections(widget, "Rising", "widget-rising-entities"))


def page_title(html: Optional[str]) -> Optional[str]:
    if not html:
        return None
    title = BeautifulSoup(html, "html.parser").title
    text = title.get_text(strip=True) if title else ""
    return text or None


def parse_related_queries(html: str) -> Tuple[List[str], List[str], List[str]]:
    """
    Returns (top, rising, errors).
    `top` and `rising` keep page order; exact duplicates are removed later
    by the TrendSnapshot contract.
    """
    soup = BeautifulSoup(html, "html.parser")
    top: List[str] = []
    rising: List[str] = []
    errors: List[str] = []

    widgets = [w for w in soup.select(WIDGET_SELECTOR) if _is_related_queries_widget(w)]
    if not widgets:
        errors.append("Could not find 'Related queries' widgets (adjust selectors).")
        return top, rising, errors

    for index, widget in enumerate(widgets, 1):
        sections = (
            ("Top", _sections(widget, "Top", "widget-top-entities"), top),
            ("Rising", _sections(widget, "Rising", "widget-rising-entities"), rising),
        )
        if not sections[0][1] and not sections[1][1]:
            errors.append(f"'Related queries' widget {index} has no Top/Rising sections.")
            continue
        for label, found, bucket in sections:
            if not found:
                continue
            items = [
                normalise_whitespace(el.get_text())
                for section in found
                for el in section.select(ITEM_SELECTOR)
            ]
            items = [i for i in items if i]
            if not items:
                errors.append(f"Found '{label}' section in widget {index} but no query items inside.")
            bucket.extend(items)

    if not top and not rising and not errors:
        no_data = soup.select_one(NO_DATA_SELECTOR)
        if no_data is not None:
            errors.append(f"Google Trends reported no data: {normalise_whitespace(no_data.get_text())}")
        else:
            errors.append("Scraping finished, but no related queries found.")
    return top, rising, errors


class TrendDiscoveryAgent(Agent):

    def __init__(self, fetcher: PageFetcher, country: str = settings.TRENDS_COUNTRY):
        super().__init__(name="TrendDiscovery")
        self.fetcher = fetcher
        self.country = country

    async def run(self, keyword: str, thread_id: str = "-") -> TrendSnapshot:
        return await self.discover(keyword, thread_id=thread_id)

    async def discover(self, keyword: str, country: Optional[str] = None, thread_id: str = "-") -> TrendSnapshot:
        keyword = (keyword or "").strip() or "unknown"
        country = (country or self.country or "US").upper()
        url = build_trends_url(keyword, country)
        top: List[str] = []
        rising: List[str] = []
        errors: List[str] = []

        self.logger.info(f"[{thread_id}] Scraping trends for '{keyword}' in {country}: {url}")
        try:
            page = await self.fetcher.fetch_page(url, render_js=True)
            top, rising, errors = parse_related_queries(page.content)
        except FetchError as e:
            errors.append(f"Trends request failed. URL: {url}, Status: {e.status_code or 'N/A'} ({e})")
            title = page_title(e.content)
            if title:
                errors.append(f"Scraped page title (potential error): {title}")
        except Exception as e:
            errors.append(f"An error occurred during scraping or parsing: {e}")

        snapshot = TrendSnapshot(keyword=keyword, country=country, top=top, rising=rising, errors=errors)
        self.logger.info(
            f"[{thread_id}] Trends for '{keyword}': {len(snapshot.top)} top, "
            f"{len(snapshot.rising)} rising, {len(snapshot.errors)} errors"
        )
        return snapshot
