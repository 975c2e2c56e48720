"""
Offline capability ports.
Deterministic in-process stand-ins for inference, retrieval, search, store
lookup and persistence. Used by `main.py demo` and the test suite; every stub
can be told to fail so degradation paths can be exercised.
"""

import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from agents.errors import FetchError, InferenceError, OutputContractError
from agents.llm_client import contract_name
from agents.prompts import PAGE_ANALYSIS_SYSTEM_PROMPT
from agents.ports import (
    CapabilityPorts,
    FetchedPage,
    InferencePort,
    PageFetcher,
    ReportSink,
    StoreLookup,
    WebSearcher,
)
from models.schemas import MarketReport, Store
from models.validation import Invalid, validate

Payload = Union[Any, Callable[[str], Any], BaseException]

MOCK_COMPETITORS = ("Northwind", "Contoso", "Fabrikam")

MOCK_REVIEW_TEXTS = (
    (5, "Does exactly what I need and the interface is clean."),
    (2, "Crashes every time I open the settings page after the last update."),
    (4, "Solid features, but the subscription feels a bit pricey."),
)

MOCK_ANALYSIS = (
    "Summary: The article describes steady growth in the category, driven by "
    "mobile adoption and subscription pricing.\n"
    "Insight: Users repeatedly ask for better offline support, which no major player offers.\n"
    "Relevance: Highly relevant - it covers demand drivers for the queried market."
)

MOCK_SUMMARY = (
    "Overall Market Summary\nThe market is competitive but fragmented.\n\n"
    "Key Market Trends\nSearch interest is shifting toward niche, community-driven offerings.\n\n"
    "Competitor Positioning\nIncumbents compete on catalogue size rather than experience.\n\n"
    "Market Gaps\nOffline support and transparent pricing remain underserved.\n\n"
    "Strategic Opportunities\nA focused entrant can win on reliability and fair pricing."
)


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", name.lower()) or "app"


def _resolve(payload: Payload, prompt: str) -> Any:
    if isinstance(payload, BaseException):
        raise payload
    if callable(payload):
        return payload(prompt)
    return payload


# ─── Inference ───────────────────────────────────────────────────────────────


class MockInference(InferencePort):
    """
    Structured responses are keyed by contract name (e.g. "CompetitorDraftList").
    A value may be a payload, a callable(user_prompt) -> payload, or an
    exception instance to raise. Unset contracts get a built-in payload.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Payload]] = None,
        analysis_text: Payload = MOCK_ANALYSIS,
        summary_text: Payload = MOCK_SUMMARY,
        competitor_names: Sequence[str] = MOCK_COMPETITORS,
    ):
        self.responses = dict(responses or {})
        self.analysis_text = analysis_text
        self.summary_text = summary_text
        self.competitor_names = tuple(competitor_names)
        self.calls: List[Tuple[str, str]] = []

    async def generate_structured(self, system_prompt, user_prompt, contract, max_tokens=None):
        name = contract_name(contract)
        self.calls.append((name, user_prompt))
        if name in self.responses:
            data = _resolve(self.responses[name], user_prompt)
        else:
            data = self._default_payload(name, user_prompt)

        outcome = validate(data, contract)
        if isinstance(outcome, Invalid):
            raise OutputContractError(name, outcome.errors)
        return outcome.value

    async def generate_text(self, system_prompt, user_prompt, max_tokens=None):
        is_page_analysis = system_prompt == PAGE_ANALYSIS_SYSTEM_PROMPT
        self.calls.append(("page_analysis" if is_page_analysis else "text", user_prompt))
        return _resolve(self.analysis_text if is_page_analysis else self.summary_text, user_prompt)

    def calls_for(self, name: str) -> List[str]:
        return [prompt for kind, prompt in self.calls if kind == name]

    def _default_payload(self, name: str, prompt: str) -> Any:
        if name == "CompetitorDraftList":
            is_app = re.search(r"\bapps?\b", prompt, re.IGNORECASE) is not None
            return {
                "category": "app" if is_app else "local_business",
                "competitors": [
                    {
                        "name": n,
                        "app_store_url": f"https://apps.apple.com/us/app/{_slug(n)}/id10000{i}" if is_app else None,
                        "google_play_url": (
                            f"https://play.google.com/store/apps/details?id=com.{_slug(n)}" if is_app else None
                        ),
                    }
                    for i, n in enumerate(self.competitor_names)
                ],
            }
        if name == "ReviewDraft":
            reviews = [{"rating": r, "text": t} for r, t in MOCK_REVIEW_TEXTS]
            return {
                "app_store_reviews": reviews if "App Store" in prompt else [],
                "google_play_reviews": reviews if "Google Play" in prompt else [],
            }
        if name == "ChartDataset":
            match = re.search(r"Competitors to chart: (.*)", prompt)
            names = [n.strip() for n in match.group(1).split(",")] if match else []
            names = [n for n in names if n and n != "none identified"]
            return {
                "bar_chart_data": [
                    {"name": n, "review_count": 120 * (i + 1), "rating": 4.5 - 0.5 * i, "market_share": None}
                    for i, n in enumerate(names)
                ],
                "gap_matrix_data": [
                    {
                        "feature": "Offline mode",
                        "unmet_need": "High",
                        "competitor_status": {n: "No" for n in names},
                    },
                    {
                        "feature": "Transparent pricing",
                        "unmet_need": "Medium",
                        "competitor_status": {n: ("Yes" if i == 0 else "Unknown") for i, n in enumerate(names)},
                    },
                ],
                "suggested_bar_chart_metric": "review_count",
            }
        raise InferenceError(f"No mock response for contract {name}")


# ─── Retrieval ───────────────────────────────────────────────────────────────


def mock_article_html(url: str) -> str:
    return f"""
<html><head><title>Market notes for {url}</title></head>
<body>
  <nav>Home | Pricing | Login</nav>
  <article>
    <p>Analysts expect the category to keep growing over the next three years as adoption widens.</p>
    <p>Subscription bundles are the dominant business model, although churn remains stubbornly high.</p>
    <p>Reviewers regularly mention reliability and offline access as deciding factors for switching.</p>
  </article>
  <footer>Copyright notice</footer>
</body></html>
"""


def mock_trends_html(top: Sequence[str], rising: Sequence[str]) -> str:
    def items(values):
        return "".join(f'<div class="item"><span class="label-text">{v}</span></div>' for v in values)

    return f"""
<html><head><title>Google Trends</title></head><body>
<div class="widget concepts-widget">
  <div class="widget-header-title">Related queries</div>
  <div class="widget-top-entities">{items(top)}</div>
  <div class="widget-rising-entities">{items(rising)}</div>
</div>
</body></html>
"""


class MockPageFetcher(PageFetcher):
    """
    `pages` maps URL -> HTML or an exception instance.
    Unknown trends URLs get a related-queries page; any other unknown URL gets
    a short article unless `strict` is set, in which case it raises FetchError.
    """

    def __init__(
        self,
        pages: Optional[Dict[str, Union[str, BaseException]]] = None,
        trends_top: Sequence[str] = ("best streaming app", "streaming app free", "best streaming app"),
        trends_rising: Sequence[str] = ("ai playlist", "lossless streaming"),
        strict: bool = False,
    ):
        self.pages = dict(pages or {})
        self.trends_top = tuple(trends_top)
        self.trends_rising = tuple(trends_rising)
        self.strict = strict
        self.requested: List[str] = []

    async def fetch_page(self, url: str, render_js: bool = False) -> FetchedPage:
        self.requested.append(url)
        if url in self.pages:
            content = self.pages[url]
            if isinstance(content, BaseException):
                raise content
            return FetchedPage(url=url, content=content, status_code=200)
        if self.strict:
            raise FetchError(f"Status 404 for {url}", status_code=404)
        if "trends.google.com" in url:
            return FetchedPage(url=url, content=mock_trends_html(self.trends_top, self.trends_rising), status_code=200)
        return FetchedPage(url=url, content=mock_article_html(url), status_code=200)


class MockWebSearcher(WebSearcher):

    def __init__(
        self,
        urls: Optional[Sequence[str]] = None,
        error: Optional[BaseException] = None,
    ):
        self.urls = list(urls) if urls is not None else [
            "https://www.example.com/market-report",
            "https://blog.example.org/industry-trends",
            "https://news.example.net/analysis",
        ]
        self.error = error
        self.queries: List[str] = []

    async def search_web(self, query: str) -> List[str]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.urls)


class MockStoreLookup(StoreLookup):
    """`listings` maps (name, Store) -> URL or None; unmapped names get canonical store URLs."""

    def __init__(self, listings: Optional[Dict[Tuple[str, Store], Optional[str]]] = None):
        self.listings = dict(listings or {})
        self.lookups: List[Tuple[str, Store]] = []

    async def lookup_store_listing(self, name: str, store: Store) -> Optional[str]:
        self.lookups.append((name, store))
        if (name, store) in self.listings:
            return self.listings[(name, store)]
        if store is Store.APP_STORE:
            return f"https://apps.apple.com/us/app/{_slug(name)}/id{100000 + sum(map(ord, name))}"
        return f"https://play.google.com/store/apps/details?id=com.{_slug(name)}&hl=en"


# ─── Persistence ─────────────────────────────────────────────────────────────


class InMemoryReportSink(ReportSink):

    def __init__(self, error: Optional[BaseException] = None):
        self.reports: Dict[str, MarketReport] = {}
        self.error = error
        self.calls = 0

    def persist(self, report: MarketReport) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        self.reports[report.report_id] = report
        return report.report_id

    def get_report(self, report_id: str) -> Optional[MarketReport]:
        return self.reports.get(report_id)


def mock_ports(**overrides) -> CapabilityPorts:
    """A full set of offline ports; pass keyword overrides to swap any of them."""
    ports = dict(
        inference=MockInference(),
        fetcher=MockPageFetcher(),
        searcher=MockWebSearcher(),
        store_lookup=MockStoreLookup(),
        sink=InMemoryReportSink(),
    )
    ports.update(overrides)
    return CapabilityPorts(**ports)
