"""
Data contracts for every value crossing a step boundary.

All contracts are frozen pydantic models: once a step returns a value it is
never mutated. Some contracts repair rather than reject (a store URL on the
wrong domain becomes None, duplicate related queries are dropped) so that a
downstream step only ever sees values that already satisfy their invariants.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Dict, Literal, Mapping, Optional, Tuple
from urllib.parse import urlparse

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    StringConstraints,
    field_validator,
    model_validator,
)


NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
NarrativeText = NonEmptyStr

PLACEHOLDER_PREFIX = "Unknown"
COMPETITOR_COUNT = 3

RELEVANCE_LABELS = ("Highly relevant", "Partially relevant", "Not relevant")
PARSE_FAILED = "Parsing failed."
Relevance = Literal["Highly relevant", "Partially relevant", "Not relevant", "Parsing failed."]

SupportStatus = Literal["Yes", "No", "Unknown"]
UnmetNeed = Literal["High", "Medium", "Low"]


def _frozen(value: Mapping) -> Mapping:
    return MappingProxyType(dict(value))


def _thawed(value: Mapping) -> dict:
    return dict(value)


def _empty_map() -> Mapping:
    return MappingProxyType({})


# Read-only once validated; dumped as a plain dict.
FailureMap = Annotated[Dict[str, str], AfterValidator(_frozen), PlainSerializer(_thawed)]
StatusMap = Annotated[Dict[str, SupportStatus], AfterValidator(_frozen), PlainSerializer(_thawed)]


def is_http_url(value: Optional[str]) -> bool:
    if not value or not isinstance(value, str):
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class Contract(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------

class Query(Contract):
    """The originating request. `thread_id` is the run's correlation id."""
    text: NonEmptyStr
    thread_id: NonEmptyStr = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Competitors
# ---------------------------------------------------------------------------

class Store(str, Enum):
    APP_STORE = "app_store"
    GOOGLE_PLAY = "google_play"

    @property
    def domain(self) -> str:
        return "apple.com" if self is Store.APP_STORE else "play.google.com"

    @property
    def label(self) -> str:
        return "App Store" if self is Store.APP_STORE else "Google Play"

    def owns(self, url: Optional[str]) -> bool:
        """True if `url` is a well-formed URL on this storefront's domain."""
        if not is_http_url(url):
            return False
        host = (urlparse(url.strip()).hostname or "").lower()
        return host == self.domain or host.endswith("." + self.domain)


class Competitor(Contract):
    """`placeholder` is set only by placeholder_competitors()."""
    name: NonEmptyStr
    app_store_url: Optional[str] = None
    google_play_url: Optional[str] = None
    placeholder: bool = False

    @field_validator("app_store_url", mode="before")
    @classmethod
    def _app_store_domain(cls, v):
        return v.strip() if Store.APP_STORE.owns(v) else None

    @field_validator("google_play_url", mode="before")
    @classmethod
    def _google_play_domain(cls, v):
        return v.strip() if Store.GOOGLE_PLAY.owns(v) else None

    def url_for(self, store: Store) -> Optional[str]:
        return self.app_store_url if store is Store.APP_STORE else self.google_play_url

    @property
    def is_placeholder(self) -> bool:
        return self.placeholder


class CompetitorSet(Contract):
    query: NonEmptyStr
    category: Literal["app", "local_business"] = "local_business"
    competitors: Tuple[Competitor, ...] = Field(min_length=COMPETITOR_COUNT, max_length=COMPETITOR_COUNT)
    error: Optional[str] = None

    @classmethod
    def placeholders(cls, query: str, error: str) -> "CompetitorSet":
        return cls(
            query=query,
            competitors=placeholder_competitors(COMPETITOR_COUNT),
            error=error,
        )

    @property
    def diagnostic(self) -> Optional[str]:
        return self.error


def placeholder_competitors(count: int) -> Tuple[Competitor, ...]:
    return tuple(Competitor(name=f"{PLACEHOLDER_PREFIX} {i + 1}", placeholder=True) for i in range(count))


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------

class Review(Contract):
    rating: int = Field(ge=1, le=5)
    text: NonEmptyStr


class ReviewBundle(Contract):
    competitor_name: NonEmptyStr
    app_store_reviews: Tuple[Review, ...] = ()
    google_play_reviews: Tuple[Review, ...] = ()

    def reviews_for(self, store: Store) -> Tuple[Review, ...]:
        return self.app_store_reviews if store is Store.APP_STORE else self.google_play_reviews

    @property
    def review_count(self) -> int:
        return len(self.app_store_reviews) + len(self.google_play_reviews)


class ReviewCollection(Contract):
    """Output of the review fan-out: bundles in competitor order."""
    bundles: Tuple[ReviewBundle, ...] = ()
    skipped: Tuple[str, ...] = ()
    failures: FailureMap = Field(default_factory=_empty_map)

    @property
    def diagnostic(self) -> Optional[str]:
        if not self.failures:
            return None
        return "; ".join(f"{name}: {reason}" for name, reason in self.failures.items())


# ---------------------------------------------------------------------------
# Trends
# ---------------------------------------------------------------------------

def _dedupe(values) -> Tuple[str, ...]:
    seen = set()
    out = []
    for v in values or ():
        if v not in seen:
            seen.add(v)
            out.append(v)
    return tuple(out)


class TrendSnapshot(Contract):
    keyword: NonEmptyStr
    country: str = "US"
    top: Tuple[str, ...] = ()
    rising: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()

    @field_validator("top", "rising", mode="before")
    @classmethod
    def _unique(cls, v):
        return _dedupe(v)

    @property
    def is_empty(self) -> bool:
        return not self.top and not self.rising

    @property
    def diagnostic(self) -> Optional[str]:
        return "; ".join(self.errors) if self.errors else None


# ---------------------------------------------------------------------------
# Webpage insights
# ---------------------------------------------------------------------------

class PageInsight(Contract):
    url: str
    title: Optional[str] = None
    success: bool
    content: Optional[str] = None
    summary: Optional[str] = None
    insight: Optional[str] = None
    relevance: Optional[Relevance] = None
    error: Optional[str] = None

    @field_validator("url")
    @classmethod
    def _well_formed(cls, v: str) -> str:
        if not is_http_url(v):
            raise ValueError("URL must be a valid http(s) URL")
        return v.strip()

    @model_validator(mode="before")
    @classmethod
    def _failed_needs_error(cls, data):
        if isinstance(data, dict) and data.get("success") is False and not data.get("error"):
            data = {**data, "error": "Unknown error"}
        return data

    @classmethod
    def failed(cls, url: str, error: str, title: Optional[str] = None) -> "PageInsight":
        return cls(url=url, title=title, success=False, error=error)


class InsightCollection(Contract):
    insights: Tuple[PageInsight, ...] = ()

    @property
    def diagnostic(self) -> Optional[str]:
        failed = [i for i in self.insights if not i.success]
        if not failed:
            return None
        return f"{len(failed)}/{len(self.insights)} pages failed: " + "; ".join(
            f"{i.url} ({i.error})" for i in failed
        )


# ---------------------------------------------------------------------------
# Chart data
# ---------------------------------------------------------------------------

class BarChartRow(Contract):
    name: NonEmptyStr
    review_count: Optional[int] = Field(default=None, ge=0)
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    market_share: Optional[float] = Field(default=None, ge=0, le=100)


class GapMatrixRow(Contract):
    feature: NonEmptyStr
    unmet_need: Optional[UnmetNeed] = None
    competitor_status: StatusMap = Field(default_factory=_empty_map)


class ChartDataset(Contract):
    bar_chart_data: Tuple[BarChartRow, ...] = ()
    gap_matrix_data: Tuple[GapMatrixRow, ...] = ()
    suggested_bar_chart_metric: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def empty(cls, error: str) -> "ChartDataset":
        return cls(error=error)

    @property
    def diagnostic(self) -> Optional[str]:
        return self.error


# ---------------------------------------------------------------------------
# Step ledger & terminal report
# ---------------------------------------------------------------------------

class StepStatus(str, Enum):
    SUCCEEDED = "succeeded"
    DEGRADED = "degraded"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepRecord(Contract):
    name: str
    status: StepStatus
    detail: Optional[str] = None
    duration_seconds: Optional[float] = None


class MarketReport(Contract):
    report_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    query: Query
    created_at: datetime = Field(default_factory=datetime.utcnow)
    competitors: CompetitorSet
    reviews: Tuple[ReviewBundle, ...] = ()
    trends: TrendSnapshot
    discovered_urls: Tuple[str, ...] = ()
    page_insights: Tuple[PageInsight, ...] = ()
    chart_data: ChartDataset = Field(default_factory=ChartDataset)
    summary: str = ""
    steps: Tuple[StepRecord, ...] = ()

    def step(self, name: str) -> Optional[StepRecord]:
        return next((s for s in self.steps if s.name == name), None)

    @property
    def degraded_steps(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.steps if s.status is not StepStatus.SUCCEEDED)
