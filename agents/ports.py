"""
External capability ports.

The pipeline depends on these abstract operations only. Concrete adapters
live in `agents.llm_client`, `agents.web` and `agents.stores`; offline stubs
live in `agents.mock`. Ports are constructed once per run and passed into
each step explicitly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Type, TypeVar

from models.schemas import MarketReport, Store

T = TypeVar("T")


@dataclass(frozen=True)
class FetchedPage:
    url: str
    content: str
    status_code: int


class InferencePort(ABC):

    @abstractmethod
    async def generate_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        contract: Type[T],
        max_tokens: Optional[int] = None,
    ) -> T:
        """
        Return a value that already satisfies `contract`.
        Raises InferenceError (or OutputContractError) otherwise.
        """
        raise NotImplementedError

    @abstractmethod
    async def generate_text(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Free-form completion. Raises InferenceError."""
        raise NotImplementedError


class PageFetcher(ABC):

    @abstractmethod
    async def fetch_page(self, url: str, render_js: bool = False) -> FetchedPage:
        """Raw content retrieval. Raises FetchError on non-2xx or block signals."""
        raise NotImplementedError


class WebSearcher(ABC):

    @abstractmethod
    async def search_web(self, query: str) -> List[str]:
        """Ordered, deduplicated candidate URLs (at most a handful)."""
        raise NotImplementedError


class StoreLookup(ABC):

    @abstractmethod
    async def lookup_store_listing(self, name: str, store: Store) -> Optional[str]:
        """Listing URL for `name` on `store`, or None. Never raises."""
        raise NotImplementedError


class ReportSink(ABC):

    @abstractmethod
    def persist(self, report: MarketReport) -> str:
        """Store the report and return its record id."""
        raise NotImplementedError


@dataclass
class CapabilityPorts:
    """Bundle of the ports a pipeline run needs."""
    inference: InferencePort
    fetcher: PageFetcher
    searcher: WebSearcher
    store_lookup: StoreLookup
    sink: ReportSink
