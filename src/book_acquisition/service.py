"""
Entry points for fetching candidates and computing budget status.

AcquisitionService picks the adapter for a source, runs it through the
relay fetcher and applies the triage exclusion last. The module-level
helpers wrap a default-configured service.
"""

import logging
from collections.abc import Iterable
from datetime import datetime

from .budget import calculate_budget_status
from .catalog import CatalogClient
from .config import AcquisitionConfig
from .fetcher import RelayFetcher
from .merge import dedupe_by_id, exclude_triaged
from .models import Book, BudgetSettings, BudgetStatus, FetchSource, SearchTarget
from .recommendation import RecommendationClient

logger = logging.getLogger(__name__)

__all__ = [
    "AcquisitionService",
    "calculate_budget_status",
    "fetch_books",
    "search_books",
]


class AcquisitionService:
    """
    Fetches candidate books from the configured sources.

    Holds no state between calls beyond its configuration and fetcher.
    """

    def __init__(
        self,
        config: AcquisitionConfig | None = None,
        fetcher: RelayFetcher | None = None,
    ):
        """
        Initialize the service.

        Args:
            config: Configuration (defaults if not given)
            fetcher: Optional RelayFetcher (for testing)
        """
        self.config = config or AcquisitionConfig()
        self.fetcher = fetcher or RelayFetcher.from_config(self.config.fetch)

    def catalog_client(self, api_key: str | None = None) -> CatalogClient:
        """Build a catalog client; raises ConfigurationError without a key."""
        cat = self.config.catalog
        return CatalogClient(
            api_key=api_key or cat.get_api_key(),
            fetcher=self.fetcher,
            api_base=cat.api_base,
            max_results=cat.max_results,
            recency_days=cat.recency_days,
            excluded_genre_marker=cat.excluded_genre_marker,
        )

    def recommendation_client(self, api_key: str | None = None) -> RecommendationClient:
        """Build a recommendation client; raises ConfigurationError without a key."""
        rec = self.config.recommendation
        return RecommendationClient(
            api_key=api_key or rec.get_api_key(),
            fetcher=self.fetcher,
            api_url=rec.api_url,
            page_size=rec.page_size,
            id_prefix=rec.id_prefix,
        )

    async def fetch_books(
        self,
        source: FetchSource | str,
        catalog_key: str | None = None,
        recommendation_key: str | None = None,
        page: int = 1,
        exclude_ids: Iterable[str] = (),
    ) -> list[Book]:
        """
        Fetch one page of discovery candidates.

        Args:
            source: Which feed to read
            catalog_key: Catalog API key (falls back to config/env)
            recommendation_key: Recommendation feed key (falls back to config/env)
            page: 1-based page number
            exclude_ids: Ids already in review or confirmed

        Raises:
            ConfigurationError: the key for the requested source is missing
            FetchFailure: every relay and attempt failed
            SourceError: the catalog API reported an error
        """
        source = FetchSource(source)
        logger.info(f"Fetching {source.value} page {page}")

        if source is FetchSource.RECOMMENDATION:
            books = await self.recommendation_client(recommendation_key).fetch_page(page)
        elif source is FetchSource.COMBINED:
            books = await self.catalog_client(catalog_key).fetch_combined(page)
        else:
            books = await self.catalog_client(catalog_key).fetch_list(source, page)

        # Ids must be unique in every returned set, not only in combined mode
        return exclude_triaged(dedupe_by_id(books), exclude_ids)

    async def search_books(
        self,
        query: str,
        catalog_key: str | None = None,
        target: SearchTarget | str = SearchTarget.KEYWORD,
        page: int = 1,
        exclude_ids: Iterable[str] = (),
        now: datetime | None = None,
    ) -> list[Book]:
        """
        Search the catalog; no results is an empty list, not an error.

        Raises:
            ConfigurationError: no catalog key
            FetchFailure: every relay and attempt failed
            SourceError: the catalog API reported an error
        """
        client = self.catalog_client(catalog_key)
        books = await client.search(query, SearchTarget(target), page, now=now)
        logger.info(f"Search '{query}' ({SearchTarget(target).value}): {len(books)} books")
        return exclude_triaged(dedupe_by_id(books), exclude_ids)

    def budget_status(
        self,
        confirmed_books: Iterable[Book],
        settings: BudgetSettings,
    ) -> BudgetStatus:
        return calculate_budget_status(confirmed_books, settings)

    async def validate_keys(
        self,
        catalog_key: str | None = None,
        recommendation_key: str | None = None,
    ) -> dict[str, bool]:
        """Check which source keys are present and accepted upstream."""
        results = {"catalog": False, "recommendation": False}

        catalog_key = catalog_key or self.config.catalog.get_api_key()
        if catalog_key:
            results["catalog"] = await self.catalog_client(catalog_key).validate_key()

        recommendation_key = recommendation_key or self.config.recommendation.get_api_key()
        if recommendation_key:
            client = self.recommendation_client(recommendation_key)
            results["recommendation"] = await client.validate_key()

        return results


async def fetch_books(
    source: FetchSource | str,
    catalog_key: str | None = None,
    recommendation_key: str | None = None,
    page: int = 1,
) -> list[Book]:
    """Fetch a discovery page with default configuration."""
    return await AcquisitionService().fetch_books(
        source, catalog_key, recommendation_key, page
    )


async def search_books(
    query: str,
    catalog_key: str | None,
    target: SearchTarget | str = SearchTarget.KEYWORD,
    page: int = 1,
) -> list[Book]:
    """Search the catalog with default configuration."""
    return await AcquisitionService().search_books(query, catalog_key, target, page)
