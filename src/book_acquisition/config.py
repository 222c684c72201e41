"""
Configuration for book-acquisition.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_RELAYS = [
    "https://api.allorigins.win/raw?url={url}",
    "https://corsproxy.io/?{url}",
]


def _resolve_key(api_key: str | None, api_key_env: str | None) -> str | None:
    if api_key:
        return api_key.strip() or None
    if api_key_env:
        value = os.environ.get(api_key_env, "").strip()
        return value or None
    return None


@dataclass
class FetchConfig:
    """Relay and retry settings for outbound requests."""

    relays: list[str] = field(default_factory=lambda: list(DEFAULT_RELAYS))
    attempts_per_relay: int = 2
    backoff_seconds: float = 1.0
    timeout_seconds: float = 15.0


@dataclass
class CatalogConfig:
    """JSON catalog API configuration."""

    api_base: str = "https://www.aladin.co.kr/ttb/api"
    api_key: str | None = None
    api_key_env: str | None = "ACQUISITION_CATALOG_KEY"
    max_results: int = 50
    recency_days: int = 365
    excluded_genre_marker: str = "만화"  # comics

    def get_api_key(self) -> str | None:
        """Get API key from config or environment."""
        return _resolve_key(self.api_key, self.api_key_env)


@dataclass
class RecommendationConfig:
    """XML recommendation feed configuration."""

    api_url: str = "https://nl.go.kr/NL/search/openApi/saseoApi.do"
    api_key: str | None = None
    api_key_env: str | None = "ACQUISITION_RECOMMENDATION_KEY"
    page_size: int = 50
    id_prefix: str = "nlk"

    def get_api_key(self) -> str | None:
        """Get API key from config or environment."""
        return _resolve_key(self.api_key, self.api_key_env)


@dataclass
class AcquisitionConfig:
    """Complete book-acquisition configuration."""

    db_path: Path = field(default_factory=lambda: Path("acquisition.db"))
    fetch: FetchConfig = field(default_factory=FetchConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    recommendation: RecommendationConfig = field(default_factory=RecommendationConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AcquisitionConfig":
        """Create config from a dictionary (e.g., from YAML)."""
        config = cls()

        if "db_path" in data:
            config.db_path = Path(data["db_path"])

        if "fetch" in data:
            fetch = data["fetch"]
            config.fetch = FetchConfig(
                relays=list(fetch.get("relays", DEFAULT_RELAYS)),
                attempts_per_relay=fetch.get("attempts_per_relay", 2),
                backoff_seconds=fetch.get("backoff_seconds", 1.0),
                timeout_seconds=fetch.get("timeout_seconds", 15.0),
            )

        if "catalog" in data:
            cat = data["catalog"]
            config.catalog = CatalogConfig(
                api_base=cat.get("api_base", config.catalog.api_base),
                api_key=cat.get("api_key"),
                api_key_env=cat.get("api_key_env", config.catalog.api_key_env),
                max_results=cat.get("max_results", 50),
                recency_days=cat.get("recency_days", 365),
                excluded_genre_marker=cat.get(
                    "excluded_genre_marker", config.catalog.excluded_genre_marker
                ),
            )

        if "recommendation" in data:
            rec = data["recommendation"]
            config.recommendation = RecommendationConfig(
                api_url=rec.get("api_url", config.recommendation.api_url),
                api_key=rec.get("api_key"),
                api_key_env=rec.get("api_key_env", config.recommendation.api_key_env),
                page_size=rec.get("page_size", 50),
                id_prefix=rec.get("id_prefix", "nlk"),
            )

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "AcquisitionConfig":
        """Load config from a YAML file, optionally nested under `acquisition:`."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if "acquisition" in data:
            data = data["acquisition"] or {}

        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for JSON serialization (no secrets)."""
        return {
            "db_path": str(self.db_path),
            "fetch": {
                "relays": self.fetch.relays,
                "attempts_per_relay": self.fetch.attempts_per_relay,
                "backoff_seconds": self.fetch.backoff_seconds,
                "timeout_seconds": self.fetch.timeout_seconds,
            },
            "catalog": {
                "api_base": self.catalog.api_base,
                "max_results": self.catalog.max_results,
                "recency_days": self.catalog.recency_days,
                "excluded_genre_marker": self.catalog.excluded_genre_marker,
            },
            "recommendation": {
                "api_url": self.recommendation.api_url,
                "page_size": self.recommendation.page_size,
                "id_prefix": self.recommendation.id_prefix,
            },
        }
