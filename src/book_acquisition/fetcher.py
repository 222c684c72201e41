"""
Resilient fetcher for book-acquisition.

Sends a request through an ordered list of relay endpoints. Each relay gets
a fixed number of attempts with a fixed backoff before the next relay is
tried. Relays are tried one after another, never raced.
"""

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from .config import DEFAULT_RELAYS, FetchConfig
from .errors import FetchFailure

logger = logging.getLogger(__name__)

# Failures that count against an attempt. ValueError covers undecodable JSON.
RETRYABLE_ERRORS = (httpx.HTTPError, ValueError)


def build_relay_url(template: str, target_url: str) -> str:
    """Wrap a target URL into a relay template with a `{url}` placeholder."""
    if template == "{url}":
        return target_url
    return template.format(url=quote(target_url, safe=""))


class RelayFetcher:
    """
    Fetches a URL through relays with per-relay retries.

    No state is kept between `fetch` calls.
    """

    def __init__(
        self,
        relays: list[str] | None = None,
        attempts_per_relay: int = 2,
        backoff_seconds: float = 1.0,
        timeout_seconds: float = 15.0,
    ):
        """
        Initialize the fetcher.

        Args:
            relays: Relay URL templates, each with a `{url}` placeholder
            attempts_per_relay: Attempts per relay before moving on
            backoff_seconds: Fixed wait between attempts on the same relay
            timeout_seconds: Per-request timeout
        """
        self.relays = list(relays) if relays is not None else list(DEFAULT_RELAYS)
        self.attempts_per_relay = max(1, attempts_per_relay)
        self.backoff_seconds = backoff_seconds
        self.timeout = timeout_seconds

    @classmethod
    def from_config(cls, config: FetchConfig) -> "RelayFetcher":
        return cls(
            relays=config.relays,
            attempts_per_relay=config.attempts_per_relay,
            backoff_seconds=config.backoff_seconds,
            timeout_seconds=config.timeout_seconds,
        )

    def relay_urls(self, target_url: str) -> list[str]:
        """All relay URLs for a target, in the order they are tried."""
        return [build_relay_url(template, target_url) for template in self.relays]

    async def fetch(self, target_url: str, expect_json: bool = True) -> Any:
        """
        Fetch a URL through the relay chain.

        Args:
            target_url: The real upstream URL
            expect_json: Parse the body as JSON (otherwise return text)

        Returns:
            Parsed JSON data or the raw response text

        Raises:
            FetchFailure: every relay and attempt failed
        """
        last_error: BaseException | None = None

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for relay_url in self.relay_urls(target_url):
                try:
                    return await self._fetch_via_relay(client, relay_url, expect_json)
                except RETRYABLE_ERRORS as e:
                    logger.warning(f"Relay exhausted for {relay_url}: {e}")
                    last_error = e

        raise FetchFailure(target_url, last_error)

    async def _fetch_via_relay(
        self,
        client: httpx.AsyncClient,
        relay_url: str,
        expect_json: bool,
    ) -> Any:
        """Try one relay up to `attempts_per_relay` times."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts_per_relay),
            wait=wait_fixed(self.backoff_seconds),
            sleep=asyncio.sleep,
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                logger.debug(
                    f"Attempt {attempt.retry_state.attempt_number} via {relay_url}"
                )
                response = await client.get(relay_url, follow_redirects=True)
                response.raise_for_status()
                if expect_json:
                    return response.json()
                return response.text
