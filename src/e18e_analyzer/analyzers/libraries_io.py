"""libraries.io API fetcher for reverse-dependency counts.

API docs: https://libraries.io/api
Requires an API key; the free tier allows 60 requests per minute.
"""

from __future__ import annotations

import logging
import urllib.parse

import httpx
from pydantic import TypeAdapter, ValidationError

from e18e_analyzer.models.responses import LibrariesIoDependentRepo, LibrariesIoPackage
from e18e_analyzer.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

_DEPENDENT_REPOS = TypeAdapter(list[LibrariesIoDependentRepo])


class LibrariesIoFetcher:
    """Fetches dependent counts and top dependent repositories."""

    BASE_URL = "https://libraries.io/api"
    PLATFORM = "NPM"

    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient,
        requests_per_minute: int = 55,
        limiter: RateLimiter | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            api_key: libraries.io API key.
            client: Shared httpx client.
            requests_per_minute: Request budget, kept under the free tier.
            limiter: Pre-built limiter, mainly for tests.
        """
        self._api_key = api_key
        self.limiter = limiter or RateLimiter(requests_per_minute, client)

    def _package_url(self, name: str) -> str:
        return f"{self.BASE_URL}/{self.PLATFORM}/{urllib.parse.quote(name, safe='')}"

    async def _fetch(self, url: str, params: dict, name: str) -> dict | list | None:
        """GET a libraries.io endpoint; None on any failure.

        The API key travels in the query string, so URLs are never logged.
        """
        try:
            response = await self.limiter.get(url, params={"api_key": self._api_key, **params})
            if response.status_code == 404:
                logger.debug(f"libraries.io: Not found: {name}")
                return None
            if not response.is_success:
                logger.warning(f"libraries.io error for {name}: {response.status_code}")
                return None
            return response.json()
        except httpx.RequestError as e:
            logger.warning(f"libraries.io fetch failed for {name}: {type(e).__name__}")
            return None
        except ValueError as e:
            logger.warning(f"libraries.io JSON decode error for {name}: {e}")
            return None

    async def fetch_package_info(self, name: str) -> LibrariesIoPackage | None:
        """Fetch package-level dependent counts.

        Args:
            name: npm package name.

        Returns:
            LibrariesIoPackage, or None if not found or the request failed.
        """
        data = await self._fetch(self._package_url(name), {}, name)
        if data is None:
            return None
        try:
            return LibrariesIoPackage.model_validate(data)
        except ValidationError as e:
            logger.warning(f"libraries.io unexpected payload for {name}: {e}")
            return None

    async def fetch_top_dependent_repos(
        self,
        name: str,
        per_page: int = 30,
    ) -> list[LibrariesIoDependentRepo]:
        """Fetch the highest-ranked repositories that depend on a package.

        Args:
            name: npm package name.
            per_page: Number of repositories to request.

        Returns:
            Dependent repositories in rank order; empty on failure.
        """
        url = f"{self._package_url(name)}/dependent_repositories"
        data = await self._fetch(url, {"per_page": per_page, "sort": "rank"}, name)
        if data is None:
            return []
        try:
            return _DEPENDENT_REPOS.validate_python(data)
        except ValidationError as e:
            logger.warning(f"libraries.io unexpected dependents payload for {name}: {e}")
            return []
