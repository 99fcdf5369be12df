"""npm registry adapter."""

from __future__ import annotations

import logging
import urllib.parse

import httpx
from pydantic import ValidationError

from e18e_analyzer.adapters.base import normalize_git_url
from e18e_analyzer.models.responses import (
    NpmDownloadPoint,
    NpmPackument,
    NpmRepository,
    NpmSearchResponse,
)
from e18e_analyzer.models.schemas import NpmMetadata
from e18e_analyzer.utils.rate_limiter import RateLimiter, chunked, parallel_map

logger = logging.getLogger(__name__)


class NpmAdapter:
    """Adapter for the npm registry and downloads API.

    Data sources:
    - Package metadata: https://registry.npmjs.org/{package}
    - Download stats: https://api.npmjs.org/downloads/point/last-week/{packages}
    - Popularity search: https://registry.npmjs.org/-/v1/search

    All requests share one rate limiter; npm throttles aggressively on bursts.
    """

    REGISTRY_URL = "https://registry.npmjs.org"
    DOWNLOADS_URL = "https://api.npmjs.org/downloads/point/last-week"
    SEARCH_URL = "https://registry.npmjs.org/-/v1/search"

    ABBREVIATED_ACCEPT = "application/vnd.npm.install-v1+json"
    BULK_CHUNK_SIZE = 128
    SEARCH_PAGE_SIZE = 250
    SEARCH_PAGES = 2

    def __init__(
        self,
        client: httpx.AsyncClient,
        requests_per_minute: int = 100,
        concurrency: int = 10,
        chunk_size: int = BULK_CHUNK_SIZE,
        limiter: RateLimiter | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            client: Shared httpx client.
            requests_per_minute: Request budget for all npm endpoints.
            concurrency: Worker pool size for per-package requests.
            chunk_size: Maximum names per bulk downloads request.
            limiter: Pre-built limiter, mainly for tests.
        """
        self._client = client
        self.limiter = limiter or RateLimiter(requests_per_minute, client)
        self.concurrency = concurrency
        self.chunk_size = chunk_size

    @staticmethod
    def _encode_name(name: str) -> str:
        """URL-encode a package name for registry paths (scoped names included)."""
        return urllib.parse.quote(name, safe="")

    # --- Downloads ---

    async def fetch_bulk_downloads(self, names: list[str]) -> dict[str, int]:
        """Fetch last-week download counts for many packages.

        The bulk endpoint rejects scoped names (the slash is read as a path
        separator), so those are fetched one at a time.

        Args:
            names: Package names.

        Returns:
            Mapping of every requested name to its weekly downloads (0 if
            unknown).
        """
        results: dict[str, int] = {}
        unscoped = [n for n in names if not n.startswith("@")]
        scoped = [n for n in names if n.startswith("@")]

        for chunk in chunked(unscoped, self.chunk_size):
            # Downloads API expects raw names, no URI encoding
            url = f"{self.DOWNLOADS_URL}/{','.join(chunk)}"
            try:
                response = await self.limiter.get(url)
                if not response.is_success:
                    logger.warning(
                        f"Bulk download fetch failed ({response.status_code}), fetching individually..."
                    )
                    for name in chunk:
                        results[name] = await self.fetch_single_downloads(name)
                    continue
                results.update(self._parse_bulk(chunk, response.json()))
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Bulk download fetch error: {e}")
                for name in chunk:
                    results[name] = 0

        for name in scoped:
            results[name] = await self.fetch_single_downloads(name)

        return results

    @staticmethod
    def _parse_bulk(chunk: list[str], data: dict) -> dict[str, int]:
        if not isinstance(data, dict):
            return {name: 0 for name in chunk}
        # A single-name request gets the non-keyed point format back
        if len(chunk) == 1 and "downloads" in data:
            data = {chunk[0]: data}

        counts = {}
        for name in chunk:
            entry = data.get(name)
            try:
                counts[name] = NpmDownloadPoint.model_validate(entry).downloads if entry else 0
            except ValidationError:
                counts[name] = 0
        return counts

    async def fetch_single_downloads(self, name: str) -> int:
        """Fetch last-week downloads for one package, 0 on any failure."""
        try:
            response = await self.limiter.get(f"{self.DOWNLOADS_URL}/{name}")
            if not response.is_success:
                return 0
            return NpmDownloadPoint.model_validate(response.json()).downloads
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.debug(f"Download count failed for {name}: {e}")
            return 0

    # --- Metadata ---

    @staticmethod
    def _extract_repo_url(repository: NpmRepository | str | None) -> str | None:
        """Extract a GitHub URL from the npm ``repository`` field.

        Handles both ``{"type": "git", "url": "..."}`` and shorthand strings.
        """
        if repository is None:
            return None
        if isinstance(repository, str):
            return normalize_git_url(repository)
        if repository.url:
            return normalize_git_url(repository.url)
        return None

    async def fetch_metadata(self, name: str) -> NpmMetadata:
        """Fetch repository URL, last publish date and deprecation state.

        Args:
            name: Package name.

        Returns:
            NpmMetadata; the empty default if the package cannot be fetched.
        """
        url = f"{self.REGISTRY_URL}/{self._encode_name(name)}"
        try:
            response = await self.limiter.get(url)
            if not response.is_success:
                logger.debug(f"npm metadata {response.status_code} for {name}")
                return NpmMetadata()
            packument = NpmPackument.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.debug(f"npm metadata failed for {name}: {e}")
            return NpmMetadata()

        modified = packument.time.get("modified")
        latest = packument.dist_tags.get("latest")
        latest_version = packument.versions.get(latest) if latest else None

        return NpmMetadata(
            repo_url=self._extract_repo_url(packument.repository),
            last_publish_date=modified if isinstance(modified, str) else None,
            is_deprecated=bool(latest_version and latest_version.deprecated),
        )

    async def fetch_all_metadata(self, names: list[str]) -> dict[str, NpmMetadata]:
        """Fetch metadata for many packages with bounded concurrency."""
        completed = 0

        async def fetch_one(name: str, _index: int) -> NpmMetadata:
            nonlocal completed
            metadata = await self.fetch_metadata(name)
            completed += 1
            if completed % 100 == 0:
                logger.info(f"{completed}/{len(names)} metadata...")
            return metadata

        results = await parallel_map(names, self.concurrency, fetch_one)
        return dict(zip(names, results))

    async def resolve_repo_urls(self, names: list[str]) -> dict[str, str | None]:
        """Resolve GitHub repository URLs using abbreviated registry metadata.

        Args:
            names: Package names.

        Returns:
            Mapping of every name to its GitHub URL, or None.
        """
        headers = {"Accept": self.ABBREVIATED_ACCEPT}

        async def resolve_one(name: str, _index: int) -> str | None:
            url = f"{self.REGISTRY_URL}/{self._encode_name(name)}"
            try:
                response = await self.limiter.get(url, headers=headers)
                if not response.is_success:
                    return None
                packument = NpmPackument.model_validate(response.json())
            except (httpx.HTTPError, ValueError, ValidationError) as e:
                logger.debug(f"Repo URL lookup failed for {name}: {e}")
                return None
            return self._extract_repo_url(packument.repository)

        results = await parallel_map(names, self.concurrency, resolve_one)
        return dict(zip(names, results))

    # --- Search ---

    async def fetch_popular_packages(
        self,
        pages: int = SEARCH_PAGES,
        page_size: int = SEARCH_PAGE_SIZE,
    ) -> list[str]:
        """Return the most popular npm packages from the registry search API.

        Args:
            pages: Number of result pages to request.
            page_size: Results per page (npm caps this at 250).

        Returns:
            Unique package names in popularity order. Failed pages are skipped.
        """
        packages: list[str] = []
        for page in range(pages):
            params = {
                "text": "popularity:>0.5",
                "popularity": "1.0",
                "quality": "0.0",
                "maintenance": "0.0",
                "size": str(page_size),
                "from": str(page * page_size),
            }
            try:
                response = await self.limiter.get(self.SEARCH_URL, params=params)
                if not response.is_success:
                    logger.warning(f"npm search page {page} failed: {response.status_code}")
                    continue
                data = NpmSearchResponse.model_validate(response.json())
            except (httpx.HTTPError, ValueError, ValidationError) as e:
                logger.warning(f"npm search page {page} error: {e}")
                continue
            packages.extend(obj.package.name for obj in data.objects)
        # Adjacent search pages can overlap
        return list(dict.fromkeys(packages))
