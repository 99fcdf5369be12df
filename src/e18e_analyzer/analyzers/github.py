"""GitHub data fetcher for repository health signals."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone

import httpx
from pydantic import TypeAdapter, ValidationError

from e18e_analyzer.adapters.base import parse_github_owner_repo
from e18e_analyzer.models.responses import GitHubPull, GitHubRelease, GitHubRepoResponse
from e18e_analyzer.models.schemas import RepoHealth
from e18e_analyzer.utils.rate_limiter import RateLimiter, parallel_map

logger = logging.getLogger(__name__)

_PULLS = TypeAdapter(list[GitHubPull])
_RELEASES = TypeAdapter(list[GitHubRelease])

# Author associations that count as maintainers rather than outside contributors
INTERNAL_ASSOCIATIONS = frozenset({"OWNER", "MEMBER", "COLLABORATOR"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a GitHub ISO-8601 timestamp, None if absent or malformed."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class GitHubFetcher:
    """Fetches repository health from the GitHub REST API.

    Requires a personal access token; without one every lookup returns the
    empty RepoHealth record and no requests are made.
    """

    BASE_URL = "https://api.github.com"
    USER_AGENT = "e18e-analyzer"

    def __init__(
        self,
        token: str | None,
        client: httpx.AsyncClient,
        requests_per_minute: int | None = None,
        limiter: RateLimiter | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the fetcher.

        Args:
            token: GitHub personal access token.
            client: Shared httpx client.
            requests_per_minute: Request budget. Defaults to 4500 with a token
                (5000/hr limit) and 55 without.
            limiter: Pre-built limiter, mainly for tests.
            now: Clock used for day counts, injectable for tests.
        """
        self._token = token
        if requests_per_minute is None:
            requests_per_minute = 4500 if token else 55
        self.limiter = limiter or RateLimiter(requests_per_minute, client)
        self._now = now

    @property
    def enabled(self) -> bool:
        return bool(self._token)

    def _headers(self) -> dict[str, str]:
        """Get headers for GitHub API requests."""
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": self.USER_AGENT,
        }

    async def _fetch(self, path: str) -> dict | list | None:
        """Fetch from the GitHub API.

        Returns None when there is no token, on any non-2xx status, or on a
        transport or decode error.
        """
        if not self._token:
            return None
        try:
            response = await self.limiter.get(f"{self.BASE_URL}{path}", headers=self._headers())
            if not response.is_success:
                if response.status_code != 404:
                    logger.debug(f"GitHub API error {response.status_code}: {path}")
                return None
            return response.json()
        except httpx.RequestError as e:
            logger.warning(f"GitHub request error for {path}: {e}")
            return None
        except ValueError as e:
            logger.warning(f"GitHub JSON decode error for {path}: {e}")
            return None

    def days_since(self, value: str | None) -> int | None:
        """Whole days elapsed since an ISO timestamp."""
        moment = parse_timestamp(value)
        if moment is None:
            return None
        return (self._now() - moment).days

    async def fetch_repo_health(self, repo_url: str) -> RepoHealth:
        """Fetch health signals for a GitHub repository.

        Args:
            repo_url: Any URL containing ``github.com/owner/repo``.

        Returns:
            RepoHealth; the empty record if there is no token, the URL is not
            a GitHub repository, or the repository lookup fails.
        """
        parsed = parse_github_owner_repo(repo_url)
        if parsed is None or not self._token:
            return RepoHealth()
        owner, repo = parsed
        base = f"/repos/{owner}/{repo}"

        repo_data, pulls_data = await asyncio.gather(
            self._fetch(base),
            self._fetch(f"{base}/pulls?state=closed&per_page=100&sort=updated&direction=desc"),
        )
        if not isinstance(repo_data, dict):
            return RepoHealth()
        try:
            info = GitHubRepoResponse.model_validate(repo_data)
        except ValidationError as e:
            logger.warning(f"Unexpected GitHub repo payload for {owner}/{repo}: {e}")
            return RepoHealth()

        releases_data = await self._fetch(f"{base}/releases?per_page=1")
        latest_release = None
        if releases_data:
            try:
                releases = _RELEASES.validate_python(releases_data)
                latest_release = releases[0].published_at if releases else None
            except ValidationError:
                latest_release = None

        merged, closed = 0, 0
        if pulls_data:
            try:
                pulls = _PULLS.validate_python(pulls_data)
            except ValidationError:
                pulls = []
            for pr in pulls:
                if pr.author_association in INTERNAL_ASSOCIATIONS:
                    continue
                closed += 1
                if pr.merged_at:
                    merged += 1

        contributing = await self._fetch(f"{base}/contents/CONTRIBUTING.md")

        return RepoHealth(
            days_since_last_commit=self.days_since(info.pushed_at),
            days_since_last_release=self.days_since(latest_release),
            is_archived=info.archived,
            # open_issues_count includes issues as well as PRs
            open_pr_count=info.open_issues_count,
            contributor_count_recent=0,
            has_contributing_md=contributing is not None,
            external_prs_merged=merged,
            external_prs_closed=closed,
            stars=info.stargazers_count,
        )

    async def fetch_many(
        self,
        repo_urls: list[str],
        concurrency: int = 10,
        progress_every: int = 50,
    ) -> dict[str, RepoHealth]:
        """Fetch health for each unique repository URL once.

        Args:
            repo_urls: Repository URLs; duplicates are fetched once.
            concurrency: Worker pool size.
            progress_every: Log a progress line after this many repos.

        Returns:
            Mapping of repository URL to RepoHealth.
        """
        unique = list(dict.fromkeys(repo_urls))
        completed = 0

        async def fetch_one(url: str, _index: int) -> RepoHealth:
            nonlocal completed
            health = await self.fetch_repo_health(url)
            completed += 1
            if completed % progress_every == 0:
                logger.info(f"{completed}/{len(unique)} repos...")
            return health

        results = await parallel_map(unique, concurrency, fetch_one)
        return dict(zip(unique, results))
