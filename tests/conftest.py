"""Pytest configuration and fixtures."""

from datetime import datetime, timezone

import httpx
import pytest

from e18e_analyzer.models.schemas import (
    Candidate,
    CandidateSource,
    PackageData,
    RepoHealth,
    ReplacementType,
)
from e18e_analyzer.utils.rate_limiter import RateLimiter

FIXED_NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def fixed_now():
    """Clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def make_limiter():
    """Build a rate limiter that never actually sleeps."""

    def factory(client: httpx.AsyncClient, requests_per_minute: int = 6000) -> RateLimiter:
        return RateLimiter(requests_per_minute, client, sleep=no_sleep)

    return factory


@pytest.fixture
def make_candidate():
    """Build a candidate with sensible defaults."""

    def factory(
        name: str = "left-pad",
        source: CandidateSource = CandidateSource.MODULE_REPLACEMENTS,
        replacement_type: ReplacementType = ReplacementType.NATIVE,
        replacement: str = "String.prototype.padStart()",
        doc_path: str | None = None,
    ) -> Candidate:
        return Candidate(
            module_name=name,
            source=source,
            replacement_type=replacement_type,
            replacement=replacement,
            doc_path=doc_path,
        )

    return factory


@pytest.fixture
def make_package(make_candidate):
    """Build enriched package data."""

    def factory(
        name: str = "left-pad",
        weekly_downloads: int = 1000,
        dependent_count: int = 10,
        health: RepoHealth | None = None,
        **candidate_kwargs,
    ) -> PackageData:
        return PackageData(
            module_name=name,
            candidate=make_candidate(name, **candidate_kwargs),
            weekly_downloads=weekly_downloads,
            dependent_count=dependent_count,
            health=health or RepoHealth(),
        )

    return factory


@pytest.fixture
def healthy_repo() -> RepoHealth:
    """Health record for an active, welcoming repository."""
    return RepoHealth(
        days_since_last_commit=10,
        days_since_last_release=30,
        open_pr_count=3,
        contributor_count_recent=8,
        has_contributing_md=True,
        external_prs_merged=8,
        external_prs_closed=10,
        stars=500,
    )
