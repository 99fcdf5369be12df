"""Join candidates with downloads, registry metadata and repository health."""

from __future__ import annotations

import logging

from e18e_analyzer.adapters.npm import NpmAdapter
from e18e_analyzer.analyzers.github import GitHubFetcher
from e18e_analyzer.config import AnalyzerConfig
from e18e_analyzer.models.schemas import (
    Candidate,
    GraphData,
    NpmMetadata,
    PackageData,
    RepoHealth,
    TopDependent,
)

logger = logging.getLogger(__name__)


class Enricher:
    """Builds PackageData records for scoring.

    Usage:
        enricher = Enricher(config, npm, github)
        packages = await enricher.enrich(candidates, graph)
    """

    def __init__(self, config: AnalyzerConfig, npm: NpmAdapter, github: GitHubFetcher) -> None:
        self.config = config
        self.npm = npm
        self.github = github

    async def enrich(
        self,
        candidates: list[Candidate],
        graph: dict[str, GraphData],
    ) -> list[PackageData]:
        """Enrich every candidate, in input order.

        Args:
            candidates: Candidates to enrich.
            graph: Graph data keyed by module name.

        Returns:
            One PackageData per candidate. Missing signals take their
            documented defaults.
        """
        names = [c.module_name for c in candidates]

        logger.info("Fetching download counts...")
        downloads = await self.npm.fetch_bulk_downloads(names)

        logger.info(f"Fetching npm metadata for {len(names)} packages...")
        metadata = await self.npm.fetch_all_metadata(names)

        health = await self._fetch_health(names, metadata)

        packages = []
        for candidate in candidates:
            name = candidate.module_name
            graph_data = graph.get(name) or GraphData()
            meta = metadata.get(name) or NpmMetadata()
            packages.append(
                PackageData(
                    module_name=name,
                    candidate=candidate,
                    weekly_downloads=downloads.get(name, 0),
                    last_publish_date=meta.last_publish_date,
                    repo_url=meta.repo_url,
                    is_deprecated=meta.is_deprecated,
                    dependent_count=graph_data.dependent_count,
                    # Repo stars stand in for dependent downloads
                    top_dependents=[
                        TopDependent(name=repo.name, downloads=repo.stars)
                        for repo in graph_data.top_dependent_repos
                    ],
                    health=health.get(name, RepoHealth()),
                )
            )
        return packages

    async def _fetch_health(
        self,
        names: list[str],
        metadata: dict[str, NpmMetadata],
    ) -> dict[str, RepoHealth]:
        """Fetch each distinct repository once and fan results out to packages."""
        if not self.github.enabled:
            logger.info("No GITHUB_TOKEN, skipping GitHub enrichment")
            return {}

        packages_by_repo: dict[str, list[str]] = {}
        for name in names:
            repo_url = metadata[name].repo_url if name in metadata else None
            if repo_url:
                packages_by_repo.setdefault(repo_url, []).append(name)

        logger.info(f"Fetching GitHub data for {len(packages_by_repo)} unique repos...")
        by_repo = await self.github.fetch_many(
            list(packages_by_repo),
            concurrency=self.config.github_concurrency,
            progress_every=50,
        )

        health: dict[str, RepoHealth] = {}
        for repo_url, package_names in packages_by_repo.items():
            for name in package_names:
                health[name] = by_repo[repo_url]
        return health
