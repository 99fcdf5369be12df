"""Reverse-dependency graph expansion."""

from __future__ import annotations

import logging

from e18e_analyzer.analyzers.libraries_io import LibrariesIoFetcher
from e18e_analyzer.cache import GraphCache
from e18e_analyzer.config import AnalyzerConfig
from e18e_analyzer.models.schemas import Candidate, DependentPackage, DependentRepo, GraphData
from e18e_analyzer.utils.rate_limiter import parallel_map

logger = logging.getLogger(__name__)


class GraphExpander:
    """Builds GraphData for every candidate, serving from cache where possible.

    Two phases run for cache misses:
    1. Dependent counts for every missed package
    2. Top dependent repositories, only for packages with enough dependents
       to matter for cascade impact

    Usage:
        expander = GraphExpander(config, fetcher, cache)
        graph = await expander.expand(candidates)
    """

    def __init__(
        self,
        config: AnalyzerConfig,
        fetcher: LibrariesIoFetcher | None,
        cache: GraphCache | None = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.cache = cache

    async def expand(self, candidates: list[Candidate]) -> dict[str, GraphData]:
        """Return graph data keyed by module name for every candidate.

        Args:
            candidates: Candidates to expand.

        Returns:
            One GraphData per candidate. All-zero records when no API key is
            configured.
        """
        if self.fetcher is None or not self.config.libraries_io_api_key:
            logger.warning("LIBRARIES_IO_API_KEY not set, skipping dependency graph expansion")
            return {c.module_name: GraphData() for c in candidates}

        graph: dict[str, GraphData] = {}
        misses: list[Candidate] = []
        for candidate in candidates:
            cached = self.cache.get(candidate.module_name) if self.cache else None
            if cached is not None:
                graph[candidate.module_name] = cached
            else:
                misses.append(candidate)

        hits = len(candidates) - len(misses)
        if hits:
            logger.info(f"{hits} packages served from cache, {len(misses)} to fetch")
        if not misses:
            return graph

        fetched = await self._fetch_counts(misses)
        fetched = await self._fetch_top_repos(misses, fetched)

        if self.cache is not None:
            for name, data in fetched.items():
                self.cache.set(name, data)

        graph.update(fetched)
        return {c.module_name: graph[c.module_name] for c in candidates}

    async def _fetch_counts(self, misses: list[Candidate]) -> dict[str, GraphData]:
        logger.info(f"Fetching dependent counts for {len(misses)} packages...")
        completed = 0

        async def fetch_one(candidate: Candidate, _index: int) -> GraphData:
            nonlocal completed
            info = await self.fetcher.fetch_package_info(candidate.module_name)
            completed += 1
            if completed % 50 == 0:
                logger.info(f"{completed}/{len(misses)} packages...")
            if info is None:
                return GraphData()
            return GraphData(
                dependent_count=info.dependents_count,
                dependent_repos_count=info.dependent_repos_count,
            )

        results = await parallel_map(misses, self.config.graph_concurrency, fetch_one)
        return {c.module_name: data for c, data in zip(misses, results)}

    async def _fetch_top_repos(
        self,
        misses: list[Candidate],
        fetched: dict[str, GraphData],
    ) -> dict[str, GraphData]:
        threshold = self.config.graph_dependents_threshold
        high_impact = [c for c in misses if fetched[c.module_name].dependent_count >= threshold]
        if not high_impact:
            return fetched

        logger.info(f"Fetching top dependents for {len(high_impact)} high-impact packages...")
        completed = 0

        async def fetch_one(candidate: Candidate, _index: int) -> list[DependentRepo]:
            nonlocal completed
            repos = await self.fetcher.fetch_top_dependent_repos(
                candidate.module_name, per_page=self.config.graph_top_repos
            )
            completed += 1
            if completed % 25 == 0:
                logger.info(f"{completed}/{len(high_impact)} repos...")

            seen: set[str] = set()
            unique = []
            for repo in repos:
                if repo.full_name in seen:
                    continue
                seen.add(repo.full_name)
                unique.append(
                    DependentRepo(name=repo.full_name, stars=repo.stargazers_count, pushed_at=repo.pushed_at)
                )
            return unique

        results = await parallel_map(high_impact, self.config.graph_concurrency, fetch_one)
        updated = dict(fetched)
        for candidate, repos in zip(high_impact, results):
            updated[candidate.module_name] = fetched[candidate.module_name].model_copy(
                update={"top_dependent_repos": repos}
            )
        return updated


def merge_dependent_packages(
    graph_data: GraphData,
    dependents: list[str],
    repo_urls: dict[str, str | None],
) -> GraphData:
    """Return a copy of graph_data with its direct package dependents set.

    Stars start at zero; GitHub enrichment of target repos fills them in.
    """
    packages = [
        DependentPackage(name=name, stars=0, repo_url=repo_urls.get(name))
        for name in dependents
    ]
    return graph_data.model_copy(update={"top_dependent_packages": packages})


def merge_warehouse_dependents(
    graph: dict[str, GraphData],
    warehouse: dict[str, list[str]],
    repo_urls: dict[str, str | None],
) -> dict[str, GraphData]:
    """Merge warehouse dependents into a new graph mapping.

    Only packages already present in the graph are updated.
    """
    merged = dict(graph)
    for name, dependents in warehouse.items():
        if name in merged:
            merged[name] = merge_dependent_packages(merged[name], dependents, repo_urls)
    return merged
