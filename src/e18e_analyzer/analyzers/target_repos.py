"""Invert package scores into consumer repositories worth a bundled PR.

A repository that depends on several replaceable packages can get one PR
that removes all of them. Repositories are scored on:
- reach: stars and aggregate downloads of the packages involved
- receptiveness: same formula as package merge probability
- bundle opportunity: how many replaceable packages one PR covers
- aggregate effort: download-weighted effort across those packages
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import datetime, timezone

from e18e_analyzer.adapters.base import normalize_full_name, parse_repo_full_name
from e18e_analyzer.adapters.npm import NpmAdapter
from e18e_analyzer.analyzers.github import GitHubFetcher
from e18e_analyzer.analyzers.graph import merge_warehouse_dependents
from e18e_analyzer.analyzers.scorer import min_max_normalizer, receptiveness
from e18e_analyzer.config import AnalyzerConfig
from e18e_analyzer.models.schemas import (
    GraphData,
    ReplacementOpportunity,
    ScoredPackage,
    ScoredTargetRepo,
    TargetRepo,
)

logger = logging.getLogger(__name__)

# Type-definition monorepo; depends on everything but is not a real consumer
EXCLUDED_REPOS = frozenset({"DefinitelyTyped/DefinitelyTyped"})
MIN_OPPORTUNITIES = 2


def _add_opportunity(
    repos: dict[str, TargetRepo],
    full_name: str,
    stars: int,
    pushed_at: str | None,
    opportunity: ReplacementOpportunity,
) -> None:
    repo = repos.get(full_name)
    if repo is None:
        repos[full_name] = TargetRepo(
            repo_full_name=full_name,
            repo_url=f"https://github.com/{full_name}",
            stars=stars,
            pushed_at=pushed_at,
            opportunities=[opportunity],
        )
        return
    repo.stars = max(repo.stars, stars)
    if all(o.module_name != opportunity.module_name for o in repo.opportunities):
        repo.opportunities.append(opportunity)


def invert_to_target_repos(
    scored: list[ScoredPackage],
    graph: dict[str, GraphData],
) -> dict[str, TargetRepo]:
    """Group replaceable packages by the repositories that depend on them.

    Package-level dependents are preferred; repository-level dependents are
    used only when a package has no package-level list.

    Args:
        scored: Scored packages.
        graph: Graph data keyed by module name.

    Returns:
        TargetRepos keyed by normalized ``owner/repo``.
    """
    repos: dict[str, TargetRepo] = {}

    for package in scored:
        graph_data = graph.get(package.module_name)
        if graph_data is None:
            continue

        opportunity = ReplacementOpportunity(
            module_name=package.module_name,
            replacement=package.candidate.replacement,
            replacement_type=package.candidate.replacement_type,
            effort_multiplier=package.effort_multiplier,
            weekly_downloads=package.weekly_downloads,
        )

        if graph_data.top_dependent_packages:
            for dependent in graph_data.top_dependent_packages:
                full_name = parse_repo_full_name(dependent.repo_url)
                if full_name is None:
                    continue
                _add_opportunity(repos, full_name, dependent.stars, None, opportunity)
        else:
            for dependent_repo in graph_data.top_dependent_repos:
                full_name = normalize_full_name(dependent_repo.name)
                _add_opportunity(
                    repos, full_name, dependent_repo.stars, dependent_repo.pushed_at, opportunity
                )

    return repos


def filter_target_repos(repos: dict[str, TargetRepo]) -> list[TargetRepo]:
    """Keep repositories that offer a bundled PR (two or more packages)."""
    return [
        repo
        for repo in repos.values()
        if len(repo.opportunities) >= MIN_OPPORTUNITIES and repo.repo_full_name not in EXCLUDED_REPOS
    ]


async def enrich_target_repos(
    repos: list[TargetRepo],
    github: GitHubFetcher,
    concurrency: int = 10,
) -> list[TargetRepo]:
    """Attach GitHub health to each repository.

    Returns new records. A fetched star count can only raise ``stars``.
    """
    if not github.enabled:
        logger.info("No GITHUB_TOKEN, skipping target repo enrichment")
        return list(repos)

    by_url = await github.fetch_many(
        [repo.repo_url for repo in repos],
        concurrency=concurrency,
        progress_every=25,
    )
    return [
        repo.model_copy(
            update={
                "health": by_url[repo.repo_url],
                "stars": max(repo.stars, by_url[repo.repo_url].stars),
            }
        )
        for repo in repos
    ]


def _total_downloads(repo: TargetRepo) -> int:
    return sum(o.weekly_downloads for o in repo.opportunities)


def aggregate_effort(repo: TargetRepo) -> float:
    """Download-weighted mean effort; 0.5 when no downloads are known."""
    total = _total_downloads(repo)
    if total <= 0:
        return 0.5
    return sum(o.effort_multiplier * o.weekly_downloads for o in repo.opportunities) / total


def score_target_repos(
    repos: list[TargetRepo],
    now: Callable[[], datetime] | None = None,
) -> list[ScoredTargetRepo]:
    """Score and rank target repositories.

    Args:
        repos: Filtered, enriched repositories.
        now: Clock for ``computed_at``.

    Returns:
        ScoredTargetRepos sorted by composite score descending, ranked 1..N.
    """
    if not repos:
        return []

    computed_at = (now or (lambda: datetime.now(timezone.utc)))()

    star_values = [math.log10(r.stars + 1) for r in repos]
    download_values = [math.log10(_total_downloads(r) + 1) for r in repos]
    star_norm = min_max_normalizer(star_values)
    download_norm = min_max_normalizer(download_values)

    max_opportunities = max(len(r.opportunities) for r in repos)
    log_max = math.log2(max_opportunities) or 1

    scored = []
    for repo, stars, downloads in zip(repos, star_values, download_values):
        reach = 0.6 * star_norm(stars) + 0.4 * download_norm(downloads)
        receptive = receptiveness(repo.health)
        bundle = min(1.0, math.log2(len(repo.opportunities)) / log_max)
        effort = aggregate_effort(repo)
        scored.append(
            ScoredTargetRepo(
                **repo.model_dump(exclude={"opportunities", "health"}),
                opportunities=repo.opportunities,
                health=repo.health,
                reach_score=reach,
                receptiveness_score=receptive,
                bundle_opportunity=bundle,
                aggregate_effort=effort,
                composite_score=reach * receptive * bundle * effort,
                computed_at=computed_at,
            )
        )

    scored.sort(key=lambda r: r.composite_score, reverse=True)
    for i, repo in enumerate(scored):
        repo.rank = i + 1
    return scored


class TargetRepoAnalyzer:
    """Runs the target-repo stages end to end.

    Usage:
        analyzer = TargetRepoAnalyzer(config, npm, github)
        repos = await analyzer.compute(scored, graph, warehouse_deps)
    """

    def __init__(self, config: AnalyzerConfig, npm: NpmAdapter, github: GitHubFetcher) -> None:
        self.config = config
        self.npm = npm
        self.github = github

    async def compute(
        self,
        scored: list[ScoredPackage],
        graph: dict[str, GraphData],
        warehouse_deps: dict[str, list[str]] | None = None,
    ) -> list[ScoredTargetRepo]:
        """Merge warehouse dependents, invert, filter, enrich and score.

        Args:
            scored: Scored packages.
            graph: Graph data keyed by module name. Not modified.
            warehouse_deps: Direct dependents per package from BigQuery.

        Returns:
            Ranked target repositories.
        """
        if warehouse_deps:
            dependents = list(dict.fromkeys(d for deps in warehouse_deps.values() for d in deps))
            logger.info(f"Resolving repo URLs for {len(dependents)} BigQuery dependents...")
            repo_urls = await self.npm.resolve_repo_urls(dependents)
            graph = merge_warehouse_dependents(graph, warehouse_deps, repo_urls)

        logger.info("Inverting package data to target repos...")
        inverted = invert_to_target_repos(scored, graph)
        logger.info(f"Found {len(inverted)} unique repos across all packages")

        filtered = filter_target_repos(inverted)
        logger.info(f"{len(filtered)} repos after filtering")

        logger.info(f"Enriching {len(filtered)} target repos with GitHub data...")
        enriched = await enrich_target_repos(filtered, self.github, self.config.github_concurrency)

        logger.info("Scoring target repos...")
        return score_target_repos(enriched)
