"""End-to-end analysis pipeline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import httpx

from e18e_analyzer.adapters.npm import NpmAdapter
from e18e_analyzer.analyzers.bigquery import (
    BigQueryClient,
    ConfirmFn,
    DirectDependentsFetcher,
    default_confirm,
)
from e18e_analyzer.analyzers.enrich import Enricher
from e18e_analyzer.analyzers.github import GitHubFetcher
from e18e_analyzer.analyzers.graph import GraphExpander
from e18e_analyzer.analyzers.libraries_io import LibrariesIoFetcher
from e18e_analyzer.analyzers.scorer import Scorer
from e18e_analyzer.analyzers.target_repos import TargetRepoAnalyzer
from e18e_analyzer.cache import GraphCache, WarehouseCache
from e18e_analyzer.config import AnalyzerConfig
from e18e_analyzer.models.schemas import ScoredPackage, ScoredTargetRepo
from e18e_analyzer.output import write_outputs
from e18e_analyzer.sources import gather_candidates, sample_candidates
from e18e_analyzer.utils.rate_limiter import estimate_runtime

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outcome of one pipeline run."""

    scored: list[ScoredPackage] = field(default_factory=list)
    target_repos: list[ScoredTargetRepo] = field(default_factory=list)
    elapsed_seconds: float = 0.0


class AnalysisPipeline:
    """Orchestrates the full analysis run.

    Pipeline stages:
    1. Load the graph cache
    2. Gather (and optionally sample) candidates
    3. Expand the dependency graph
    4. Enrich with downloads, metadata and GitHub health
    5. Score and rank
    6. Fetch warehouse dependents and compute target repos
    7. Write outputs

    Usage:
        async with AnalysisPipeline(config) as pipeline:
            result = await pipeline.run()
    """

    def __init__(
        self,
        config: AnalyzerConfig,
        confirm: ConfirmFn = default_confirm,
        bigquery: BigQueryClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Analyzer configuration.
            confirm: Approval callback for the BigQuery cost estimate.
            bigquery: bq CLI client; replaceable in tests.
            transport: Optional httpx transport, used by tests to stub HTTP.
        """
        self.config = config
        self.confirm = confirm
        self.bigquery = bigquery or BigQueryClient(max_bytes_per_query=config.max_bytes_per_query)
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "AnalysisPipeline":
        """Set up shared HTTP client."""
        self._http_client = httpx.AsyncClient(
            timeout=self.config.http_timeout,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *args) -> None:
        """Clean up HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            raise RuntimeError("AnalysisPipeline must be used as an async context manager")
        return self._http_client

    async def run(self) -> PipelineResult:
        """Run every stage and write outputs.

        Returns:
            PipelineResult with scored packages, target repos and timing.
        """
        start = time.monotonic()
        config = self.config
        client = self.client

        npm = NpmAdapter(client, config.npm_rpm, config.npm_concurrency, config.download_chunk_size)
        github = GitHubFetcher(config.github_token, client, config.effective_github_rpm)
        libraries_io = (
            LibrariesIoFetcher(config.libraries_io_api_key, client, config.libraries_io_rpm)
            if config.libraries_io_api_key
            else None
        )

        graph_cache = GraphCache(config.graph_cache_path)
        if graph_cache.valid_count:
            logger.info(f"Loaded libraries.io cache: {graph_cache.valid_count} valid entries")

        logger.info("Step 1/6: Gathering candidates from all sources...")
        candidates = await gather_candidates(client=client, manifest_dir=config.module_replacements_dir)
        if config.limit > 0:
            candidates = sample_candidates(candidates, config.limit)
            logger.info(f"--limit {config.limit}: sampled {len(candidates)} candidates")
        logger.info(f"Processing {len(candidates)} candidates (est. {estimate_runtime(len(candidates))})")

        logger.info("Step 2/6: Expanding dependency graph...")
        graph = await GraphExpander(config, libraries_io, graph_cache).expand(candidates)
        with_dependents = sum(1 for g in graph.values() if g.dependent_count > 0)
        logger.info(f"{with_dependents}/{len(candidates)} packages have known dependents")

        logger.info("Step 3/6: Enriching with metrics...")
        enriched = await Enricher(config, npm, github).enrich(candidates, graph)
        graph_cache.update_freshness({p.module_name: p.last_publish_date for p in enriched})
        graph_cache.save()
        logger.info(f"Enriched {len(enriched)} packages, graph cache has {graph_cache.size} entries")

        logger.info("Step 4/6: Computing scores and rankings...")
        scored = Scorer().score_packages(enriched)

        logger.info("Step 5/6: Computing target repos...")
        warehouse_deps: dict[str, list[str]] = {}
        if await self.bigquery.is_available():
            fetcher = DirectDependentsFetcher(
                config,
                self.bigquery,
                npm,
                WarehouseCache(config.warehouse_cache_path),
                self.confirm,
            )
            warehouse_deps = await fetcher.fetch([c.module_name for c in candidates])
        else:
            logger.info("bq CLI not available, skipping BigQuery dependents")
        target_repos = await TargetRepoAnalyzer(config, npm, github).compute(scored, graph, warehouse_deps)

        logger.info("Step 6/6: Generating output files...")
        write_outputs(scored, target_repos, config.output_dir)

        elapsed = time.monotonic() - start
        logger.info(f"Done in {elapsed:.1f}s")
        return PipelineResult(scored=scored, target_repos=target_repos, elapsed_seconds=elapsed)
