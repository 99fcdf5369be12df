"""Direct-dependency lookups against the deps.dev BigQuery dataset.

Queries ``bigquery-public-data.deps_dev_v1.Dependencies`` through the ``bq``
CLI to find which popular npm packages directly depend on replaceable ones.

Every query is metered, so the workflow dry-runs its queries first, shows a
cost estimate, and only runs real batch queries after explicit approval.
Every real query also carries ``--maximum_bytes_billed``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError
from rich.console import Console

from e18e_analyzer.adapters.npm import NpmAdapter
from e18e_analyzer.cache import WarehouseCache
from e18e_analyzer.config import AnalyzerConfig
from e18e_analyzer.models.responses import DependentRow, SnapshotRow
from e18e_analyzer.utils.exec import ExecResult, run_command
from e18e_analyzer.utils.rate_limiter import chunked

logger = logging.getLogger(__name__)

Runner = Callable[[str, list[str]], Awaitable[ExecResult]]
ConfirmFn = Callable[[str], Awaitable[bool]]

MAX_BYTES_PER_QUERY = 25_000_000_000
SNAPSHOT_MAX_BYTES = 1_000_000_000

BYTES_PER_TIB = 1024**4
COST_PER_TIB = 6.25

SNAPSHOT_SQL = """
    SELECT MAX(Time) as latest
    FROM `bigquery-public-data.deps_dev_v1.Snapshots`
"""

_DRY_RUN_BYTES = re.compile(r"(\d+) bytes of data")


class BigQueryError(Exception):
    """Raised when a bq invocation fails or returns unusable output."""


class BigQueryClient:
    """Thin wrapper around the ``bq`` command-line tool."""

    def __init__(
        self,
        runner: Runner = run_command,
        max_bytes_per_query: int = MAX_BYTES_PER_QUERY,
    ) -> None:
        """Initialize the client.

        Args:
            runner: Async subprocess runner, replaceable in tests.
            max_bytes_per_query: Default billing cap for real queries.
        """
        self._run = runner
        self.max_bytes_per_query = max_bytes_per_query

    async def dry_run(self, sql: str) -> int:
        """Estimate the bytes a query would scan.

        Raises:
            BigQueryError: If bq fails or its output has no byte count.
        """
        result = await self._run("bq", ["query", "--dry_run", "--use_legacy_sql=false", "--", sql])
        if result.exit_code != 0:
            raise BigQueryError(f"bq dry run failed (exit {result.exit_code}): {result.stderr.strip()}")

        match = _DRY_RUN_BYTES.search(result.stdout)
        if not match:
            raise BigQueryError(f"Could not parse dry run output: {result.stdout.strip()}")
        return int(match.group(1))

    async def execute(self, sql: str, max_bytes: int | None = None) -> list[dict]:
        """Run a query and return its rows.

        Args:
            sql: Standard SQL.
            max_bytes: Billing cap; defaults to ``max_bytes_per_query``.

        Returns:
            Parsed JSON rows; empty when bq prints nothing or ``[]``.

        Raises:
            BigQueryError: If bq fails or prints something other than JSON rows.
        """
        cap = max_bytes if max_bytes is not None else self.max_bytes_per_query
        result = await self._run(
            "bq",
            [
                "query",
                "--format=json",
                "--use_legacy_sql=false",
                f"--maximum_bytes_billed={cap}",
                "--",
                sql,
            ],
        )
        if result.exit_code != 0:
            raise BigQueryError(f"bq query failed (exit {result.exit_code}): {result.stderr.strip()}")

        output = result.stdout.strip()
        if not output or output == "[]":
            return []
        try:
            rows = json.loads(output)
        except ValueError as e:
            raise BigQueryError(f"Could not parse bq output: {e}") from e
        if not isinstance(rows, list):
            raise BigQueryError("bq output is not a list of rows")
        return rows

    async def is_available(self) -> bool:
        """Check whether the ``bq`` CLI can be run."""
        try:
            result = await self._run("bq", ["version"])
        except OSError:
            return False
        return result.exit_code == 0

    async def find_latest_snapshot(self) -> str:
        """Return the timestamp of the newest deps.dev snapshot.

        Raises:
            BigQueryError: If the query fails or returns no snapshot.
        """
        rows = await self.execute(SNAPSHOT_SQL, max_bytes=SNAPSHOT_MAX_BYTES)
        try:
            latest = SnapshotRow.model_validate(rows[0]).latest if rows else None
        except ValidationError:
            latest = None
        if not latest:
            raise BigQueryError("Could not find latest snapshot date")
        return latest


def parse_snapshot_time(value: str) -> datetime:
    """Parse a bq timestamp such as ``2026-02-14 00:00:00 UTC``.

    Raises:
        BigQueryError: If the value is not a recognizable timestamp.
    """
    text = value.strip()
    if text.endswith(" UTC"):
        text = text[: -len(" UTC")]
    text = text.replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise BigQueryError(f"Unrecognized snapshot timestamp: {value}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def sql_list(names: list[str]) -> str:
    """Render names as a quoted, escaped SQL ``IN`` list."""
    escaped = (name.replace("\\", "\\\\").replace("'", "\\'") for name in names)
    return ", ".join(f"'{name}'" for name in escaped)


def build_dependents_sql(popular_batch: list[str], replaceable_names: list[str], snapshot_date: str) -> str:
    """Build the query for direct dependents within one snapshot day.

    Args:
        popular_batch: Popular packages whose dependencies are inspected.
        replaceable_names: Candidate packages to look for as dependencies.
        snapshot_date: Snapshot timestamp from ``find_latest_snapshot``.

    Returns:
        Standard SQL selecting ``(package, dep)`` pairs.
    """
    start = parse_snapshot_time(snapshot_date)
    end = start + timedelta(days=1)
    fmt = "%Y-%m-%d %H:%M:%S UTC"

    return f"""
    SELECT DISTINCT Name as package, Dependency.Name as dep
    FROM `bigquery-public-data.deps_dev_v1.Dependencies`
    WHERE SnapshotAt BETWEEN TIMESTAMP("{start.strftime(fmt)}") AND TIMESTAMP("{end.strftime(fmt)}")
      AND System = "NPM"
      AND Name IN ({sql_list(popular_batch)})
      AND MinimumDepth = 1
      AND Dependency.Name IN ({sql_list(replaceable_names)})
    """


def format_gb(num_bytes: int) -> str:
    return f"{num_bytes / 1e9:.2f}"


@dataclass
class CostEstimate:
    """Dry-run cost estimate for the whole batch workflow."""

    snapshot_bytes: int
    per_batch_bytes: int
    batch_count: int

    @property
    def batch_bytes(self) -> int:
        return self.per_batch_bytes * self.batch_count

    @property
    def total_bytes(self) -> int:
        return self.snapshot_bytes + self.batch_bytes

    @property
    def estimated_cost_usd(self) -> float:
        return self.total_bytes / BYTES_PER_TIB * COST_PER_TIB

    def format(self) -> str:
        """Render the confirmation message shown before any real query."""
        return (
            "\nBigQuery cost estimate:\n"
            f"  Snapshot query:      {format_gb(self.snapshot_bytes)} GB\n"
            f"  Batch queries:       {self.batch_count} x {format_gb(self.per_batch_bytes)} GB"
            f" = {format_gb(self.batch_bytes)} GB\n"
            f"  Total:               {format_gb(self.total_bytes)} GB\n"
            f"  Estimated cost:      ${self.estimated_cost_usd:.2f} (at ${COST_PER_TIB}/TiB)\n"
            "\nProceed with BigQuery queries? [y/N] "
        )


async def default_confirm(message: str, console: Console | None = None) -> bool:
    """Ask the operator to approve the estimate; refuse when not interactive."""
    console = console or Console()
    if not sys.stdin.isatty():
        console.print(message, markup=False, highlight=False)
        console.print("(non-interactive, pass --yes to approve)")
        return False
    answer = await asyncio.to_thread(console.input, message, markup=False)
    return answer.strip().lower() == "y"


async def auto_approve(message: str) -> bool:
    """Confirm callback used with ``--yes``; logs the estimate and approves."""
    logger.info(message.strip())
    return True


class DirectDependentsFetcher:
    """Cost-gated workflow that maps replaceable packages to direct dependents.

    Steps:
    1. Serve the warehouse cache if it is fresh
    2. Look up the latest snapshot
    3. Fetch popular npm packages and split them into batches
    4. Dry-run, estimate cost, ask for approval
    5. Run batches sequentially and cache the result
    """

    def __init__(
        self,
        config: AnalyzerConfig,
        bigquery: BigQueryClient,
        npm: NpmAdapter,
        cache: WarehouseCache | None = None,
        confirm: ConfirmFn = default_confirm,
    ) -> None:
        self.config = config
        self.bigquery = bigquery
        self.npm = npm
        self.cache = cache
        self.confirm = confirm

    async def fetch(self, replaceable_names: list[str]) -> dict[str, list[str]]:
        """Return dependent package names per replaceable package.

        Only packages with at least one dependent appear in the result. Any
        failure before approval, or a declined estimate, yields ``{}``.
        """
        cached = self.cache.get_all() if self.cache else None
        if cached is not None:
            logger.info(
                f"Using cached BigQuery data ({len(cached)} entries, fetched {self.cache.fetched_at})"
            )
            return cached

        try:
            plan = await self._plan(replaceable_names)
        except BigQueryError as e:
            logger.warning(f"BigQuery unavailable: {e}")
            return {}
        if plan is None:
            return {}
        snapshot_date, batches, estimate = plan

        if not await self.confirm(estimate.format()):
            logger.info("BigQuery queries declined, continuing without BigQuery data")
            return {}

        output = await self._run_batches(batches, replaceable_names, snapshot_date)
        if self.cache is not None:
            self.cache.save(snapshot_date, output)

        total = sum(len(deps) for deps in output.values())
        logger.info(f"Found {total} dependency relationships across {len(output)} packages")
        return output

    async def _plan(
        self, replaceable_names: list[str]
    ) -> tuple[str, list[list[str]], CostEstimate] | None:
        logger.info("Finding latest deps.dev snapshot...")
        snapshot_date = await self.bigquery.find_latest_snapshot()
        logger.info(f"Latest snapshot: {snapshot_date}")

        logger.info("Fetching popular npm packages...")
        popular = await self.npm.fetch_popular_packages()
        logger.info(f"Found {len(popular)} popular packages")

        batches = chunked(popular, self.config.bigquery_batch_size)
        if not batches:
            logger.info("No popular packages to query, skipping BigQuery")
            return None

        logger.info("Running dry run to estimate cost...")
        snapshot_bytes = await self.bigquery.dry_run(SNAPSHOT_SQL)
        per_batch_bytes = await self.bigquery.dry_run(
            build_dependents_sql(batches[0], replaceable_names, snapshot_date)
        )
        estimate = CostEstimate(snapshot_bytes, per_batch_bytes, len(batches))
        return snapshot_date, batches, estimate

    async def _run_batches(
        self,
        batches: list[list[str]],
        replaceable_names: list[str],
        snapshot_date: str,
    ) -> dict[str, list[str]]:
        logger.info(
            f"Querying BigQuery ({len(batches)} batches of ~{self.config.bigquery_batch_size} packages)..."
        )
        # dict keys keep first-seen order of dependents
        found: dict[str, dict[str, None]] = {name: {} for name in replaceable_names}

        for number, batch in enumerate(batches, start=1):
            logger.info(f"Batch {number}/{len(batches)}...")
            sql = build_dependents_sql(batch, replaceable_names, snapshot_date)
            try:
                rows = await self.bigquery.execute(sql)
            except (BigQueryError, OSError) as e:
                logger.warning(f"Batch {number} failed: {e}")
                continue
            for raw in rows:
                try:
                    row = DependentRow.model_validate(raw)
                except ValidationError:
                    continue
                if row.dep in found:
                    found[row.dep][row.package] = None

        return {name: list(deps) for name, deps in found.items() if deps}
