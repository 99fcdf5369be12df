"""Write leaderboard JSON, stats and the SQLite database for the static site."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel

from e18e_analyzer.models.schemas import (
    CandidateSource,
    LeaderboardEntry,
    OpportunityEntry,
    PackageStatus,
    ScoredPackage,
    ScoredTargetRepo,
    Stats,
    TargetRepoEntry,
)

logger = logging.getLogger(__name__)

LEADERBOARD_SIZE = 200
TARGET_REPOS_SIZE = 100
TOP_DEPENDENTS_SHOWN = 5

PACKAGES_SCHEMA = """
CREATE TABLE packages (
    module_name TEXT PRIMARY KEY,
    source TEXT NOT NULL,
    replacement_type TEXT NOT NULL,
    replacement TEXT NOT NULL,
    doc_path TEXT,
    min_node_version TEXT,
    weekly_downloads INTEGER NOT NULL DEFAULT 0,
    last_publish_date TEXT,
    repo_url TEXT,
    is_deprecated INTEGER NOT NULL DEFAULT 0,
    dependent_count INTEGER NOT NULL DEFAULT 0,
    days_since_last_commit INTEGER,
    days_since_last_release INTEGER,
    is_archived INTEGER NOT NULL DEFAULT 0,
    open_pr_count INTEGER NOT NULL DEFAULT 0,
    contributor_count_recent INTEGER NOT NULL DEFAULT 0,
    has_contributing_md INTEGER NOT NULL DEFAULT 0,
    external_prs_merged INTEGER NOT NULL DEFAULT 0,
    external_prs_closed INTEGER NOT NULL DEFAULT 0,
    impact_score REAL NOT NULL,
    effort_multiplier REAL NOT NULL,
    merge_probability REAL NOT NULL,
    liveness_penalty REAL NOT NULL,
    composite_score REAL NOT NULL,
    tier INTEGER NOT NULL,
    status TEXT NOT NULL,
    rank INTEGER NOT NULL,
    percentile INTEGER NOT NULL,
    computed_at TEXT NOT NULL
);

CREATE TABLE dependents (
    package_name TEXT NOT NULL,
    dependent_name TEXT NOT NULL,
    dependent_stars INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (package_name, dependent_name),
    FOREIGN KEY (package_name) REFERENCES packages(module_name)
);

CREATE INDEX idx_composite_score ON packages(composite_score DESC);
CREATE INDEX idx_weekly_downloads ON packages(weekly_downloads DESC);
CREATE INDEX idx_status ON packages(status);
CREATE INDEX idx_source ON packages(source);
CREATE INDEX idx_tier ON packages(tier);
"""

TARGET_REPOS_SCHEMA = """
CREATE TABLE target_repos (
    repo_full_name TEXT PRIMARY KEY,
    repo_url TEXT NOT NULL,
    stars INTEGER NOT NULL DEFAULT 0,
    opportunity_count INTEGER NOT NULL DEFAULT 0,
    days_since_last_commit INTEGER,
    days_since_last_release INTEGER,
    is_archived INTEGER NOT NULL DEFAULT 0,
    open_pr_count INTEGER NOT NULL DEFAULT 0,
    contributor_count_recent INTEGER NOT NULL DEFAULT 0,
    has_contributing_md INTEGER NOT NULL DEFAULT 0,
    external_prs_merged INTEGER NOT NULL DEFAULT 0,
    external_prs_closed INTEGER NOT NULL DEFAULT 0,
    reach_score REAL NOT NULL,
    receptiveness_score REAL NOT NULL,
    bundle_opportunity REAL NOT NULL,
    aggregate_effort REAL NOT NULL,
    composite_score REAL NOT NULL,
    rank INTEGER NOT NULL,
    computed_at TEXT NOT NULL
);

CREATE TABLE target_repo_opportunities (
    repo_full_name TEXT NOT NULL,
    module_name TEXT NOT NULL,
    replacement TEXT NOT NULL,
    replacement_type TEXT NOT NULL,
    effort_multiplier REAL NOT NULL,
    weekly_downloads INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (repo_full_name, module_name),
    FOREIGN KEY (repo_full_name) REFERENCES target_repos(repo_full_name)
);

CREATE INDEX idx_target_composite ON target_repos(composite_score DESC);
CREATE INDEX idx_target_stars ON target_repos(stars DESC);
"""


def to_leaderboard_entry(package: ScoredPackage) -> LeaderboardEntry:
    return LeaderboardEntry(
        rank=package.rank,
        module_name=package.module_name,
        source=package.candidate.source,
        replacement_type=package.candidate.replacement_type,
        replacement=package.candidate.replacement,
        weekly_downloads=package.weekly_downloads,
        dependent_count=package.dependent_count,
        composite_score=round(package.composite_score, 4),
        impact_score=round(package.impact_score, 3),
        effort_multiplier=package.effort_multiplier,
        merge_probability=round(package.merge_probability, 3),
        liveness_penalty=package.liveness_penalty,
        tier=package.tier,
        status=package.status,
        repo_url=package.repo_url,
        top_dependents=package.top_dependents[:TOP_DEPENDENTS_SHOWN],
    )


def to_target_repo_entry(repo: ScoredTargetRepo) -> TargetRepoEntry:
    return TargetRepoEntry(
        rank=repo.rank,
        repo_full_name=repo.repo_full_name,
        repo_url=repo.repo_url,
        stars=repo.stars,
        opportunity_count=len(repo.opportunities),
        opportunities=[
            OpportunityEntry(
                module_name=o.module_name,
                replacement=o.replacement,
                replacement_type=o.replacement_type,
                effort_multiplier=o.effort_multiplier,
            )
            for o in repo.opportunities
        ],
        reach_score=round(repo.reach_score, 3),
        receptiveness_score=round(repo.receptiveness_score, 3),
        bundle_opportunity=round(repo.bundle_opportunity, 3),
        aggregate_effort=round(repo.aggregate_effort, 3),
        composite_score=round(repo.composite_score, 4),
    )


def compute_stats(
    packages: list[ScoredPackage],
    now: Callable[[], datetime] | None = None,
) -> Stats:
    """Summarize a scored run.

    Active opportunities count packages whose status is active or stale.
    """
    by_source = {source.value: 0 for source in CandidateSource}
    by_tier = {tier: 0 for tier in (1, 2, 3, 4)}
    by_status = {status.value: 0 for status in PackageStatus}

    for package in packages:
        by_source[package.candidate.source.value] += 1
        by_tier[package.tier] += 1
        by_status[package.status.value] += 1

    active = by_status[PackageStatus.ACTIVE.value] + by_status[PackageStatus.STALE.value]
    return Stats(
        last_updated=(now or (lambda: datetime.now(timezone.utc)))(),
        total_packages=len(packages),
        total_downloads_represented=sum(p.weekly_downloads for p in packages),
        active_opportunities=active,
        by_source=by_source,
        by_tier=by_tier,
        by_status=by_status,
    )


def _write_json(path: Path, data: BaseModel | list[BaseModel]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, list):
        payload = [item.model_dump(mode="json", by_alias=True) for item in data]
    else:
        payload = data.model_dump(mode="json", by_alias=True)
    path.write_text(json.dumps(payload, indent=2))


def _package_row(p: ScoredPackage) -> tuple:
    h = p.health
    return (
        p.module_name,
        p.candidate.source.value,
        p.candidate.replacement_type.value,
        p.candidate.replacement,
        p.candidate.doc_path,
        p.candidate.min_node_version,
        p.weekly_downloads,
        p.last_publish_date,
        p.repo_url,
        int(p.is_deprecated),
        p.dependent_count,
        h.days_since_last_commit,
        h.days_since_last_release,
        int(h.is_archived),
        h.open_pr_count,
        h.contributor_count_recent,
        int(h.has_contributing_md),
        h.external_prs_merged,
        h.external_prs_closed,
        p.impact_score,
        p.effort_multiplier,
        p.merge_probability,
        p.liveness_penalty,
        p.composite_score,
        p.tier,
        p.status.value,
        p.rank,
        p.percentile,
        p.computed_at.isoformat(),
    )


def _target_repo_row(r: ScoredTargetRepo) -> tuple:
    h = r.health
    return (
        r.repo_full_name,
        r.repo_url,
        r.stars,
        len(r.opportunities),
        h.days_since_last_commit,
        h.days_since_last_release,
        int(h.is_archived),
        h.open_pr_count,
        h.contributor_count_recent,
        int(h.has_contributing_md),
        h.external_prs_merged,
        h.external_prs_closed,
        r.reach_score,
        r.receptiveness_score,
        r.bundle_opportunity,
        r.aggregate_effort,
        r.composite_score,
        r.rank,
        r.computed_at.isoformat(),
    )


def write_sqlite(
    packages: list[ScoredPackage],
    target_repos: list[ScoredTargetRepo],
    path: Path,
) -> None:
    """Recreate the SQLite database from scratch."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.unlink(missing_ok=True)

    conn = sqlite3.connect(path)
    try:
        with conn:
            conn.executescript(PACKAGES_SCHEMA)
            conn.executemany(
                f"INSERT INTO packages VALUES ({', '.join('?' * 29)})",
                [_package_row(p) for p in packages],
            )
            conn.executemany(
                "INSERT OR IGNORE INTO dependents VALUES (?, ?, ?)",
                [(p.module_name, d.name, d.downloads) for p in packages for d in p.top_dependents],
            )
            if target_repos:
                conn.executescript(TARGET_REPOS_SCHEMA)
                conn.executemany(
                    f"INSERT INTO target_repos VALUES ({', '.join('?' * 19)})",
                    [_target_repo_row(r) for r in target_repos],
                )
                conn.executemany(
                    "INSERT OR IGNORE INTO target_repo_opportunities VALUES (?, ?, ?, ?, ?, ?)",
                    [
                        (
                            r.repo_full_name,
                            o.module_name,
                            o.replacement,
                            o.replacement_type.value,
                            o.effort_multiplier,
                            o.weekly_downloads,
                        )
                        for r in target_repos
                        for o in r.opportunities
                    ],
                )
    finally:
        conn.close()


def write_outputs(
    scored: list[ScoredPackage],
    target_repos: list[ScoredTargetRepo],
    output_dir: Path,
) -> None:
    """Write every published artifact under ``output_dir``.

    Layout:
        api/leaderboard.json    top packages
        api/stats.json          run summary
        api/target-repos.json   top target repositories (when any)
        data/ecosystem.db       full SQLite export
    """
    api_dir = output_dir / "api"

    leaderboard = [to_leaderboard_entry(p) for p in scored[:LEADERBOARD_SIZE]]
    _write_json(api_dir / "leaderboard.json", leaderboard)
    logger.info(f"Wrote {len(leaderboard)} entries to {api_dir / 'leaderboard.json'}")

    _write_json(api_dir / "stats.json", compute_stats(scored))
    logger.info(f"Wrote stats to {api_dir / 'stats.json'}")

    if target_repos:
        entries = [to_target_repo_entry(r) for r in target_repos[:TARGET_REPOS_SIZE]]
        _write_json(api_dir / "target-repos.json", entries)
        logger.info(f"Wrote {len(entries)} target repos to {api_dir / 'target-repos.json'}")

    db_path = output_dir / "data" / "ecosystem.db"
    write_sqlite(scored, target_repos, db_path)
    logger.info(f"Wrote SQLite database to {db_path}")
