"""Tests for the published JSON files and SQLite export."""

import json
import sqlite3

import pytest

from e18e_analyzer.analyzers.scorer import Scorer
from e18e_analyzer.analyzers.target_repos import score_target_repos
from e18e_analyzer.models.schemas import (
    CandidateSource,
    RepoHealth,
    ReplacementOpportunity,
    ReplacementType,
    TargetRepo,
    TopDependent,
)
from e18e_analyzer.output import compute_stats, write_outputs


@pytest.fixture
def scored(make_package, healthy_repo, fixed_now):
    packages = [
        make_package("left-pad", weekly_downloads=900_000, dependent_count=4000, health=healthy_repo),
        make_package("rimraf", weekly_downloads=50_000, source=CandidateSource.NODE_BUILTIN),
        make_package(
            "request",
            weekly_downloads=10,
            health=RepoHealth(is_archived=True),
            source=CandidateSource.DEPRECATED,
            replacement_type=ReplacementType.REMOVE,
        ),
    ]
    packages[0] = packages[0].model_copy(
        update={"top_dependents": [TopDependent(name=f"org/app-{i}", downloads=i) for i in range(8)]}
    )
    return Scorer(now=fixed_now).score_packages(packages)


@pytest.fixture
def target_repos(fixed_now):
    opportunities = [
        ReplacementOpportunity(
            module_name=name,
            replacement="native",
            replacement_type=ReplacementType.NATIVE,
            effort_multiplier=1.0,
            weekly_downloads=1000,
        )
        for name in ("left-pad", "rimraf")
    ]
    repo = TargetRepo(
        repo_full_name="acme/app",
        repo_url="https://github.com/acme/app",
        stars=300,
        opportunities=opportunities,
    )
    return score_target_repos([repo], now=fixed_now)


class TestStats:
    def test_counts_by_source_tier_and_status(self, scored, fixed_now):
        """Should count active and stale packages as active opportunities."""
        stats = compute_stats(scored, now=fixed_now)

        assert stats.total_packages == 3
        assert stats.total_downloads_represented == 950_010
        assert stats.active_opportunities == 2
        assert stats.by_status == {"archived": 1, "dormant": 0, "stale": 1, "active": 1}
        assert stats.by_source["module-replacements"] == 1
        assert stats.by_source["polyfill-decay"] == 0
        assert sum(stats.by_tier.values()) == 3
        assert set(stats.by_tier) == {1, 2, 3, 4}
        assert stats.last_updated == fixed_now()


class TestWriteOutputs:
    """Test the on-disk artifacts."""

    def test_leaderboard_uses_camel_case(self, scored, tmp_path):
        write_outputs(scored, [], tmp_path)

        leaderboard = json.loads((tmp_path / "api" / "leaderboard.json").read_text())
        top = leaderboard[0]
        assert top["moduleName"] == "left-pad"
        assert top["rank"] == 1
        assert {"compositeScore", "weeklyDownloads", "topDependents", "replacementType"} <= set(top)
        assert len(top["topDependents"]) == 5

        stats = json.loads((tmp_path / "api" / "stats.json").read_text())
        assert stats["totalPackages"] == 3
        assert set(stats["byTier"]) == {"1", "2", "3", "4"}

    def test_target_repos_file_only_when_present(self, scored, target_repos, tmp_path):
        """Should write target-repos.json only for a non-empty list."""
        write_outputs(scored, [], tmp_path)
        assert not (tmp_path / "api" / "target-repos.json").exists()

        write_outputs(scored, target_repos, tmp_path)
        entries = json.loads((tmp_path / "api" / "target-repos.json").read_text())
        assert entries[0]["repoFullName"] == "acme/app"
        assert entries[0]["opportunityCount"] == 2
        assert [o["moduleName"] for o in entries[0]["opportunities"]] == ["left-pad", "rimraf"]

    def test_sqlite_export(self, scored, target_repos, tmp_path):
        """Should recreate every table from scratch on each run."""
        write_outputs(scored, target_repos, tmp_path)
        write_outputs(scored[:1], [], tmp_path)

        conn = sqlite3.connect(tmp_path / "data" / "ecosystem.db")
        try:
            assert conn.execute("SELECT COUNT(*) FROM packages").fetchone() == (1,)
            assert conn.execute("SELECT COUNT(*) FROM dependents").fetchone() == (8,)
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        finally:
            conn.close()
        assert "target_repos" not in tables

    def test_sqlite_target_tables(self, scored, target_repos, tmp_path):
        write_outputs(scored, target_repos, tmp_path)

        conn = sqlite3.connect(tmp_path / "data" / "ecosystem.db")
        try:
            repo = conn.execute("SELECT repo_full_name, stars, opportunity_count, rank FROM target_repos").fetchall()
            opportunities = conn.execute("SELECT COUNT(*) FROM target_repo_opportunities").fetchone()
        finally:
            conn.close()
        assert repo == [("acme/app", 300, 2, 1)]
        assert opportunities == (2,)
