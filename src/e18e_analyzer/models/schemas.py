"""Pydantic models for candidates, graph data and scored results."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CandidateSource(str, Enum):
    """Catalog a candidate package came from."""

    MODULE_REPLACEMENTS = "module-replacements"
    NODE_BUILTIN = "node-builtin"
    POLYFILL_DECAY = "polyfill-decay"
    DEPRECATED = "deprecated"


class ReplacementType(str, Enum):
    """Suggested remediation for a candidate."""

    NATIVE = "native"
    SIMPLE = "simple"
    DOCUMENTED = "documented"
    REMOVE = "remove"


class PackageStatus(str, Enum):
    """Maintenance status derived from repository recency."""

    ARCHIVED = "archived"
    DORMANT = "dormant"
    STALE = "stale"
    ACTIVE = "active"


class Candidate(BaseModel):
    """An npm package flagged as a modernization/removal opportunity."""

    model_config = ConfigDict(frozen=True)

    module_name: str
    source: CandidateSource
    replacement_type: ReplacementType
    replacement: str
    doc_path: str | None = None
    min_node_version: str | None = None


# --- Dependency graph ---


class DependentRepo(BaseModel):
    """A repository that depends on a candidate (repo-level source)."""

    name: str  # owner/repo
    stars: int = 0
    pushed_at: str | None = None


class DependentPackage(BaseModel):
    """An npm package that directly depends on a candidate (warehouse source)."""

    name: str
    stars: int = 0
    repo_url: str | None = None


class GraphData(BaseModel):
    """Reverse-dependency facts for one candidate."""

    dependent_count: int = 0
    dependent_repos_count: int = 0
    top_dependent_repos: list[DependentRepo] = Field(default_factory=list)
    top_dependent_packages: list[DependentPackage] = Field(default_factory=list)


# --- Enrichment ---


class NpmMetadata(BaseModel):
    """Registry metadata used for scoring and cache freshness."""

    repo_url: str | None = None
    last_publish_date: str | None = None
    is_deprecated: bool = False


class RepoHealth(BaseModel):
    """Repository health signals from GitHub.

    All-default instance is the empty record used when GitHub data is
    unavailable (no token, no repo, or a failed fetch).
    """

    days_since_last_commit: int | None = None
    days_since_last_release: int | None = None
    is_archived: bool = False
    open_pr_count: int = 0
    contributor_count_recent: int = 0
    has_contributing_md: bool = False
    external_prs_merged: int = 0
    external_prs_closed: int = 0
    stars: int = 0


class TopDependent(BaseModel):
    """Top dependent of a package; ``downloads`` holds repo stars as a proxy."""

    name: str
    downloads: int = 0


class PackageData(BaseModel):
    """A candidate joined with downloads, registry metadata and repo health."""

    module_name: str
    candidate: Candidate
    weekly_downloads: int = 0
    last_publish_date: str | None = None
    repo_url: str | None = None
    is_deprecated: bool = False
    dependent_count: int = 0
    top_dependents: list[TopDependent] = Field(default_factory=list)
    health: RepoHealth = Field(default_factory=RepoHealth)


class ScoredPackage(PackageData):
    """PackageData plus its scores, tier, status and rank."""

    impact_score: float
    effort_multiplier: float
    merge_probability: float
    liveness_penalty: float
    composite_score: float
    tier: int = Field(ge=1, le=4)
    status: PackageStatus
    rank: int = 0
    percentile: int = 0
    computed_at: datetime


# --- Target repos ---


class ReplacementOpportunity(BaseModel):
    """A single replaceable dependency found in a target repo."""

    module_name: str
    replacement: str
    replacement_type: ReplacementType
    effort_multiplier: float
    weekly_downloads: int = 0


class TargetRepo(BaseModel):
    """A consumer repository and the replaceable packages it depends on."""

    repo_full_name: str
    repo_url: str
    stars: int = 0
    pushed_at: str | None = None
    opportunities: list[ReplacementOpportunity] = Field(default_factory=list)
    health: RepoHealth = Field(default_factory=RepoHealth)


class ScoredTargetRepo(TargetRepo):
    """TargetRepo plus its bundle-PR scores."""

    reach_score: float
    receptiveness_score: float
    bundle_opportunity: float
    aggregate_effort: float
    composite_score: float
    rank: int = 0
    computed_at: datetime


# --- Output ---
# Published JSON uses camelCase keys; the static site reads them as-is.


class OutputModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LeaderboardEntry(OutputModel):
    """Row of the published leaderboard."""

    rank: int
    module_name: str
    source: CandidateSource
    replacement_type: ReplacementType
    replacement: str
    weekly_downloads: int
    dependent_count: int
    composite_score: float
    impact_score: float
    effort_multiplier: float
    merge_probability: float
    liveness_penalty: float
    tier: int
    status: PackageStatus
    repo_url: str | None = None
    top_dependents: list[TopDependent] = Field(default_factory=list)


class Stats(OutputModel):
    """Summary statistics for a run."""

    last_updated: datetime
    total_packages: int
    total_downloads_represented: int
    active_opportunities: int
    by_source: dict[str, int]
    by_tier: dict[int, int]
    by_status: dict[str, int]


class OpportunityEntry(OutputModel):
    module_name: str
    replacement: str
    replacement_type: ReplacementType
    effort_multiplier: float


class TargetRepoEntry(OutputModel):
    """Row of the published target-repo list."""

    rank: int
    repo_full_name: str
    repo_url: str
    stars: int
    opportunity_count: int
    opportunities: list[OpportunityEntry]
    reach_score: float
    receptiveness_score: float
    bundle_opportunity: float
    aggregate_effort: float
    composite_score: float
