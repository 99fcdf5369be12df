"""Composite scoring for replacement opportunities.

composite = impact x effort x merge_probability x liveness

Each factor is in [0, 1], so a near-zero factor sinks the whole score: a
huge package in an archived repository is not worth a PR.
"""

import math
from collections.abc import Callable
from datetime import datetime, timezone

from e18e_analyzer.analyzers.effort_tiers import DEFAULT_EFFORT, EFFORT_TIERS
from e18e_analyzer.models.schemas import (
    PackageData,
    PackageStatus,
    RepoHealth,
    ReplacementType,
    ScoredPackage,
)


def sigmoid(x: float, midpoint: float, width: float) -> float:
    """Decreasing logistic curve: 0.5 at ``midpoint``, ~0 far past it."""
    # exp overflows a float just above 709
    exponent = min((x - midpoint) / width, 700)
    return 1 / (1 + math.exp(exponent))


def min_max_normalizer(values: list[float]) -> Callable[[float], float]:
    """Return a function mapping values onto [0, 1] over the batch range.

    A batch where every value is equal uses a divisor of 1.
    """
    if not values:
        return lambda v: 0.0
    low, high = min(values), max(values)
    span = (high - low) or 1
    return lambda v: (v - low) / span


def receptiveness(health: RepoHealth) -> float:
    """Estimate how likely a repository is to merge an outside PR.

    Used both as the package merge probability and as target-repo
    receptiveness.

    Args:
        health: Repository health signals.

    Returns:
        0.0 for archived repositories, otherwise a value in [0.01, 0.99].
    """
    if health.is_archived:
        return 0.0

    # Missing data counts as a cautious 0.3
    activity = (
        sigmoid(health.days_since_last_commit, 180, 60)
        if health.days_since_last_commit is not None
        else 0.3
    )
    release = (
        sigmoid(health.days_since_last_release, 365, 120)
        if health.days_since_last_release is not None
        else 0.3
    )

    if health.external_prs_closed >= 5:
        merge_ratio = health.external_prs_merged / health.external_prs_closed
    else:
        merge_ratio = 0.4  # uninformative prior

    contributors = max(health.contributor_count_recent, 1)
    contributor = min(1.0, math.log2(contributors) / math.log2(20))

    bonus = 1.1 if health.has_contributing_md else 1.0
    raw = (0.30 * activity + 0.15 * release + 0.35 * merge_ratio + 0.20 * contributor) * bonus
    return max(0.01, min(0.99, raw))


class Scorer:
    """Scores and ranks enriched packages.

    Impact weights (sum to 1):
    - Weekly downloads: 35%
    - Dependent packages: 45%
    - Cascade (stars of top dependents): 20%
    """

    IMPACT_WEIGHTS = {
        "downloads": 0.35,
        "dependents": 0.45,
        "cascade": 0.20,
    }

    # (minimum impact, tier), checked in order
    TIER_THRESHOLDS = [(0.8, 1), (0.5, 2), (0.2, 3)]

    def __init__(self, now: Callable[[], datetime] | None = None) -> None:
        self._now = now or (lambda: datetime.now(timezone.utc))

    def compute_impact_scores(self, packages: list[PackageData]) -> list[float]:
        """Batch-relative impact, in input order.

        All three inputs are log10(x + 1) and min-max normalized across the
        batch. Cascade sums top-dependent stars as a reach proxy.
        """
        downloads = [math.log10(p.weekly_downloads + 1) for p in packages]
        dependents = [math.log10(p.dependent_count + 1) for p in packages]
        cascade = [math.log10(sum(d.downloads for d in p.top_dependents) + 1) for p in packages]

        dl_norm = min_max_normalizer(downloads)
        dep_norm = min_max_normalizer(dependents)
        casc_norm = min_max_normalizer(cascade)

        w = self.IMPACT_WEIGHTS
        return [
            w["downloads"] * dl_norm(dl) + w["dependents"] * dep_norm(dep) + w["cascade"] * casc_norm(casc)
            for dl, dep, casc in zip(downloads, dependents, cascade)
        ]

    def compute_effort(self, package: PackageData) -> float:
        """Ease of replacement: 1.0 for native/remove, 0.95 for simple."""
        replacement_type = package.candidate.replacement_type
        if replacement_type in (ReplacementType.NATIVE, ReplacementType.REMOVE):
            return 1.0
        if replacement_type == ReplacementType.SIMPLE:
            return 0.95
        return EFFORT_TIERS.get(package.candidate.doc_path or "", DEFAULT_EFFORT)

    def compute_merge_probability(self, package: PackageData) -> float:
        return receptiveness(package.health)

    def compute_liveness(self, package: PackageData) -> float:
        """Penalty for repositories that have gone quiet."""
        if package.health.is_archived:
            return 0.05
        days = package.health.days_since_last_commit
        if days is None:
            return 0.5
        if days > 730:
            return 0.10
        if days > 365:
            return 0.30
        return 1.0

    def classify_status(self, package: PackageData) -> PackageStatus:
        if package.health.is_archived:
            return PackageStatus.ARCHIVED
        days = package.health.days_since_last_commit
        if days is None:
            return PackageStatus.STALE
        if days > 365:
            return PackageStatus.DORMANT
        if days > 90:
            return PackageStatus.STALE
        return PackageStatus.ACTIVE

    def assign_tier(self, impact: float) -> int:
        for threshold, tier in self.TIER_THRESHOLDS:
            if impact >= threshold:
                return tier
        return 4

    def score_packages(self, packages: list[PackageData]) -> list[ScoredPackage]:
        """Score, sort and rank a batch of packages.

        Args:
            packages: Enriched packages. Impact is relative to this batch.

        Returns:
            ScoredPackages sorted by composite score descending, with ranks
            1..N and percentiles.
        """
        if not packages:
            return []

        impacts = self.compute_impact_scores(packages)
        computed_at = self._now()

        scored = []
        for package, impact in zip(packages, impacts):
            effort = self.compute_effort(package)
            merge_probability = self.compute_merge_probability(package)
            liveness = self.compute_liveness(package)
            scored.append(
                ScoredPackage(
                    **package.model_dump(exclude={"candidate", "health", "top_dependents"}),
                    candidate=package.candidate,
                    health=package.health,
                    top_dependents=package.top_dependents,
                    impact_score=impact,
                    effort_multiplier=effort,
                    merge_probability=merge_probability,
                    liveness_penalty=liveness,
                    composite_score=impact * effort * merge_probability * liveness,
                    tier=self.assign_tier(impact),
                    status=self.classify_status(package),
                    computed_at=computed_at,
                )
            )

        scored.sort(key=lambda s: s.composite_score, reverse=True)
        return assign_ranks(scored)


def assign_ranks(scored: list[ScoredPackage]) -> list[ScoredPackage]:
    """Set rank 1..N and percentile on an already sorted list."""
    total = len(scored)
    for i, package in enumerate(scored):
        package.rank = i + 1
        # Half-up rounding, so 12.5 becomes 13
        package.percentile = math.floor(100 * (total - i) / total + 0.5)
    return scored
