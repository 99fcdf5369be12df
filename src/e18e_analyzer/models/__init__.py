"""Data models and schemas."""

from e18e_analyzer.models.schemas import (
    Candidate,
    CandidateSource,
    GraphData,
    PackageData,
    RepoHealth,
    ReplacementType,
    ScoredPackage,
    ScoredTargetRepo,
    TargetRepo,
)

__all__ = [
    "Candidate",
    "CandidateSource",
    "GraphData",
    "PackageData",
    "RepoHealth",
    "ReplacementType",
    "ScoredPackage",
    "ScoredTargetRepo",
    "TargetRepo",
]
