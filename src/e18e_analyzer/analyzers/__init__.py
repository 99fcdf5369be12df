"""Analyzers for fetching, scoring and ranking replacement opportunities."""

from e18e_analyzer.analyzers.github import GitHubFetcher
from e18e_analyzer.analyzers.pipeline import AnalysisPipeline, PipelineResult
from e18e_analyzer.analyzers.scorer import Scorer

__all__ = ["AnalysisPipeline", "GitHubFetcher", "PipelineResult", "Scorer"]
