"""Shared helpers for rate limiting and subprocess execution."""

from e18e_analyzer.utils.exec import ExecResult, run_command
from e18e_analyzer.utils.rate_limiter import RateLimiter, parallel_map

__all__ = ["ExecResult", "RateLimiter", "parallel_map", "run_command"]
