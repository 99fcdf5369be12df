"""Package registry adapters."""

from e18e_analyzer.adapters.npm import NpmAdapter

__all__ = ["NpmAdapter"]
