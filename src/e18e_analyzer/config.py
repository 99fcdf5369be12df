"""Runtime configuration for the analyzer."""

import os
from pathlib import Path

from pydantic import BaseModel


class AnalyzerConfig(BaseModel):
    """Explicit configuration passed to every component.

    API credentials are optional fields: ``None`` means the corresponding
    signal degrades to its empty default instead of failing the run.
    """

    github_token: str | None = None
    libraries_io_api_key: str | None = None

    cache_dir: Path = Path(".cache/e18e")
    output_dir: Path = Path("public/e18e")
    module_replacements_dir: Path | None = None

    # Requests per minute, per upstream
    npm_rpm: int = 100
    github_rpm: int | None = None
    libraries_io_rpm: int = 55

    # Worker pool sizes
    graph_concurrency: int = 5
    npm_concurrency: int = 10
    github_concurrency: int = 10

    graph_dependents_threshold: int = 50
    graph_top_repos: int = 30
    download_chunk_size: int = 128

    bigquery_batch_size: int = 100
    max_bytes_per_query: int = 25_000_000_000

    http_timeout: float = 30.0
    limit: int = 0
    auto_approve: bool = False

    @classmethod
    def from_env(cls, **overrides) -> "AnalyzerConfig":
        """Build a config from environment variables plus explicit overrides.

        Args:
            **overrides: Field values that take precedence over the environment.

        Returns:
            AnalyzerConfig instance.
        """
        values: dict = {
            "github_token": os.environ.get("GITHUB_TOKEN") or None,
            "libraries_io_api_key": os.environ.get("LIBRARIES_IO_API_KEY") or None,
        }
        if os.environ.get("E18E_CACHE_DIR"):
            values["cache_dir"] = Path(os.environ["E18E_CACHE_DIR"])
        if os.environ.get("E18E_OUTPUT_DIR"):
            values["output_dir"] = Path(os.environ["E18E_OUTPUT_DIR"])
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def effective_github_rpm(self) -> int:
        """GitHub allows 5000/hr with a token, 60/hr without."""
        if self.github_rpm is not None:
            return self.github_rpm
        return 4500 if self.github_token else 55

    @property
    def graph_cache_path(self) -> Path:
        return self.cache_dir / "libraries-io.json"

    @property
    def warehouse_cache_path(self) -> Path:
        return self.cache_dir / "bigquery-dependents.json"
