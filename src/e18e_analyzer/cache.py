"""Disk-backed caches for dependency graph and warehouse query results.

Both caches are plain versioned JSON files. A file that is missing, corrupt,
or written by a different schema version is treated as empty and rebuilt on
the next save.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import AwareDatetime, BaseModel, Field, ValidationError

from e18e_analyzer.models.schemas import GraphData

logger = logging.getLogger(__name__)

CACHE_VERSION = 1
CACHE_TTL = timedelta(days=7)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GraphCacheEntry(BaseModel):
    """Cached graph data plus the publish-date fingerprint it was built from."""

    data: GraphData
    cached_at: AwareDatetime
    last_publish_date: str | None = None
    stale: bool = False


class GraphCacheFile(BaseModel):
    version: int = CACHE_VERSION
    entries: dict[str, GraphCacheEntry] = Field(default_factory=dict)


class WarehouseCacheFile(BaseModel):
    version: int = CACHE_VERSION
    snapshot_date: str
    fetched_at: AwareDatetime
    data: dict[str, list[str]] = Field(default_factory=dict)


def _read_json(path: Path) -> dict | None:
    """Read a JSON object from disk, returning None if unreadable."""
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError) as e:
        logger.debug(f"Ignoring unreadable cache file {path}: {e}")
        return None
    if not isinstance(data, dict):
        logger.debug(f"Ignoring cache file {path}: not a JSON object")
        return None
    if data.get("version") != CACHE_VERSION:
        logger.debug(f"Ignoring cache file {path}: version {data.get('version')!r}")
        return None
    return data


class GraphCache:
    """Per-package cache of reverse-dependency graph data.

    An entry is served while it is younger than seven days and has not been
    marked stale. Entries are marked stale when the package's latest publish
    date differs from the one recorded at caching time; the current run
    still uses whatever it already read, the next run refetches.

    Usage:
        cache = GraphCache(config.graph_cache_path)
        data = cache.get("left-pad")
        cache.set("left-pad", GraphData(dependent_count=10))
        cache.save()
    """

    def __init__(self, path: Path, *, now: Callable[[], datetime] = _utcnow) -> None:
        """Load the cache file if present.

        Args:
            path: JSON file backing this cache.
            now: Clock returning an aware datetime, injectable for tests.
        """
        self.path = path
        self._now = now
        self._entries: dict[str, GraphCacheEntry] = {}
        self._dirty = False
        self._load()

    def _load(self) -> None:
        raw = _read_json(self.path)
        if raw is None:
            return
        try:
            self._entries = GraphCacheFile.model_validate(raw).entries
        except ValidationError as e:
            logger.debug(f"Ignoring malformed graph cache {self.path}: {e}")
            self._entries = {}

    def _is_valid(self, entry: GraphCacheEntry) -> bool:
        return not entry.stale and self._now() - entry.cached_at <= CACHE_TTL

    @property
    def size(self) -> int:
        return len(self._entries)

    @property
    def valid_count(self) -> int:
        return sum(1 for entry in self._entries.values() if self._is_valid(entry))

    def get(self, name: str) -> GraphData | None:
        """Return cached graph data, or None if absent, expired or stale."""
        entry = self._entries.get(name)
        if entry is None or not self._is_valid(entry):
            return None
        return entry.data

    def set(self, name: str, data: GraphData, last_publish_date: str | None = None) -> None:
        """Store graph data for a package. Written to disk on ``save()``."""
        self._entries[name] = GraphCacheEntry(
            data=data,
            cached_at=self._now(),
            last_publish_date=last_publish_date,
        )
        self._dirty = True

    def update_freshness(self, publish_dates: dict[str, str | None]) -> None:
        """Compare publish-date fingerprints and mark changed entries stale.

        Args:
            publish_dates: Latest known publish date per package name.
        """
        marked = 0
        for name, publish_date in publish_dates.items():
            entry = self._entries.get(name)
            if entry is None or publish_date is None:
                continue
            if entry.last_publish_date is None:
                entry.last_publish_date = publish_date
                self._dirty = True
            elif entry.last_publish_date != publish_date and not entry.stale:
                entry.stale = True
                self._dirty = True
                marked += 1
        if marked:
            logger.info(f"Marked {marked} cached graph entries stale (new publishes)")

    def save(self) -> None:
        """Write the cache to disk in a single write."""
        if not self._dirty and not self._entries:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = GraphCacheFile(entries=self._entries)
        self.path.write_text(payload.model_dump_json(indent=2))
        self._dirty = False
        logger.debug(f"Saved {len(self._entries)} graph cache entries to {self.path}")


class WarehouseCache:
    """Whole-result cache for the BigQuery direct-dependents workflow."""

    def __init__(self, path: Path, *, now: Callable[[], datetime] = _utcnow) -> None:
        self.path = path
        self._now = now
        self._file: WarehouseCacheFile | None = None
        self._load()

    def _load(self) -> None:
        raw = _read_json(self.path)
        if raw is None:
            return
        try:
            self._file = WarehouseCacheFile.model_validate(raw)
        except ValidationError as e:
            logger.debug(f"Ignoring malformed warehouse cache {self.path}: {e}")
            self._file = None

    @property
    def fetched_at(self) -> datetime | None:
        return self._file.fetched_at if self._file else None

    @property
    def snapshot_date(self) -> str | None:
        return self._file.snapshot_date if self._file else None

    def get_all(self) -> dict[str, list[str]] | None:
        """Return the cached dependents mapping, or None if absent or expired."""
        if self._file is None:
            return None
        if self._now() - self._file.fetched_at > CACHE_TTL:
            return None
        return self._file.data

    def save(self, snapshot_date: str, data: dict[str, list[str]]) -> None:
        """Replace the cached snapshot and write it to disk."""
        self._file = WarehouseCacheFile(
            snapshot_date=snapshot_date,
            fetched_at=self._now(),
            data=data,
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(self._file.model_dump_json(indent=2))
        logger.debug(f"Saved warehouse dependents for {len(data)} packages to {self.path}")
