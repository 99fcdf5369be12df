"""Candidate sources and aggregation.

Four catalogs contribute candidates. When a package appears in more than
one, the candidate from the most specific catalog wins.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx

from e18e_analyzer.models.schemas import Candidate, CandidateSource
from e18e_analyzer.sources import deprecated, module_replacements, node_builtins, polyfill_decay

logger = logging.getLogger(__name__)

# Lower index wins when the same module appears in several sources
SOURCE_PRIORITY = [
    CandidateSource.MODULE_REPLACEMENTS,
    CandidateSource.NODE_BUILTIN,
    CandidateSource.POLYFILL_DECAY,
    CandidateSource.DEPRECATED,
]


def deduplicate(candidates: list[Candidate]) -> list[Candidate]:
    """Keep one candidate per module name, preferring higher-priority sources.

    Ties keep the first candidate seen. Output order follows the first
    appearance of each module name.
    """
    seen: dict[str, Candidate] = {}
    for candidate in candidates:
        existing = seen.get(candidate.module_name)
        if existing is None:
            seen[candidate.module_name] = candidate
        elif SOURCE_PRIORITY.index(candidate.source) < SOURCE_PRIORITY.index(existing.source):
            seen[candidate.module_name] = candidate
    return list(seen.values())


async def gather_candidates(
    client: httpx.AsyncClient | None = None,
    manifest_dir: Path | None = None,
) -> list[Candidate]:
    """Collect candidates from every source and deduplicate them.

    Args:
        client: Optional shared httpx client for remote manifests.
        manifest_dir: Local directory holding module-replacements manifests.

    Returns:
        Exactly one candidate per module name.
    """
    replacements, builtins, polyfills, deprecations = await asyncio.gather(
        module_replacements.get_candidates(client=client, manifest_dir=manifest_dir),
        node_builtins.get_candidates(),
        polyfill_decay.get_candidates(),
        deprecated.get_candidates(),
    )

    candidates = deduplicate([*replacements, *builtins, *polyfills, *deprecations])
    logger.info(
        f"Sources: {len(replacements)} module-replacements, {len(builtins)} node-builtins, "
        f"{len(polyfills)} polyfill-decay, {len(deprecations)} deprecated"
    )
    logger.info(f"After deduplication: {len(candidates)} unique candidates")
    return candidates


def sample_candidates(candidates: list[Candidate], limit: int) -> list[Candidate]:
    """Take a representative sample across sources for quick runs.

    Each source contributes up to ``limit // n_sources`` candidates (at least
    one); remaining slots are filled from the largest source.

    Args:
        candidates: Deduplicated candidates.
        limit: Maximum sample size. Zero or less returns the input unchanged.

    Returns:
        At most ``limit`` candidates.
    """
    if limit <= 0 or not candidates:
        return candidates

    by_source: dict[CandidateSource, list[Candidate]] = {}
    for candidate in candidates:
        by_source.setdefault(candidate.source, []).append(candidate)

    per_source = max(1, limit // len(by_source))
    sampled: list[Candidate] = []
    for group in by_source.values():
        sampled.extend(group[:per_source])

    largest = max(by_source.values(), key=len)
    for candidate in largest[per_source:]:
        if len(sampled) >= limit:
            break
        sampled.append(candidate)

    return sampled[:limit]


__all__ = ["SOURCE_PRIORITY", "deduplicate", "gather_candidates", "sample_candidates"]
