"""Candidates from the module-replacements project manifests.

The manifests are the community-maintained list of packages with native,
simple or documented replacements:
https://github.com/es-tooling/module-replacements
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import httpx
from pydantic import ValidationError

from e18e_analyzer.models.responses import Manifest, ManifestEntry
from e18e_analyzer.models.schemas import Candidate, CandidateSource, ReplacementType

logger = logging.getLogger(__name__)

MANIFEST_URL = "https://cdn.jsdelivr.net/npm/module-replacements/manifests"
MANIFESTS = ["native", "micro-utilities", "preferred"]


def normalize_entry(entry: ManifestEntry) -> Candidate | None:
    """Convert a manifest entry into a candidate.

    Args:
        entry: Validated manifest entry.

    Returns:
        Candidate, or None for entries of type ``none`` or unknown types.
    """
    if entry.type == "native":
        replacement_type = ReplacementType.NATIVE
        replacement = entry.replacement or "native built-in"
    elif entry.type == "simple":
        replacement_type = ReplacementType.SIMPLE
        replacement = entry.replacement or "inline expression"
    elif entry.type == "documented":
        replacement_type = ReplacementType.DOCUMENTED
        if entry.doc_path:
            replacement = f"See module-replacements docs: {entry.doc_path}"
        else:
            replacement = "documented alternative"
    else:
        return None

    return Candidate(
        module_name=entry.module_name,
        source=CandidateSource.MODULE_REPLACEMENTS,
        replacement_type=replacement_type,
        replacement=replacement,
        doc_path=entry.doc_path,
        min_node_version=entry.node_version,
    )


def parse_manifest(data: dict) -> list[Candidate]:
    """Parse a manifest document, skipping entries that fail validation."""
    manifest = Manifest.model_validate(data)
    candidates = []
    for raw in manifest.module_replacements:
        try:
            entry = ManifestEntry.model_validate(raw)
        except ValidationError as e:
            logger.debug(f"Skipping malformed manifest entry {raw!r}: {e}")
            continue
        candidate = normalize_entry(entry)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


async def _load_manifest(
    name: str,
    client: httpx.AsyncClient | None,
    manifest_dir: Path | None,
) -> dict | None:
    if manifest_dir is not None:
        path = manifest_dir / f"{name}.json"
        try:
            return json.loads(path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read manifest {path}: {e}")
            return None

    url = f"{MANIFEST_URL}/{name}.json"
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=30.0)
    try:
        response = await client.get(url)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as e:
        logger.warning(f"module-replacements manifest {name} returned {e.response.status_code}")
        return None
    except httpx.RequestError as e:
        logger.warning(f"module-replacements request error for {name}: {e}")
        return None
    except ValueError as e:
        logger.warning(f"module-replacements JSON decode error for {name}: {e}")
        return None
    finally:
        if owns_client:
            await client.aclose()


async def get_candidates(
    client: httpx.AsyncClient | None = None,
    manifest_dir: Path | None = None,
) -> list[Candidate]:
    """Load all manifests and return their candidates.

    Args:
        client: Optional shared httpx client for fetching manifests.
        manifest_dir: Read ``<name>.json`` manifests from this directory
            instead of the CDN.

    Returns:
        Candidates in manifest order. A manifest that cannot be loaded
        contributes nothing.
    """
    candidates: list[Candidate] = []
    for name in MANIFESTS:
        data = await _load_manifest(name, client, manifest_dir)
        if data is None:
            continue
        try:
            candidates.extend(parse_manifest(data))
        except ValidationError as e:
            logger.warning(f"Malformed module-replacements manifest {name}: {e}")
    return candidates
