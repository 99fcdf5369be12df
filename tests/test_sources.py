"""Tests for candidate sources, deduplication and sampling."""

import json

import httpx
import pytest

from e18e_analyzer.models.responses import ManifestEntry
from e18e_analyzer.models.schemas import CandidateSource, ReplacementType
from e18e_analyzer.sources import deduplicate, gather_candidates, sample_candidates
from e18e_analyzer.sources import deprecated, module_replacements, node_builtins, polyfill_decay

NATIVE_MANIFEST = {
    "moduleReplacements": [
        {"type": "native", "moduleName": "left-pad", "replacement": "String.prototype.padStart"},
        {"type": "native", "moduleName": "object-assign"},
        {"type": "none", "moduleName": "lodash"},
        {"type": "native"},
    ]
}


class TestStaticCatalogs:
    """Test the built-in candidate tables."""

    @pytest.mark.asyncio
    async def test_node_builtins_carry_min_node_version(self):
        """Should emit native candidates with a minimum Node version."""
        candidates = await node_builtins.get_candidates()
        assert candidates
        assert all(c.source == CandidateSource.NODE_BUILTIN for c in candidates)
        assert all(c.replacement_type == ReplacementType.NATIVE for c in candidates)
        assert all(c.min_node_version for c in candidates)

    @pytest.mark.asyncio
    async def test_deprecated_are_removals(self):
        """Should emit remove-type candidates."""
        candidates = await deprecated.get_candidates()
        by_name = {c.module_name: c for c in candidates}
        assert by_name["request"].replacement_type == ReplacementType.REMOVE
        assert by_name["request"].source == CandidateSource.DEPRECATED

    @pytest.mark.asyncio
    async def test_polyfills_are_native(self):
        """Should emit native candidates from the polyfill table."""
        candidates = await polyfill_decay.get_candidates()
        names = {c.module_name for c in candidates}
        assert "object-assign" in names
        assert all(c.source == CandidateSource.POLYFILL_DECAY for c in candidates)


class TestManifestNormalization:
    """Test module-replacements entry handling."""

    def test_native_without_replacement_gets_default_text(self):
        """Should fill in a generic replacement for native entries."""
        entry = ManifestEntry.model_validate({"type": "native", "moduleName": "object-assign"})
        candidate = module_replacements.normalize_entry(entry)
        assert candidate.replacement == "native built-in"
        assert candidate.replacement_type == ReplacementType.NATIVE

    def test_documented_entry_points_to_docs(self):
        """Should keep the doc path and mention it in the replacement."""
        entry = ManifestEntry.model_validate(
            {"type": "documented", "moduleName": "moment", "docPath": "moment"}
        )
        candidate = module_replacements.normalize_entry(entry)
        assert candidate.replacement_type == ReplacementType.DOCUMENTED
        assert candidate.doc_path == "moment"
        assert "moment" in candidate.replacement

    def test_none_entries_are_dropped(self):
        """Should skip entries with no replacement."""
        entry = ManifestEntry.model_validate({"type": "none", "moduleName": "lodash"})
        assert module_replacements.normalize_entry(entry) is None

    def test_malformed_entries_are_skipped(self):
        """Should keep valid entries when others fail validation."""
        candidates = module_replacements.parse_manifest(NATIVE_MANIFEST)
        assert [c.module_name for c in candidates] == ["left-pad", "object-assign"]

    @pytest.mark.asyncio
    async def test_loads_manifests_from_directory(self, tmp_path):
        """Should read local manifests and tolerate missing ones."""
        (tmp_path / "native.json").write_text(json.dumps(NATIVE_MANIFEST))
        (tmp_path / "preferred.json").write_text("{broken")

        candidates = await module_replacements.get_candidates(manifest_dir=tmp_path)
        assert [c.module_name for c in candidates] == ["left-pad", "object-assign"]

    @pytest.mark.asyncio
    async def test_fetches_manifests_over_http(self):
        """Should fetch every manifest from the CDN and skip failed ones."""
        requested = []

        def handler(request):
            requested.append(request.url.path)
            if request.url.path.endswith("/native.json"):
                return httpx.Response(200, json=NATIVE_MANIFEST)
            if request.url.path.endswith("/preferred.json"):
                return httpx.Response(
                    200,
                    json={"moduleReplacements": [{"type": "documented", "moduleName": "moment", "docPath": "moment"}]},
                )
            return httpx.Response(404)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            candidates = await module_replacements.get_candidates(client=client)

        assert len(requested) == 3
        assert [c.module_name for c in candidates] == ["left-pad", "object-assign", "moment"]


class TestAggregation:
    """Test deduplication and sampling across sources."""

    def test_higher_priority_source_wins(self, make_candidate):
        """Should prefer module-replacements over the deprecated list."""
        deprecated_pad = make_candidate("left-pad", source=CandidateSource.DEPRECATED)
        other = make_candidate("rimraf", source=CandidateSource.NODE_BUILTIN)
        replacement_pad = make_candidate("left-pad", source=CandidateSource.MODULE_REPLACEMENTS)

        result = deduplicate([deprecated_pad, other, replacement_pad])

        assert [c.module_name for c in result] == ["left-pad", "rimraf"]
        assert result[0].source == CandidateSource.MODULE_REPLACEMENTS

    def test_equal_priority_keeps_first(self, make_candidate):
        """Should keep the first candidate when sources tie."""
        first = make_candidate("left-pad", replacement="first")
        second = make_candidate("left-pad", replacement="second")
        assert deduplicate([first, second]) == [first]

    @pytest.mark.asyncio
    async def test_gather_yields_unique_names(self, tmp_path):
        """Should produce one candidate per module name across all sources."""
        (tmp_path / "native.json").write_text(json.dumps(NATIVE_MANIFEST))

        candidates = await gather_candidates(manifest_dir=tmp_path)
        names = [c.module_name for c in candidates]

        assert len(names) == len(set(names))
        by_name = {c.module_name: c for c in candidates}
        # left-pad is also in the deprecated list
        assert by_name["left-pad"].source == CandidateSource.MODULE_REPLACEMENTS
        assert by_name["object-assign"].source == CandidateSource.MODULE_REPLACEMENTS

    def test_sample_covers_every_source(self, make_candidate):
        """Should draw from each source and fill up from the largest."""
        candidates = (
            [make_candidate(f"mr-{i}", source=CandidateSource.MODULE_REPLACEMENTS) for i in range(10)]
            + [make_candidate(f"nb-{i}", source=CandidateSource.NODE_BUILTIN) for i in range(2)]
            + [make_candidate(f"dep-{i}", source=CandidateSource.DEPRECATED) for i in range(5)]
        )

        sampled = sample_candidates(candidates, 9)

        assert len(sampled) == 9
        assert {c.source for c in sampled} == {
            CandidateSource.MODULE_REPLACEMENTS,
            CandidateSource.NODE_BUILTIN,
            CandidateSource.DEPRECATED,
        }
        assert sum(c.source == CandidateSource.MODULE_REPLACEMENTS for c in sampled) == 4

    def test_sample_without_limit_returns_everything(self, make_candidate):
        candidates = [make_candidate(f"pkg-{i}") for i in range(3)]
        assert sample_candidates(candidates, 0) == candidates
