"""Tests for libraries.io graph expansion and warehouse merging."""

import httpx
import pytest

from e18e_analyzer.analyzers.graph import GraphExpander, merge_warehouse_dependents
from e18e_analyzer.analyzers.libraries_io import LibrariesIoFetcher
from e18e_analyzer.cache import GraphCache
from e18e_analyzer.config import AnalyzerConfig
from e18e_analyzer.models.schemas import DependentRepo, GraphData

PACKAGES = {
    "/api/NPM/left-pad": {"dependents_count": 120, "dependent_repos_count": 900},
    "/api/NPM/tiny": {"dependents_count": 3, "dependent_repos_count": 1},
}
DEPENDENT_REPOS = [
    {"full_name": "acme/app", "stargazers_count": 500, "pushed_at": "2026-01-01T00:00:00Z"},
    {"full_name": "acme/app", "stargazers_count": 500},
    {"full_name": "beta/site", "stargazers_count": 20},
]


class LibrariesIoStub:
    """Mock libraries.io endpoints and record requests."""

    def __init__(self):
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/dependent_repositories"):
            return httpx.Response(200, json=DEPENDENT_REPOS)
        if path in PACKAGES:
            return httpx.Response(200, json=PACKAGES[path])
        return httpx.Response(404)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def config():
    return AnalyzerConfig(libraries_io_api_key="secret-key", graph_dependents_threshold=50)


class TestGraphExpander:
    """Test the two-phase expansion."""

    @pytest.mark.asyncio
    async def test_without_key_every_package_is_zero(self, make_candidate):
        """Should skip expansion and return empty graph data."""
        expander = GraphExpander(AnalyzerConfig(), None)
        graph = await expander.expand([make_candidate("left-pad"), make_candidate("tiny")])
        assert graph == {"left-pad": GraphData(), "tiny": GraphData()}

    @pytest.mark.asyncio
    async def test_top_repos_only_above_threshold(self, config, make_candidate, make_limiter):
        """Should fetch dependents for high-impact packages and dedupe them."""
        stub = LibrariesIoStub()
        async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as client:
            fetcher = LibrariesIoFetcher("secret-key", client, limiter=make_limiter(client))
            graph = await GraphExpander(config, fetcher).expand(
                [make_candidate("left-pad"), make_candidate("tiny"), make_candidate("missing")]
            )

        assert graph["left-pad"].dependent_count == 120
        assert graph["left-pad"].dependent_repos_count == 900
        assert graph["left-pad"].top_dependent_repos == [
            DependentRepo(name="acme/app", stars=500, pushed_at="2026-01-01T00:00:00Z"),
            DependentRepo(name="beta/site", stars=20),
        ]
        assert graph["tiny"] == GraphData(dependent_count=3, dependent_repos_count=1)
        assert graph["missing"] == GraphData()
        assert "/api/NPM/tiny/dependent_repositories" not in stub.paths

    @pytest.mark.asyncio
    async def test_requests_carry_key_and_paging(self, config, make_candidate, make_limiter):
        """Should authenticate every call and sort dependents by rank."""
        stub = LibrariesIoStub()
        async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as client:
            fetcher = LibrariesIoFetcher("secret-key", client, limiter=make_limiter(client))
            await GraphExpander(config, fetcher).expand([make_candidate("left-pad")])

        assert all(r.url.params["api_key"] == "secret-key" for r in stub.requests)
        dependents_request = next(r for r in stub.requests if r.url.path.endswith("/dependent_repositories"))
        assert dependents_request.url.params["per_page"] == "30"
        assert dependents_request.url.params["sort"] == "rank"

    @pytest.mark.asyncio
    async def test_cache_hits_skip_requests(self, config, make_candidate, make_limiter, tmp_path):
        """Should serve cached packages and store fresh fetches."""
        cache = GraphCache(tmp_path / "graph.json")
        cached = GraphData(dependent_count=7)
        cache.set("left-pad", cached)

        stub = LibrariesIoStub()
        async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as client:
            fetcher = LibrariesIoFetcher("secret-key", client, limiter=make_limiter(client))
            graph = await GraphExpander(config, fetcher, cache).expand(
                [make_candidate("left-pad"), make_candidate("tiny")]
            )

        assert graph["left-pad"] == cached
        assert stub.paths == ["/api/NPM/tiny"]
        assert cache.get("tiny") == GraphData(dependent_count=3, dependent_repos_count=1)

    @pytest.mark.asyncio
    async def test_server_errors_degrade_to_zero(self, config, make_candidate, make_limiter):
        """Should record zero dependents when libraries.io fails."""
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))) as client:
            fetcher = LibrariesIoFetcher("secret-key", client, limiter=make_limiter(client))
            graph = await GraphExpander(config, fetcher).expand([make_candidate("left-pad")])

        assert graph == {"left-pad": GraphData()}


class TestWarehouseMerge:
    """Test folding direct dependents into graph data."""

    def test_merge_returns_new_mapping(self):
        """Should attach package dependents without touching the input."""
        graph = {"left-pad": GraphData(dependent_count=5), "rimraf": GraphData()}
        warehouse = {"left-pad": ["react", "vue"], "not-a-candidate": ["x"]}
        repo_urls = {"react": "https://github.com/facebook/react", "vue": None}

        merged = merge_warehouse_dependents(graph, warehouse, repo_urls)

        assert graph["left-pad"].top_dependent_packages == []
        assert "not-a-candidate" not in merged
        packages = merged["left-pad"].top_dependent_packages
        assert [(p.name, p.stars, p.repo_url) for p in packages] == [
            ("react", 0, "https://github.com/facebook/react"),
            ("vue", 0, None),
        ]
        assert merged["left-pad"].dependent_count == 5
        assert merged["rimraf"] == GraphData()
