"""Tests for joining candidates with npm and GitHub signals."""

import httpx
import pytest

from e18e_analyzer.adapters.npm import NpmAdapter
from e18e_analyzer.analyzers.enrich import Enricher
from e18e_analyzer.analyzers.github import GitHubFetcher
from e18e_analyzer.config import AnalyzerConfig
from e18e_analyzer.models.schemas import DependentRepo, GraphData, RepoHealth, TopDependent

SHARED_REPO = {"type": "git", "url": "git+https://github.com/owner/repo.git"}


class UpstreamStub:
    """npm registry, npm downloads and GitHub behind one transport."""

    def __init__(self):
        self.github_paths: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        path = request.url.path
        if host == "api.npmjs.org":
            target = path.split("/last-week/", 1)[1]
            if "," in target:
                return httpx.Response(
                    200,
                    json={"a": {"downloads": 100, "package": "a"}, "b": {"downloads": 50, "package": "b"}},
                )
            return httpx.Response(200, json={"downloads": 7, "package": target})
        if host == "registry.npmjs.org":
            if path in ("/a", "/b"):
                return httpx.Response(
                    200,
                    json={"repository": SHARED_REPO, "time": {"modified": "2025-01-01T00:00:00Z"}},
                )
            return httpx.Response(200, json={"name": "no-repo"})
        if host == "api.github.com":
            self.github_paths.append(path)
            if path == "/repos/owner/repo":
                return httpx.Response(200, json={"pushed_at": "2026-02-19T00:00:00Z", "stargazers_count": 10})
            return httpx.Response(404)
        return httpx.Response(404)


@pytest.mark.asyncio
async def test_enrich_joins_all_signals(make_candidate, make_limiter, fixed_now):
    """Should join downloads, metadata, graph and shared repository health."""
    stub = UpstreamStub()
    graph = {
        "a": GraphData(dependent_count=80, top_dependent_repos=[DependentRepo(name="acme/app", stars=500)]),
    }
    candidates = [make_candidate("a"), make_candidate("b"), make_candidate("@scope/c")]

    async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as client:
        limiter = make_limiter(client)
        npm = NpmAdapter(client, limiter=limiter)
        github = GitHubFetcher("token", client, limiter=limiter, now=fixed_now)
        packages = await Enricher(AnalyzerConfig(github_token="token"), npm, github).enrich(candidates, graph)

    a, b, c = packages
    assert [p.module_name for p in packages] == ["a", "b", "@scope/c"]
    assert (a.weekly_downloads, b.weekly_downloads, c.weekly_downloads) == (100, 50, 7)
    assert a.repo_url == "https://github.com/owner/repo"
    assert a.last_publish_date == "2025-01-01T00:00:00Z"
    assert a.dependent_count == 80
    assert a.top_dependents == [TopDependent(name="acme/app", downloads=500)]
    assert b.dependent_count == 0
    assert a.health == b.health
    assert a.health.days_since_last_commit == 10
    assert c.health == RepoHealth()
    # two packages share one repository
    assert stub.github_paths.count("/repos/owner/repo") == 1


@pytest.mark.asyncio
async def test_enrich_without_token_skips_github(make_candidate, make_limiter):
    """Should leave health at defaults and never call GitHub."""
    stub = UpstreamStub()
    async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as client:
        limiter = make_limiter(client)
        npm = NpmAdapter(client, limiter=limiter)
        github = GitHubFetcher(None, client, limiter=limiter)
        packages = await Enricher(AnalyzerConfig(), npm, github).enrich([make_candidate("a")], {})

    assert packages[0].weekly_downloads == 7
    assert packages[0].health == RepoHealth()
    assert stub.github_paths == []
