"""Schemas for third-party API responses.

Each upstream response shape is validated once at the boundary. Callers
catch ``pydantic.ValidationError`` and fall back to the documented empty
default for that signal.
"""

from typing import Any

from pydantic import BaseModel, Field

# --- npm ---


class NpmDownloadPoint(BaseModel):
    downloads: int = 0
    package: str | None = None


class NpmRepository(BaseModel):
    url: str | None = None
    type: str | None = None


class NpmVersion(BaseModel):
    deprecated: str | bool | None = None


class NpmPackument(BaseModel):
    """Subset of https://registry.npmjs.org/{name} we rely on."""

    name: str | None = None
    repository: NpmRepository | str | None = None
    time: dict[str, Any] = Field(default_factory=dict)
    dist_tags: dict[str, str] = Field(default_factory=dict, alias="dist-tags")
    versions: dict[str, NpmVersion] = Field(default_factory=dict)


class NpmSearchPackage(BaseModel):
    name: str


class NpmSearchObject(BaseModel):
    package: NpmSearchPackage


class NpmSearchResponse(BaseModel):
    objects: list[NpmSearchObject] = Field(default_factory=list)
    total: int | None = None


# --- libraries.io ---


class LibrariesIoPackage(BaseModel):
    dependents_count: int = 0
    dependent_repos_count: int = 0
    rank: int | None = None


class LibrariesIoDependentRepo(BaseModel):
    full_name: str
    stargazers_count: int = 0
    rank: int | None = None
    pushed_at: str | None = None


# --- GitHub ---


class GitHubRepoResponse(BaseModel):
    archived: bool = False
    open_issues_count: int = 0
    pushed_at: str | None = None
    stargazers_count: int = 0


class GitHubPull(BaseModel):
    author_association: str = "NONE"
    merged_at: str | None = None


class GitHubRelease(BaseModel):
    published_at: str | None = None


# --- module-replacements manifests ---


class ManifestEntry(BaseModel):
    type: str
    module_name: str = Field(alias="moduleName")
    replacement: str | None = None
    doc_path: str | None = Field(default=None, alias="docPath")
    node_version: str | None = Field(default=None, alias="nodeVersion")
    category: str | None = None


class Manifest(BaseModel):
    module_replacements: list[dict] = Field(default_factory=list, alias="moduleReplacements")


# --- BigQuery rows ---


class SnapshotRow(BaseModel):
    latest: str | None = None


class DependentRow(BaseModel):
    package: str
    dep: str
