"""Repository URL helpers shared by the registry adapter and analyzers."""

import re

GITHUB_OWNER_REPO = re.compile(r"github\.com/([^/]+)/([^/]+)")
GITHUB_FULL_NAME = re.compile(r"github\.com/([^/]+/[^/]+)")


def normalize_git_url(url: str) -> str | None:
    """Normalize an npm ``repository`` URL to a browsable GitHub URL.

    Handles the common package.json forms:
    - git+https://github.com/owner/repo.git
    - git://github.com/owner/repo.git
    - ssh://git@github.com/owner/repo.git
    - github:owner/repo

    Args:
        url: Raw repository URL from registry metadata.

    Returns:
        https URL, or None when the repository is not hosted on GitHub.
    """
    if not url:
        return None

    normalized = re.sub(r"^git\+", "", url)
    normalized = re.sub(r"^git://", "https://", normalized)
    normalized = re.sub(r"\.git$", "", normalized)
    normalized = re.sub(r"^ssh://git@github\.com", "https://github.com", normalized)

    if normalized.startswith("github:"):
        normalized = f"https://github.com/{normalized[len('github:'):]}"

    if "github.com" in normalized:
        return normalized
    return None


def parse_github_owner_repo(url: str | None) -> tuple[str, str] | None:
    """Extract ``(owner, repo)`` from a GitHub URL."""
    if not url:
        return None
    match = GITHUB_OWNER_REPO.search(url)
    if not match:
        return None
    return match.group(1), match.group(2)


def parse_repo_full_name(url: str | None) -> str | None:
    """Extract a normalized ``owner/repo`` key from a GitHub URL.

    Trailing ``.git`` and ``/`` are removed so the same repository always
    maps to the same key.
    """
    if not url:
        return None
    match = GITHUB_FULL_NAME.search(url)
    if not match:
        return None
    return normalize_full_name(match.group(1))


def normalize_full_name(name: str) -> str:
    """Strip trailing ``/`` and ``.git`` from an ``owner/repo`` string."""
    name = name.rstrip("/")
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name
