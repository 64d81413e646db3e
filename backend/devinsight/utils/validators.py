"""GitHub repository URL parsing and validation."""

from __future__ import annotations

import re

from devinsight.utils.exceptions import ValidationError


_OWNER = r"[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?"
_REPO = r"[a-zA-Z0-9._-]+?"

_GITHUB_PATTERNS = (
    re.compile(rf"^https?://(?:www\.)?github\.com/({_OWNER})/({_REPO})(?:\.git)?(?:/.*)?$", re.IGNORECASE),
    re.compile(rf"^(?:www\.)?github\.com/({_OWNER})/({_REPO})(?:\.git)?(?:/.*)?$", re.IGNORECASE),
    re.compile(rf"^git@github\.com:({_OWNER})/({_REPO})(?:\.git)?$", re.IGNORECASE),
)

MAX_OWNER_LENGTH = 39
MAX_REPO_LENGTH = 100


def parse_github_url(url: str) -> tuple[str, str]:
    """
    Split a GitHub repository URL into ``(owner, repo)``.

    Accepts https URLs (with or without ``www``), bare ``github.com/...``
    paths and ``git@github.com:owner/repo.git`` clone URLs.

    Raises:
        ValidationError: Not a recognisable GitHub repository URL.
    """
    if not url or not isinstance(url, str):
        raise ValidationError("URL is required and must be a string", field="repoUrl")

    trimmed = url.strip()
    for pattern in _GITHUB_PATTERNS:
        m = pattern.match(trimmed)
        if m:
            owner, repo = m.group(1), m.group(2)
            break
    else:
        raise ValidationError(
            "Invalid GitHub URL format. Expected: https://github.com/owner/repo",
            field="repoUrl",
        )

    repo = repo.removesuffix(".git")
    if len(owner) > MAX_OWNER_LENGTH or "--" in owner:
        raise ValidationError(f"Invalid repository owner: {owner}", field="repoUrl")
    if not repo or len(repo) > MAX_REPO_LENGTH or repo in {".", ".."}:
        raise ValidationError(f"Invalid repository name: {repo}", field="repoUrl")
    return owner, repo


def normalise_github_url(url: str) -> str:
    """Canonical ``https://github.com/owner/repo`` form."""
    owner, repo = parse_github_url(url)
    return f"https://github.com/{owner}/{repo}"
