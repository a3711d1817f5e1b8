"""
GitHub URL parsing.

The ``github.com/<owner>/<repo>`` part may appear anywhere in the input, so
all of these resolve to ``("owner", "repo")``:
  https://github.com/owner/repo
  https://github.com/owner/repo.git
  https://github.com/owner/repo/tree/main/src
  github.com/owner/repo?tab=readme-ov-file

Anything else raises InvalidRepositoryUrl with a human-readable message.
"""

from __future__ import annotations

import re

from docflow.models import RepositoryRef

_GITHUB_URL_RE = re.compile(r"github\.com/(?P<owner>[^/]+)/(?P<repo>[^/?#]+)")


class InvalidRepositoryUrl(ValueError):
    """The input does not contain a github.com/<owner>/<repo> reference."""


def parse_github_url(url: str) -> RepositoryRef:
    """Return the RepositoryRef named by a GitHub URL.

    Raises ``InvalidRepositoryUrl`` (a ``ValueError``) when no
    owner/repo pair can be found.
    """
    if not url or not url.strip():
        raise InvalidRepositoryUrl("Repository URL must not be empty.")

    url = url.strip()

    match = _GITHUB_URL_RE.search(url)
    if not match:
        raise InvalidRepositoryUrl(
            f"Invalid GitHub repository URL: '{url}'. "
            "Expected format: https://github.com/owner/repo"
        )

    owner = match.group("owner").strip()
    repo = match.group("repo").strip()
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]

    if not owner or not repo:
        raise InvalidRepositoryUrl(
            f"Invalid GitHub repository URL: '{url}'. Owner and repository are required."
        )

    return RepositoryRef(owner, repo)
