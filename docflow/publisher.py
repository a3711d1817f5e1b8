"""
Publish generated documentation as a pull request.

Flow: default-branch head SHA → new ``docs/ai-generated-<role>-<ms>`` branch →
one contents commit per file → pull request back to the default branch.
A failure at any step aborts the publish, but the outcome always carries the
generated markdown.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

import httpx

from docflow.github_client import GitHubClient, GitHubError
from docflow.models import AnalysisResult, PublishOutcome, PullRequestResult, RepositoryRef, Role
from docflow.prompts import build_index_markdown, build_pull_request_body

logger = logging.getLogger("docflow.publisher")


def docs_directory(docs_dir: str | Path, repository_id: str) -> Path:
    """Local mirror directory for a repository (``owner/repo`` → ``owner_repo``)."""
    return Path(docs_dir) / repository_id.replace("/", "_")


def documentation_files(repo_name: str, role: Role, markdown: str) -> dict[str, str]:
    """Repository paths and contents committed for one role."""
    return {
        f"docs/{role.value}-guide.md": markdown,
        "docs/README.md": build_index_markdown(repo_name, role),
    }


def save_local_copy(ref: RepositoryRef, files: dict[str, str], docs_dir: str | Path) -> list[Path]:
    """Mirror generated files to disk so the chat service can load them."""
    target = docs_directory(docs_dir, ref.full_name)
    target.mkdir(parents=True, exist_ok=True)
    written = []
    for repo_path, content in files.items():
        local = target / Path(repo_path).name
        local.write_text(content, encoding="utf-8")
        written.append(local)
    logger.info("Saved %d doc files to %s", len(written), target)
    return written


class DocPublisher:
    def __init__(self, github: GitHubClient, clock: Callable[[], float] = time.time) -> None:
        self._github = github
        self._clock = clock

    def branch_name(self, role: Role) -> str:
        return f"docs/ai-generated-{role.value}-{int(self._clock() * 1000)}"

    async def publish(
        self,
        ref: RepositoryRef,
        role: Role,
        markdown: str,
        repo_info: dict,
        analysis: AnalysisResult | None = None,
    ) -> PublishOutcome:
        """Commit the docs on a fresh branch and open a PR.

        Never raises for GitHub or transport failures; those come back as
        ``PublishOutcome.error`` with ``markdown`` intact.
        """
        base = repo_info.get("default_branch") or "main"
        branch = self.branch_name(role)
        files = documentation_files(repo_info.get("name") or ref.repo, role, markdown)

        try:
            sha = await self._github.get_branch_sha(ref, base)
            await self._github.create_branch(ref, branch, sha)
            logger.info("Created branch %s on %s", branch, ref.full_name)

            for path, content in files.items():
                existing = await self._github.get_file_sha(ref, path, branch)
                await self._github.put_file(
                    ref,
                    path,
                    content,
                    message=f"Add AI-generated {role.value} documentation: {path}",
                    branch=branch,
                    sha=existing,
                )
                logger.info("Committed %s", path)

            pr = await self._github.create_pull_request(
                ref,
                title=f"AI-Generated {role.display_name} Documentation",
                head=branch,
                base=base,
                body=build_pull_request_body(
                    role,
                    analysis or AnalysisResult(),
                    repo_info.get("language"),
                    list(files),
                ),
            )
        except (GitHubError, httpx.HTTPError) as exc:
            logger.error("Publishing docs to %s failed: %s", ref.full_name, exc)
            return PublishOutcome(markdown=markdown, error=str(exc))

        result = PullRequestResult(
            number=pr["number"],
            url=pr["html_url"],
            branch_name=branch,
            files_created=list(files),
        )
        logger.info("Opened PR #%d on %s", result.number, ref.full_name)
        return PublishOutcome(markdown=markdown, pull_request=result)
