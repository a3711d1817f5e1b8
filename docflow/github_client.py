"""
Async GitHub REST API client.

Features:
- httpx.AsyncClient with configurable timeouts.
- Status mapping onto typed errors (auth, not found, rate limit, upstream).
- Proper 403 rate-limit handling (reads X-RateLimit-Reset header).
- Recursive tree fetch and bounded-concurrency file downloads.
- Branch, contents and pull-request writes used for publishing docs.
"""

from __future__ import annotations

import asyncio
import base64
import datetime as _dt
import logging
import time
from typing import Any

import httpx

from docflow.models import FileEntry, RepositoryRef
from docflow.settings import settings

logger = logging.getLogger("docflow.github_client")


# ── Custom exceptions ──────────────────────────────────────────
class GitHubError(Exception):
    """Base for GitHub-related errors."""

    status_code = 502


class AuthenticationError(GitHubError):
    """401/403: token missing, invalid or lacking permissions."""

    status_code = 401

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


class RepoNotFoundError(GitHubError):
    """404: repository or path doesn't exist, or is private."""

    status_code = 404


class RateLimitError(GitHubError):
    """403/429: rate limit exceeded."""

    status_code = 429

    def __init__(self, message: str, reset_timestamp: int | None = None):
        super().__init__(message)
        self.reset_timestamp = reset_timestamp


class UpstreamError(GitHubError):
    """5xx or network failure: GitHub itself is having issues."""

    status_code = 502


# ── Helpers ─────────────────────────────────────────────────────
def _rate_limit_reset(response: httpx.Response) -> int | None:
    """Extract X-RateLimit-Reset header (unix timestamp) if present."""
    val = response.headers.get("x-ratelimit-reset")
    if val and val.isdigit():
        return int(val)
    return None


def _check_rate_limit(response: httpx.Response) -> None:
    """Raise RateLimitError if response indicates rate limiting."""
    if response.status_code not in (403, 429):
        return
    remaining = response.headers.get("x-ratelimit-remaining")
    # GitHub returns 403 with remaining=0 when rate-limited
    if response.status_code == 429 or remaining == "0":
        reset_ts = _rate_limit_reset(response)
        hint = " Try again later."
        if reset_ts:
            reset_dt = _dt.datetime.fromtimestamp(reset_ts, tz=_dt.timezone.utc)
            hint = f" Try again after {reset_dt.strftime('%Y-%m-%d %H:%M:%S UTC')}."
        raise RateLimitError(f"GitHub rate limit hit.{hint}", reset_timestamp=reset_ts)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


# ── Client ──────────────────────────────────────────────────────
class GitHubClient:
    """Async GitHub REST API wrapper."""

    def __init__(self, client: httpx.AsyncClient | None = None, token: str | None = None) -> None:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "docflow/1.0",
        }
        token = token if token is not None else settings.github_token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = client or httpx.AsyncClient(
            base_url=settings.github_api_base,
            headers=headers,
            timeout=httpx.Timeout(
                connect=settings.http_connect_timeout,
                read=settings.http_read_timeout,
                write=settings.http_read_timeout,
                pool=settings.http_read_timeout,
            ),
        )

    # ── Low-level request ──────────────────────────────────────
    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Fire one HTTP request and map failures onto GitHubError subclasses."""
        t0 = time.perf_counter()
        try:
            resp = await self._client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as exc:
            raise UpstreamError(f"GitHub request timed out: {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"GitHub request failed: {method} {path}: {exc}") from exc

        logger.debug(
            "%s %s -> %d (%.1f ms)",
            method, path, resp.status_code, (time.perf_counter() - t0) * 1000,
        )

        if resp.status_code < 400:
            return resp

        _check_rate_limit(resp)

        if resp.status_code in (401, 403):
            raise AuthenticationError(
                f"GitHub denied access to {path}: {_error_message(resp)}",
                status_code=resp.status_code,
            )
        if resp.status_code == 404:
            raise RepoNotFoundError(f"Repository not found or private: {path}")
        if resp.status_code >= 500:
            raise UpstreamError(f"GitHub returned {resp.status_code} for {path}")

        raise GitHubError(f"GitHub returned {resp.status_code} for {path}: {_error_message(resp)}")

    # ── Reads ──────────────────────────────────────────────────
    async def get_repo(self, ref: RepositoryRef) -> dict:
        resp = await self._request("GET", f"/repos/{ref.owner}/{ref.repo}")
        return resp.json()

    async def get_tree(self, ref: RepositoryRef, branch: str) -> list[dict]:
        """Full recursive tree for ``branch``: a list of {path, type, size} nodes."""
        resp = await self._request(
            "GET",
            f"/repos/{ref.owner}/{ref.repo}/git/trees/{branch}",
            params={"recursive": "1"},
        )
        data = resp.json()
        if data.get("truncated"):
            logger.warning("Tree for %s was truncated by GitHub", ref.full_name)
        return data.get("tree", [])

    async def get_file(self, ref: RepositoryRef, path: str) -> FileEntry:
        """Fetch one file via the contents API and decode it as UTF-8 text."""
        resp = await self._request("GET", f"/repos/{ref.owner}/{ref.repo}/contents/{path}")
        data = resp.json()
        if isinstance(data, list):
            raise GitHubError(f"{path} is a directory, not a file")

        raw = data.get("content") or ""
        if data.get("encoding", "base64") == "base64":
            content = base64.b64decode(raw).decode("utf-8", errors="replace")
        else:
            content = raw
        return FileEntry(path=path, content=content, size=data.get("size", len(content)))

    async def fetch_files(self, ref: RepositoryRef, paths: list[str]) -> list[FileEntry]:
        """Download ``paths`` with at most ``fetch_concurrency`` requests in flight.

        Individual failures are logged and dropped; the surviving files keep
        the order of ``paths``.
        """
        semaphore = asyncio.Semaphore(max(1, settings.fetch_concurrency))

        async def _fetch(path: str) -> FileEntry | None:
            async with semaphore:
                try:
                    return await self.get_file(ref, path)
                except (GitHubError, ValueError) as exc:
                    logger.warning("Failed to fetch %s: %s", path, exc)
                    return None

        results = await asyncio.gather(*(_fetch(p) for p in paths))
        files = [entry for entry in results if entry is not None]
        logger.info("Fetched %d/%d files from %s", len(files), len(paths), ref.full_name)
        return files

    async def get_branch_sha(self, ref: RepositoryRef, branch: str) -> str:
        resp = await self._request("GET", f"/repos/{ref.owner}/{ref.repo}/branches/{branch}")
        return resp.json()["commit"]["sha"]

    async def get_file_sha(self, ref: RepositoryRef, path: str, branch: str) -> str | None:
        """Blob SHA of an existing file on ``branch``; None when it does not exist."""
        try:
            resp = await self._request(
                "GET",
                f"/repos/{ref.owner}/{ref.repo}/contents/{path}",
                params={"ref": branch},
            )
        except RepoNotFoundError:
            return None
        data = resp.json()
        return data.get("sha") if isinstance(data, dict) else None

    # ── Writes ─────────────────────────────────────────────────
    async def create_branch(self, ref: RepositoryRef, branch: str, sha: str) -> None:
        await self._request(
            "POST",
            f"/repos/{ref.owner}/{ref.repo}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    async def put_file(
        self,
        ref: RepositoryRef,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: str | None = None,
    ) -> dict:
        """Create or update ``path`` on ``branch`` (``sha`` required to update)."""
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if sha:
            body["sha"] = sha
        resp = await self._request("PUT", f"/repos/{ref.owner}/{ref.repo}/contents/{path}", json=body)
        return resp.json()

    async def create_pull_request(
        self,
        ref: RepositoryRef,
        *,
        title: str,
        head: str,
        base: str,
        body: str,
    ) -> dict:
        resp = await self._request(
            "POST",
            f"/repos/{ref.owner}/{ref.repo}/pulls",
            json={
                "title": title,
                "head": head,
                "base": base,
                "body": body,
                "maintainer_can_modify": True,
            },
        )
        return resp.json()

    async def aclose(self) -> None:
        await self._client.aclose()
