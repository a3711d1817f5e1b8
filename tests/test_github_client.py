"""Tests for docflow.github_client: all HTTP calls mocked via respx."""

import asyncio
import base64
import json

import httpx
import pytest
import pytest_asyncio
import respx

from docflow.github_client import (
    AuthenticationError,
    GitHubClient,
    GitHubError,
    RateLimitError,
    RepoNotFoundError,
    UpstreamError,
)
from docflow.models import FileEntry, RepositoryRef
from docflow.settings import settings

API = "https://api.github.com/repos/acme/shop"
REF = RepositoryRef("acme", "shop")


def _contents(text: str) -> dict:
    return {"content": base64.b64encode(text.encode()).decode(), "encoding": "base64", "size": len(text), "sha": "blob-sha"}


@pytest_asyncio.fixture
async def gh():
    async with httpx.AsyncClient(base_url="https://api.github.com") as hc:
        yield GitHubClient(client=hc)


# ── Repo metadata ──────────────────────────────────────────────
@pytest.mark.asyncio
@respx.mock
async def test_get_repo_success(gh):
    respx.get(API).mock(return_value=httpx.Response(200, json={"name": "shop", "default_branch": "trunk"}))
    data = await gh.get_repo(REF)
    assert data["default_branch"] == "trunk"


@pytest.mark.asyncio
@respx.mock
async def test_get_repo_not_found(gh):
    respx.get(API).mock(return_value=httpx.Response(404, json={"message": "Not Found"}))
    with pytest.raises(RepoNotFoundError) as exc_info:
        await gh.get_repo(REF)
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
@respx.mock
async def test_bad_credentials(gh):
    respx.get(API).mock(return_value=httpx.Response(401, json={"message": "Bad credentials"}))
    with pytest.raises(AuthenticationError) as exc_info:
        await gh.get_repo(REF)
    assert exc_info.value.status_code == 401
    assert "Bad credentials" in str(exc_info.value)


@pytest.mark.asyncio
@respx.mock
async def test_forbidden_without_rate_limit_is_auth_error(gh):
    respx.get(API).mock(
        return_value=httpx.Response(403, json={"message": "Resource not accessible"}, headers={"x-ratelimit-remaining": "42"})
    )
    with pytest.raises(AuthenticationError) as exc_info:
        await gh.get_repo(REF)
    assert exc_info.value.status_code == 403


# ── Rate limit ─────────────────────────────────────────────────
@pytest.mark.asyncio
@respx.mock
async def test_rate_limited(gh):
    respx.get(API).mock(
        return_value=httpx.Response(
            403,
            json={"message": "API rate limit exceeded"},
            headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": "1700000000"},
        )
    )
    with pytest.raises(RateLimitError) as exc_info:
        await gh.get_repo(REF)
    assert exc_info.value.reset_timestamp == 1700000000
    assert exc_info.value.status_code == 429
    assert "2023-11-14" in str(exc_info.value)


# ── Upstream failures ──────────────────────────────────────────
@pytest.mark.asyncio
@respx.mock
async def test_server_error_is_not_retried(gh):
    route = respx.get(API).mock(return_value=httpx.Response(502))
    with pytest.raises(UpstreamError):
        await gh.get_repo(REF)
    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_timeout_is_upstream_error(gh):
    respx.get(API).mock(side_effect=httpx.ReadTimeout("timed out"))
    with pytest.raises(UpstreamError, match="timed out"):
        await gh.get_repo(REF)


@pytest.mark.asyncio
@respx.mock
async def test_other_client_errors(gh):
    respx.post(f"{API}/git/refs").mock(
        return_value=httpx.Response(422, json={"message": "Reference already exists"})
    )
    with pytest.raises(GitHubError, match="Reference already exists"):
        await gh.create_branch(REF, "docs/x", "abc")


# ── Tree & files ───────────────────────────────────────────────
@pytest.mark.asyncio
@respx.mock
async def test_get_tree_is_recursive(gh):
    route = respx.get(f"{API}/git/trees/main").mock(
        return_value=httpx.Response(200, json={"tree": [{"path": "a.js", "type": "blob", "size": 1}]})
    )
    tree = await gh.get_tree(REF, "main")
    assert tree == [{"path": "a.js", "type": "blob", "size": 1}]
    assert route.calls.last.request.url.params["recursive"] == "1"


@pytest.mark.asyncio
@respx.mock
async def test_get_file_decodes_base64(gh):
    respx.get(f"{API}/contents/src/index.js").mock(
        return_value=httpx.Response(200, json=_contents("console.log('hi');\n"))
    )
    entry = await gh.get_file(REF, "src/index.js")
    assert entry == FileEntry(path="src/index.js", content="console.log('hi');\n", size=19)


@pytest.mark.asyncio
@respx.mock
async def test_fetch_files_drops_failures_and_keeps_order(gh):
    respx.get(f"{API}/contents/a.js").mock(return_value=httpx.Response(200, json=_contents("a")))
    respx.get(f"{API}/contents/missing.js").mock(return_value=httpx.Response(404, json={"message": "Not Found"}))
    respx.get(f"{API}/contents/b.js").mock(return_value=httpx.Response(200, json=_contents("b")))
    respx.get(f"{API}/contents/slow.js").mock(side_effect=httpx.ConnectTimeout("slow"))

    files = await gh.fetch_files(REF, ["a.js", "missing.js", "b.js", "slow.js"])

    assert [f.path for f in files] == ["a.js", "b.js"]
    assert [f.content for f in files] == ["a", "b"]


@pytest.mark.asyncio
async def test_fetch_files_bounds_concurrency(gh, monkeypatch):
    monkeypatch.setattr(settings, "fetch_concurrency", 2)
    in_flight = 0
    peak = 0

    async def fake_get_file(ref, path):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return FileEntry(path=path, content=path)

    monkeypatch.setattr(gh, "get_file", fake_get_file)
    paths = [f"f{i}.js" for i in range(7)]
    files = await gh.fetch_files(REF, paths)

    assert [f.path for f in files] == paths
    assert peak == 2


# ── Writes ─────────────────────────────────────────────────────
@pytest.mark.asyncio
@respx.mock
async def test_branch_and_file_writes(gh):
    respx.get(f"{API}/branches/main").mock(
        return_value=httpx.Response(200, json={"name": "main", "commit": {"sha": "head-sha"}})
    )
    create_ref = respx.post(f"{API}/git/refs").mock(return_value=httpx.Response(201, json={}))
    put = respx.put(f"{API}/contents/docs/README.md").mock(return_value=httpx.Response(201, json={"content": {}}))

    sha = await gh.get_branch_sha(REF, "main")
    await gh.create_branch(REF, "docs/new", sha)
    await gh.put_file(REF, "docs/README.md", "# Docs", message="Add docs", branch="docs/new", sha="old-sha")

    assert json.loads(create_ref.calls.last.request.content) == {"ref": "refs/heads/docs/new", "sha": "head-sha"}
    body = json.loads(put.calls.last.request.content)
    assert base64.b64decode(body["content"]).decode() == "# Docs"
    assert body["branch"] == "docs/new"
    assert body["sha"] == "old-sha"


@pytest.mark.asyncio
@respx.mock
async def test_get_file_sha_missing_file(gh):
    respx.get(f"{API}/contents/docs/README.md").mock(return_value=httpx.Response(404, json={"message": "Not Found"}))
    assert await gh.get_file_sha(REF, "docs/README.md", "docs/new") is None


@pytest.mark.asyncio
@respx.mock
async def test_create_pull_request(gh):
    route = respx.post(f"{API}/pulls").mock(
        return_value=httpx.Response(201, json={"id": 1, "number": 7, "html_url": "https://github.com/acme/shop/pull/7"})
    )
    pr = await gh.create_pull_request(REF, title="Docs", head="docs/new", base="main", body="body")
    assert pr["number"] == 7
    sent = json.loads(route.calls.last.request.content)
    assert sent["maintainer_can_modify"] is True
    assert sent["head"] == "docs/new"
