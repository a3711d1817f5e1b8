"""
FastAPI application: DocFlow documentation service.

Endpoints:
    GET  /health                     → {"status": "OK", "timestamp": ...}
    POST /connect                    → repository metadata
    POST /analyze                    → hierarchical analysis
    POST /generate-docs              → role guide + pull request
    POST /chat/session               → {"success": true, "sessionId": ...}
    POST /chat/message               → {"success": true, "response": {...}}
    GET  /chat/session/{session_id}  → full session
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

import openai
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from docflow.ai_client import AIClient, is_transient_error
from docflow.chat import ChatService
from docflow.github_client import GitHubClient, GitHubError
from docflow.logging_config import bind_repository, new_request_id, request_id_ctx, setup_logging
from docflow.models import (
    ChatMessageRequest,
    ChatSessionRequest,
    ConnectRequest,
    ErrorResponse,
    RepoRoleRequest,
    Role,
    utc_now,
)
from docflow.pipeline import PHASES, analyze_repository, generate_documentation
from docflow.publisher import DocPublisher
from docflow.sessions import SessionNotFound, SessionStore
from docflow.settings import settings
from docflow.url_parser import InvalidRepositoryUrl, parse_github_url

logger = logging.getLogger("docflow.main")

PREVIEW_CHARS = 500


# ── Shared state ───────────────────────────────────────────────
class _State:
    """Mutable container so lifespan and endpoints share instances."""
    github_client: GitHubClient | None = None
    ai_client: AIClient | None = None
    publisher: DocPublisher | None = None
    session_store: SessionStore | None = None
    chat_service: ChatService | None = None


state = _State()


def _ensure_state() -> _State:
    """Lazily initialise clients and services for TestClient compatibility."""
    if state.github_client is None:
        state.github_client = GitHubClient()
    if state.ai_client is None:
        state.ai_client = AIClient()
    if state.publisher is None:
        state.publisher = DocPublisher(state.github_client)
    if state.session_store is None:
        state.session_store = SessionStore()
    if state.chat_service is None:
        state.chat_service = ChatService(
            state.session_store,
            state.ai_client if settings.ai_api_key else None,
            settings.docs_output_dir,
            history_window=settings.chat_history_window,
            context_chars=settings.chat_context_chars,
        )
    return state


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration and manage client lifetime."""
    setup_logging(settings.log_level)
    settings.require_credentials()
    for warning in settings.range_warnings():
        logger.warning(warning)

    _ensure_state()
    logger.info(
        "Application started (environment=%s, ai_model=%s, port=%d)",
        settings.environment, settings.ai_model, settings.port,
    )
    yield

    if state.github_client:
        await state.github_client.aclose()
    if state.ai_client:
        await state.ai_client.aclose()
    logger.info("Application shutdown")


app = FastAPI(
    title="DocFlow",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ───────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origin.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Rate limits (per client address) ───────────────────────────
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


# ── Error helper ───────────────────────────────────────────────
def _error_response(status: int, message: str, retry_advice: str | None = None) -> JSONResponse:
    """Error body: {"status": "error", "message": "..."}"""
    body = ErrorResponse(message=message, retry_advice=retry_advice)
    return JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))


def _ai_error_response(exc: Exception, action: str) -> JSONResponse:
    """500 with a retry hint for AI failures that survived the retry loop."""
    status = getattr(exc, "status_code", None)
    if status == 429:
        message = "AI service rate limit exceeded"
        advice = "Too many requests. Please wait a minute before trying again."
    elif is_transient_error(exc):
        message = "AI service is temporarily overloaded"
        advice = "Please try again in a few moments. The service is experiencing high traffic."
    else:
        message = f"{action} failed"
        advice = None
    if settings.is_development:
        message = f"{message}: {exc}"
    return _error_response(500, message, advice)


@app.exception_handler(RateLimitExceeded)
def _rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return _error_response(429, "Too many requests from this address, please try again later.")


@app.exception_handler(RequestValidationError)
async def _validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        problems.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return _error_response(400, "; ".join(problems) or "Invalid request body")


@app.exception_handler(Exception)
async def _unhandled_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) if settings.is_development else "Internal server error"
    return _error_response(500, message)


# ── Middleware: body size guard ────────────────────────────────
@app.middleware("http")
async def body_limit_middleware(request: Request, call_next):
    length = request.headers.get("content-length")
    if length and length.isdigit() and int(length) > settings.body_limit_bytes:
        return _error_response(413, f"Request body exceeds {settings.body_limit_bytes} bytes")
    return await call_next(request)


# ── Middleware: request_id + timing ────────────────────────────
@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    rid = new_request_id()
    request_id_ctx.set(rid)
    t0 = time.perf_counter()
    response = await call_next(request)
    elapsed = round((time.perf_counter() - t0) * 1000, 1)
    response.headers["X-Request-Id"] = rid
    logger.info(
        "%s %s → %s (%.1f ms)",
        request.method, request.url.path, response.status_code, elapsed,
    )
    return response


# ── Endpoints ──────────────────────────────────────────────────
@limiter.exempt
@app.get("/health")
async def health():
    return {"status": "OK", "timestamp": utc_now()}


@app.post("/connect")
async def connect(body: ConnectRequest):
    s = _ensure_state()
    try:
        ref = parse_github_url(body.repo_url)
    except InvalidRepositoryUrl as exc:
        return _error_response(400, str(exc))

    try:
        info = await s.github_client.get_repo(ref)
    except GitHubError as exc:
        logger.warning("Connect to %s failed: %s", ref.full_name, exc)
        return _error_response(exc.status_code, str(exc))

    return {
        "success": True,
        "repository": {
            "name": info.get("name"),
            "description": info.get("description"),
            "language": info.get("language"),
            "stars": info.get("stargazers_count", 0),
            "url": info.get("html_url"),
            "owner": ref.owner,
            "repo": ref.repo,
        },
    }


@app.post("/analyze")
async def analyze(body: RepoRoleRequest):
    s = _ensure_state()
    try:
        ref = parse_github_url(body.repo_url)
    except InvalidRepositoryUrl as exc:
        return _error_response(400, str(exc))
    role = Role.parse(body.role)

    try:
        with bind_repository(ref.full_name):
            run = await analyze_repository(s.github_client, s.ai_client, ref, role)
    except GitHubError as exc:
        return _error_response(exc.status_code, str(exc))
    except openai.OpenAIError as exc:
        logger.exception("AI synthesis failed for %s", ref.full_name)
        return _ai_error_response(exc, "Repository analysis")

    result, report = run.result, run.report
    return {
        "success": True,
        "role": role.value,
        "repository": {
            "owner": ref.owner,
            "repo": ref.repo,
            "name": run.repo_info.get("name"),
            "description": run.repo_info.get("description"),
            "language": run.repo_info.get("language"),
            "stars": run.repo_info.get("stargazers_count", 0),
            "url": run.repo_info.get("html_url"),
            "metadata": {
                "endpoints": [ep.model_dump() for ep in result.endpoints],
                "functions": [fn.model_dump() for fn in result.functions],
                "dependencies": result.dependencies,
                "overview": result.overview,
                "architecture": result.architecture,
            },
        },
        "analysis": run.raw_analysis,
        "stats": {
            "total_files": report.overview.get("total_files", 0),
            "files_analyzed": report.files_analyzed,
            "file_structure": report.categories.counts(),
            "endpoints_found": len(result.endpoints),
            "functions_found": len(report.functions),
            "dependencies_found": len(result.dependencies),
            "relationships_found": len(report.relationships),
            "duration_ms": run.duration_ms,
        },
        "insights": {
            "phases_completed": list(PHASES),
            "overview": report.overview,
            "architecture": report.architecture,
            "features": report.features,
            "functions_by_importance": report.functions[:20],
            "call_chains": report.call_chains[:20],
            "relationships": [r.model_dump(by_alias=True) for r in report.relationships],
            "key_features": result.key_features,
            "setup_steps": result.setup_steps,
        },
    }


@app.post("/generate-docs")
async def generate_docs(body: RepoRoleRequest):
    s = _ensure_state()
    try:
        ref = parse_github_url(body.repo_url)
    except InvalidRepositoryUrl as exc:
        return _error_response(400, str(exc))
    role = Role.parse(body.role)

    try:
        with bind_repository(ref.full_name):
            run = await generate_documentation(s.github_client, s.ai_client, s.publisher, ref, role)
    except GitHubError as exc:
        return _error_response(exc.status_code, str(exc))
    except openai.OpenAIError as exc:
        logger.exception("Documentation generation failed for %s", ref.full_name)
        return _ai_error_response(exc, "Documentation generation")

    markdown = run.outcome.markdown
    response: dict = {
        "success": True,
        "repository": ref.full_name,
        "role": role.value,
        "analysis": {
            "endpointsCount": len(run.analysis.endpoints),
            "functionsCount": len(run.analysis.functions),
            "dependenciesCount": len(run.analysis.dependencies),
            "featuresCount": len(run.analysis.key_features),
            "documentationLength": len(markdown),
        },
    }

    pr = run.outcome.pull_request
    if pr is not None:
        response["pullRequest"] = {
            "number": pr.number,
            "url": pr.url,
            "title": f"AI-Generated {role.display_name} Documentation",
            "branch": pr.branch_name,
            "filesCreated": pr.files_created,
        }
        response["documentationPreview"] = markdown[:PREVIEW_CHARS] + "..."
    else:
        response["pullRequest"] = {
            "error": f"Could not create pull request: {run.outcome.error}",
            "reason": "Possibly due to permissions or repository access",
        }
        response["documentationGenerated"] = markdown
        response["note"] = "Documentation was generated successfully but could not create pull request"
    return response


@app.post("/chat/session")
async def create_chat_session(body: ChatSessionRequest):
    s = _ensure_state()
    session = await s.chat_service.create_session(body.repository_id)
    return {"success": True, "sessionId": session.id}


@app.post("/chat/message")
async def send_chat_message(body: ChatMessageRequest):
    s = _ensure_state()
    try:
        reply = await s.chat_service.send_message(body.session_id, body.message)
    except SessionNotFound as exc:
        return _error_response(404, str(exc))
    except openai.OpenAIError as exc:
        logger.exception("Chat reply failed for session %s", body.session_id)
        return _ai_error_response(exc, "Chat response")
    return {"success": True, "response": reply.model_dump(by_alias=True)}


@app.get("/chat/session/{session_id}")
async def get_chat_session(session_id: str):
    s = _ensure_state()
    try:
        session = await s.chat_service.get_session(session_id)
    except SessionNotFound as exc:
        return _error_response(404, str(exc))
    return session.model_dump(by_alias=True)


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    uvicorn.run("docflow.main:app", host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    run()
