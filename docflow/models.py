"""
Pydantic models for the pipeline's data and the HTTP payloads.

Request bodies use camelCase on the wire (``{"repoUrl": ...}``) and accept
snake_case too. ``AnalysisResult`` is the one normalised analysis contract:
every field has a concrete default and null / loosely-typed values are
coerced on validation.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Role(str, Enum):
    """Audience the analysis and documentation are written for."""

    BACKEND = "backend"
    FRONTEND = "frontend"
    DEVOPS = "devops"
    SECURITY = "security"
    DATA = "data"
    MOBILE = "mobile"
    PRODUCT_MANAGER = "product-manager"

    @classmethod
    def parse(cls, value: str | None) -> "Role":
        """Map free-form input onto a Role, defaulting to backend."""
        if not value:
            return cls.BACKEND
        normalized = value.strip().lower().replace("_", "-").replace(" ", "-")
        try:
            return cls(normalized)
        except ValueError:
            return cls.BACKEND

    @property
    def display_name(self) -> str:
        return self.value.replace("-", " ").title()


# ── Repository & files ─────────────────────────────────────────
class RepositoryRef(NamedTuple):
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class FileEntry(BaseModel):
    path: str
    content: str
    size: int = 0


class FileCategories(BaseModel):
    config: list[str] = Field(default_factory=list)
    source: list[str] = Field(default_factory=list)
    tests: list[str] = Field(default_factory=list)
    docs: list[str] = Field(default_factory=list)
    assets: list[str] = Field(default_factory=list)
    build: list[str] = Field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {name: len(paths) for name, paths in self}


# ── Heuristic findings ─────────────────────────────────────────
class EndpointFinding(BaseModel):
    method: str
    path: str
    file: str
    line: int


class FunctionFinding(BaseModel):
    name: str
    file: str
    line: int
    type: str = "function"


class Relationship(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    type: str
    line: int


# ── Analysis contract ──────────────────────────────────────────
class Endpoint(BaseModel):
    method: str = ""
    path: str = ""
    description: str = ""

    @field_validator("method", "path", "description", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _text(value).strip()

    @field_validator("method")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.upper()


class Function(BaseModel):
    name: str = ""
    description: str = ""

    @field_validator("name", "description", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _text(value).strip()


class AnalysisResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    overview: str = ""
    endpoints: list[Endpoint] = Field(default_factory=list)
    functions: list[Function] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    architecture: str = ""
    key_features: list[str] = Field(default_factory=list, alias="keyFeatures")
    setup_steps: list[str] = Field(default_factory=list, alias="setupSteps")

    @field_validator("overview", "architecture", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if isinstance(value, dict):
            # Some models nest the architecture as {"summary": ...}
            value = value.get("summary") or value.get("description") or ""
        return _text(value).strip()

    @field_validator("endpoints", "functions", mode="before")
    @classmethod
    def _coerce_items(cls, value: Any) -> list:
        return [item for item in _as_list(value) if isinstance(item, (dict, BaseModel))]

    @field_validator("dependencies", "key_features", "setup_steps", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> list[str]:
        items = []
        for item in _as_list(value):
            if isinstance(item, dict):
                item = item.get("name") or item.get("title") or ""
            text = _text(item).strip()
            if text:
                items.append(text)
        return items

    def deduplicated(self) -> "AnalysisResult":
        """Drop repeated endpoints (method, path), functions (name) and dependencies."""
        seen_endpoints: set[tuple[str, str]] = set()
        endpoints = []
        for ep in self.endpoints:
            key = (ep.method, ep.path)
            if key in seen_endpoints:
                continue
            seen_endpoints.add(key)
            endpoints.append(ep)

        seen_functions: set[str] = set()
        functions = []
        for fn in self.functions:
            if fn.name in seen_functions:
                continue
            seen_functions.add(fn.name)
            functions.append(fn)

        return self.model_copy(update={
            "endpoints": endpoints,
            "functions": functions,
            "dependencies": list(dict.fromkeys(self.dependencies)),
        })


# ── Publishing ─────────────────────────────────────────────────
class PullRequestResult(BaseModel):
    number: int
    url: str
    branch_name: str
    files_created: list[str] = Field(default_factory=list)


class PublishOutcome(BaseModel):
    markdown: str
    pull_request: PullRequestResult | None = None
    error: str | None = None

    @property
    def published(self) -> bool:
        return self.pull_request is not None


# ── Chat ───────────────────────────────────────────────────────
class ChatMessage(CamelModel):
    id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: str = Field(default_factory=utc_now)


class DocContext(CamelModel):
    file: str
    content: str


class ChatSession(CamelModel):
    id: str
    repository_id: str
    messages: list[ChatMessage] = Field(default_factory=list)
    context: list[DocContext] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now)


# ── HTTP payloads ──────────────────────────────────────────────
class ConnectRequest(CamelModel):
    repo_url: str = Field(..., description="URL of a GitHub repository")


class RepoRoleRequest(CamelModel):
    repo_url: str = Field(..., description="URL of a GitHub repository")
    role: str | None = Field(None, description="Target audience for the docs")


class ChatSessionRequest(CamelModel):
    repository_id: str = Field(..., pattern=r"^[\w.-]+/[\w.-]+$", description="owner/repo identifier")


class ChatMessageRequest(CamelModel):
    session_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class ErrorResponse(BaseModel):
    status: str = "error"
    message: str
    retry_advice: str | None = None
