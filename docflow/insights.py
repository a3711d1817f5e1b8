"""
Repository-level insights built on top of the extractors.

Keyword-driven architecture detection, directory-based feature grouping,
function ranking by importance and role relevance, and a few manifest
details (Dockerfile ports, package.json scripts).
"""

from __future__ import annotations

import json
import re
from collections import OrderedDict

from docflow.extractors import extract_endpoints, extract_functions, is_comment_line
from docflow.classifier import extension_of
from docflow.models import FileEntry, FunctionFinding, Role

_CALL_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)\s*\(")

_IMPORTANCE_ORDER = {"critical": 3, "high": 2, "medium": 1, "low": 0}

ROLE_KEYWORDS: dict[Role, tuple[str, ...]] = {
    Role.BACKEND: ("api", "route", "server", "database", "auth", "middleware", "service"),
    Role.FRONTEND: ("component", "render", "state", "ui", "event", "dom", "view"),
    Role.DEVOPS: ("deploy", "build", "config", "env", "docker", "ci", "cd", "test"),
    Role.SECURITY: ("auth", "validate", "encrypt", "hash", "token", "permission", "secure"),
    Role.DATA: ("query", "fetch", "transform", "process", "analyze", "aggregate", "etl"),
    Role.MOBILE: ("screen", "navigation", "native", "offline", "sync", "push", "device"),
    Role.PRODUCT_MANAGER: ("feature", "user", "track", "report", "billing", "notify", "onboard"),
}

# (path keyword, purpose) checked in order; first hit wins
_FEATURE_PURPOSES = (
    (("auth",), "Authentication and authorization"),
    (("user",), "User management"),
    (("api", "route"), "API endpoints and routing"),
    (("service", "business"), "Business logic and services"),
    (("data", "db"), "Data access and storage"),
)


def inspect_dockerfile(content: str) -> list[str]:
    """Ports declared by EXPOSE instructions."""
    ports: list[str] = []
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.upper().startswith("EXPOSE "):
            ports.extend(stripped[len("EXPOSE "):].split())
    return ports


def package_scripts(content: str) -> dict[str, str]:
    try:
        manifest = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        return {}
    scripts = manifest.get("scripts") if isinstance(manifest, dict) else None
    return dict(scripts) if isinstance(scripts, dict) else {}


def detect_architecture(files: list[FileEntry]) -> dict:
    """Guess framework, data stores and API style from keywords in key files."""
    architecture: dict = {
        "type": "unknown",
        "patterns": [],
        "entry_points": [],
        "api_design": "unknown",
    }
    patterns: list[str] = []

    for entry in files:
        content = entry.content.lower()
        path = entry.path.lower()

        if "express" in content and "app.listen" in content:
            architecture["type"] = "Express.js REST API"
            patterns.append("REST API")
        if "fastapi" in content or "flask" in content:
            architecture["type"] = "Python web API"
            patterns.append("REST API")
        if "next.config" in path or "from 'next" in content or 'from "next' in content:
            architecture["type"] = "Next.js Full-Stack"
            patterns.append("SSR/SSG")
        if "react" in content and "usestate" in content:
            patterns.append("React SPA")
        if "sqlite" in content or "db.serialize" in content:
            patterns.append("SQLite Database")
        if "mongoose" in content or "mongodb" in content:
            patterns.append("MongoDB")
        if "postgres" in content or "psycopg" in content:
            patterns.append("PostgreSQL")

        endpoints = extract_endpoints(entry.content, entry.path)
        if any(ep.method != "GRAPHQL" for ep in endpoints):
            architecture["api_design"] = "RESTful"
            architecture["entry_points"].extend(
                {"method": ep.method, "path": ep.path, "file": entry.path}
                for ep in endpoints if ep.method != "GRAPHQL"
            )
        if "graphql" in content or "type query" in content:
            architecture["api_design"] = "GraphQL"

    architecture["patterns"] = list(dict.fromkeys(patterns))
    return architecture


def _feature_purpose(name: str, functions: list[FunctionFinding], paths: list[str]) -> str:
    # function names and endpoint paths also count as evidence for auth / user groups
    evidence = [name.lower()]
    evidence += [fn.name.lower() for fn in functions if "auth" in fn.name.lower()]
    evidence += [p.lower() for p in paths if "user" in p.lower()]
    for keywords, purpose in _FEATURE_PURPOSES:
        if any(k in text for k in keywords for text in evidence):
            return purpose
    return "Core functionality"


def group_features(files: list[FileEntry]) -> list[dict]:
    """Group files by parent directory and infer each group's purpose."""
    groups: OrderedDict[str, dict] = OrderedDict()
    for entry in files:
        parts = entry.path.split("/")
        name = parts[-2] if len(parts) > 1 else "core"
        group = groups.setdefault(name, {"name": name, "files": [], "endpoints": [], "functions": []})
        group["files"].append(entry.path)
        group["endpoints"].extend(extract_endpoints(entry.content, entry.path))
        group["functions"].extend(
            extract_functions(entry.content, extension_of(entry.path), entry.path)
        )

    features = []
    for group in groups.values():
        endpoint_paths = [ep.path for ep in group["endpoints"]]
        features.append({
            "name": group["name"],
            "description": _feature_purpose(group["name"], group["functions"], endpoint_paths),
            "files": group["files"],
            "endpoints": len(group["endpoints"]),
            "functions": len(group["functions"]),
        })
    return features


def role_relevance(name: str, role: Role) -> str:
    keywords = ROLE_KEYWORDS.get(role, ROLE_KEYWORDS[Role.BACKEND])
    lowered = name.lower()
    return "high" if any(k in lowered for k in keywords) else "medium"


def function_importance(name: str, role: Role) -> str:
    lowered = name.lower()
    if "main" in lowered or "init" in lowered or lowered in ("app", "server"):
        importance = "critical"
    elif any(k in lowered for k in ("handle", "process", "execute", "run")):
        importance = "high"
    elif any(k in lowered for k in ("get", "create", "update", "delete")):
        importance = "medium"
    else:
        importance = "low"

    if role is Role.BACKEND and ("api" in lowered or "route" in lowered):
        importance = "high"
    elif role is Role.FRONTEND and ("component" in lowered or "render" in lowered):
        importance = "high"
    return importance


def rank_functions(functions: list[FunctionFinding], role: Role) -> list[dict]:
    """Functions sorted by importance (stable within a level)."""
    ranked = [
        {
            **fn.model_dump(),
            "importance": function_importance(fn.name, role),
            "role_relevance": role_relevance(fn.name, role),
        }
        for fn in functions
    ]
    ranked.sort(key=lambda f: _IMPORTANCE_ORDER[f["importance"]], reverse=True)
    return ranked


def detect_call_chains(content: str, file_path: str) -> list[dict]:
    """Lines that call more than one function, e.g. ``send(format(x))``."""
    chains = []
    for index, line in enumerate(content.splitlines(), start=1):
        if is_comment_line(line) or "(" not in line:
            continue
        calls = _CALL_RE.findall(line)
        if len(calls) > 1:
            chains.append({
                "file": file_path,
                "line": index,
                "calls": calls,
                "context": line.strip(),
            })
    return chains
