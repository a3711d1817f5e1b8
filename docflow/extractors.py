"""
Heuristic extractors over raw file text.

Pure, stateless, best-effort regex scans:
- HTTP endpoints (call style, decorator style, GraphQL root types)
- function declarations (JS family and Python)
- dependency names from package.json / requirements files
- import / require edges

Lines that start with a comment marker are skipped by the source-line
extractors, so ``// router.get('/x')`` is not reported.
No match is simply an empty result.
"""

from __future__ import annotations

import json
import logging
import re

from docflow.models import EndpointFinding, FunctionFinding, Relationship

logger = logging.getLogger("docflow.extractors")

COMMENT_PREFIXES = ("//", "#", "/*", "*", "<!--")

HTTP_VERBS = ("get", "post", "put", "delete", "patch")

JS_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs")
PYTHON_EXTENSIONS = (".py",)

RESERVED_KEYWORDS = frozenset({
    "if", "else", "for", "while", "return", "import", "export", "const", "let", "var",
    "class", "interface", "function", "def", "async", "await", "try", "catch", "throw",
    "new", "this", "super", "static", "public", "private", "protected", "abstract",
    "extends", "implements", "package", "module", "namespace", "type", "enum",
})

# ── Endpoint patterns ──────────────────────────────────────────
_CALL_ROUTE_RE = re.compile(
    r"\.(get|post|put|delete|patch)\s*\(\s*['\"`](/[^'\"`]*)['\"`]", re.IGNORECASE
)
_DECORATOR_ROUTE_RE = re.compile(
    r"@\w+\.(route|get|post|put|delete|patch)\s*\(\s*['\"`]([^'\"`]+)['\"`]", re.IGNORECASE
)
_GRAPHQL_ROOT_RE = re.compile(r"\btype\s+(Query|Mutation)\b")

# ── Function patterns ──────────────────────────────────────────
_JS_FUNCTION_RE = re.compile(r"\bfunction(?:\s*\*\s*|\s+)([A-Za-z_$][\w$]*)\s*\(")
_JS_ARROW_RE = re.compile(
    r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*(?:async\s*)?"
    r"(?:\([^)]*\)|[A-Za-z_$][\w$]*)\s*=>"
)
_JS_FUNCTION_EXPR_RE = re.compile(
    r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*(?:async\s+)?(?:function\b|\()"
)
_PY_DEF_RE = re.compile(r"^\s*(?:async\s+)?def\s+([A-Za-z_]\w*)\s*\(")

# ── Import patterns ────────────────────────────────────────────
_IMPORT_FROM_RE = re.compile(r"\bimport\b.*?\bfrom\s+['\"]([^'\"]+)['\"]")
_REQUIRE_RE = re.compile(r"\brequire\s*\(\s*['\"]([^'\"]+)['\"]\s*\)")

_REQUIREMENT_SPLIT_RE = re.compile(r"==|>=|~=")


def is_comment_line(line: str) -> bool:
    return line.lstrip().startswith(COMMENT_PREFIXES)


def extract_endpoints(content: str, file_name: str) -> list[EndpointFinding]:
    """Find route registrations such as ``router.post('/api/login')``."""
    endpoints: list[EndpointFinding] = []
    for index, line in enumerate(content.splitlines(), start=1):
        if is_comment_line(line):
            continue

        decorator = _DECORATOR_ROUTE_RE.search(line)
        if decorator:
            verb = decorator.group(1).upper()
            endpoints.append(EndpointFinding(
                method="GET" if verb == "ROUTE" else verb,
                path=decorator.group(2),
                file=file_name,
                line=index,
            ))
        else:
            call = _CALL_ROUTE_RE.search(line)
            if call:
                endpoints.append(EndpointFinding(
                    method=call.group(1).upper(),
                    path=call.group(2),
                    file=file_name,
                    line=index,
                ))

        if _GRAPHQL_ROOT_RE.search(line):
            endpoints.append(EndpointFinding(
                method="GRAPHQL", path=line.strip(), file=file_name, line=index,
            ))
    return endpoints


def _match_js_function(line: str) -> tuple[str, str] | None:
    arrow = _JS_ARROW_RE.search(line)
    if arrow:
        return arrow.group(1), "arrow_function"
    for pattern in (_JS_FUNCTION_RE, _JS_FUNCTION_EXPR_RE):
        match = pattern.search(line)
        if match:
            return match.group(1), "function"
    return None


def extract_functions(content: str, extension: str, file_name: str = "") -> list[FunctionFinding]:
    """Find function declarations for JS-family and Python sources."""
    extension = extension.lower()
    if extension in JS_EXTENSIONS:
        matcher = _match_js_function
    elif extension in PYTHON_EXTENSIONS:
        def matcher(line: str) -> tuple[str, str] | None:
            match = _PY_DEF_RE.search(line)
            return (match.group(1), "function") if match else None
    else:
        return []

    functions: list[FunctionFinding] = []
    for index, line in enumerate(content.splitlines(), start=1):
        if is_comment_line(line):
            continue
        found = matcher(line)
        if found is None:
            continue
        name, kind = found
        if name.lower() in RESERVED_KEYWORDS:
            continue
        functions.append(FunctionFinding(
            name=name, file=file_name or extension, line=index, type=kind,
        ))
    return functions


def requirement_name(line: str) -> str:
    """Left-hand side of a requirement specifier (``flask>=2.0`` → ``flask``)."""
    return _REQUIREMENT_SPLIT_RE.split(line, maxsplit=1)[0].strip()


def extract_package_json_dependencies(content: str) -> list[str]:
    try:
        manifest = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Failed to parse package.json content")
        return []
    if not isinstance(manifest, dict):
        return []

    names: list[str] = []
    for key in ("dependencies", "devDependencies"):
        deps = manifest.get(key)
        if isinstance(deps, dict):
            names.extend(deps)
    return list(dict.fromkeys(names))


def extract_requirements_dependencies(content: str) -> list[str]:
    names: list[str] = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith(("#", "-")):
            continue
        name = requirement_name(line)
        if name:
            names.append(name)
    return list(dict.fromkeys(names))


def extract_dependencies(path: str, content: str) -> list[str]:
    """Dependency names declared by a manifest; other files yield nothing."""
    name = path.rsplit("/", 1)[-1].lower()
    if name == "package.json":
        return extract_package_json_dependencies(content)
    if name.startswith("requirements") and name.endswith(".txt"):
        return extract_requirements_dependencies(content)
    return []


def extract_relationships(file_path: str, content: str) -> list[Relationship]:
    """Textual import/require edges; no module resolution."""
    edges: list[Relationship] = []
    for index, line in enumerate(content.splitlines(), start=1):
        if is_comment_line(line):
            continue
        imported = _IMPORT_FROM_RE.search(line)
        if imported:
            edges.append(Relationship(
                source=file_path, target=imported.group(1), type="imports", line=index,
            ))
        required = _REQUIRE_RE.search(line)
        if required:
            edges.append(Relationship(
                source=file_path, target=required.group(1), type="requires", line=index,
            ))
    return edges
