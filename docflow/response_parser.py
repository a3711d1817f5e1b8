"""
Normalise model output into an AnalysisResult.

Two paths, one contract:
1. JSON: strip code fences, decode, validate through the pydantic model
   (absent fields become empty strings / lists).
2. Markdown fallback: split the text on ``##`` headings and route each
   section to a line extractor chosen by heading keyword.

Both paths deduplicate endpoints by (method, path), functions by name and
dependencies by exact string.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable

from pydantic import ValidationError

from docflow.extractors import RESERVED_KEYWORDS, extract_endpoints, requirement_name
from docflow.models import AnalysisResult, Endpoint, EndpointFinding, Function

logger = logging.getLogger("docflow.response_parser")

# Strip ```json ... ``` wrappers
_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_HEADING_RE = re.compile(r"^\s*##(?!#)\s+(.*?)\s*#*\s*$", re.MULTILINE)
_BULLET_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
_EMPHASIS_RE = re.compile(r"\*\*|__|`")

_ENDPOINT_MENTION_RE = re.compile(
    r"\b(GET|POST|PUT|DELETE|PATCH|GRAPHQL)\b\s+(/\S*?):?(?=\s|$)\s*(?:[-–—:]\s*)?(.*)",
    re.IGNORECASE,
)
_FUNCTION_MENTION_RE = re.compile(
    r"^(?:async\s+)?(?:def\s+|function\s+)?(?P<name>[A-Za-z_$][\w$.]*)\s*"
    r"(?P<parens>\([^)]*\))?\s*(?:[-–—:]\s*(?P<desc>.*))?$"
)
_DEPENDENCY_NAME_RE = re.compile(r"^(@?[A-Za-z0-9][\w.\-/@]*)")


# ── JSON path ──────────────────────────────────────────────────
def strip_code_fences(text: str) -> str:
    text = text.strip()
    match = _CODE_FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.replace("```", "").strip()


def _decode_json(text: str) -> Any | None:
    """Try the whole text, the fenced body, then the outermost braces."""
    candidates = [text.strip(), strip_code_fences(text)]
    start = text.find("{")
    end = text.rfind("}") + 1
    if start >= 0 and end > start:
        candidates.append(text[start:end])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


def _coerce_endpoint(item: Any) -> Any:
    if isinstance(item, str):
        match = _ENDPOINT_MENTION_RE.search(item)
        if not match:
            return None
        return {"method": match.group(1), "path": match.group(2), "description": match.group(3) or ""}
    return item


def _coerce_function(item: Any) -> Any:
    if isinstance(item, str):
        return {"name": item.split("(")[0].strip()}
    return item


def _coerce_payload(data: dict) -> dict:
    """Turn plain-string list items into the dict shapes the model expects."""
    payload = dict(data)
    for key, coerce in (("endpoints", _coerce_endpoint), ("functions", _coerce_function)):
        value = payload.get(key)
        if isinstance(value, list):
            payload[key] = [c for c in (coerce(item) for item in value) if c is not None]
    return payload


def parse_json_analysis(text: str) -> AnalysisResult | None:
    """Decode a JSON analysis; None when the text is not a usable JSON object."""
    data = _decode_json(text)
    if not isinstance(data, dict):
        return None
    try:
        return AnalysisResult.model_validate(_coerce_payload(data))
    except ValidationError as exc:
        logger.warning("AI JSON did not match the analysis schema: %s", exc)
        return None


# ── Markdown fallback ──────────────────────────────────────────
def _clean_line(line: str) -> str:
    return _EMPHASIS_RE.sub("", _BULLET_RE.sub("", line)).strip()


def parse_endpoint_lines(lines: list[str]) -> list[Endpoint]:
    endpoints: list[Endpoint] = []
    for raw in lines:
        line = _clean_line(raw)
        if not line:
            continue
        mention = _ENDPOINT_MENTION_RE.search(line)
        if mention:
            endpoints.append(Endpoint(
                method=mention.group(1),
                path=mention.group(2),
                description=mention.group(3) or "",
            ))
            continue
        for finding in extract_endpoints(line, "<analysis>"):
            endpoints.append(endpoint_from_finding(finding, describe=False))
    return endpoints


def parse_function_lines(lines: list[str]) -> list[Function]:
    functions: list[Function] = []
    for raw in lines:
        line = _clean_line(raw)
        match = _FUNCTION_MENTION_RE.match(line)
        if not match or not (match.group("parens") or match.group("desc")):
            continue
        name = match.group("name")
        if name.lower() in RESERVED_KEYWORDS:
            continue
        functions.append(Function(name=name, description=match.group("desc") or ""))
    return functions


def parse_dependency_lines(lines: list[str]) -> list[str]:
    dependencies: list[str] = []
    for raw in lines:
        if not _BULLET_RE.match(raw):
            continue
        line = _clean_line(raw)
        match = _DEPENDENCY_NAME_RE.match(line)
        if match:
            name = requirement_name(match.group(1))
            if name:
                dependencies.append(name)
    return dependencies


def parse_list_lines(lines: list[str]) -> list[str]:
    return [_clean_line(raw) for raw in lines if _BULLET_RE.match(raw) and _clean_line(raw)]


def _join_text(lines: list[str]) -> str:
    return "\n".join(lines).strip()


# (heading keywords, AnalysisResult field, line parser); first keyword hit wins
SECTION_ROUTES: tuple[tuple[tuple[str, ...], str, Callable[[list[str]], Any]], ...] = (
    (("overview", "summary"), "overview", _join_text),
    (("endpoint", "api"), "endpoints", parse_endpoint_lines),
    (("function",), "functions", parse_function_lines),
    (("dependenc", "package"), "dependencies", parse_dependency_lines),
    (("architecture", "structure"), "architecture", _join_text),
    (("feature",), "key_features", parse_list_lines),
    (("setup", "install", "quick start"), "setup_steps", parse_list_lines),
)


def split_sections(text: str) -> tuple[str, list[tuple[str, list[str]]]]:
    """Return (preamble, [(heading, lines), ...]) for ``##`` headings.

    Deeper headings (``###`` and below) stay in the body of their parent section.
    """
    matches = list(_HEADING_RE.finditer(text))
    if not matches:
        return text.strip(), []

    preamble = text[: matches[0].start()].strip()
    sections = []
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        body = text[match.end():end]
        sections.append((match.group(1), body.splitlines()))
    return preamble, sections


def parse_markdown_analysis(text: str) -> AnalysisResult:
    """Heuristic AnalysisResult from a markdown-ish report."""
    preamble, sections = split_sections(strip_code_fences(text) if text.strip().startswith("```") else text)
    fields: dict[str, Any] = {}

    for heading, lines in sections:
        lowered = heading.lower()
        for keywords, field, parser in SECTION_ROUTES:
            if any(k in lowered for k in keywords):
                value = parser(lines)
                if isinstance(value, list):
                    fields.setdefault(field, []).extend(value)
                elif value and not fields.get(field):
                    fields[field] = value
                break

    if not fields.get("overview"):
        # Strip a leading "# Title" line before using the preamble
        overview = re.sub(r"^#\s+.*\n?", "", preamble).strip()
        fields["overview"] = overview[:1000]

    return AnalysisResult(**fields)


# ── Public API ─────────────────────────────────────────────────
def parse_analysis(text: str) -> AnalysisResult:
    """Normalise raw model output; never raises on malformed text."""
    result = parse_json_analysis(text or "")
    if result is None:
        logger.warning("AI response is not valid JSON, falling back to markdown heuristics")
        result = parse_markdown_analysis(text or "")
    return result.deduplicated()


def endpoint_from_finding(finding: EndpointFinding, describe: bool = True) -> Endpoint:
    description = f"Defined in {finding.file}:{finding.line}" if describe else ""
    return Endpoint(method=finding.method, path=finding.path, description=description)


def merge_findings(
    result: AnalysisResult,
    endpoints: list[EndpointFinding],
    dependencies: list[str],
) -> AnalysisResult:
    """Add heuristic endpoints and manifest dependencies the model did not report."""
    merged = result.model_copy(update={
        "endpoints": result.endpoints + [endpoint_from_finding(f) for f in endpoints],
        "dependencies": result.dependencies + list(dependencies),
    })
    return merged.deduplicated()
