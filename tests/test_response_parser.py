"""Tests for docflow.response_parser: JSON path, markdown fallback and dedup."""

import json

from docflow.models import EndpointFinding
from docflow.response_parser import (
    merge_findings,
    parse_analysis,
    split_sections,
    strip_code_fences,
)

SEED_JSON = (
    '{"endpoints":[{"method":"GET","path":"/api/users","description":"list"}],'
    '"functions":[],"dependencies":["express"],"overview":"x"}'
)

MARKDOWN_REPORT = """\
# Shop analysis

A small Express store front.

## Endpoints
- `GET /api/users` - list users
- POST /api/orders: create an order

## Functions
- `createOrder(items)` - builds and saves an order
- **listUsers** - returns every user
- Notes about the code base

## Dependencies
- express ^4.18
- cors

## Architecture
Routes in src/routes, data access in src/db.

## Key Features
- Order management
- User listing

## Setup
1. npm install
2. npm start
"""


# ── JSON path ──────────────────────────────────────────────────
def test_seed_json():
    result = parse_analysis(SEED_JSON)
    assert len(result.endpoints) == 1
    assert result.endpoints[0].method == "GET"
    assert result.endpoints[0].path == "/api/users"
    assert result.functions == []
    assert result.dependencies == ["express"]
    assert result.overview == "x"
    assert result.architecture == ""


def test_code_fenced_json():
    result = parse_analysis(f"```json\n{SEED_JSON}\n```")
    assert len(result.endpoints) == 1
    assert result.dependencies == ["express"]


def test_json_surrounded_by_prose():
    result = parse_analysis(f"Here is the analysis:\n{SEED_JSON}\nHope this helps!")
    assert result.overview == "x"


def test_nulls_and_loose_items_are_normalised():
    payload = {
        "overview": None,
        "endpoints": ["POST /login - sign in", {"method": "get", "path": "/me", "description": None}, 42],
        "functions": ["bootstrap()", {"name": "render"}],
        "dependencies": None,
        "architecture": {"summary": "layered"},
        "keyFeatures": [{"name": "Login"}, "Profiles"],
    }
    result = parse_analysis(json.dumps(payload))
    assert result.overview == ""
    assert [(e.method, e.path, e.description) for e in result.endpoints] == [
        ("POST", "/login", "sign in"),
        ("GET", "/me", ""),
    ]
    assert [f.name for f in result.functions] == ["bootstrap", "render"]
    assert result.dependencies == []
    assert result.architecture == "layered"
    assert result.key_features == ["Login", "Profiles"]


def test_json_duplicates_are_removed():
    payload = {
        "endpoints": [{"method": "GET", "path": "/x"}, {"method": "GET", "path": "/x"}],
        "functions": [{"name": "a"}, {"name": "a"}],
        "dependencies": ["express", "express"],
    }
    result = parse_analysis(json.dumps(payload))
    assert len(result.endpoints) == 1
    assert len(result.functions) == 1
    assert result.dependencies == ["express"]


# ── Markdown fallback ──────────────────────────────────────────
def test_markdown_fallback_sections():
    result = parse_analysis(MARKDOWN_REPORT)
    assert [(e.method, e.path) for e in result.endpoints] == [
        ("GET", "/api/users"),
        ("POST", "/api/orders"),
    ]
    assert result.endpoints[1].description == "create an order"
    assert [f.name for f in result.functions] == ["createOrder", "listUsers"]
    assert result.dependencies == ["express", "cors"]
    assert result.overview == "A small Express store front."
    assert result.architecture.startswith("Routes in src/routes")
    assert result.key_features == ["Order management", "User listing"]
    assert result.setup_steps == ["npm install", "npm start"]


def test_json_and_markdown_converge():
    markdown = """\
## Overview
x

## API Endpoints
- GET /api/users - list

## Dependencies
- express
"""
    from_json = parse_analysis(SEED_JSON)
    from_markdown = parse_analysis(markdown)
    assert len(from_markdown.endpoints) == len(from_json.endpoints) == 1
    assert len(from_markdown.functions) == len(from_json.functions) == 0
    assert len(from_markdown.dependencies) == len(from_json.dependencies) == 1
    assert from_markdown.endpoints[0].path == from_json.endpoints[0].path


def test_markdown_duplicate_endpoints_collapse():
    markdown = "## Endpoints\n- GET /x (src/a.js)\n- GET /x (src/b.js)\n"
    result = parse_analysis(markdown)
    assert [(e.method, e.path) for e in result.endpoints] == [("GET", "/x")]


def test_sub_headed_endpoint_groups_stay_in_section():
    markdown = """\
## Overview
Shop API

## API Endpoints
### Users
- GET /api/users - list users
### Auth
- POST /api/login - log in

## Dependencies
- express
"""
    result = parse_analysis(markdown)
    assert [(e.method, e.path) for e in result.endpoints] == [
        ("GET", "/api/users"),
        ("POST", "/api/login"),
    ]
    assert result.endpoints[1].description == "log in"
    assert result.dependencies == ["express"]
    assert result.overview == "Shop API"


def test_code_style_endpoint_lines():
    result = parse_analysis("## Endpoints\n- router.delete('/api/items/:id')\n")
    assert [(e.method, e.path) for e in result.endpoints] == [("DELETE", "/api/items/:id")]


def test_unstructured_text_becomes_overview():
    result = parse_analysis("This repository is a CLI for converting images.")
    assert result.overview == "This repository is a CLI for converting images."
    assert result.endpoints == []
    assert result.functions == []
    assert result.dependencies == []


def test_empty_input_yields_defaults():
    result = parse_analysis("")
    assert result.model_dump() == {
        "overview": "",
        "endpoints": [],
        "functions": [],
        "dependencies": [],
        "architecture": "",
        "key_features": [],
        "setup_steps": [],
    }


# ── Helpers ────────────────────────────────────────────────────
def test_strip_code_fences():
    assert strip_code_fences("```json\n{\"a\": 1}\n```") == '{"a": 1}'
    assert strip_code_fences("```\nplain\n```") == "plain"
    assert strip_code_fences("no fences") == "no fences"


def test_split_sections():
    preamble, sections = split_sections("intro\n## One\na\n### Two\nb\n## Three\nc")
    assert preamble == "intro"
    assert [heading for heading, _ in sections] == ["One", "Three"]
    assert "### Two" in sections[0][1]
    assert "b" in sections[0][1]


def test_merge_findings_deduplicates_across_files():
    result = parse_analysis(SEED_JSON)
    findings = [
        EndpointFinding(method="GET", path="/x", file="src/a.js", line=3),
        EndpointFinding(method="GET", path="/x", file="src/b.js", line=9),
        EndpointFinding(method="GET", path="/api/users", file="src/users.js", line=1),
    ]
    merged = merge_findings(result, findings, ["express", "cors"])
    assert [(e.method, e.path) for e in merged.endpoints] == [("GET", "/api/users"), ("GET", "/x")]
    assert merged.endpoints[0].description == "list"
    assert merged.endpoints[1].description == "Defined in src/a.js:3"
    assert merged.dependencies == ["express", "cors"]
