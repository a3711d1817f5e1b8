"""Tests for docflow.insights: architecture, features and function ranking."""

from docflow.insights import (
    detect_architecture,
    detect_call_chains,
    function_importance,
    group_features,
    inspect_dockerfile,
    package_scripts,
    rank_functions,
    role_relevance,
)
from docflow.models import FileEntry, FunctionFinding, Role

EXPRESS_SERVER = """\
const express = require('express');
const app = express();
app.get('/api/users', listUsers);
app.post('/api/users', createUser);
const db = new sqlite3.Database(':memory:');
db.serialize(() => {});
app.listen(3000);
"""


def test_inspect_dockerfile_ports():
    content = "FROM node:20\nEXPOSE 3000\nexpose 8080 9090\nCMD [\"node\", \"index.js\"]"
    assert inspect_dockerfile(content) == ["3000", "8080", "9090"]


def test_package_scripts():
    assert package_scripts('{"scripts": {"dev": "next dev"}}') == {"dev": "next dev"}
    assert package_scripts("not json") == {}
    assert package_scripts('{"name": "x"}') == {}


def test_detect_express_architecture():
    arch = detect_architecture([FileEntry(path="server.js", content=EXPRESS_SERVER)])
    assert arch["type"] == "Express.js REST API"
    assert arch["api_design"] == "RESTful"
    assert arch["patterns"] == ["REST API", "SQLite Database"]
    assert arch["entry_points"][0] == {"method": "GET", "path": "/api/users", "file": "server.js"}


def test_detect_architecture_unknown():
    arch = detect_architecture([FileEntry(path="notes.txt", content="hello")])
    assert arch["type"] == "unknown"
    assert arch["patterns"] == []
    assert arch["api_design"] == "unknown"


def test_group_features_by_directory():
    files = [
        FileEntry(path="src/auth/login.js", content="function login() {}\n"),
        FileEntry(path="src/auth/token.js", content="function sign() {}\n"),
        FileEntry(path="index.js", content="app.get('/health', h);\n"),
        FileEntry(path="src/orders/service.js", content="function total() {}\n"),
    ]
    features = {f["name"]: f for f in group_features(files)}
    assert list(features) == ["auth", "core", "orders"]
    assert features["auth"]["description"] == "Authentication and authorization"
    assert features["auth"]["files"] == ["src/auth/login.js", "src/auth/token.js"]
    assert features["auth"]["functions"] == 2
    assert features["core"]["endpoints"] == 1
    assert features["orders"]["description"] == "Core functionality"


def test_user_endpoints_mark_user_management():
    files = [FileEntry(path="src/api2/handlers.js", content="router.get('/users/:id', show);\n")]
    assert group_features(files)[0]["description"] == "User management"


def test_function_importance_and_role_relevance():
    assert function_importance("main", Role.BACKEND) == "critical"
    assert function_importance("handleRequest", Role.DATA) == "high"
    assert function_importance("getUser", Role.DATA) == "medium"
    assert function_importance("format", Role.DATA) == "low"
    assert function_importance("apiClient", Role.BACKEND) == "high"
    assert function_importance("renderList", Role.FRONTEND) == "high"
    assert role_relevance("authMiddleware", Role.SECURITY) == "high"
    assert role_relevance("formatDate", Role.SECURITY) == "medium"


def test_rank_functions_sorts_by_importance_stably():
    findings = [
        FunctionFinding(name="format", file="a.js", line=1),
        FunctionFinding(name="getUser", file="a.js", line=2),
        FunctionFinding(name="init", file="a.js", line=3),
        FunctionFinding(name="getOrder", file="a.js", line=4),
    ]
    ranked = rank_functions(findings, Role.DATA)
    assert [f["name"] for f in ranked] == ["init", "getUser", "getOrder", "format"]
    assert ranked[0]["importance"] == "critical"
    assert "role_relevance" in ranked[0]


def test_detect_call_chains():
    content = "send(format(order));\nlog('x');\n// a(b())"
    chains = detect_call_chains(content, "a.js")
    assert len(chains) == 1
    assert chains[0]["calls"] == ["send", "format"]
    assert chains[0]["line"] == 1
