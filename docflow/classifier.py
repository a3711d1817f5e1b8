"""
Repository file classification.

Labels every blob in a git tree with exactly one category using an ordered
rule table (first match wins), picks the architecturally important source
files, and selects the code files sent to the model for doc generation.
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from docflow.models import FileCategories

logger = logging.getLogger("docflow.classifier")


# ── Extension / filename tables ────────────────────────────────
SOURCE_EXTENSIONS = (
    ".js", ".ts", ".jsx", ".tsx", ".py", ".java", ".cpp", ".c", ".cs", ".php",
    ".rb", ".go", ".rs", ".swift", ".kt", ".scala", ".clj", ".hs", ".ml",
)
WEB_EXTENSIONS = (".vue", ".svelte", ".html", ".css", ".scss", ".less")
DATA_EXTENSIONS = (".sql", ".json", ".yaml", ".yml", ".xml")

CONFIG_FILENAMES = (
    "package.json", "requirements.txt", "pom.xml", "build.gradle", "cargo.toml",
    "go.mod", "setup.py", ".env.example", "docker-compose.yml", "dockerfile",
)

ASSET_EXTENSIONS = (
    ".md", ".txt", ".log", ".lock", ".png", ".jpg", ".gif", ".svg", ".ico",
    ".woff", ".ttf",
)

# Broader set used when picking files to send to the model
_CODE_FILE_EXTENSIONS = SOURCE_EXTENSIONS + WEB_EXTENSIONS + (
    ".sql", ".sh", ".yaml", ".yml", ".json", ".xml", ".md", ".txt", ".env", ".config",
)
_IMPORTANT_FILES = (
    "package.json", "requirements.txt", "dockerfile", "docker-compose.yml",
    "gemfile", "pom.xml", "build.gradle", "cargo.toml", "go.mod", "setup.py",
    "readme.md", "license", ".gitignore", "makefile", "cmakelists.txt",
)

_LANGUAGES = {
    ".js": "JavaScript", ".ts": "TypeScript", ".jsx": "React", ".tsx": "React/TypeScript",
    ".py": "Python", ".java": "Java", ".cpp": "C++", ".c": "C", ".cs": "C#",
    ".php": "PHP", ".rb": "Ruby", ".go": "Go", ".rs": "Rust", ".swift": "Swift",
    ".kt": "Kotlin", ".scala": "Scala", ".vue": "Vue.js", ".svelte": "Svelte",
}

# Ordered from most to least architecturally significant
_ARCHITECTURAL_PATTERNS = (
    re.compile(r"^(index|main|app|server)\.(js|ts|py)$", re.IGNORECASE),
    re.compile(r"^src/(index|main|app|server)\.(js|ts|py)$", re.IGNORECASE),
    re.compile(r"route|router|controller|handler", re.IGNORECASE),
    re.compile(r"service|manager|util|helper", re.IGNORECASE),
    re.compile(r"config|setup|init", re.IGNORECASE),
    re.compile(r"model|schema|database|db", re.IGNORECASE),
)


# ── Classification rules ───────────────────────────────────────
# Each matcher receives (lowercased full path, lowercased basename).
_Matcher = Callable[[str, str], bool]


def _is_config(path: str, name: str) -> bool:
    return (
        any(cfg in name for cfg in CONFIG_FILENAMES)
        or ".env" in path
        or "config" in name
    )


def _is_test(path: str, name: str) -> bool:
    return "test" in path or "spec" in path or "__test__" in path


def _is_doc(path: str, name: str) -> bool:
    return name.endswith(".md") or "doc" in path or "readme" in name


def _is_build(path: str, name: str) -> bool:
    return (
        "build" in path or "dist" in path or ".next" in path
        or "dockerfile" in name or "deploy" in name
    )


def _is_asset(path: str, name: str) -> bool:
    return name.endswith(ASSET_EXTENSIONS)


def _is_source(path: str, name: str) -> bool:
    return name.endswith(SOURCE_EXTENSIONS + WEB_EXTENSIONS + DATA_EXTENSIONS)


CLASSIFICATION_RULES: tuple[tuple[str, _Matcher], ...] = (
    ("config", _is_config),
    ("tests", _is_test),
    ("docs", _is_doc),
    ("build", _is_build),
    ("assets", _is_asset),
    ("source", _is_source),
)


def classify_path(path: str) -> str | None:
    """Return the category for a single path, or None when no rule matches."""
    lower = path.lower()
    name = lower.rsplit("/", 1)[-1]
    for category, matches in CLASSIFICATION_RULES:
        if matches(lower, name):
            return category
    return None


def categorize_files(tree: list[dict]) -> FileCategories:
    """Partition the blob entries of a git tree into FileCategories."""
    categories = FileCategories()
    for node in tree:
        if node.get("type") != "blob":
            continue
        path = node.get("path", "")
        category = classify_path(path)
        if category is not None:
            getattr(categories, category).append(path)

    logger.info("Categorised files: %s", categories.counts())
    return categories


def identify_architectural_files(paths: list[str]) -> list[str]:
    """Order source paths by architectural importance.

    Entry points first, then routes/controllers, services, config and models;
    everything else keeps its original relative order at the end.
    """
    ranked: list[tuple[int, int, str]] = []
    for index, path in enumerate(paths):
        name = path.rsplit("/", 1)[-1]
        priority = len(_ARCHITECTURAL_PATTERNS)
        for i, pattern in enumerate(_ARCHITECTURAL_PATTERNS):
            if pattern.search(name) or pattern.search(path):
                priority = i
                break
        ranked.append((priority, index, path))
    ranked.sort()
    return [path for _, _, path in ranked]


def is_code_file(path: str) -> bool:
    lower = path.lower()
    return lower.endswith(_CODE_FILE_EXTENSIONS) or any(f in lower for f in _IMPORTANT_FILES)


def select_code_files(tree: list[dict], max_size: int, limit: int) -> list[str]:
    """Pick up to ``limit`` code blobs smaller than ``max_size`` bytes, in tree order."""
    selected: list[str] = []
    for node in tree:
        if len(selected) >= limit:
            break
        if node.get("type") != "blob":
            continue
        path = node.get("path", "")
        if is_code_file(path) and node.get("size", 0) < max_size:
            selected.append(path)
    return selected


def extension_of(path: str) -> str:
    name = path.rsplit("/", 1)[-1].lower()
    return "." + name.rsplit(".", 1)[-1] if "." in name else ""


def language_for_extension(ext: str) -> str:
    return _LANGUAGES.get(ext, ext.lstrip(".").upper())
