"""Shared test configuration: credentials and limits set before docflow is imported."""

import os
import tempfile

os.environ.setdefault("GITHUB_TOKEN", "test-github-token")
os.environ.setdefault("AI_API_KEY", "test-ai-key")
os.environ.setdefault("AI_BASE_URL", "https://ai.test/v1/")
os.environ.setdefault("AI_RETRY_DELAY_BASE", "0")
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "1000")
os.environ.setdefault("DOCS_OUTPUT_DIR", tempfile.mkdtemp(prefix="docflow-docs-"))

import pytest  # noqa: E402

from docflow.models import RepositoryRef  # noqa: E402


@pytest.fixture
def ref() -> RepositoryRef:
    return RepositoryRef("acme", "shop")
