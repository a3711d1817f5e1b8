"""Tests for docflow.settings and docflow.logging_config."""

import json
import logging

import pytest

from docflow.logging_config import JSONFormatter, bind_repository, request_id_ctx
from docflow.settings import ConfigurationError, Settings


def test_missing_credentials_fail_fast():
    config = Settings(github_token="", ai_api_key="", _env_file=None)
    with pytest.raises(ConfigurationError, match="GITHUB_TOKEN, AI_API_KEY"):
        config.require_credentials()


def test_credentials_present():
    Settings(github_token="t", ai_api_key="k", _env_file=None).require_credentials()


def test_range_warnings():
    config = Settings(file_limit=500, ai_max_retries=0, _env_file=None)
    warnings = config.range_warnings()
    assert any(w.startswith("FILE_LIMIT value 500") for w in warnings)
    assert any(w.startswith("AI_MAX_RETRIES value 0") for w in warnings)


def test_rate_limit_string():
    config = Settings(rate_limit_max_requests=100, rate_limit_window_seconds=900, _env_file=None)
    assert config.rate_limit == "100 per 900 seconds"


def test_json_formatter_includes_request_id():
    token = request_id_ctx.set("abc123")
    try:
        record = logging.LogRecord("docflow.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        line = json.loads(JSONFormatter().format(record))
    finally:
        request_id_ctx.reset(token)
    assert line["message"] == "hello world"
    assert line["request_id"] == "abc123"
    assert line["logger"] == "docflow.test"


def _format(message: str) -> dict:
    record = logging.LogRecord("docflow.pipeline", logging.INFO, __file__, 1, message, (), None)
    return json.loads(JSONFormatter().format(record))


def test_bound_repository_is_stamped_then_cleared():
    assert "repository" not in _format("before")
    with bind_repository("acme/shop"):
        assert _format("inside")["repository"] == "acme/shop"
    assert "repository" not in _format("after")
