"""Shared fixtures for tapi tests."""

import json
import logging

import pytest
from click.testing import CliRunner

from tapi import core
from tapi.executor import RequestResult


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def global_tapi_dir(tmp_path, monkeypatch):
    """Override the global ~/.tapi directory to a temp location."""
    fake_global = tmp_path / "fake_home" / ".tapi"
    fake_global.mkdir(parents=True)
    monkeypatch.setattr(core, "GLOBAL_DIR", fake_global)
    monkeypatch.setattr(core, "GLOBAL_CONFIG", fake_global / "config.yaml")
    return fake_global


@pytest.fixture(autouse=True)
def isolate_logging():
    """Drop file handlers the CLI attaches so tests don't share a log file."""
    yield
    logger = logging.getLogger("tapi")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def make_request_result(
    status_code=200,
    body=None,
    headers=None,
    elapsed_ms=42.0,
    error=None,
    raw_text="",
    reason="OK",
):
    """Factory for mock RequestResult objects."""
    r = RequestResult()
    r.status_code = status_code
    r.reason = reason
    r.headers = headers or {}
    r.body = body
    r.elapsed_ms = elapsed_ms
    r.error = error
    r.raw_text = raw_text or (
        json.dumps(body) if isinstance(body, dict | list) else str(body or "")
    )
    r.size = len(r.raw_text)
    return r
