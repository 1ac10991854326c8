"""
Module: tests/unit/test_config_loader.py

What:
    Validate the configuration loader: discovery order, caching, schema
    validation and error signalling.

Why:
    Every connection default and search limit comes from here; a silently
    ignored typo in ``config.yaml`` would surface much later as a confusing
    IMAP failure.

Invariants & Safety Rules:
    - Runtime cache must be cleared before each load to avoid cross-test bleed.
"""

import pytest

from imapquery.config.loader import (
    ConfigLoadError,
    RuntimeConfigError,
    get_runtime_config,
    load_runtime_config,
    reset_runtime_config,
)
from imapquery.config.schema import RuntimeConfig


def test_fixture_config_is_loaded_from_env():
    config = get_runtime_config()
    assert config.imap.host == "imap.example.test"
    assert config.imap.password_env == "IMAPQUERY_TEST_PASSWORD"
    assert config.parts.max_download_bytes == 1048576


def test_explicit_path_wins(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("imap:\n  host: other.test\nsearch:\n  default_limit: 10\n", encoding="utf-8")
    config = load_runtime_config(path, reload=True)
    assert config.imap.host == "other.test"
    assert config.search.default_limit == 10
    assert config.imap.port == 993


def test_cache_until_reset(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("imap:\n  host: first.test\n", encoding="utf-8")
    monkeypatch.setenv("IMAPQUERY_CONFIG_PATH", str(path))
    reset_runtime_config()
    assert get_runtime_config().imap.host == "first.test"
    path.write_text("imap:\n  host: second.test\n", encoding="utf-8")
    assert get_runtime_config().imap.host == "first.test"
    reset_runtime_config()
    assert get_runtime_config().imap.host == "second.test"


def test_defaults_when_no_file(tmp_path, monkeypatch):
    monkeypatch.delenv("IMAPQUERY_CONFIG_PATH")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("imapquery.config.loader._DEFAULT_LOCATIONS", ())
    reset_runtime_config()
    assert get_runtime_config() == RuntimeConfig()


def test_missing_explicit_path_raises(tmp_path):
    with pytest.raises(RuntimeConfigError):
        load_runtime_config(tmp_path / "absent.yaml", reload=True)


@pytest.mark.parametrize(
    "text",
    [
        "imap: [unclosed",
        "- just\n- a list\n",
        "imap:\n  hots: typo.test\n",
        "version: 2\n",
        "search:\n  default_limit: 0\n",
        "imap:\n  default_mailbox: '  '\n",
    ],
)
def test_invalid_payloads_raise(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigLoadError):
        load_runtime_config(path, reload=True)
