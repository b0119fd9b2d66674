from __future__ import annotations

from pydantic import ValidationError
import pytest

from couchdb_http.config import ClientConfig, get_settings, merge_headers


def test_get_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("COUCHDB_HOST", "couch.example.test")
    monkeypatch.setenv("COUCHDB_PORT", "6984")
    monkeypatch.setenv("COUCHDB_USER", "reader")
    monkeypatch.setenv("COUCHDB_PASSWORD", "secret")
    monkeypatch.setenv("COUCHDB_AUTH", "cookie")
    monkeypatch.setenv("COUCHDB_TIMEOUT_SECONDS", "2.5")

    settings = get_settings()

    assert settings.couchdb_host == "couch.example.test"
    assert settings.couchdb_port == 6984
    assert settings.couchdb_user == "reader"
    assert settings.couchdb_password == "secret"
    assert settings.couchdb_auth == "cookie"
    assert settings.couchdb_timeout_seconds == 2.5


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("COUCHDB_HOST", "first")
    first = get_settings()

    monkeypatch.setenv("COUCHDB_HOST", "second")
    second = get_settings()

    assert first is second
    assert second.couchdb_host == "first"


def test_get_settings_rejects_unknown_auth_mode(monkeypatch):
    monkeypatch.setenv("COUCHDB_AUTH", "digest")

    with pytest.raises(ValidationError):
        get_settings()


def test_merge_headers_override_replaces_default_case_insensitively():
    merged = merge_headers(
        {"Content-Type": "application/json", "Accept": "application/json"},
        {"content-type": "text/plain", "User-Agent": "tests"},
    )

    assert merged == {
        "Accept": "application/json",
        "content-type": "text/plain",
        "User-Agent": "tests",
    }


def test_merge_headers_without_overrides_copies_defaults():
    defaults = {"Content-Type": "application/json"}

    merged = merge_headers(defaults, None)

    assert merged == defaults
    assert merged is not defaults


def test_client_config_is_frozen():
    config = ClientConfig(base_url="http://host:5984", headers=(("Content-Type", "application/json"),))

    assert config.header_map() == {"Content-Type": "application/json"}
    with pytest.raises(ValidationError):
        config.base_url = "http://other:5984"
