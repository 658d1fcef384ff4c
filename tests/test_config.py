"""Tests for the central configuration loader (answercache/config.py)."""

import os

import pytest
import yaml

from answercache.config import (
    CacheSettings,
    RedisSettings,
    Settings,
    _apply_dict,
    _load_yaml,
    get_settings,
    reset_settings,
)


@pytest.fixture(autouse=True)
def _clean_settings():
    """Reset the singleton before and after each test."""
    reset_settings()
    yield
    reset_settings()


def _write_config(tmp_path, data):
    f = tmp_path / "config.yaml"
    f.write_text(yaml.dump(data))
    return f


# ── YAML loading ────────────────────────────────────────


class TestLoadYaml:
    def test_loads_valid_yaml(self, tmp_path):
        f = tmp_path / "cfg.yaml"
        f.write_text("cache:\n  local_max_size: 42\n")
        data = _load_yaml(f)
        assert data["cache"]["local_max_size"] == 42

    def test_returns_empty_dict_for_missing_file(self, tmp_path):
        assert _load_yaml(tmp_path / "nonexistent.yaml") == {}

    def test_returns_empty_dict_for_non_dict_yaml(self, tmp_path):
        f = tmp_path / "cfg.yaml"
        f.write_text("- item1\n- item2\n")
        assert _load_yaml(f) == {}


# ── Settings defaults ───────────────────────────────────


class TestSettingsDefaults:
    def test_default_settings_have_expected_values(self):
        s = Settings()
        assert s.cache.local_max_size == 500
        assert s.cache.local_ttl_seconds == 1800
        assert s.cache.similarity_threshold == 0.85
        assert s.redis.enabled is False
        assert s.redis.key_prefix == "knowi:chat"
        assert s.redis.ttl_seconds == 3600
        assert s.redis.timeout_seconds == 2.0
        assert s.logging.level == "INFO"


# ── get_settings() from YAML ────────────────────────────


class TestGetSettings:
    def test_loads_yaml_values(self, tmp_path):
        cfg = _write_config(tmp_path, {
            "cache": {"local_max_size": 64, "similarity_threshold": 0.6},
            "redis": {"enabled": True, "url": "redis://cache:6379/2"},
        })
        s = get_settings(yaml_path=cfg, env_path=tmp_path / ".env", _force_reload=True)
        assert s.cache.local_max_size == 64
        assert s.cache.similarity_threshold == 0.6
        assert s.redis.enabled is True
        assert s.redis.url == "redis://cache:6379/2"

    def test_missing_yaml_uses_defaults(self, tmp_path):
        s = get_settings(
            yaml_path=tmp_path / "nope.yaml", env_path=tmp_path / ".env", _force_reload=True
        )
        assert s.cache.local_max_size == 500

    def test_unknown_sections_ignored(self, tmp_path):
        cfg = _write_config(tmp_path, {"api": {"port": 7777}, "cache": "not-a-dict"})
        s = get_settings(yaml_path=cfg, env_path=tmp_path / ".env", _force_reload=True)
        assert s.cache == CacheSettings()

    def test_singleton_returns_same_object(self, tmp_path):
        cfg = _write_config(tmp_path, {"cache": {"local_max_size": 55}})
        s1 = get_settings(yaml_path=cfg, env_path=tmp_path / ".env", _force_reload=True)
        s2 = get_settings()
        assert s1 is s2

    def test_force_reload_reloads(self, tmp_path):
        cfg = _write_config(tmp_path, {"cache": {"local_max_size": 11}})
        s1 = get_settings(yaml_path=cfg, env_path=tmp_path / ".env", _force_reload=True)
        assert s1.cache.local_max_size == 11

        cfg.write_text(yaml.dump({"cache": {"local_max_size": 22}}))
        s2 = get_settings(yaml_path=cfg, env_path=tmp_path / ".env", _force_reload=True)
        assert s2.cache.local_max_size == 22


# ── Environment variable overrides ──────────────────────


class TestEnvOverrides:
    def test_env_override_int(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {"cache": {"local_max_size": 100}})
        monkeypatch.setenv("ANSWERCACHE_CACHE_LOCAL_MAX_SIZE", "250")
        s = get_settings(yaml_path=cfg, env_path=tmp_path / ".env", _force_reload=True)
        assert s.cache.local_max_size == 250

    def test_env_override_float(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {})
        monkeypatch.setenv("ANSWERCACHE_CACHE_SIMILARITY_THRESHOLD", "0.75")
        s = get_settings(yaml_path=cfg, env_path=tmp_path / ".env", _force_reload=True)
        assert s.cache.similarity_threshold == 0.75

    def test_env_override_bool(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {})
        monkeypatch.setenv("ANSWERCACHE_REDIS_ENABLED", "true")
        s = get_settings(yaml_path=cfg, env_path=tmp_path / ".env", _force_reload=True)
        assert s.redis.enabled is True

    @pytest.mark.parametrize("raw,expected", [("on", True), ("1", True), ("no", False)])
    def test_env_override_bool_spellings(self, tmp_path, monkeypatch, raw, expected):
        cfg = _write_config(tmp_path, {"redis": {"enabled": not expected}})
        monkeypatch.setenv("ANSWERCACHE_REDIS_ENABLED", raw)
        s = get_settings(yaml_path=cfg, env_path=tmp_path / ".env", _force_reload=True)
        assert s.redis.enabled is expected

    def test_env_override_string(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {})
        monkeypatch.setenv("ANSWERCACHE_REDIS_KEY_PREFIX", "docs:qa")
        s = get_settings(yaml_path=cfg, env_path=tmp_path / ".env", _force_reload=True)
        assert s.redis.key_prefix == "docs:qa"

    def test_invalid_override_keeps_value(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {})
        monkeypatch.setenv("ANSWERCACHE_CACHE_LOCAL_MAX_SIZE", "lots")
        s = get_settings(yaml_path=cfg, env_path=tmp_path / ".env", _force_reload=True)
        assert s.cache.local_max_size == 500

    def test_env_overrides_trump_yaml(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {"redis": {"ttl_seconds": 60}})
        monkeypatch.setenv("ANSWERCACHE_REDIS_TTL_SECONDS", "120")
        s = get_settings(yaml_path=cfg, env_path=tmp_path / ".env", _force_reload=True)
        assert s.redis.ttl_seconds == 120

    def test_dotenv_file_is_read(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ANSWERCACHE_REDIS_URL", raising=False)
        env = tmp_path / ".env"
        env.write_text("ANSWERCACHE_REDIS_URL=redis://from-dotenv:6379/0\n")
        cfg = _write_config(tmp_path, {})
        try:
            s = get_settings(yaml_path=cfg, env_path=env, _force_reload=True)
            assert s.redis.url == "redis://from-dotenv:6379/0"
        finally:
            os.environ.pop("ANSWERCACHE_REDIS_URL", None)


# ── _apply_dict helper ──────────────────────────────────


class TestApplyDict:
    def test_applies_known_keys(self):
        target = RedisSettings()
        _apply_dict(target, {"url": "redis://other:6379/1", "ttl_seconds": 10})
        assert target.url == "redis://other:6379/1"
        assert target.ttl_seconds == 10

    def test_ignores_unknown_keys(self):
        target = RedisSettings()
        _apply_dict(target, {"unknown_field": "value"})
        assert target == RedisSettings()


# ── Integration: real config/config.yaml ─────────────────


class TestRealConfig:
    def test_loads_project_config_yaml(self, monkeypatch):
        for name in (
            "ANSWERCACHE_CACHE_SIMILARITY_THRESHOLD",
            "ANSWERCACHE_CACHE_LOCAL_MAX_SIZE",
            "ANSWERCACHE_REDIS_ENABLED",
        ):
            monkeypatch.delenv(name, raising=False)
        s = get_settings(_force_reload=True)
        # These values match config/config.yaml
        assert s.cache.local_max_size == 500
        assert s.cache.local_ttl_seconds == 1800
        assert s.cache.similarity_threshold == 0.70
        assert s.redis.key_prefix == "knowi:chat"
