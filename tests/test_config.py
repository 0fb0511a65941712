"""
Tests for settings and profile loading.
"""
from pathlib import Path

from jobfill import config


class TestLoadSettings:
    def test_missing_file_gives_defaults(self, tmp_path):
        settings = config.load_settings(tmp_path / "nope.yaml")
        assert settings == config.DEFAULT_SETTINGS
        assert settings is not config.DEFAULT_SETTINGS

    def test_overrides_merge_with_defaults(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("autofill:\n  delay_ms: 5\ncache:\n  similarity_floor: 0.8\n", encoding="utf-8")
        settings = config.load_settings(path)
        assert settings["autofill"] == {"simulate_typing": True, "delay_ms": 5, "skip_filled": False}
        assert settings["cache"]["similarity_floor"] == 0.8
        assert settings["cache"]["path"] == "answer_cache.json"
        assert config.DEFAULT_SETTINGS["autofill"]["delay_ms"] == 30

    def test_non_mapping_file_ignored(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        assert config.load_settings(path) == config.DEFAULT_SETTINGS

    def test_shipped_settings_parse(self):
        settings = config.load_settings(Path(__file__).resolve().parent.parent / "config" / "settings.yaml")
        assert settings["detector"]["cache_ttl_seconds"] == 5
        assert settings["backend"]["url"] == ""


class TestLoadProfile:
    def test_missing_profile_is_empty(self, tmp_path):
        assert config.load_profile(tmp_path / "profile.yaml") == {}

    def test_nested_profile_flattened(self, tmp_path):
        path = tmp_path / "profile.yaml"
        path.write_text(
            "profile:\n  name: Ann\n  title: Engineer\nname: Override\nskills: [Python]\n",
            encoding="utf-8",
        )
        assert config.load_profile(path) == {"name": "Override", "title": "Engineer", "skills": ["Python"]}


class TestHelpers:
    def test_get_env_strips(self, monkeypatch):
        monkeypatch.setenv("JOBFILL_TEST_VALUE", "  spaced  ")
        assert config.get_env("JOBFILL_TEST_VALUE") == "spaced"
        assert config.get_env("JOBFILL_TEST_MISSING", "fallback") == "fallback"

    def test_cache_path(self, tmp_path):
        assert config.cache_path({"cache": {"path": "a.json"}}) == config.DATA_DIR / "a.json"
        absolute = tmp_path / "b.json"
        assert config.cache_path({"cache": {"path": str(absolute)}}) == absolute
        assert config.cache_path({}) == config.DATA_DIR / "answer_cache.json"
