"""Tests for heritage_spine.core.settings module."""

from pathlib import Path

from heritage_spine.core.settings import (
    DEFAULT_PUBLIC_MODELS,
    PublishSettings,
    clear_settings_cache,
    get_settings,
)


class TestDefaults:
    def test_defaults(self):
        settings = PublishSettings()
        assert settings.resolve_batch_size == 50
        assert settings.extract_batch_size == 10
        assert settings.chunk_size_chars == 10_000_000
        assert settings.public_models == DEFAULT_PUBLIC_MODELS
        assert settings.include_private is False
        assert settings.output_mode == "spatial"
        assert settings.associated_models == []

    def test_output_dir_defaults_under_base(self):
        settings = PublishSettings(base_dir=Path("/srv/project"))
        assert settings.resolved_output_dir == Path("/srv/project/public")

    def test_log_level_is_upper_cased(self):
        assert PublishSettings(log_level="debug").log_level == "DEBUG"

    def test_json_logs_follows_format(self):
        assert PublishSettings(log_format="auto").json_logs is None
        assert PublishSettings(log_format="json").json_logs is True
        assert PublishSettings(log_format="console").json_logs is False


class TestEnvironment:
    """Legacy and prefixed environment variables."""

    def test_legacy_output_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "site"))
        assert PublishSettings().resolved_output_dir == tmp_path / "site"

    def test_legacy_for_arches_switches_to_chunked(self, monkeypatch):
        monkeypatch.setenv("FOR_ARCHES", "true")
        settings = PublishSettings()
        assert settings.for_arches is True
        assert settings.output_mode == "chunked"

    def test_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("HERITAGE_CHUNK_SIZE_CHARS", "100")
        monkeypatch.setenv("HERITAGE_INCLUDE_PRIVATE", "1")
        settings = PublishSettings()
        assert settings.chunk_size_chars == 100
        assert settings.include_private is True

    def test_associated_models_from_json(self, monkeypatch):
        monkeypatch.setenv("HERITAGE_ASSOCIATED_MODELS", '["Person", "Organization"]')
        assert PublishSettings().associated_models == ["Person", "Organization"]


class TestCache:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_overrides_build_a_variant(self):
        assert get_settings(include_private=True).include_private is True
        assert get_settings().include_private is False

    def test_clear_settings_cache(self):
        first = get_settings()
        clear_settings_cache()
        assert get_settings() is not first
