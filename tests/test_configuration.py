import pytest

from jademark.configuration import JadeMarkConfig, get_settings, settings_to_transform
from jademark.errors import ProviderConfigurationError


class TestGetSettings:

    def test_defaults(self, isolated_config):
        settings = get_settings()
        assert settings.PROVIDER == "google-free"
        assert settings.TARGET_LANGUAGE == "Simplified Chinese"
        assert settings.TARGET_LANGUAGE_CODE == "zh-CN"
        assert settings.CONCURRENCY == 3
        assert settings.BATCH_SIZE == 10
        assert settings.LOG_LEVEL == "WARNING"

    def test_environment_with_prefix(self, isolated_config, monkeypatch):
        monkeypatch.setenv("JADEMARK_PROVIDER", "Gemini")
        monkeypatch.setenv("JADEMARK_API_KEY", "secret-key")
        monkeypatch.setenv("JADEMARK_CONCURRENCY", "5")
        settings = get_settings()
        assert settings.PROVIDER == "google-sdk"
        assert settings.CONCURRENCY == 5
        assert settings.API_KEY.get_secret_value() == "secret-key"
        assert "secret-key" not in repr(settings)

    def test_missing_api_key_is_reported(self, isolated_config, monkeypatch):
        monkeypatch.setenv("JADEMARK_PROVIDER", "google-sdk")
        with pytest.raises(ProviderConfigurationError) as excinfo:
            get_settings()
        assert "- JADEMARK_API_KEY is required" in str(excinfo.value)

    def test_custom_requires_base_url(self, isolated_config, monkeypatch):
        monkeypatch.setenv("JADEMARK_PROVIDER", "openai-compatible")
        with pytest.raises(ProviderConfigurationError) as excinfo:
            get_settings()
        assert "BASE_URL" in str(excinfo.value)

    def test_completions_suffix_is_stripped(self, isolated_config, monkeypatch):
        monkeypatch.setenv("JADEMARK_PROVIDER", "custom")
        monkeypatch.setenv("JADEMARK_BASE_URL", "http://localhost:8000/v1/chat/completions/")
        assert get_settings().BASE_URL == "http://localhost:8000/v1"

    def test_invalid_values_are_bulleted(self, isolated_config, monkeypatch):
        monkeypatch.setenv("JADEMARK_CONCURRENCY", "0")
        with pytest.raises(ProviderConfigurationError) as excinfo:
            get_settings()
        message = str(excinfo.value)
        assert message.startswith("Configuration validation errors detected:")
        assert "- CONCURRENCY:" in message

    def test_unknown_provider_is_rejected(self, isolated_config, monkeypatch):
        monkeypatch.setenv("JADEMARK_PROVIDER", "carrier-pigeon")
        with pytest.raises(ProviderConfigurationError):
            get_settings()

    def test_yaml_layers_and_environment_precedence(self, isolated_config, tmp_path, monkeypatch):
        home_dir = tmp_path / "home" / ".jademark"
        home_dir.mkdir()
        (home_dir / "config.yaml").write_text(
            "PROVIDER: echo\nBATCH_SIZE: 4\nTARGET_LANGUAGE: German\n", encoding="utf-8"
        )
        (isolated_config / "jademark.yaml").write_text("BATCH_SIZE: 6\n", encoding="utf-8")
        monkeypatch.setenv("JADEMARK_TARGET_LANGUAGE", "French")
        settings = get_settings()
        assert settings.PROVIDER == "echo"
        assert settings.BATCH_SIZE == 6
        assert settings.TARGET_LANGUAGE == "French"

    def test_dotenv_layer(self, isolated_config):
        (isolated_config / ".env").write_text("JADEMARK_MODEL=tiny\n", encoding="utf-8")
        assert get_settings().MODEL == "tiny"

    def test_settings_are_cached(self, isolated_config):
        assert get_settings() is get_settings()


class TestSettingsToTransform:

    def test_projection(self, isolated_config):
        config = JadeMarkConfig(PROVIDER="echo", MODEL="m", BATCH_SIZE=2)
        settings = settings_to_transform(config)
        assert settings.provider == "echo"
        assert settings.model == "m"
        assert settings.batch_size == 2

    def test_overrides_win_and_none_is_ignored(self, isolated_config):
        config = JadeMarkConfig()
        settings = settings_to_transform(config, provider="free", model=None, concurrency=1)
        assert settings.provider == "google-free"
        assert settings.concurrency == 1
        assert settings.model == ""

    def test_invalid_override(self, isolated_config):
        with pytest.raises(ProviderConfigurationError):
            settings_to_transform(JadeMarkConfig(), batch_size=0)
        with pytest.raises(ProviderConfigurationError):
            settings_to_transform(JadeMarkConfig(), provider="unknown")
