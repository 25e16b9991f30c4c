"""Tests for configuration loading, settings and prompts."""

import pytest
from omegaconf import OmegaConf
from pydantic import ValidationError

from coach_core.llm.prompt_manager import PromptManager
from coach_core.settings import DEFAULT_FALLBACK_MESSAGE, OrchestrationSettings
from coach_core.utils.config_parser import PROMPTS_DIR, load_app_config


class TestLoadAppConfig:
    def test_packaged_config_is_namespaced_by_file(self):
        config = load_app_config()

        assert "openrouter" in config.llms.llm_providers
        assert config.orchestration.max_turns == 5

    def test_env_resolver(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")

        config = load_app_config()

        assert config.llms.llm_providers.openrouter.params.api_key == "sk-test"

    def test_custom_directory(self, tmp_path):
        (tmp_path / "orchestration.yaml").write_text("max_turns: 2\n")
        (tmp_path / "extra.yaml").write_text("value: 1\n")

        config = load_app_config(tmp_path)

        assert config.orchestration.max_turns == 2
        assert config.extra.value == 1

    def test_dotlist_overrides(self):
        config = load_app_config(overrides=["orchestration.max_turns=2", "orchestration.idle_delay_ms=0"])

        assert config.orchestration.max_turns == 2
        assert config.orchestration.idle_delay_ms == 0
        assert config.orchestration.token_buffer_limit == 2000

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_app_config(tmp_path / "nope")

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("key: [unclosed\n")

        with pytest.raises(RuntimeError, match="broken.yaml"):
            load_app_config(tmp_path)


class TestOrchestrationSettings:
    def test_packaged_defaults(self):
        settings = OrchestrationSettings.from_config(load_app_config().orchestration)

        assert settings.default_provider == "openrouter"
        assert settings.token_buffer_limit == 2000
        assert settings.flush_interval == 0.05
        assert settings.idle_delay == 0.2
        assert settings.fallback_message == DEFAULT_FALLBACK_MESSAGE

    def test_missing_section_uses_defaults(self):
        assert OrchestrationSettings.from_config(None).max_turns == 5

    def test_partial_override(self):
        settings = OrchestrationSettings.from_config(OmegaConf.create({"max_turns": 2, "idle_delay_ms": 0}))

        assert settings.max_turns == 2
        assert settings.idle_delay == 0

    def test_rejects_zero_turns(self):
        with pytest.raises(ValidationError):
            OrchestrationSettings(max_turns=0)


class TestPromptManager:
    def test_system_prompt_describes_tool_syntax(self):
        prompt = PromptManager(PROMPTS_DIR).get_system_prompt("coach")

        assert "[TOOL_CALL:" in prompt
        assert prompt == prompt.strip()

    def test_missing_prompt_directory(self):
        with pytest.raises(FileNotFoundError):
            PromptManager(PROMPTS_DIR).load_prompt("nobody", "system.prompt")
