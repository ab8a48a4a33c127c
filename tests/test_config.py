"""Tests for config.py — YAML loading and LLM config building."""

from __future__ import annotations

import pytest

from roo_plan_generator.config import _resolve_env_vars, build_role_llm_config, load_config
from roo_plan_generator.models import ProjectConfig, ValidationStrictness

AZURE = {"api_key": "k", "api_version": "v", "endpoint": "https://test.openai.azure.com"}


class TestResolveEnvVars:
    def test_string_replacement(self, monkeypatch):
        monkeypatch.setenv("TEST_VAR", "hello")
        assert _resolve_env_vars("prefix-${TEST_VAR}") == "prefix-hello"

    def test_missing_var_becomes_empty(self, monkeypatch):
        monkeypatch.delenv("NONEXISTENT_VAR", raising=False)
        assert _resolve_env_vars("${NONEXISTENT_VAR}") == ""

    def test_nested(self, monkeypatch):
        monkeypatch.setenv("MY_KEY", "secret")
        result = _resolve_env_vars({"azure": {"api_key": "${MY_KEY}"}, "list": ["${MY_KEY}", 3]})
        assert result == {"azure": {"api_key": "secret"}, "list": ["secret", 3]}

    def test_non_string_passthrough(self):
        assert _resolve_env_vars(42) == 42
        assert _resolve_env_vars(None) is None


class TestLoadConfig:
    def test_load_sample_config(self, sample_config_path, monkeypatch):
        monkeypatch.setenv("AZURE_OPENAI_API_KEY", "test-key")
        monkeypatch.setenv("AZURE_OPENAI_API_VERSION", "2024-01-01")
        monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://test.openai.azure.com/")
        config = load_config(sample_config_path)
        assert config.project_name == "todo-cli-plan"
        assert config.azure.api_key == "test-key"
        assert config.azure.endpoint == "https://test.openai.azure.com"
        assert config.models.architect == "gpt-5.2-pro"
        assert config.models.overrides["claude-sonnet"].api_type == "anthropic"
        assert config.llm_max_retries == 2
        assert config.max_parallel_stages == 3
        assert config.plan_refinement_strictness == ValidationStrictness.FULL

    def test_missing_config_raises(self):
        with pytest.raises(FileNotFoundError):
            load_config("nonexistent.yaml")


class TestBuildRoleLlmConfig:
    def test_role_model_with_azure_routing(self):
        config = ProjectConfig(models={"default": "gpt-4", "architect": "gpt-5"}, azure=AZURE)
        entry = build_role_llm_config("architect", config)["config_list"][0]
        assert entry["model"] == "gpt-5"
        assert entry["api_type"] == "azure"
        assert entry["azure_deployment"] == "gpt-5"
        assert entry["api_version"] == "v"

    def test_generator_roles_share_model(self):
        config = ProjectConfig(models={"default": "gpt-4", "generator": "gpt-4o-mini"}, azure=AZURE)
        for role in ("rules_writer", "mode_designer"):
            assert build_role_llm_config(role, config)["config_list"][0]["model"] == "gpt-4o-mini"

    def test_unset_and_unknown_roles_use_default(self):
        config = ProjectConfig(models={"default": "gpt-4"}, azure=AZURE)
        for role in ("plan_writer", "unknown_role"):
            assert build_role_llm_config(role, config)["config_list"][0]["model"] == "gpt-4"

    def test_unknown_role_is_logged(self, caplog):
        config = ProjectConfig(models={"default": "gpt-4"}, azure=AZURE)
        with caplog.at_level("WARNING", logger="roo_plan_generator.config"):
            build_role_llm_config("unknown_role", config)
            build_role_llm_config("plan_reviewer", config)
        assert [r.getMessage() for r in caplog.records if r.name == "roo_plan_generator.config"] == [
            "Unknown LLM role 'unknown_role'; using the default model",
        ]

    def test_override_forces_api_type(self):
        config = ProjectConfig(
            models={
                "default": "gpt-4",
                "planner": "claude-sonnet",
                "overrides": {"claude-sonnet": {
                    "endpoint": "https://proxy.example.com/v1/",
                    "api_key": "proxy-key",
                    "api_type": "anthropic",
                }},
            },
            azure=AZURE,
        )
        entry = build_role_llm_config("plan_writer", config)["config_list"][0]
        assert entry == {
            "model": "claude-sonnet",
            "api_key": "proxy-key",
            "api_type": "anthropic",
            "base_url": "https://proxy.example.com/v1",
        }

    def test_openai_compatible_endpoint(self):
        config = ProjectConfig(azure={"api_key": "k", "endpoint": "http://localhost:11434/v1"})
        entry = build_role_llm_config("analyst", config)["config_list"][0]
        assert entry["base_url"] == "http://localhost:11434/v1"
        assert "api_type" not in entry

    def test_call_settings(self):
        config = ProjectConfig(azure=AZURE, timeout=30, seed=7)
        llm_config = build_role_llm_config("analyst", config)
        assert llm_config["timeout"] == 30
        assert llm_config["seed"] == 7
        assert "temperature" not in llm_config

        config.temperature = 0.2
        assert build_role_llm_config("analyst", config)["temperature"] == 0.2
