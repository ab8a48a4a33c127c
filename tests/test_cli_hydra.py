"""Tests for the Hydra-based CLI (cli.py)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import SAMPLE_COMMAND, SAMPLE_PLAN, SAMPLE_STRUCTURE_MD
from hydra import compose, initialize_config_dir
from omegaconf import OmegaConf

import roo_plan_generator
from roo_plan_generator._hydra_conf import CLI_ONLY_KEYS, RooPlanConf, register_configs
from roo_plan_generator.cancellation import CancellationSignal
from roo_plan_generator.cli import EXIT_CANCELLED, _MODE_DISPATCH, _to_project_config
from roo_plan_generator.errors import PipelineError
from roo_plan_generator.models import PipelineResult, ProjectConfig, ValidationStrictness
from roo_plan_generator.tools.extractors import COMMAND_SEPARATOR

CONF_DIR = str(Path(roo_plan_generator.__file__).resolve().parent / "conf")


def _compose(overrides: list[str] | None = None):
    register_configs()
    with initialize_config_dir(config_dir=CONF_DIR, version_base=None):
        return compose(config_name="config", overrides=overrides or [])


class TestDefaultConfig:
    """Verify the package's conf/config.yaml loads correctly."""

    def test_default_config_loads(self):
        cfg = _compose()
        assert cfg.mode == "run"
        assert cfg.idea is None
        assert cfg.max_parallel_stages == 5
        assert cfg.plan_refinement_strictness == "title_only"

    def test_default_config_converts_to_project_config(self, monkeypatch):
        monkeypatch.setenv("AZURE_OPENAI_API_KEY", "test")
        monkeypatch.setenv("AZURE_OPENAI_API_VERSION", "2024-01-01")
        monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://test.openai.azure.com/")
        pc = _to_project_config(_compose())
        assert isinstance(pc, ProjectConfig)
        assert pc.project_name == "roo-plan"
        assert pc.azure.api_key == "test"
        assert pc.azure.endpoint == "https://test.openai.azure.com"

    def test_overrides_reach_project_config(self):
        pc = _to_project_config(_compose([
            "plan_refinement_strictness=full",
            "max_parallel_stages=2",
            "models.planner=gpt-5.2-pro",
        ]))
        assert pc.plan_refinement_strictness == ValidationStrictness.FULL
        assert pc.max_parallel_stages == 2
        assert pc.models.planner == "gpt-5.2-pro"


class TestCliOnlyKeys:
    def test_cli_only_keys_are_schema_fields(self):
        assert CLI_ONLY_KEYS <= set(RooPlanConf.__dataclass_fields__)

    def test_remaining_fields_are_project_config_fields(self):
        remaining = set(RooPlanConf.__dataclass_fields__) - CLI_ONLY_KEYS
        assert remaining == set(ProjectConfig.model_fields)


class TestModeDispatch:
    def test_all_modes_present(self):
        assert set(_MODE_DISPATCH) == {"run", "parse", "check_plan"}

    def test_all_modes_are_callable(self):
        for name, handler in _MODE_DISPATCH.items():
            assert callable(handler), f"Handler for mode {name!r} is not callable"


class TestRunMode:
    def _cfg(self, **values):
        return OmegaConf.create({"mode": "run", "quiet": True, **values})

    def test_success(self):
        result = PipelineResult(artifacts={".roomodes": "{}", "roo-plan.md": SAMPLE_PLAN})
        with patch("roo_plan_generator.pipeline.Pipeline") as pipeline_cls:
            pipeline_cls.return_value.run.return_value = result
            _MODE_DISPATCH["run"](self._cfg(idea="A to-do CLI", show_artifacts=True))
        assert pipeline_cls.return_value.run.call_args.args[0] == "A to-do CLI"

    def test_idea_file(self, tmp_path):
        idea_file = tmp_path / "idea.txt"
        idea_file.write_text("  A to-do CLI from a file  \n", encoding="utf-8")
        with patch("roo_plan_generator.pipeline.Pipeline") as pipeline_cls:
            pipeline_cls.return_value.run.return_value = PipelineResult()
            _MODE_DISPATCH["run"](self._cfg(idea_file=str(idea_file)))
        assert pipeline_cls.return_value.run.call_args.args[0] == "A to-do CLI from a file"

    def test_setup_commands_for_target_dir(self):
        with patch("roo_plan_generator.pipeline.Pipeline") as pipeline_cls:
            pipeline = pipeline_cls.return_value
            pipeline.run.return_value = PipelineResult()
            pipeline.suggest_setup_commands.return_value = ['cd "/tmp/todo"']
            _MODE_DISPATCH["run"](self._cfg(idea="x", target_dir="/tmp/todo"))
        assert pipeline.suggest_setup_commands.call_args.args[0] == "/tmp/todo"

    def test_missing_idea_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            _MODE_DISPATCH["run"](self._cfg())
        assert exc_info.value.code == 1

    def test_pipeline_error_exits_1(self):
        with patch("roo_plan_generator.pipeline.Pipeline") as pipeline_cls:
            pipeline_cls.return_value.run.side_effect = PipelineError("Plan generation failed: boom")
            with pytest.raises(SystemExit) as exc_info:
                _MODE_DISPATCH["run"](self._cfg(idea="x"))
        assert exc_info.value.code == 1

    def test_cancellation_exits_130(self):
        with patch("roo_plan_generator.pipeline.Pipeline") as pipeline_cls:
            pipeline_cls.return_value.run.side_effect = CancellationSignal("Analysis")
            with pytest.raises(SystemExit) as exc_info:
                _MODE_DISPATCH["run"](self._cfg(idea="x"))
        assert exc_info.value.code == EXIT_CANCELLED


class TestOfflineModes:
    def test_parse_mode(self, tmp_path, capsys):
        doc = tmp_path / "structure.md"
        doc.write_text(f"{SAMPLE_STRUCTURE_MD}\n{COMMAND_SEPARATOR}\n{SAMPLE_COMMAND}\n", encoding="utf-8")
        _MODE_DISPATCH["parse"](OmegaConf.create({"mode": "parse", "structure_file": str(doc)}))
        out = capsys.readouterr().out
        assert "todo/main.py" in out
        assert "Core logic outlines: 2 files" in out

    def test_check_plan_passes(self, tmp_path):
        plan = tmp_path / "roo-plan.md"
        plan.write_text(SAMPLE_PLAN, encoding="utf-8")
        _MODE_DISPATCH["check_plan"](OmegaConf.create({"mode": "check_plan", "plan_file": str(plan)}))

    def test_check_plan_fails(self, tmp_path):
        plan = tmp_path / "roo-plan.md"
        plan.write_text("# Not a plan", encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            _MODE_DISPATCH["check_plan"](OmegaConf.create({"mode": "check_plan", "plan_file": str(plan)}))
        assert exc_info.value.code == 1

    def test_missing_file_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            _MODE_DISPATCH["check_plan"](
                OmegaConf.create({"mode": "check_plan", "plan_file": str(tmp_path / "missing.md")})
            )
