"""Tests for models.py — Pydantic model validation."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from roo_plan_generator.models import (
    ArtifactOutcome,
    ModeDefinition,
    ModeSet,
    PipelineResult,
    PipelineStage,
    ProjectConfig,
    StructureItem,
    ValidationStrictness,
)


class TestStructureItem:
    def test_type_alias(self):
        item = StructureItem.model_validate({"type": "file", "path": "src/main.py"})
        assert item.kind == "file"
        assert item.model_dump(by_alias=True) == {"type": "file", "path": "src/main.py"}

    def test_populate_by_name(self):
        assert StructureItem(kind="dir", path="src").kind == "dir"

    def test_rejects_unknown_kind(self):
        with pytest.raises(ValidationError):
            StructureItem(kind="link", path="x")

    def test_rejects_empty_path(self):
        with pytest.raises(ValidationError):
            StructureItem(kind="file", path="")


class TestModeSet:
    def test_extra_keys_survive_serialization(self):
        mode_set = ModeSet.model_validate({
            "customModes": [{"slug": "code", "name": "Code", "groups": ["read", ["edit", {"fileRegex": "\\.py$"}]],
                             "source": "project"}],
            "version": 2,
        })
        data = json.loads(mode_set.to_json())
        assert data["version"] == 2
        assert data["customModes"][0]["source"] == "project"
        assert data["customModes"][0]["groups"][1] == ["edit", {"fileRegex": "\\.py$"}]

    def test_null_fields_become_empty(self):
        mode = ModeDefinition.model_validate({"slug": "code", "name": None, "groups": None, "customInstructions": None})
        assert (mode.name, mode.groups, mode.customInstructions) == ("", [], "")

    def test_slugs_skip_empty(self):
        mode_set = ModeSet(customModes=[ModeDefinition(slug="a"), ModeDefinition()])
        assert mode_set.slugs == ["a"]


class TestArtifactOutcome:
    def test_ok_requires_filename_and_content(self):
        assert ArtifactOutcome(stage="Rules", filename=".clinerules-code", content="").ok
        assert not ArtifactOutcome(stage="Rules", filename=".clinerules-code").ok
        assert not ArtifactOutcome(stage="Mode Override", skipped=True).ok


class TestPipelineResult:
    def test_defaults(self):
        result = PipelineResult()
        assert result.artifacts == {}
        assert result.stages_completed == []

    def test_stage_values(self):
        assert PipelineStage("plan_review") is PipelineStage.PLAN_REVIEW


class TestProjectConfig:
    def test_defaults(self):
        config = ProjectConfig()
        assert config.models.default == "gpt-5.2"
        assert config.llm_max_retries == 3
        assert config.llm_retry_min_delay == 1.0
        assert config.llm_retry_max_delay == 10.0
        assert config.max_parallel_stages == 5
        assert config.plan_refinement_strictness == ValidationStrictness.TITLE_ONLY
        assert config.plan_review_enabled is True
        assert config.simple_project_line_threshold == 20

    def test_strictness_from_string(self):
        assert ProjectConfig(plan_refinement_strictness="full").plan_refinement_strictness == ValidationStrictness.FULL

    def test_parallelism_must_be_positive(self):
        with pytest.raises(ValidationError):
            ProjectConfig(max_parallel_stages=0)
