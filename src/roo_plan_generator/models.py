"""Pydantic models for the Roo plan generator pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PipelineStage(str, Enum):
    ANALYSIS = "analysis"
    STRUCTURING = "structuring"
    OUTLINE_REFINEMENT = "outline_refinement"
    PARALLEL_GENERATION = "parallel_generation"
    PLAN_ASSEMBLY = "plan_assembly"
    PLAN_REVIEW = "plan_review"
    COMPLETE = "complete"


class ValidationStrictness(str, Enum):
    """How strictly a refined plan is re-checked after the single refinement call."""
    TITLE_ONLY = "title_only"
    FULL = "full"


# ---------------------------------------------------------------------------
# Structure document payloads
# ---------------------------------------------------------------------------

class StructureItem(BaseModel):
    """One entry of the proposed file structure (``{"type": "file", "path": "main.py"}``)."""
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["dir", "file"] = Field(..., alias="type", description="'dir' or 'file'")
    path: str = Field(..., min_length=1, description="Normalized forward-slash path")


class StructuringResult(BaseModel):
    """Stage 2 output: the structure markdown and the concise one-shot command."""
    structure_md: str = Field(..., description="Everything before the command separator")
    concise_command: str = Field(..., description="Paragraph after the command separator")
    degraded: bool = Field(default=False, description="True when a placeholder was substituted")


# ---------------------------------------------------------------------------
# Modes (.roomodes)
# ---------------------------------------------------------------------------

class ModeDefinition(BaseModel):
    """A single custom mode. Unknown keys emitted by the LLM are kept.

    ``null`` and scalar values in the known fields are coerced, not rejected.
    """
    model_config = ConfigDict(extra="allow")

    slug: str = Field(default="", description="Lowercase hyphenated identifier")
    name: str = Field(default="")
    roleDefinition: str = Field(default="")
    groups: list = Field(default_factory=list, description="Ordered capability tokens")
    customInstructions: str = Field(default="")

    @field_validator("slug", "name", "roleDefinition", "customInstructions", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, list):
            return "\n".join(str(part) for part in v)
        return v if isinstance(v, str) else str(v)

    @field_validator("groups", mode="before")
    @classmethod
    def _coerce_groups(cls, v: Any) -> list:
        if v is None:
            return []
        return v if isinstance(v, list) else [v]


class ModeSet(BaseModel):
    """Contents of the ``.roomodes`` file."""
    model_config = ConfigDict(extra="allow")

    customModes: list[ModeDefinition] = Field(default_factory=list)

    @property
    def slugs(self) -> list[str]:
        return [m.slug for m in self.customModes if m.slug]

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)


class ModeSetResult(BaseModel):
    """Stage 5 output."""
    mode_set: ModeSet
    content: str = Field(..., description="Serialized .roomodes JSON")
    delegate_slugs: list[str] = Field(default_factory=list, description="Slugs eligible for delegation")
    parsed_successfully: bool = Field(default=False, description="False when the fallback was synthesized")


# ---------------------------------------------------------------------------
# Fan-out outcomes
# ---------------------------------------------------------------------------

class ArtifactOutcome(BaseModel):
    """Result of one generation branch: either an artifact or the reason it is absent."""
    stage: str = Field(..., description="Stage name, e.g. 'Rules'")
    filename: str | None = Field(default=None, description="Destination filename in the artifact map")
    content: str | None = Field(default=None)
    reason: str | None = Field(default=None, description="Why no artifact was produced")
    synthesized: bool = Field(default=False, description="Content comes from a deterministic fallback")
    skipped: bool = Field(default=False, description="Branch was a no-op (not a failure)")

    @property
    def ok(self) -> bool:
        return self.content is not None and self.filename is not None


# ---------------------------------------------------------------------------
# Plan assembly
# ---------------------------------------------------------------------------

class PlanAssemblyResult(BaseModel):
    """Stage 6 output."""
    plan: str = Field(..., description="roo-plan.md content")
    is_valid: bool = Field(default=False, description="LLM plan passed validation (possibly after refinement)")
    issues: list[str] = Field(default_factory=list, description="Issues found on the first draft")
    synthesized: bool = Field(default=False, description="Deterministic fallback plan was used")


# ---------------------------------------------------------------------------
# Top-level Pipeline Result
# ---------------------------------------------------------------------------

class PipelineResult(BaseModel):
    """Terminal output of a completed run."""
    artifacts: dict[str, str] = Field(default_factory=dict, description="filename -> content")
    structure_list: list[StructureItem] = Field(default_factory=list)
    outline_map: dict[str, str] = Field(default_factory=dict, description="file path -> outline text")
    outcomes: list[ArtifactOutcome] = Field(default_factory=list)
    stages_completed: list[PipelineStage] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    modes_synthesized: bool = Field(default=False)
    plan_synthesized: bool = Field(default=False)


# ---------------------------------------------------------------------------
# Project Configuration (loaded from YAML)
# ---------------------------------------------------------------------------

class ModelEndpointOverride(BaseModel):
    """Per-model endpoint override (e.g. a non-Azure provider for one model)."""
    endpoint: str = Field(default="", description="Base URL for this model")
    api_key: str | None = Field(default=None)
    api_version: str | None = Field(default=None)
    api_type: str | None = Field(default=None, description="Forced AG2 api_type, e.g. 'anthropic'")


class ModelConfig(BaseModel):
    """LLM model configuration per role."""
    default: str = Field(default="gpt-5.2", description="Default model")
    analyst: str | None = Field(default=None)
    architect: str | None = Field(default=None)
    generator: str | None = Field(default=None, description="Rules, ignore files, modes")
    planner: str | None = Field(default=None)
    reviewer: str | None = Field(default=None)
    overrides: dict[str, ModelEndpointOverride] = Field(default_factory=dict)


class AzureConfig(BaseModel):
    """Azure OpenAI connection settings."""
    api_key: str = Field(default="", description="Azure OpenAI API key (or ${ENV_VAR})")
    api_version: str = Field(default="", description="API version")
    endpoint: str = Field(default="", description="Azure endpoint URL")


class ProjectConfig(BaseModel):
    """Full configuration loaded from config.yaml."""
    project_name: str = Field(default="roo-plan")

    # Azure OpenAI
    azure: AzureConfig = Field(default_factory=AzureConfig)

    # Models
    models: ModelConfig = Field(default_factory=ModelConfig)

    # LLM call settings
    timeout: int = Field(default=120, description="LLM call timeout in seconds")
    seed: int = Field(default=42, description="LLM seed for reproducibility")
    temperature: float | None = Field(default=None, description="Sampling temperature (provider default if unset)")
    llm_max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    llm_retry_min_delay: float = Field(default=1.0, ge=0.0, description="First backoff delay in seconds")
    llm_retry_max_delay: float = Field(default=10.0, ge=0.0, description="Backoff ceiling in seconds")

    # Pipeline settings
    max_parallel_stages: int = Field(default=5, ge=1, description="Worker threads for the fan-out group")
    plan_refinement_strictness: ValidationStrictness = Field(
        default=ValidationStrictness.TITLE_ONLY,
        description="Re-check applied to a refined plan",
    )
    plan_review_enabled: bool = Field(default=True, description="Allow the final plan review stage")
    override_dir: str = Field(default=".roo", description="Directory for system-prompt override files")
    simple_project_line_threshold: int = Field(
        default=20,
        ge=1,
        description="Structure documents shorter than this get the single-mode fallback",
    )
