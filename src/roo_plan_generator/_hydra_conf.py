"""Hydra structured config dataclasses.

These mirror the Pydantic ``ProjectConfig`` for Hydra schema validation.
At runtime the Hydra DictConfig is converted to ``ProjectConfig`` via
``cli._to_project_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from hydra.core.config_store import ConfigStore


@dataclass
class AzureConf:
    api_key: str = "${oc.env:AZURE_OPENAI_API_KEY,''}"
    api_version: str = "${oc.env:AZURE_OPENAI_API_VERSION,''}"
    endpoint: str = "${oc.env:AZURE_OPENAI_ENDPOINT,''}"


@dataclass
class ModelConf:
    default: str = "gpt-5.2"
    analyst: str | None = None
    architect: str | None = None
    generator: str | None = None
    planner: str | None = None
    reviewer: str | None = None
    overrides: dict[str, Any] = field(default_factory=dict)


@dataclass
class RooPlanConf:
    # --- Dispatch + CLI-only fields ---
    mode: str = "run"
    verbose: bool = False
    quiet: bool = False
    idea: str | None = None
    idea_file: str | None = None
    structure_file: str | None = None
    plan_file: str | None = None
    target_dir: str | None = None
    show_artifacts: bool = False

    # --- ProjectConfig fields (1:1 mapping) ---
    project_name: str = "roo-plan"

    azure: AzureConf = field(default_factory=AzureConf)
    models: ModelConf = field(default_factory=ModelConf)

    timeout: int = 120
    seed: int = 42
    temperature: float | None = None
    llm_max_retries: int = 3
    llm_retry_min_delay: float = 1.0
    llm_retry_max_delay: float = 10.0

    max_parallel_stages: int = 5
    plan_refinement_strictness: str = "title_only"
    plan_review_enabled: bool = True
    override_dir: str = ".roo"
    simple_project_line_threshold: int = 20


# Keys present in RooPlanConf that are NOT part of ProjectConfig.
CLI_ONLY_KEYS = frozenset({
    "mode", "verbose", "quiet", "idea", "idea_file",
    "structure_file", "plan_file", "target_dir", "show_artifacts",
})


def register_configs() -> None:
    """Register the structured config schema with Hydra's ConfigStore."""
    cs = ConfigStore.instance()
    cs.store(name="roo_plan_schema", node=RooPlanConf)
