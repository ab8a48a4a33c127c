"""Configuration loader and LLM config builder.

Reads generator settings from a YAML config file with ``${ENV_VAR}``
interpolation and turns a pipeline role into an AG2 ``llm_config``.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .models import AzureConfig, ModelEndpointOverride, ProjectConfig

logger = logging.getLogger(__name__)

load_dotenv()

# ---------------------------------------------------------------------------
# YAML loading with ${ENV_VAR} interpolation
# ---------------------------------------------------------------------------

_ENV_RE = re.compile(r"\$\{([^}]+)\}")


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${ENV_VAR}`` references in strings."""
    if isinstance(value, str):
        return _ENV_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(v) for v in value]
    return value


def apply_azure_fallbacks(config: ProjectConfig) -> ProjectConfig:
    """Fill empty azure credentials from ``AZURE_OPENAI_*`` and strip the endpoint's trailing slash."""
    if not config.azure.api_key:
        config.azure.api_key = os.getenv("AZURE_OPENAI_API_KEY", "")
    if not config.azure.api_version:
        config.azure.api_version = os.getenv("AZURE_OPENAI_API_VERSION", "")
    if not config.azure.endpoint:
        config.azure.endpoint = os.getenv("AZURE_OPENAI_ENDPOINT", "")
    config.azure.endpoint = config.azure.endpoint.rstrip("/")
    return config


def load_config(config_path: str | Path) -> ProjectConfig:
    """Load a ``ProjectConfig`` from a YAML file.

    ``${VAR_NAME}`` references are resolved from the environment (after
    ``.env`` has been loaded), then empty azure fields fall back to the
    well-known ``AZURE_OPENAI_*`` variables.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    config = ProjectConfig.model_validate(_resolve_env_vars(raw))
    return apply_azure_fallbacks(config)


# ---------------------------------------------------------------------------
# LLM config builder
# ---------------------------------------------------------------------------

ROLES = (
    "analyst",
    "architect",
    "rules_writer",
    "mode_designer",
    "plan_writer",
    "plan_reviewer",
    "default",
)


def _is_azure_openai_endpoint(endpoint: str) -> bool:
    lower = endpoint.lower()
    return "openai.azure.com" in lower or "cognitiveservices.azure.com" in lower


def _build_single_entry(
    model: str,
    azure: AzureConfig,
    override: ModelEndpointOverride | None = None,
) -> dict[str, Any]:
    """Build one AG2 ``config_list`` entry.

    An override with ``api_type`` is used verbatim with its endpoint as
    ``base_url``. Azure OpenAI endpoints get deployment-based routing; any
    other endpoint is treated as OpenAI-compatible.
    """
    api_key = azure.api_key
    api_version = azure.api_version
    endpoint = azure.endpoint
    forced_api_type: str | None = None

    if override:
        endpoint = override.endpoint.rstrip("/")
        api_key = override.api_key or api_key
        api_version = override.api_version or api_version
        forced_api_type = override.api_type

    entry: dict[str, Any] = {"model": model, "api_key": api_key}

    if forced_api_type:
        entry["api_type"] = forced_api_type
        entry["base_url"] = endpoint
    elif endpoint and _is_azure_openai_endpoint(endpoint):
        entry.update({
            "api_type": "azure",
            "azure_endpoint": endpoint,
            "api_version": api_version,
            "azure_deployment": model,
        })
    elif endpoint:
        entry["base_url"] = endpoint
    return entry


def build_role_llm_config(role: str, config: ProjectConfig) -> dict[str, Any]:
    """Return an AG2-compatible ``llm_config`` dict for *role*.

    Role mapping:
    - ``analyst`` -> models.analyst
    - ``architect`` -> models.architect
    - ``rules_writer`` / ``mode_designer`` -> models.generator
    - ``plan_writer`` -> models.planner
    - ``plan_reviewer`` -> models.reviewer

    Unset or unknown roles use ``models.default``.
    """
    if role.lower() not in ROLES:
        logger.warning("Unknown LLM role %r; using the default model", role)
    models = config.models
    role_map: dict[str, str | None] = {
        "analyst": models.analyst,
        "architect": models.architect,
        "rules_writer": models.generator,
        "mode_designer": models.generator,
        "plan_writer": models.planner,
        "plan_reviewer": models.reviewer,
    }
    chosen = role_map.get(role.lower()) or models.default
    override = models.overrides.get(chosen)
    entry = _build_single_entry(chosen, config.azure, override=override)
    llm_config: dict[str, Any] = {
        "config_list": [entry],
        "timeout": config.timeout,
        "seed": config.seed,
    }
    if config.temperature is not None:
        llm_config["temperature"] = config.temperature
    return llm_config
