"""Agent factories and the prompt templates each agent is driven with."""

from __future__ import annotations

import logging
from typing import Any, Callable

import autogen

from ..config import build_role_llm_config
from ..models import ProjectConfig
from . import analyst, architect, mode_designer, plan_writer, rules_writer

logger = logging.getLogger(__name__)

TEMPLATES: dict[str, str] = {
    "analysis": analyst.ANALYSIS_TEMPLATE,
    "analysis_validation": analyst.ANALYSIS_VALIDATION_TEMPLATE,
    "structure": architect.STRUCTURE_TEMPLATE,
    "structure_validation": architect.STRUCTURE_VALIDATION_TEMPLATE,
    "outline_refinement": architect.OUTLINE_REFINEMENT_TEMPLATE,
    "rules": rules_writer.RULES_TEMPLATE,
    "rules_refinement": rules_writer.RULES_REFINEMENT_TEMPLATE,
    "ignore": rules_writer.IGNORE_TEMPLATE,
    "ignore_refinement": rules_writer.IGNORE_REFINEMENT_TEMPLATE,
    "workspace_rules": rules_writer.WORKSPACE_RULES_TEMPLATE,
    "workspace_rules_refinement": rules_writer.WORKSPACE_RULES_REFINEMENT_TEMPLATE,
    "mode_override": rules_writer.OVERRIDE_TEMPLATE,
    "mode_override_refinement": rules_writer.OVERRIDE_REFINEMENT_TEMPLATE,
    "modes": mode_designer.MODES_TEMPLATE,
    "modes_refinement": mode_designer.MODES_REFINEMENT_TEMPLATE,
    "plan": plan_writer.PLAN_TEMPLATE,
    "plan_refinement": plan_writer.PLAN_REFINEMENT_TEMPLATE,
    "plan_review": plan_writer.PLAN_REVIEW_TEMPLATE,
    "setup_commands": plan_writer.SETUP_COMMANDS_TEMPLATE,
}

AGENT_FACTORIES: dict[str, Callable[[ProjectConfig], autogen.AssistantAgent]] = {
    "analyst": analyst.make_analyst,
    "architect": architect.make_architect,
    "rules_writer": rules_writer.make_rules_writer,
    "mode_designer": mode_designer.make_mode_designer,
    "plan_writer": plan_writer.make_plan_writer,
    "plan_reviewer": plan_writer.make_plan_reviewer,
}


class _BlankDefaults(dict):
    """Mapping that renders unknown placeholders as empty strings."""

    def __missing__(self, key: str) -> str:
        return ""


def render_template(template_id: str, variables: dict[str, Any] | None = None) -> str:
    """Fill the template *template_id* with *variables*.

    Missing variables render as empty text. An unknown template id renders
    the variables themselves so the caller still gets a usable prompt.
    """
    values = _BlankDefaults({k: "" if v is None else v for k, v in (variables or {}).items()})
    template = TEMPLATES.get(template_id)
    if template is None:
        logger.warning("Unknown template %r; sending variables only", template_id)
        return "\n\n".join(str(v) for v in values.values())
    return template.format_map(values)


def make_agent(role: str, config: ProjectConfig) -> autogen.AssistantAgent:
    """Return the agent for *role*; unknown roles get a generic assistant on the default model."""
    factory = AGENT_FACTORIES.get(role)
    if factory is not None:
        return factory(config)
    return autogen.AssistantAgent(
        name="Assistant",
        system_message="You are a helpful software planning assistant. Follow the instructions exactly.",
        llm_config=build_role_llm_config("default", config),
    )
