"""ModeDesigner agent — designs the project's custom Roo Code modes (.roomodes)."""

from __future__ import annotations

import autogen

from ..config import build_role_llm_config
from ..models import ProjectConfig

SYSTEM_PROMPT = """\
You design custom modes for Roo Code. A mode is a role with a slug, a display
name, a role definition, a list of tool groups and custom instructions.
Output ONLY a valid JSON object matching this schema:
{{
  "customModes": [
    {{
      "slug": "project-orchestrator",
      "name": "Project Orchestrator",
      "roleDefinition": "Coordinates the build and delegates tasks.",
      "groups": ["read", "new_task", "switch_mode"],
      "customInstructions": "Delegate work with <new_task>; never edit files."
    }}
  ]
}}
"""

MODES_TEMPLATE = """\
Design the custom modes for the project below.

Project structure document:
\"\"\"
{structure_md}
\"\"\"

Rules:
- Slugs are lowercase words joined by hyphens.
- Include exactly one coordinating mode with slug "project-orchestrator" that
  only reads, delegates (new_task) and switches modes.
- Add one implementation mode per major technology or layer of the project
  (for example "python-developer", "frontend-react"), each able to read, edit,
  run commands and report completion (groups "read", "edit", "command",
  "attempt_completion").
- Keep roleDefinition to one sentence and customInstructions specific to this project.
"""

MODES_REFINEMENT_TEMPLATE = """\
The `.roomodes` content below is not usable. It must be a single JSON object
with a non-empty "customModes" array of mode objects
(slug, name, roleDefinition, groups, customInstructions).

Invalid content:
\"\"\"
{raw}
\"\"\"

Project structure document:
\"\"\"
{structure_md}
\"\"\"

Reply with the corrected JSON object only.
"""


def make_mode_designer(config: ProjectConfig) -> autogen.AssistantAgent:
    """Create the ModeDesigner agent."""
    return autogen.AssistantAgent(
        name="ModeDesigner",
        system_message=SYSTEM_PROMPT.format(),
        llm_config=build_role_llm_config("mode_designer", config),
    )
