"""PlanWriter and PlanReviewer agents — roo-plan.md assembly, repair and review."""

from __future__ import annotations

import autogen

from ..config import build_role_llm_config
from ..models import ProjectConfig
from ..tools.plan_validator import CONCISE_GOAL_MARKER, PLAN_TITLE

SYSTEM_PROMPT = """\
You write execution plans for Roo Code. A plan is a Markdown document that a
coordinating mode follows step by step: it switches into a mode with
<switch_mode> and hands self-contained tasks to other modes with <new_task>.
Output the plan Markdown only.
"""

REVIEWER_SYSTEM_PROMPT = """\
You review Roo Code execution plans for consistency with the project's custom
modes and for well-formed XML tags and JSON payloads. You reply OK when the plan
needs no change, otherwise you reply with the complete corrected plan.
"""

PLAN_FORMAT = """\
Required format:

""" + PLAN_TITLE + """ <project name>

""" + CONCISE_GOAL_MARKER + """ <the concise command>

## Phase 1: <phase name>

1.  **Switch to <Mode Name>**:
    <switch_mode><mode_slug>slug</mode_slug></switch_mode>

2.  **<Task name>**:
    <new_task>
    <mode>slug</mode>
    <message>{{"goal": "...", "contextSummary": "...", "detailedInstructions": "...", "toolNotes": "...", "completionCriteria": "..."}}</message>
    </new_task>

## Phase 2: ...

Every <message> body must be valid JSON with exactly those five keys.
"""

PLAN_TEMPLATE = """\
Concise goal:
{concise_command}

Mode slugs available for delegation: {slugs}

Project structure document:
\"\"\"
{structure_md}
\"\"\"

Write the execution plan that builds this project end to end, one <new_task>
per coherent unit of work, delegating only to the slugs listed above.

""" + PLAN_FORMAT

PLAN_REFINEMENT_TEMPLATE = """\
The execution plan below failed validation with these issues:
{issues}

Invalid plan:
\"\"\"
{plan}
\"\"\"

Mode slugs available for delegation: {slugs}

Project structure document:
\"\"\"
{structure_md}
\"\"\"

Fix every issue and reply with the complete corrected plan.

""" + PLAN_FORMAT

PLAN_REVIEW_TEMPLATE = """\
Review the execution plan against the custom modes and project structure.

Check that:
- every slug used in <switch_mode> and <mode> tags exists in the modes JSON;
- every <new_task>, <switch_mode> and <message> tag is closed;
- every <message> body is valid JSON;
- the phases cover the files in the structure document.

Plan:
\"\"\"
{plan}
\"\"\"

Modes (.roomodes):
\"\"\"
{modes_json}
\"\"\"

Project structure document:
\"\"\"
{structure_md}
\"\"\"

If the plan needs no change reply with the single word OK and nothing else.
Otherwise reply with the complete corrected plan and nothing else.
"""

SETUP_COMMANDS_TEMPLATE = """\
A project was planned in the directory {directory}.

Generated files: {artifact_list}
Top-level structure: {structure_summary}

Suggest the shell commands a developer should run to set the project up
(install dependencies, initialise version control). The first command must be
cd "{directory}".
Reply with a JSON array of command strings only, e.g. ["cd \\"/path\\"", "npm install"].
"""


def make_plan_writer(config: ProjectConfig) -> autogen.AssistantAgent:
    """Create the PlanWriter agent."""
    return autogen.AssistantAgent(
        name="PlanWriter",
        system_message=SYSTEM_PROMPT,
        llm_config=build_role_llm_config("plan_writer", config),
    )


def make_plan_reviewer(config: ProjectConfig) -> autogen.AssistantAgent:
    """Create the PlanReviewer agent."""
    return autogen.AssistantAgent(
        name="PlanReviewer",
        system_message=REVIEWER_SYSTEM_PROMPT,
        llm_config=build_role_llm_config("plan_reviewer", config),
    )
