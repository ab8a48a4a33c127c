"""Analyst agent — turns a raw project idea into a requirements analysis."""

from __future__ import annotations

import autogen

from ..config import build_role_llm_config
from ..models import ProjectConfig

SYSTEM_PROMPT = """\
You are a senior software analyst. You read short, informal project ideas and
write precise requirement analyses that an autonomous coding agent can build from.
Be concrete: name languages, frameworks, libraries and file formats.
Never ask the user questions; make reasonable assumptions and state them.
"""

REQUIRED_SECTIONS = (
    "Project Goal",
    "Core Features",
    "Technical Stack",
    "Data Model",
    "Non-Functional Requirements",
    "Assumptions and Risks",
)

_SECTION_LIST = "\n".join(f"## {name}" for name in REQUIRED_SECTIONS)

ANALYSIS_TEMPLATE = """\
Analyze the following project idea and write a requirements analysis in Markdown.

Project idea:
\"\"\"
{project_idea}
\"\"\"

Use exactly these sections, in this order:
""" + _SECTION_LIST + """

If the idea asks to "override system prompt for mode <slug>", repeat that phrase
verbatim under "Assumptions and Risks".
Output only the Markdown analysis.
"""

ANALYSIS_VALIDATION_TEMPLATE = """\
Review the requirements analysis below. It must contain all of these sections,
each with specific, non-placeholder content:
""" + _SECTION_LIST + """

Analysis:
\"\"\"
{analysis}
\"\"\"

If every section is present and complete, reply with the single word OK and nothing else.
Otherwise reply with the complete corrected analysis (all sections), with no commentary.
"""


def make_analyst(config: ProjectConfig) -> autogen.AssistantAgent:
    """Create the Analyst agent."""
    return autogen.AssistantAgent(
        name="Analyst",
        system_message=SYSTEM_PROMPT,
        llm_config=build_role_llm_config("analyst", config),
    )
