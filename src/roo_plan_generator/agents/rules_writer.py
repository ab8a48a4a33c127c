"""RulesWriter agent — coding rules, ignore rules, workspace rules, mode overrides."""

from __future__ import annotations

import autogen

from ..config import build_role_llm_config
from ..models import ProjectConfig

SYSTEM_PROMPT = """\
You write configuration files for Roo Code, an autonomous coding agent.
You output the raw file content only: no Markdown fences, no preamble, no
explanation after the content.
"""

RULES_HEADER = "// .clinerules-code for"
TECH_STACK_MARKER = "// Primary Tech Stack:"
IGNORE_HEADER = "# .rooignore for"
WORKSPACE_HEADER = "// General Workspace .clinerules for"

_CONTEXT = """
Project structure document:
\"\"\"
{structure_md}
\"\"\"
"""

RULES_TEMPLATE = """\
Write the `.clinerules-code` file for the project below: coding standards the
coding agent must follow while implementing it (naming, layout, error handling,
testing, dependencies).
""" + _CONTEXT + """
The first line must be exactly:
""" + RULES_HEADER + """ <project name>
and the file must contain a line starting with
""" + TECH_STACK_MARKER + """
that lists the languages and frameworks. Every line is a `//` comment.
"""

RULES_REFINEMENT_TEMPLATE = """\
The `.clinerules-code` content below is invalid. It must start with the line
"{header} <project name>" and contain a line starting with "{marker}".

Invalid content:
\"\"\"
{raw}
\"\"\"
""" + _CONTEXT + """
Reply with the corrected file content only.
"""

IGNORE_TEMPLATE = """\
Write the `.rooignore` file for the project below. List, one pattern per line,
the paths the coding agent must never read or modify: dependencies, build
output, caches, virtual environments, secrets and local environment files.
""" + _CONTEXT + """
The first line must be exactly:
""" + IGNORE_HEADER + """ <project name>
Use `#` for comments.
"""

IGNORE_REFINEMENT_TEMPLATE = """\
The `.rooignore` content below is invalid. It must start with the line
"{header} <project name>" followed by one ignore pattern per line.

Invalid content:
\"\"\"
{raw}
\"\"\"
""" + _CONTEXT + """
Reply with the corrected file content only.
"""

WORKSPACE_RULES_TEMPLATE = """\
Write the workspace-wide `.clinerules` file for the project below: general
working agreements that apply to every mode (planning before editing, small
commits, keeping documentation current, asking for clarification through
task results rather than guessing).
""" + _CONTEXT + """
The first line must be exactly:
""" + WORKSPACE_HEADER + """ <project name>
Every line is a `//` comment.
"""

WORKSPACE_RULES_REFINEMENT_TEMPLATE = """\
The workspace `.clinerules` content below is invalid. It must start with the line
"{header} <project name>".

Invalid content:
\"\"\"
{raw}
\"\"\"
""" + _CONTEXT + """
Reply with the corrected file content only.
"""

OVERRIDE_TEMPLATE = """\
Write a complete replacement system prompt for the Roo Code mode `{mode_slug}`.
It fully replaces the built-in prompt for `{mode_slug}`, so it must state the
role, the tools the mode may use, how it reports completion and the project
conventions it follows.
""" + _CONTEXT + """
Reply with the system prompt text only.
"""

OVERRIDE_REFINEMENT_TEMPLATE = """\
The previous attempt to write a system prompt for the Roo Code mode `{mode_slug}`
returned nothing. Write it now: a complete replacement system prompt for
`{mode_slug}` stating its role, allowed tools, completion reporting and
project conventions. The reply must not be empty.
""" + _CONTEXT + """
Reply with the system prompt text only.
"""


def make_rules_writer(config: ProjectConfig) -> autogen.AssistantAgent:
    """Create the RulesWriter agent."""
    return autogen.AssistantAgent(
        name="RulesWriter",
        system_message=SYSTEM_PROMPT,
        llm_config=build_role_llm_config("rules_writer", config),
    )
