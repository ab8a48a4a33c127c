"""Architect agent — proposes the file structure, outlines and one-shot command."""

from __future__ import annotations

import autogen

from ..config import build_role_llm_config
from ..models import ProjectConfig
from ..tools.extractors import COMMAND_SEPARATOR, OUTLINES_HEADING, STRUCTURE_HEADING

SYSTEM_PROMPT = """\
You are a software architect. From a requirements analysis you design the
smallest complete project layout that satisfies it, and you describe the core
logic of each important file as short pseudocode outlines.
"""

STRUCTURE_TEMPLATE = """\
Project idea:
\"\"\"
{project_idea}
\"\"\"

Requirements analysis:
\"\"\"
{analysis}
\"\"\"

Write a Markdown document with these sections, in this order:

## Project Summary
Two or three sentences.

""" + STRUCTURE_HEADING + """
A single ```json fenced block holding an array of objects, one per directory or
file, e.g. {{"type": "dir", "path": "src"}} and {{"type": "file", "path": "src/main.py"}}.
Paths are relative, use forward slashes and have no trailing slash.

""" + OUTLINES_HEADING + """
One list entry per important file, formatted as
- `relative/path.ext`:
  followed by indented pseudocode lines.

Finish the document with this exact separator line on its own:
""" + COMMAND_SEPARATOR + """
followed by ONE paragraph: a concise, imperative command that tells a coding
agent to build the whole project.
"""

STRUCTURE_VALIDATION_TEMPLATE = """\
Check the structured project document below. It is valid only if:
1. It has a "Project Summary" section.
2. It has a "Proposed Structure (JSON)" section containing a ```json block with an
   array of {{"type": "dir"|"file", "path": "..."}} objects.
3. It has a "Core Logic Outlines" section.
4. It contains the separator line
""" + COMMAND_SEPARATOR + """
   followed by a non-empty paragraph.

Document:
\"\"\"
{structure_raw}
\"\"\"

If it is valid, reply with the single word OK and nothing else.
Otherwise reply with the complete corrected document, including the separator
and the command paragraph, with no commentary.
"""

OUTLINE_REFINEMENT_TEMPLATE = """\
Requirements analysis:
\"\"\"
{analysis}
\"\"\"

Project structure (outlines removed):
\"\"\"
{structure_context}
\"\"\"

Preliminary outlines:
{preliminary_outlines}

Rewrite the outlines so every important file listed in the structure has clear,
step-by-step pseudocode covering its core logic, inputs, outputs and error cases.
Reply with the complete section, starting with the heading line
""" + OUTLINES_HEADING + """
and using one entry per file formatted as
- `relative/path.ext`:
Reply with that section only.
"""


def make_architect(config: ProjectConfig) -> autogen.AssistantAgent:
    """Create the Architect agent."""
    return autogen.AssistantAgent(
        name="Architect",
        system_message=SYSTEM_PROMPT,
        llm_config=build_role_llm_config("architect", config),
    )
