"""Deterministic stand-ins used when LLM generation is exhausted."""

from __future__ import annotations

import json
import logging

from ..models import ModeDefinition, ModeSet, StructureItem

logger = logging.getLogger(__name__)

RESERVED_COORDINATOR_SLUG = "project-orchestrator"
DEFAULT_DELEGATE_SLUG = "code"
DEFAULT_PRIMARY_SLUG = "developer"
COORDINATOR_HINTS = ("manager", "orchestrator", "lead")

_FALLBACK_NOTE = "(Fallback due to modes generation error)"


# ---------------------------------------------------------------------------
# Mode set
# ---------------------------------------------------------------------------

def fallback_mode_set(structure_md: str, threshold: int = 20) -> tuple[ModeSet, list[str]]:
    """Synthesize a mode set sized by the structure document.

    Fewer than *threshold* lines gives one ``developer`` mode; anything
    larger gives ``project-manager`` plus ``code``, with only ``code``
    eligible for delegation.
    """
    line_count = len(structure_md.splitlines())
    if line_count < threshold:
        logger.info("Fallback modes: simple project (%d lines), single 'developer' mode", line_count)
        modes = ModeSet(customModes=[
            ModeDefinition(
                slug="developer",
                name="Developer",
                roleDefinition="Implement the project based on the analysis.",
                groups=["read", "edit", "command", "attempt_completion"],
                customInstructions=(
                    "Implement features based on the project plan and requirements. "
                    f"Follow any available coding standards. {_FALLBACK_NOTE}"
                ),
            ),
        ])
        return modes, ["developer"]

    logger.info("Fallback modes: 'project-manager' and 'code'")
    modes = ModeSet(customModes=[
        ModeDefinition(
            slug="project-manager",
            name="Project Manager",
            roleDefinition="Manage the build based on the analysis, delegate tasks.",
            groups=["read", "new_task", "switch_mode"],
            customInstructions=(
                "Delegate tasks via <new_task> to the 'code' mode. Monitor progress. "
                "Use information from the analysis and structure documents. "
                f"{_FALLBACK_NOTE}"
            ),
        ),
        ModeDefinition(
            slug="code",
            name="General Developer",
            roleDefinition="Implement delegated tasks.",
            groups=["read", "edit", "command", "attempt_completion"],
            customInstructions=(
                "Implement features based on delegated tasks. "
                f"Follow any available coding standards. {_FALLBACK_NOTE}"
            ),
        ),
    ])
    return modes, [DEFAULT_DELEGATE_SLUG]


def select_delegate_slugs(mode_set: ModeSet) -> list[str]:
    """Slugs a plan may delegate to: every slug except the reserved coordinator.

    When nothing is left, ``code`` is injected so plan assembly always has a
    delegate.
    """
    delegates: list[str] = []
    for slug in mode_set.slugs:
        if slug != RESERVED_COORDINATOR_SLUG and slug not in delegates:
            delegates.append(slug)

    if not delegates:
        if DEFAULT_DELEGATE_SLUG in mode_set.slugs:
            logger.warning("No delegate slugs besides the coordinator; using existing 'code' mode")
        else:
            logger.warning("No delegate slugs and no 'code' mode defined; injecting 'code' anyway")
        delegates.append(DEFAULT_DELEGATE_SLUG)
    return delegates


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------

def _hints_coordination(slug: str) -> bool:
    return any(hint in slug for hint in COORDINATOR_HINTS)


def fallback_plan(concise_command: str, slugs: list[str]) -> str:
    """Build the two-step plan used when no LLM draft survives validation."""
    primary = next((s for s in slugs if _hints_coordination(s)), DEFAULT_PRIMARY_SLUG)
    delegate = next((s for s in slugs if not _hints_coordination(s)), DEFAULT_DELEGATE_SLUG)

    message = {
        "goal": f"Implement the core logic for: {concise_command}",
        "contextSummary": (
            "The detailed plan generation failed. Refer to the full project structure "
            f"and analysis provided separately. Key goal: {concise_command}"
        ),
        "detailedInstructions": (
            "1. Review the full project analysis and structure markdown.\n"
            "2. Implement the core features required to meet the concise goal.\n"
            "3. Adhere strictly to any available .clinerules-code or general coding best practices.\n"
            "4. Use attempt_completion with a summary upon success."
        ),
        "toolNotes": "No specific tool notes available due to fallback generation.",
        "completionCriteria": "Core functionality implemented as per the concise goal and available analysis.",
    }
    logger.warning("Fallback plan: primary slug %r, delegate slug %r", primary, delegate)

    return (
        "# Roo Code Execution Plan: Fallback Plan\n"
        "\n"
        f"**Concise Goal:** {concise_command}\n"
        "\n"
        "*(Ensure generated .roomodes and .clinerules files are saved in the project root "
        "before starting this plan. Plan generation encountered issues, using fallback.)*\n"
        "\n"
        "## Phase 1: Initialization (Fallback)\n"
        "\n"
        "1.  **Switch to Primary Mode**:\n"
        f"    <switch_mode><mode_slug>{primary}</mode_slug></switch_mode>\n"
        "    *(This mode will now delegate the main task based on the fallback plan below)*\n"
        "\n"
        "## Phase 2: Core Implementation (Fallback)\n"
        "\n"
        "2.  **Delegate General Implementation Task**:\n"
        "    <new_task>\n"
        f"    <mode>{delegate}</mode> *(Fallback delegate mode)*\n"
        f"    <message>{json.dumps(message, indent=2)}</message>\n"
        "    </new_task>\n"
        "*(Primary mode should monitor completion)*\n"
    )


# ---------------------------------------------------------------------------
# Setup commands
# ---------------------------------------------------------------------------

def fallback_setup_commands(
    directory: str,
    artifacts: dict[str, str],
    structure_list: list[StructureItem],
) -> list[str]:
    """Shell commands inferred from the planned files when the LLM suggestion fails."""
    planned = [item.path for item in structure_list] + list(artifacts)
    commands = [f'cd "{directory}"']
    if any(p.endswith("package.json") for p in planned):
        commands.append("npm install")
    if any(p.endswith("requirements.txt") for p in planned):
        commands.append("pip install -r requirements.txt")
    commands.append('git init && git add . && git commit -m "Initial commit from RooCodeGen"')
    return commands


def ensure_cd_first(directory: str, commands: list[str]) -> list[str]:
    """Move (or add) the ``cd "<directory>"`` command to the front."""
    cd = f'cd "{directory}"'
    if commands and commands[0] == cd:
        return list(commands)
    return [cd] + [c for c in commands if c != cd]


def format_setup_commands(commands: list[str]) -> str:
    """Render commands as one chained ``bash`` block."""
    return "```bash\n" + " && \\\n".join(commands) + "\n```"
