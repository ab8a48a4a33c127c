"""Structural checks for ``roo-plan.md`` drafts."""

from __future__ import annotations

import json
import logging
import re

from ..models import ValidationStrictness

logger = logging.getLogger(__name__)

PLAN_TITLE = "# Roo Code Execution Plan:"
CONCISE_GOAL_MARKER = "**Concise Goal:**"

_SWITCH_STEP_RE = re.compile(
    r"1\.\s+\*\*.*?Switch.*?\*\*:\s*<switch_mode><mode_slug>[a-z0-9-]+</mode_slug></switch_mode>"
)
_MESSAGE_RE = re.compile(r"<message>([\s\S]*?)</message>")
_SWITCH_SLUG_RE = re.compile(r"<mode_slug>\s*([a-z0-9-]+)\s*</mode_slug>")
_DELEGATE_SLUG_RE = re.compile(r"<mode>\s*([a-z0-9-]+)\s*</mode>")


def validate_plan(text: str | None) -> list[str]:
    """Return every structural requirement *text* violates (empty list = valid).

    Only the first ``<message>`` whose body is not valid JSON is reported.
    """
    if not text:
        return ["Empty plan"]

    issues: list[str] = []
    if PLAN_TITLE not in text:
        issues.append("Missing Title")
    if CONCISE_GOAL_MARKER not in text:
        issues.append("Missing Concise Goal")
    if not _SWITCH_STEP_RE.search(text):
        issues.append("Missing or invalid initial <switch_mode> step (Step 1)")
    if "## " not in text:
        issues.append("Missing phase headers (e.g., ## Phase 1: ...)")
    if "<new_task>" not in text:
        issues.append("Missing at least one <new_task> delegation")

    for m in _MESSAGE_RE.finditer(text):
        try:
            json.loads(m.group(1))
        except json.JSONDecodeError as e:
            issues.append(f"Invalid JSON in <message>: {e}")
            break
    return issues


def is_refined_plan_acceptable(
    text: str | None,
    strictness: ValidationStrictness = ValidationStrictness.TITLE_ONLY,
) -> bool:
    """Re-check a plan returned by the refinement call.

    ``TITLE_ONLY`` accepts any text carrying the plan title; ``FULL``
    requires every rule of :func:`validate_plan`.
    """
    if not text:
        return False
    if strictness == ValidationStrictness.FULL:
        return not validate_plan(text)
    return PLAN_TITLE in text


def extract_plan_slugs(text: str | None) -> list[str]:
    """Slugs referenced by ``<switch_mode>`` and ``<new_task><mode>`` tags, in order of first use."""
    if not text:
        return []
    found: list[tuple[int, str]] = []
    for regex in (_SWITCH_SLUG_RE, _DELEGATE_SLUG_RE):
        found.extend((m.start(), m.group(1)) for m in regex.finditer(text))
    slugs: list[str] = []
    for _, slug in sorted(found):
        if slug not in slugs:
            slugs.append(slug)
    return slugs
