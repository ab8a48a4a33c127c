"""Extraction of structured payloads from free-form LLM markdown.

Every function here treats its input as untrusted text. "Not found" is
reported as an empty result (``[]``, ``{}``, ``None``), never as an
exception, so callers decide how much degradation they accept.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

from pydantic import ValidationError

from ..models import ModeSet, StructureItem

logger = logging.getLogger(__name__)

COMMAND_SEPARATOR = "--- CONCISE ONE-SHOT COMMAND BELOW ---"
STRUCTURE_PLACEHOLDER = "# Error: Could not parse structured result after validation."
COMMAND_PLACEHOLDER = "Build the project as described (parsing error)."

STRUCTURE_HEADING = "## Proposed Structure (JSON)"
OUTLINES_HEADING = "### Core Logic Outlines"


# ---------------------------------------------------------------------------
# Response normalization
# ---------------------------------------------------------------------------

_WRAPPING_FENCE_RE = re.compile(r"\A```[^\n]*\n(?P<body>[\s\S]*?)\n?```\Z")
_PREAMBLE_RE = re.compile(r"^(here is|here's) the content:?\s*", re.IGNORECASE)


def strip_wrapping_fence(text: str) -> str:
    """Remove a fenced block that wraps the *whole* response, keeping its body."""
    stripped = text.strip()
    m = _WRAPPING_FENCE_RE.match(stripped)
    if m:
        return m.group("body").strip()
    return stripped


def normalize_response(raw: str | None) -> str:
    """Strip one wrapping fence, then a leading "here is the content:" preamble."""
    if not raw:
        return ""
    text = strip_wrapping_fence(raw)
    return _PREAMBLE_RE.sub("", text, count=1).strip()


def is_ok_verdict(text: str | None) -> bool:
    """True when a judge response is the bare token ``OK`` (any case, any surrounding whitespace)."""
    return bool(text) and text.strip().upper() == "OK"


# ---------------------------------------------------------------------------
# Structure list
# ---------------------------------------------------------------------------

_STRUCTURE_BLOCK_RE = re.compile(
    r"[#]{2,3}\s*Proposed (?:File )?Structure(?:\s*\(JSON\))?[\s\S]*?```(?:json)?\s*([\s\S]*?)\s*```",
    re.IGNORECASE | re.MULTILINE,
)
_ANY_JSON_BLOCK_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")


def normalize_path(path: str) -> str:
    """Normalize a planned path to a relative forward-slash form.

    ``"./src/index.js/"`` -> ``"src/index.js"``; ``"gitignore"`` -> ``".gitignore"``.
    Applying it twice gives the same result as applying it once.
    """
    p = path.strip().replace("\\", "/")
    previous = None
    while p != previous:
        previous = p
        if p.startswith("./"):
            p = p[2:]
        p = p.lstrip("/").rstrip("/")
    if p.lower() == "gitignore":
        p = ".gitignore"
    return p


def _items_from_json(payload: str) -> list[StructureItem] | None:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.warning("Structure block is not valid JSON: %s", e)
        return None
    if not isinstance(data, list):
        logger.warning("Structure block is not a JSON array")
        return None

    items: list[StructureItem] = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        kind = entry.get("type")
        path = entry.get("path")
        if kind not in ("dir", "file") or not isinstance(path, str) or not path.strip():
            continue
        normalized = normalize_path(path)
        if not normalized:
            continue
        try:
            items.append(StructureItem(kind=kind, path=normalized))
        except ValidationError:
            continue
    return items


def parse_structure_list(markdown: str | None) -> list[StructureItem]:
    """Extract the ordered ``[{type, path}]`` list from a structure document.

    Looks for a fenced block under a "Proposed (File) Structure (JSON)"
    heading first, then for any ```json block. Returns ``[]`` when neither
    yields a JSON array.
    """
    if not markdown:
        return []

    candidates: list[str] = []
    m = _STRUCTURE_BLOCK_RE.search(markdown)
    if m:
        candidates.append(m.group(1))
    m = _ANY_JSON_BLOCK_RE.search(markdown)
    if m and m.group(1) not in candidates:
        candidates.append(m.group(1))

    for payload in candidates:
        items = _items_from_json(payload.strip())
        if items is not None:
            logger.debug("Parsed %d structure items", len(items))
            return items

    logger.warning("No structure list found in document")
    return []


def serialize_structure_list(items: list[StructureItem]) -> str:
    """Render *items* back into the document shape ``parse_structure_list`` reads."""
    payload = json.dumps(
        [item.model_dump(by_alias=True) for item in items],
        indent=2,
    )
    return f"{STRUCTURE_HEADING}\n\n```json\n{payload}\n```\n"


# ---------------------------------------------------------------------------
# Core logic outlines
# ---------------------------------------------------------------------------

# Heading level 2 or 3. The section runs until the next level 2-6 heading
# outside a fenced block, or to the end of the text.
_OUTLINE_HEADING_RE = re.compile(r"^[#]{2,3}[ \t]*Core Logic Outlines[^\n]*(?:\n|\Z)", re.MULTILINE)
_SECTION_END_RE = re.compile(r"^#{2,6}\s")
_FENCE_OPEN_RE = re.compile(r"^\s*(```|~~~)")
_OUTLINE_ENTRY_RE = re.compile(r"^\s*-\s*`([^`]+)`:(.*)$")
_FENCE_LINE_RE = re.compile(r"^```[ \t]*$", re.MULTILINE)


@dataclass
class OutlineSection:
    """Location of the outlines section inside a structure document."""
    start: int
    end: int
    body: str


def _section_end(markdown: str, pos: int) -> int:
    fence: str | None = None
    for line in markdown[pos:].splitlines(keepends=True):
        m = _FENCE_OPEN_RE.match(line)
        if m:
            if fence is None:
                fence = m.group(1)
            elif m.group(1) == fence:
                fence = None
        elif fence is None and _SECTION_END_RE.match(line):
            return pos
        pos += len(line)
    return len(markdown)


def find_preliminary_outlines(markdown: str | None) -> OutlineSection | None:
    if not markdown:
        return None
    m = _OUTLINE_HEADING_RE.search(markdown)
    if not m:
        return None
    end = _section_end(markdown, m.end())
    return OutlineSection(start=m.start(), end=end, body=markdown[m.end():end].strip())


def parse_outlines(markdown: str | None) -> dict[str, str]:
    """Map each ``- `path`:`` entry of the outlines section to its outline text.

    Keys are taken literally from the backticks. A repeated key keeps the
    last outline; entries with no outline text are dropped.
    """
    section = find_preliminary_outlines(markdown)
    if section is None:
        logger.warning("No Core Logic Outlines section found")
        return {}

    outlines: dict[str, str] = {}
    current: str | None = None
    lines: list[str] = []

    def _flush() -> None:
        if current is not None:
            text = "\n".join(lines).strip()
            if text:
                outlines[current] = text

    for line in section.body.splitlines():
        m = _OUTLINE_ENTRY_RE.match(line)
        if m:
            _flush()
            current = m.group(1).strip()
            rest = m.group(2).strip()
            lines = [rest] if rest else []
        elif current is not None:
            lines.append(line)
    _flush()

    logger.debug("Parsed outlines for %d files", len(outlines))
    return outlines


def remove_outline_section(markdown: str) -> str:
    """Return *markdown* without its outlines section (heading included)."""
    section = find_preliminary_outlines(markdown)
    if section is None:
        return markdown
    return markdown[:section.start] + markdown[section.end:]


def splice_outlines(markdown: str, refined: str) -> str:
    """Put a refined outlines section into the structure document.

    Replaces the existing section when there is one; otherwise inserts the
    refined text after the last fenced block, or appends it.
    """
    refined = refined.strip()
    section = find_preliminary_outlines(markdown)
    if section is not None:
        return markdown[:section.start] + "\n" + refined + "\n" + markdown[section.end:]

    fences = list(_FENCE_LINE_RE.finditer(markdown))
    if fences:
        insert_at = fences[-1].end()
        return markdown[:insert_at] + "\n\n" + refined + markdown[insert_at:]
    return markdown + "\n\n" + refined


# ---------------------------------------------------------------------------
# Mode set
# ---------------------------------------------------------------------------

def parse_mode_set(text: str | None) -> ModeSet | None:
    """Validate ``.roomodes`` JSON into a ``ModeSet``.

    Returns ``None`` unless the text is a JSON object whose ``customModes``
    is a non-empty array of objects. A repeated slug keeps its first mode.
    """
    if not text:
        return None
    try:
        data = json.loads(strip_wrapping_fence(text))
    except json.JSONDecodeError as e:
        logger.warning("Modes JSON does not parse: %s", e)
        return None
    if not isinstance(data, dict):
        return None
    modes = data.get("customModes")
    if not isinstance(modes, list) or not modes or not all(isinstance(m, dict) for m in modes):
        logger.warning("Modes JSON has no usable 'customModes' array")
        return None

    try:
        mode_set = ModeSet.model_validate(data)
    except ValidationError as e:
        logger.warning("Modes JSON does not match the mode schema: %s", e)
        return None

    seen: set[str] = set()
    unique = []
    for mode in mode_set.customModes:
        if mode.slug and mode.slug in seen:
            logger.warning("Dropping duplicate mode slug %r", mode.slug)
            continue
        seen.add(mode.slug)
        unique.append(mode)
    mode_set.customModes = unique
    return mode_set


# ---------------------------------------------------------------------------
# Concise command and override trigger
# ---------------------------------------------------------------------------

def split_concise_command(markdown: str) -> tuple[str, str, bool]:
    """Split on the command separator into ``(structure_md, command, degraded)``.

    An empty half is replaced by its placeholder and ``degraded`` is set.
    """
    before, sep, after = markdown.partition(COMMAND_SEPARATOR)
    structure_md = before.strip() if sep else markdown.strip()
    command = after.strip() if sep else ""

    degraded = False
    if not structure_md:
        structure_md = STRUCTURE_PLACEHOLDER
        degraded = True
    if not command:
        command = COMMAND_PLACEHOLDER
        degraded = True
    return structure_md, command, degraded


_OVERRIDE_RE = re.compile(r"override system prompt for mode\s+([a-z0-9-]+)", re.IGNORECASE)


def find_override_target(text: str | None) -> str | None:
    """Return the lowercased mode slug named by an "override system prompt for mode X" phrase."""
    if not text:
        return None
    m = _OVERRIDE_RE.search(text)
    return m.group(1).strip().lower() if m else None
