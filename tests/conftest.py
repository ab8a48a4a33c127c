"""Shared test fixtures."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import pytest

from roo_plan_generator.agents import TEMPLATES
from roo_plan_generator.errors import LLMError
from roo_plan_generator.logging_config import NullCallbacks
from roo_plan_generator.models import ProjectConfig
from roo_plan_generator.tools.extractors import COMMAND_SEPARATOR

FIXTURES_DIR = Path(__file__).parent / "fixtures"

SAMPLE_STRUCTURE_MD = """\
## Project Summary
A command-line to-do list manager written in Python.
Tasks are stored in a local JSON file.

## Proposed Structure (JSON)

```json
[
  {"type": "dir", "path": "todo"},
  {"type": "file", "path": "./todo/__init__.py"},
  {"type": "file", "path": "todo/main.py"},
  {"type": "file", "path": "todo/storage.py"},
  {"type": "dir", "path": "tests/"},
  {"type": "file", "path": "tests/test_storage.py"},
  {"type": "file", "path": "requirements.txt"},
  {"type": "file", "path": "gitignore"}
]
```

### Core Logic Outlines
- `todo/main.py`:
  parse arguments (add, list, done)
  dispatch to storage functions
- `todo/storage.py`:
  load tasks from tasks.json
  save tasks atomically
"""

SAMPLE_COMMAND = "Build a Python to-do list CLI with add, list and done commands backed by a JSON file."

SAMPLE_ANALYSIS = """\
## Project Goal
A to-do list CLI.
## Core Features
Add, list and complete tasks.
## Technical Stack
Python 3.11, argparse, json.
## Data Model
Task(id, title, done).
## Non-Functional Requirements
Runs offline.
## Assumptions and Risks
Single user.
"""

SAMPLE_RULES = (
    "// .clinerules-code for todo-cli\n"
    "// Primary Tech Stack: Python 3.11, argparse\n"
    "// Use snake_case for functions and modules.\n"
)
SAMPLE_IGNORE = "# .rooignore for todo-cli\n__pycache__/\n.venv/\n.env\n"
SAMPLE_WORKSPACE_RULES = "// General Workspace .clinerules for todo-cli\n// Plan before editing files.\n"

SAMPLE_MODES_JSON = """\
{
  "customModes": [
    {
      "slug": "project-orchestrator",
      "name": "Project Orchestrator",
      "roleDefinition": "Coordinates the build.",
      "groups": ["read", "new_task", "switch_mode"],
      "customInstructions": "Delegate with new_task."
    },
    {
      "slug": "python-developer",
      "name": "Python Developer",
      "roleDefinition": "Implements the Python modules.",
      "groups": ["read", "edit", "command", "attempt_completion"],
      "customInstructions": "Follow .clinerules-code."
    }
  ]
}
"""

SAMPLE_PLAN = """\
# Roo Code Execution Plan: Todo CLI

**Concise Goal:** Build a Python to-do list CLI.

## Phase 1: Implementation

1.  **Switch to Project Orchestrator**:
    <switch_mode><mode_slug>project-orchestrator</mode_slug></switch_mode>

2.  **Implement storage**:
    <new_task>
    <mode>python-developer</mode>
    <message>{"goal": "Implement storage", "contextSummary": "JSON file store", "detailedInstructions": "Write todo/storage.py", "toolNotes": "none", "completionCriteria": "tests pass"}</message>
    </new_task>
"""


# ---------------------------------------------------------------------------
# Scripted LLM
# ---------------------------------------------------------------------------

def _template_prefixes() -> dict[str, str]:
    return {tid: tpl.split("{", 1)[0] for tid, tpl in TEMPLATES.items()}


def template_id_for(prompt: str) -> str | None:
    """Identify which template rendered *prompt* (longest matching static prefix)."""
    best: tuple[str, str] | None = None
    for tid, prefix in _template_prefixes().items():
        if prefix and prompt.startswith(prefix) and (best is None or len(prefix) > len(best[1])):
            best = (tid, prefix)
    return best[0] if best else None


class ScriptedLLM:
    """Stand-in for ``LLMClient`` that answers by template id.

    A scripted reply may be a string, an exception instance (raised), a
    callable taking the prompt, or a list of those consumed in order (the
    last entry repeats). Template ids without a reply raise ``LLMError``.
    """

    def __init__(self, responses: dict[str, Any] | None = None, on_call: Any = None):
        self.responses = {k: list(v) if isinstance(v, list) else v for k, v in (responses or {}).items()}
        self.on_call = on_call
        self.calls: list[tuple[str | None, str, str]] = []
        self._lock = threading.Lock()

    def invoke(self, prompt: str, token=None, role: str = "default") -> str:
        if token is not None:
            token.raise_if_cancelled("scripted LLM")
        tid = template_id_for(prompt)
        with self._lock:
            self.calls.append((tid, role, prompt))
            reply = self.responses.get(tid)
            if isinstance(reply, list):
                reply = reply.pop(0) if len(reply) > 1 else reply[0]
        if self.on_call is not None:
            self.on_call(tid)
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(prompt)
        if reply is None:
            raise LLMError(f"No scripted reply for template {tid!r}")
        return reply

    def ids(self) -> list[str | None]:
        with self._lock:
            return [c[0] for c in self.calls]

    def prompts_for(self, tid: str) -> list[str]:
        with self._lock:
            return [c[2] for c in self.calls if c[0] == tid]


def happy_responses() -> dict[str, Any]:
    """Replies for a run where every stage succeeds first time."""
    return {
        "analysis": SAMPLE_ANALYSIS,
        "analysis_validation": "OK",
        "structure": f"{SAMPLE_STRUCTURE_MD}\n{COMMAND_SEPARATOR}\n{SAMPLE_COMMAND}\n",
        "structure_validation": "OK",
        "outline_refinement": (
            "### Core Logic Outlines\n"
            "- `todo/main.py`:\n"
            "  build argparse parser with add/list/done subcommands\n"
            "- `todo/storage.py`:\n"
            "  read tasks.json, return [] when missing\n"
        ),
        "rules": SAMPLE_RULES,
        "ignore": SAMPLE_IGNORE,
        "workspace_rules": SAMPLE_WORKSPACE_RULES,
        "modes": SAMPLE_MODES_JSON,
        "plan": SAMPLE_PLAN,
        "plan_review": "OK",
        "setup_commands": '["cd \\"/tmp/todo\\"", "pip install -r requirements.txt"]',
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config() -> ProjectConfig:
    return ProjectConfig(llm_retry_min_delay=0.0, llm_retry_max_delay=0.0)


@pytest.fixture
def callbacks() -> NullCallbacks:
    return NullCallbacks()


@pytest.fixture
def structure_md() -> str:
    return SAMPLE_STRUCTURE_MD


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM(happy_responses())


@pytest.fixture
def sample_config_path() -> Path:
    return FIXTURES_DIR / "sample_config.yaml"
