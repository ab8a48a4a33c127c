"""Rich console setup and pipeline progress helpers."""

from __future__ import annotations

import logging
from typing import Protocol

from rich.console import Console
from rich.logging import RichHandler

console = Console()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logger with Rich handler."""
    level = logging.DEBUG if verbose else (logging.ERROR if quiet else logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Pipeline callbacks protocol
# ---------------------------------------------------------------------------


class PipelineCallbacks(Protocol):
    """Protocol for pipeline progress reporting.

    Calls may arrive from worker threads while the generation group runs.
    """

    def on_progress(self, stage: str, message: str) -> None: ...
    def on_phase_start(self, phase: str, description: str) -> None: ...
    def on_phase_end(self, phase: str, success: bool) -> None: ...
    def on_warning(self, message: str) -> None: ...
    def on_error(self, message: str) -> None: ...


class NullCallbacks:
    """Callbacks that ignore every event."""

    def on_progress(self, stage: str, message: str) -> None:
        pass

    def on_phase_start(self, phase: str, description: str) -> None:
        pass

    def on_phase_end(self, phase: str, success: bool) -> None:
        pass

    def on_warning(self, message: str) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass


class RichCallbacks:
    """Rich-based implementation of PipelineCallbacks."""

    def __init__(self, *, show_progress: bool = True) -> None:
        self.show_progress = show_progress

    def on_progress(self, stage: str, message: str) -> None:
        if self.show_progress:
            console.print(f"  [dim]{stage}:[/] {message}")

    def on_phase_start(self, phase: str, description: str) -> None:
        console.rule(f"[bold blue]{phase}[/] — {description}")

    def on_phase_end(self, phase: str, success: bool) -> None:
        status = "[green]OK[/]" if success else "[red]FAILED[/]"
        console.print(f"  Phase {phase}: {status}")

    def on_warning(self, message: str) -> None:
        console.print(f"  [yellow]WARNING:[/] {message}")

    def on_error(self, message: str) -> None:
        console.print(f"  [red]ERROR:[/] {message}")
