"""CLI entry point using Hydra.

Usage examples:
  roo-plan idea="A simple to-do list CLI in Python"
  roo-plan idea_file=idea.txt show_artifacts=true target_dir=./todo-cli
  roo-plan mode=parse structure_file=structure.md
  roo-plan mode=check_plan plan_file=roo-plan.md
  roo-plan --config-dir . --config-name config idea_file=idea.txt
"""

from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any

import hydra
from omegaconf import DictConfig, OmegaConf
from rich.table import Table

from ._hydra_conf import CLI_ONLY_KEYS, register_configs
from .cancellation import CancellationSignal, CancellationToken
from .config import apply_azure_fallbacks
from .errors import PipelineError
from .logging_config import RichCallbacks, console, setup_logging
from .models import PipelineResult, ProjectConfig
from .tools.extractors import COMMAND_SEPARATOR, parse_outlines, parse_structure_list, split_concise_command
from .tools.fallbacks import format_setup_commands
from .tools.plan_validator import extract_plan_slugs, validate_plan

register_configs()

EXIT_CANCELLED = 130

# ---------------------------------------------------------------------------
# Hydra DictConfig → Pydantic ProjectConfig bridge
# ---------------------------------------------------------------------------


def _to_project_config(cfg: DictConfig) -> ProjectConfig:
    """Convert a Hydra *DictConfig* to a Pydantic ``ProjectConfig``.

    CLI-only keys (``mode``, ``idea``, etc.) are stripped before validation.
    Azure credential env-var fallbacks are applied afterwards.
    """
    container: dict[str, Any] = OmegaConf.to_container(cfg, resolve=True)  # type: ignore[assignment]
    for key in CLI_ONLY_KEYS:
        container.pop(key, None)
    config = ProjectConfig.model_validate(container)
    return apply_azure_fallbacks(config)


def _read_text_option(cfg: DictConfig, key: str) -> str:
    path = cfg.get(key)
    if not path:
        console.print(f"[red]{key} is required for mode {cfg.get('mode')!r}[/]")
        sys.exit(1)
    file = Path(path)
    if not file.exists():
        console.print(f"[red]File not found: {file}[/]")
        sys.exit(1)
    return file.read_text(encoding="utf-8")


def _read_idea(cfg: DictConfig) -> str:
    idea = cfg.get("idea")
    if not idea and cfg.get("idea_file"):
        idea = _read_text_option(cfg, "idea_file")
    if not idea or not str(idea).strip():
        console.print("[red]Provide a project idea with idea=... or idea_file=...[/]")
        sys.exit(1)
    return str(idea).strip()


def _run_cancellable(fn: Any, token: CancellationToken, *args: Any) -> Any:
    """Run *fn* in a worker thread; Ctrl+C sets *token* and waits for the worker to stop."""
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="roo-plan") as executor:
        future = executor.submit(fn, *args)
        while True:
            try:
                return future.result(timeout=0.2)
            except FutureTimeoutError:
                continue
            except KeyboardInterrupt:
                console.print("\n[yellow]Cancellation requested; waiting for in-flight LLM calls...[/]")
                token.cancel()
                return future.result()


def _print_result(result: PipelineResult, show_artifacts: bool) -> None:
    table = Table(title="Generated artifacts")
    table.add_column("File")
    table.add_column("Lines", justify="right")
    table.add_column("Source")
    synthesized = {o.filename for o in result.outcomes if o.synthesized}
    if result.modes_synthesized:
        synthesized.add(".roomodes")
    if result.plan_synthesized:
        synthesized.add("roo-plan.md")
    for filename, content in result.artifacts.items():
        source = "[yellow]fallback[/]" if filename in synthesized else "LLM"
        table.add_row(filename, str(len(content.splitlines())), source)
    console.print(table)
    console.print(
        f"  Structure items: {len(result.structure_list)}  "
        f"Outlines: {len(result.outline_map)}"
    )
    for warning in result.warnings:
        console.print(f"  [yellow]WARNING:[/] {warning}")

    if show_artifacts:
        for filename, content in result.artifacts.items():
            console.rule(f"[bold]{filename}[/]")
            console.print(content, markup=False, highlight=False)


# ---------------------------------------------------------------------------
# Mode handlers
# ---------------------------------------------------------------------------


def _run_mode(cfg: DictConfig) -> None:
    config = _to_project_config(cfg)
    idea = _read_idea(cfg)

    from .pipeline import Pipeline

    callbacks = RichCallbacks(show_progress=not cfg.get("quiet", False))
    pipeline = Pipeline(config, callbacks=callbacks)
    token = CancellationToken()

    console.print("[bold]Starting plan generation...[/]")
    try:
        result = _run_cancellable(pipeline.run, token, idea, token)
    except CancellationSignal:
        console.print("\n[bold yellow]Plan generation cancelled.[/]")
        sys.exit(EXIT_CANCELLED)
    except PipelineError as e:
        console.print(f"\n[bold red]Plan generation failed:[/] {e}")
        sys.exit(1)

    console.print("\n[bold green]Plan generation complete.[/]")
    _print_result(result, bool(cfg.get("show_artifacts", False)))

    target_dir = cfg.get("target_dir")
    if target_dir:
        try:
            commands = _run_cancellable(pipeline.suggest_setup_commands, token, str(target_dir), result, token)
        except CancellationSignal:
            console.print("\n[bold yellow]Setup command suggestion cancelled.[/]")
            sys.exit(EXIT_CANCELLED)
        console.print("\nRecommended next steps in your terminal:")
        console.print(format_setup_commands(commands), markup=False, highlight=False)


def _parse_mode(cfg: DictConfig) -> None:
    text = _read_text_option(cfg, "structure_file")
    structure_md = text
    if COMMAND_SEPARATOR in text:
        structure_md, command, _ = split_concise_command(text)
        console.print(f"[bold]Concise command:[/] {command}")

    items = parse_structure_list(structure_md)
    table = Table(title=f"Proposed structure ({len(items)} items)")
    table.add_column("Type")
    table.add_column("Path")
    for item in items:
        table.add_row(item.kind, item.path)
    console.print(table)

    outlines = parse_outlines(structure_md)
    console.print(f"\n[bold]Core logic outlines:[/] {len(outlines)} files")
    for path, outline in outlines.items():
        console.rule(path)
        console.print(outline, markup=False, highlight=False)


def _check_plan_mode(cfg: DictConfig) -> None:
    plan = _read_text_option(cfg, "plan_file")
    issues = validate_plan(plan)
    slugs = extract_plan_slugs(plan)
    console.print(f"  Mode slugs referenced: {', '.join(slugs) if slugs else '(none)'}")
    if issues:
        console.print(f"[bold red]Plan check FAILED[/] ({len(issues)} issues)")
        for issue in issues:
            console.print(f"    - {issue}")
        sys.exit(1)
    console.print("[bold green]Plan check PASSED[/]")


_MODE_DISPATCH: dict[str, Any] = {
    "run": _run_mode,
    "parse": _parse_mode,
    "check_plan": _check_plan_mode,
}


# ---------------------------------------------------------------------------
# Hydra entry point
# ---------------------------------------------------------------------------


@hydra.main(config_path="conf", config_name="config", version_base=None)
def hydra_entry(cfg: DictConfig) -> None:
    """Hydra-managed CLI entry point."""
    setup_logging(verbose=cfg.get("verbose", False), quiet=cfg.get("quiet", False))

    mode = cfg.get("mode", "run")
    handler = _MODE_DISPATCH.get(mode)
    if handler is None:
        console.print(f"[red]Unknown mode: {mode!r}. Choose from: {', '.join(_MODE_DISPATCH)}[/]")
        sys.exit(1)

    handler(cfg)


def main() -> None:
    """Package entry point (``[project.scripts]`` target)."""
    hydra_entry()  # pylint: disable=no-value-for-parameter
