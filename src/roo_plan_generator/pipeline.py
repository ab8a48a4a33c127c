"""Pipeline orchestrator: idea -> analysis -> structure -> artifacts -> plan.

Stages 1-3 run one after another. The five artifact stages then run
concurrently in a thread pool and are joined before the plan is assembled
and, when everything upstream is trustworthy, reviewed.
"""

from __future__ import annotations

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable

from .agents import render_template
from .agents.rules_writer import IGNORE_HEADER, RULES_HEADER, TECH_STACK_MARKER, WORKSPACE_HEADER
from .cancellation import CancellationSignal, CancellationToken
from .errors import FatalStageError, LLMError, PipelineError
from .llm import LLMClient
from .logging_config import PipelineCallbacks, RichCallbacks
from .models import (
    ArtifactOutcome,
    ModeSetResult,
    PipelineResult,
    PipelineStage,
    PlanAssemblyResult,
    ProjectConfig,
    StructuringResult,
)
from .stage_runner import StageSpec, SupportsInvoke, run_ok_or_replace, run_validated_stage
from .tools.extractors import (
    OUTLINES_HEADING,
    find_override_target,
    find_preliminary_outlines,
    normalize_response,
    parse_mode_set,
    parse_outlines,
    parse_structure_list,
    remove_outline_section,
    splice_outlines,
    split_concise_command,
)
from .tools.fallbacks import (
    ensure_cd_first,
    fallback_mode_set,
    fallback_plan,
    fallback_setup_commands,
    select_delegate_slugs,
)
from .tools.plan_validator import is_refined_plan_acceptable, validate_plan

logger = logging.getLogger(__name__)

RULES_FILE = ".clinerules-code"
IGNORE_FILE = ".rooignore"
WORKSPACE_RULES_FILE = ".clinerules"
MODES_FILE = ".roomodes"
PLAN_FILE = "roo-plan.md"

_NO_OUTLINES = "- (No outlines provided in previous step)"
_NO_SLUGS = '(Fallback to "code" mode)'


# ---------------------------------------------------------------------------
# Artifact validity predicates
# ---------------------------------------------------------------------------

_RULES_HEADER_RE = re.compile(r"// \.clinerules-code for .*")
_TECH_STACK_RE = re.compile(r"^// Primary Tech Stack:", re.MULTILINE)
_IGNORE_HEADER_RE = re.compile(r"# \.rooignore for .*")
_WORKSPACE_HEADER_RE = re.compile(r"// General Workspace \.clinerules for .*")


def is_valid_rules(text: str) -> bool:
    return bool(_RULES_HEADER_RE.match(text) and _TECH_STACK_RE.search(text))


def is_valid_ignore(text: str) -> bool:
    return bool(_IGNORE_HEADER_RE.match(text))


def is_valid_workspace_rules(text: str) -> bool:
    return bool(_WORKSPACE_HEADER_RE.match(text))


def is_valid_mode_set(text: str) -> bool:
    return parse_mode_set(text) is not None


# ---------------------------------------------------------------------------
# Fan-out group
# ---------------------------------------------------------------------------

FallbackPolicy = Callable[[ArtifactOutcome], ArtifactOutcome]


def drop_artifact(outcome: ArtifactOutcome) -> ArtifactOutcome:
    """Default policy: a failed branch contributes no artifact."""
    return outcome


@dataclass
class FanOutTask:
    """One branch of the concurrent generation group."""
    stage: str
    runner: Callable[[], ArtifactOutcome]
    on_failure: FallbackPolicy = field(default=drop_artifact)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class Pipeline:
    """Orchestrates the staged generation of Roo Code planning artifacts."""

    def __init__(
        self,
        config: ProjectConfig,
        llm: SupportsInvoke | None = None,
        callbacks: PipelineCallbacks | None = None,
    ) -> None:
        self.config = config
        self.llm = llm or LLMClient(config)
        self.callbacks = callbacks or RichCallbacks()

    # -----------------------------------------------------------------------
    # Progress
    # -----------------------------------------------------------------------

    def _notify(self, method: str, *args: Any) -> None:
        try:
            getattr(self.callbacks, method)(*args)
        except Exception:
            logger.warning("Progress callback %s failed", method, exc_info=True)

    def _report(self, stage: str, message: str) -> None:
        logger.info("[%s] %s", stage, message)
        self._notify("on_progress", stage, message)

    # -----------------------------------------------------------------------
    # Stage 1: Analysis
    # -----------------------------------------------------------------------

    def run_analysis(self, idea: str, token: CancellationToken) -> str:
        """Analyze the idea, then let the analyst confirm (OK) or rewrite it.

        Raises ``FatalStageError`` when the analysis itself cannot be produced.
        """
        token.raise_if_cancelled("Analysis")
        self._report("Analysis", "Analyzing project idea...")
        prompt = render_template("analysis", {"project_idea": idea})
        try:
            analysis = self.llm.invoke(prompt, token, role="analyst")
        except LLMError as e:
            raise FatalStageError("Analysis", str(e)) from e

        self._report("Analysis Validation", "Validating analysis...")
        return run_ok_or_replace(
            self.llm,
            analysis,
            render_template("analysis_validation", {"analysis": analysis}),
            token,
            stage="Analysis Validation",
            role="analyst",
        )

    # -----------------------------------------------------------------------
    # Stage 2: Structuring
    # -----------------------------------------------------------------------

    def run_structuring(self, idea: str, analysis: str, token: CancellationToken) -> StructuringResult:
        """Produce the structure document and split off the concise command."""
        token.raise_if_cancelled("Structuring")
        self._report("Structuring", "Generating structure and concise command...")
        prompt = render_template("structure", {"project_idea": idea, "analysis": analysis})
        try:
            raw = self.llm.invoke(prompt, token, role="architect")
        except LLMError as e:
            raise FatalStageError("Structuring", str(e)) from e

        self._report("Structure Validation", "Validating structured output...")
        validated = run_ok_or_replace(
            self.llm,
            raw,
            render_template("structure_validation", {"structure_raw": raw}),
            token,
            stage="Structure Validation",
            role="architect",
        )

        structure_md, command, degraded = split_concise_command(validated)
        if degraded:
            logger.error("Could not split structure document and concise command; using placeholders")
            self._notify("on_warning", "Structure document or concise command missing; placeholders substituted")
        return StructuringResult(structure_md=structure_md, concise_command=command, degraded=degraded)

    # -----------------------------------------------------------------------
    # Stage 3: Outline refinement
    # -----------------------------------------------------------------------

    def run_outline_refinement(self, analysis: str, structure_md: str, token: CancellationToken) -> str:
        """Return the structure document with a refined outlines section.

        Any failure returns *structure_md* unchanged.
        """
        token.raise_if_cancelled("Outlines")
        self._report("Outlines", "Refining core logic outlines...")
        section = find_preliminary_outlines(structure_md)
        prompt = render_template("outline_refinement", {
            "analysis": analysis,
            "structure_context": remove_outline_section(structure_md).strip(),
            "preliminary_outlines": section.body if section and section.body else _NO_OUTLINES,
        })
        try:
            refined = normalize_response(self.llm.invoke(prompt, token, role="architect"))
        except LLMError as e:
            logger.warning("Outline refinement failed, keeping preliminary outlines: %s", e)
            return structure_md

        if not refined:
            return structure_md
        if find_preliminary_outlines(refined) is None:
            refined = f"{OUTLINES_HEADING}\n{refined}"
        return splice_outlines(structure_md, refined)

    # -----------------------------------------------------------------------
    # Stages 4.x / 5: artifact specs
    # -----------------------------------------------------------------------

    def _rules_spec(self, structure_md: str) -> StageSpec:
        return StageSpec(
            name="Rules",
            filename=RULES_FILE,
            role="rules_writer",
            render_prompt=lambda: render_template("rules", {"structure_md": structure_md}),
            is_valid=is_valid_rules,
            render_refinement=lambda raw: render_template("rules_refinement", {
                "raw": raw,
                "structure_md": structure_md,
                "header": RULES_HEADER,
                "marker": TECH_STACK_MARKER,
            }),
        )

    def _ignore_spec(self, structure_md: str) -> StageSpec:
        return StageSpec(
            name="Rooignore",
            filename=IGNORE_FILE,
            role="rules_writer",
            render_prompt=lambda: render_template("ignore", {"structure_md": structure_md}),
            is_valid=is_valid_ignore,
            render_refinement=lambda raw: render_template("ignore_refinement", {
                "raw": raw,
                "structure_md": structure_md,
                "header": IGNORE_HEADER,
            }),
        )

    def _workspace_rules_spec(self, structure_md: str) -> StageSpec:
        return StageSpec(
            name="Workspace Rules",
            filename=WORKSPACE_RULES_FILE,
            role="rules_writer",
            render_prompt=lambda: render_template("workspace_rules", {"structure_md": structure_md}),
            is_valid=is_valid_workspace_rules,
            render_refinement=lambda raw: render_template("workspace_rules_refinement", {
                "raw": raw,
                "structure_md": structure_md,
                "header": WORKSPACE_HEADER,
            }),
        )

    def _override_spec(self, mode_slug: str, structure_md: str) -> StageSpec:
        variables = {"mode_slug": mode_slug, "structure_md": structure_md}
        return StageSpec(
            name="Mode Override",
            filename=f"{self.config.override_dir.rstrip('/')}/system-prompt-{mode_slug}",
            role="rules_writer",
            render_prompt=lambda: render_template("mode_override", variables),
            is_valid=lambda text: bool(text.strip()),
            render_refinement=lambda raw: render_template("mode_override_refinement", variables),
        )

    def _modes_spec(self, structure_md: str) -> StageSpec:
        return StageSpec(
            name="Modes",
            filename=MODES_FILE,
            role="mode_designer",
            render_prompt=lambda: render_template("modes", {"structure_md": structure_md}),
            is_valid=is_valid_mode_set,
            render_refinement=lambda raw: render_template("modes_refinement", {
                "raw": raw,
                "structure_md": structure_md,
            }),
            postprocess=lambda text: parse_mode_set(text).to_json(),
        )

    def _synthesize_modes(self, structure_md: str) -> FallbackPolicy:
        def policy(outcome: ArtifactOutcome) -> ArtifactOutcome:
            logger.warning("Modes: %s; generating fallback .roomodes", outcome.reason)
            self._report("Modes", "Using fallback .roomodes structure.")
            mode_set, _ = fallback_mode_set(structure_md, self.config.simple_project_line_threshold)
            return ArtifactOutcome(
                stage=outcome.stage,
                filename=MODES_FILE,
                content=mode_set.to_json(),
                reason=outcome.reason,
                synthesized=True,
            )
        return policy

    def _mode_set_result(self, outcome: ArtifactOutcome, structure_md: str) -> ModeSetResult:
        """Turn the modes branch outcome into the validated mode set plus delegate slugs."""
        mode_set = parse_mode_set(outcome.content) if outcome.ok and not outcome.synthesized else None
        if mode_set is None:
            mode_set, delegates = fallback_mode_set(structure_md, self.config.simple_project_line_threshold)
            return ModeSetResult(
                mode_set=mode_set,
                content=mode_set.to_json(),
                delegate_slugs=delegates,
                parsed_successfully=False,
            )
        return ModeSetResult(
            mode_set=mode_set,
            content=mode_set.to_json(),
            delegate_slugs=select_delegate_slugs(mode_set),
            parsed_successfully=True,
        )

    # -----------------------------------------------------------------------
    # Stages 4.x / 5: individual entry points
    # -----------------------------------------------------------------------

    def run_rules(self, structure_md: str, token: CancellationToken) -> ArtifactOutcome:
        return run_validated_stage(self.llm, self._rules_spec(structure_md), token, self._report)

    def run_ignore_rules(self, structure_md: str, token: CancellationToken) -> ArtifactOutcome:
        return run_validated_stage(self.llm, self._ignore_spec(structure_md), token, self._report)

    def run_workspace_rules(self, structure_md: str, token: CancellationToken) -> ArtifactOutcome:
        return run_validated_stage(self.llm, self._workspace_rules_spec(structure_md), token, self._report)

    def run_mode_override(self, analysis: str, structure_md: str, token: CancellationToken) -> ArtifactOutcome:
        """Generate a system-prompt override only when the text asks for one."""
        mode_slug = find_override_target(f"{analysis}\n{structure_md}")
        if mode_slug is None:
            logger.info("Mode Override: no override requested")
            return ArtifactOutcome(stage="Mode Override", reason="No override requested", skipped=True)
        self._report("Mode Override", f"Override requested for mode: {mode_slug}")
        return run_validated_stage(self.llm, self._override_spec(mode_slug, structure_md), token, self._report)

    def _modes_task(self, structure_md: str, token: CancellationToken) -> FanOutTask:
        return FanOutTask(
            stage="Modes",
            runner=lambda: run_validated_stage(self.llm, self._modes_spec(structure_md), token, self._report),
            on_failure=self._synthesize_modes(structure_md),
        )

    def run_modes(self, structure_md: str, token: CancellationToken) -> ModeSetResult:
        """Generate ``.roomodes``; always returns a usable mode set."""
        return self._mode_set_result(self._run_branch(self._modes_task(structure_md, token)), structure_md)

    # -----------------------------------------------------------------------
    # Stages 4.x / 5: concurrent group
    # -----------------------------------------------------------------------

    def _run_branch(self, task: FanOutTask) -> ArtifactOutcome:
        try:
            outcome = task.runner()
        except CancellationSignal:
            raise
        except Exception as e:
            logger.exception("%s branch raised", task.stage)
            outcome = ArtifactOutcome(stage=task.stage, reason=f"Unexpected error: {e}")
        if not outcome.ok and not outcome.skipped:
            outcome = task.on_failure(outcome)
        return outcome

    def generation_tasks(self, analysis: str, structure_md: str, token: CancellationToken) -> list[FanOutTask]:
        """The five independent generation branches, in artifact order."""
        return [
            FanOutTask("Rules", lambda: self.run_rules(structure_md, token)),
            FanOutTask("Rooignore", lambda: self.run_ignore_rules(structure_md, token)),
            FanOutTask("Workspace Rules", lambda: self.run_workspace_rules(structure_md, token)),
            FanOutTask("Mode Override", lambda: self.run_mode_override(analysis, structure_md, token)),
            self._modes_task(structure_md, token),
        ]

    def run_parallel_generation(
        self,
        analysis: str,
        structure_md: str,
        token: CancellationToken,
        tasks: list[FanOutTask] | None = None,
    ) -> list[ArtifactOutcome]:
        """Run every branch, wait for all of them, and return their outcomes in task order.

        A branch failure never affects its siblings. If cancellation was
        requested while the group ran, the results are discarded.
        """
        token.raise_if_cancelled("Parallel Generation")
        tasks = tasks if tasks is not None else self.generation_tasks(analysis, structure_md, token)
        self._report("Parallel Generation", "Starting parallel generation of rules, modes, etc...")

        outcomes: list[ArtifactOutcome] = []
        cancelled = False
        with ThreadPoolExecutor(max_workers=self.config.max_parallel_stages) as executor:
            futures = [executor.submit(self._run_branch, task) for task in tasks]
            for future in futures:
                try:
                    outcomes.append(future.result())
                except CancellationSignal:
                    cancelled = True

        token.raise_if_cancelled("Parallel Generation")
        if cancelled:
            raise CancellationSignal("Parallel Generation")
        self._report("Parallel Generation", "Processing results from parallel stages...")
        return outcomes

    # -----------------------------------------------------------------------
    # Stage 6: Plan assembly
    # -----------------------------------------------------------------------

    def run_plan_assembly(
        self,
        concise_command: str,
        structure_md: str,
        delegate_slugs: list[str],
        token: CancellationToken,
    ) -> PlanAssemblyResult:
        """Draft, validate, refine once, and fall back to a synthesized plan."""
        token.raise_if_cancelled("Plan Assembly")
        self._report("Plan Assembly", "Assembling execution plan (roo-plan.md)...")
        slugs = ", ".join(delegate_slugs) if delegate_slugs else _NO_SLUGS
        try:
            draft = self.llm.invoke(
                render_template("plan", {
                    "concise_command": concise_command,
                    "structure_md": structure_md,
                    "slugs": slugs,
                }),
                token,
                role="plan_writer",
            )
        except LLMError as e:
            logger.warning("Plan draft failed, using fallback plan: %s", e)
            draft = None

        issues: list[str] = []
        plan: str | None = None
        if draft:
            self._report("Plan Validation", "Validating roo-plan.md...")
            plan = normalize_response(draft)
            issues = validate_plan(plan)
            if issues:
                self._report(
                    "Plan Validation",
                    f"Plan failed validation: {', '.join(issues)}. Attempting refinement...",
                )
                plan = self._refine_plan(issues, draft, structure_md, slugs, token)

        if plan is None:
            self._report("Plan Validation", "Generating fallback roo-plan.md structure.")
            return PlanAssemblyResult(
                plan=fallback_plan(concise_command, delegate_slugs),
                is_valid=False,
                issues=issues,
                synthesized=True,
            )
        return PlanAssemblyResult(plan=plan, is_valid=True, issues=issues)

    def _refine_plan(
        self,
        issues: list[str],
        draft: str,
        structure_md: str,
        slugs: str,
        token: CancellationToken,
    ) -> str | None:
        token.raise_if_cancelled("Plan Validation")
        try:
            refined = self.llm.invoke(
                render_template("plan_refinement", {
                    "issues": ", ".join(issues),
                    "plan": draft,
                    "structure_md": structure_md,
                    "slugs": slugs,
                }),
                token,
                role="plan_writer",
            )
        except LLMError as e:
            logger.warning("Plan refinement call failed: %s", e)
            return None

        refined = normalize_response(refined)
        if is_refined_plan_acceptable(refined, self.config.plan_refinement_strictness):
            self._report("Plan Validation", "Plan refined successfully.")
            return refined
        self._report("Plan Validation", "Plan refinement did not produce a valid plan.")
        return None

    # -----------------------------------------------------------------------
    # Stage 6.5: Plan review
    # -----------------------------------------------------------------------

    def run_plan_review(self, plan: str, modes_json: str, structure_md: str, token: CancellationToken) -> str:
        """Cross-check the plan against the modes; OK keeps it, anything else replaces it."""
        token.raise_if_cancelled("Plan Refinement")
        self._report("Plan Refinement", "Performing final review of execution plan...")
        return run_ok_or_replace(
            self.llm,
            plan,
            render_template("plan_review", {
                "plan": plan,
                "modes_json": modes_json,
                "structure_md": structure_md,
            }),
            token,
            stage="Plan Refinement",
            role="plan_reviewer",
        )

    def _review_skip_reason(
        self,
        plan_result: PlanAssemblyResult,
        modes: ModeSetResult,
        artifacts: dict[str, str],
    ) -> str | None:
        if not self.config.plan_review_enabled:
            return "plan review is disabled in the configuration"
        if not modes.parsed_successfully:
            return "modes generation failed or resulted in fallback"
        if not plan_result.is_valid:
            return "plan generation failed or resulted in fallback"
        if MODES_FILE not in artifacts:
            return "no .roomodes artifact"
        return None

    # -----------------------------------------------------------------------
    # Setup commands
    # -----------------------------------------------------------------------

    def suggest_setup_commands(
        self,
        directory: str,
        result: PipelineResult,
        token: CancellationToken | None = None,
    ) -> list[str]:
        """Shell commands to prepare *directory*; ``cd "<directory>"`` always comes first."""
        token = token or CancellationToken()
        token.raise_if_cancelled("Setup Commands")
        self._report("Setup Commands", "Generating setup command suggestions...")
        structure_summary = ", ".join(
            f"{item.kind}: {item.path}" for item in result.structure_list if "/" not in item.path
        )
        prompt = render_template("setup_commands", {
            "directory": directory,
            "artifact_list": ", ".join(result.artifacts) or "None",
            "structure_summary": structure_summary or "Not available",
        })
        try:
            parsed = json.loads(normalize_response(self.llm.invoke(prompt, token, role="plan_writer")))
            if not parsed or not isinstance(parsed, list) or not all(isinstance(c, str) for c in parsed):
                raise ValueError("expected a non-empty JSON array of strings")
            commands = parsed
        except (LLMError, ValueError) as e:
            logger.warning("Falling back to basic setup commands: %s", e)
            commands = fallback_setup_commands(directory, result.artifacts, result.structure_list)
        return ensure_cd_first(directory, commands)

    # -----------------------------------------------------------------------
    # Full pipeline
    # -----------------------------------------------------------------------

    def run(self, idea: str, token: CancellationToken | None = None) -> PipelineResult:
        """Run every stage and return the artifact map.

        Raises ``CancellationSignal`` when the token is set at any check
        point, and ``PipelineError`` (chaining the cause) on any other failure.
        """
        token = token or CancellationToken()
        stages: list[PipelineStage] = []
        warnings: list[str] = []

        try:
            self._report("Starting", "Initiating plan generation...")

            self._notify("on_phase_start", "ANALYSIS", "Analyzing project idea")
            analysis = self.run_analysis(idea, token)
            stages.append(PipelineStage.ANALYSIS)
            self._notify("on_phase_end", "ANALYSIS", True)

            self._notify("on_phase_start", "STRUCTURING", "Proposing structure and concise command")
            structuring = self.run_structuring(idea, analysis, token)
            stages.append(PipelineStage.STRUCTURING)
            if structuring.degraded:
                warnings.append("Structure document split failed; placeholders substituted")
            self._notify("on_phase_end", "STRUCTURING", not structuring.degraded)

            structure_md = self.run_outline_refinement(analysis, structuring.structure_md, token)
            stages.append(PipelineStage.OUTLINE_REFINEMENT)

            self._notify("on_phase_start", "GENERATION", "Rules, ignore files, modes")
            outcomes = self.run_parallel_generation(analysis, structure_md, token)
            stages.append(PipelineStage.PARALLEL_GENERATION)

            artifacts: dict[str, str] = {}
            for outcome in outcomes:
                if outcome.ok:
                    artifacts[outcome.filename] = outcome.content
                    if outcome.synthesized:
                        warnings.append(f"{outcome.stage}: fallback content used ({outcome.reason})")
                elif not outcome.skipped:
                    warnings.append(f"{outcome.stage}: {outcome.reason}")
                    self._notify("on_warning", f"{outcome.stage}: artifact skipped ({outcome.reason})")

            modes_outcome = next(
                (o for o in outcomes if o.filename == MODES_FILE),
                ArtifactOutcome(stage="Modes", reason="Branch missing"),
            )
            modes = self._mode_set_result(modes_outcome, structure_md)
            artifacts[MODES_FILE] = modes.content
            self._notify("on_phase_end", "GENERATION", True)

            self._report("Parsing", "Parsing final structure and outlines...")
            structure_list = parse_structure_list(structure_md)
            outline_map = parse_outlines(structure_md)
            self._report(
                "Parsing",
                f"Parsed {len(structure_list)} structure items and outlines for {len(outline_map)} files.",
            )

            self._notify("on_phase_start", "PLAN", "Assembling roo-plan.md")
            plan_result = self.run_plan_assembly(
                structuring.concise_command, structure_md, modes.delegate_slugs, token,
            )
            stages.append(PipelineStage.PLAN_ASSEMBLY)
            token.raise_if_cancelled("Plan Assembly")

            plan = plan_result.plan
            skip_reason = self._review_skip_reason(plan_result, modes, artifacts)
            if skip_reason is None:
                plan = self.run_plan_review(plan, modes.content, structure_md, token)
                stages.append(PipelineStage.PLAN_REVIEW)
            else:
                self._report("Plan Refinement", f"Skipping final plan review because {skip_reason}.")
            token.raise_if_cancelled("Plan Refinement")

            artifacts[PLAN_FILE] = plan
            self._notify("on_phase_end", "PLAN", not plan_result.synthesized)
            stages.append(PipelineStage.COMPLETE)
            self._report("Complete", "Plan generation complete.")

            return PipelineResult(
                artifacts=artifacts,
                structure_list=structure_list,
                outline_map=outline_map,
                outcomes=outcomes,
                stages_completed=stages,
                warnings=warnings,
                modes_synthesized=not modes.parsed_successfully,
                plan_synthesized=plan_result.synthesized,
            )

        except CancellationSignal:
            logger.warning("Plan generation cancelled")
            self._report("Cancelled", "Operation cancelled by user.")
            raise
        except Exception as e:
            logger.error("Plan generation failed: %s", e)
            self._report("Error", f"Engine failed: {e}")
            self._notify("on_error", str(e))
            raise PipelineError(f"Plan generation failed: {e}") from e
