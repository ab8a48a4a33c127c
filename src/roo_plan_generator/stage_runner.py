"""Generate, validate and refine-once runner shared by the artifact stages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from .cancellation import CancellationToken
from .errors import LLMError
from .models import ArtifactOutcome
from .tools.extractors import is_ok_verdict, normalize_response

logger = logging.getLogger(__name__)

Reporter = Callable[[str, str], None]


class SupportsInvoke(Protocol):
    def invoke(self, prompt: str, token: CancellationToken | None = None, role: str = "default") -> str: ...


def _silent(stage: str, message: str) -> None:
    pass


@dataclass
class StageSpec:
    """Everything the runner needs to produce one artifact.

    ``render_refinement`` receives the raw, unnormalized text of the failed
    attempt. ``postprocess`` runs on accepted text only.
    """
    name: str
    filename: str
    role: str
    render_prompt: Callable[[], str]
    is_valid: Callable[[str], bool]
    render_refinement: Callable[[str], str]
    postprocess: Callable[[str], str] | None = None


def _accept(spec: StageSpec, text: str, refined: bool) -> ArtifactOutcome:
    content = spec.postprocess(text) if spec.postprocess else text
    logger.info("%s: %s accepted%s", spec.name, spec.filename, " after refinement" if refined else "")
    return ArtifactOutcome(stage=spec.name, filename=spec.filename, content=content)


def run_validated_stage(
    llm: SupportsInvoke,
    spec: StageSpec,
    token: CancellationToken,
    report: Reporter | None = None,
) -> ArtifactOutcome:
    """Run one artifact stage with at most one refinement call.

    Cancellation propagates as ``CancellationSignal``. An LLM failure or a
    second invalid reply yields an outcome without content.
    """
    report = report or _silent

    token.raise_if_cancelled(spec.name)
    report(spec.name, f"Generating {spec.filename}...")
    try:
        raw = llm.invoke(spec.render_prompt(), token, role=spec.role)
    except LLMError as e:
        logger.error("%s: LLM call failed: %s", spec.name, e)
        return ArtifactOutcome(stage=spec.name, filename=spec.filename, reason=f"LLM call failed: {e}")

    text = normalize_response(raw)
    if spec.is_valid(text):
        return _accept(spec, text, refined=False)

    report(spec.name, f"{spec.filename} failed validation. Attempting refinement...")
    token.raise_if_cancelled(f"{spec.name} refinement")
    try:
        raw = llm.invoke(spec.render_refinement(raw), token, role=spec.role)
    except LLMError as e:
        logger.error("%s: refinement call failed: %s", spec.name, e)
        return ArtifactOutcome(stage=spec.name, filename=spec.filename, reason=f"Refinement call failed: {e}")

    text = normalize_response(raw)
    if spec.is_valid(text):
        return _accept(spec, text, refined=True)

    logger.warning("%s: %s still invalid after refinement, dropping it", spec.name, spec.filename)
    report(spec.name, f"{spec.filename} is still invalid after refinement. Skipping artifact.")
    return ArtifactOutcome(
        stage=spec.name,
        filename=spec.filename,
        reason="Invalid after refinement",
    )


def run_ok_or_replace(
    llm: SupportsInvoke,
    current: str,
    prompt: str,
    token: CancellationToken,
    stage: str,
    role: str = "default",
) -> str:
    """Ask a judge about *current*: ``OK`` keeps it, any other reply replaces it.

    A failed judge call keeps *current*.
    """
    token.raise_if_cancelled(stage)
    try:
        verdict = llm.invoke(prompt, token, role=role)
    except LLMError as e:
        logger.warning("%s: validation call failed, keeping unvalidated content: %s", stage, e)
        return current

    if is_ok_verdict(verdict):
        logger.info("%s: passed validation", stage)
        return current
    replacement = (verdict or "").strip()
    if not replacement:
        return current
    logger.info("%s: content replaced by validator", stage)
    return replacement
