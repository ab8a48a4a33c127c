"""Exception types raised by the generator."""

from __future__ import annotations


class LLMError(Exception):
    """The LLM capability failed after its internal retries (or bailed early)."""

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)


class FatalStageError(Exception):
    """A stage whose output every later stage depends on could not run."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"{stage} stage failed: {message}")


class PipelineError(Exception):
    """Surfaced by ``Pipeline.run``; the underlying error is chained as ``__cause__``."""
