"""Single-prompt LLM invocation through AG2 with retries and cooperative cancellation."""

from __future__ import annotations

import logging
from typing import Any

import autogen
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .agents import make_agent
from .cancellation import CancellationSignal, CancellationToken
from .errors import LLMError
from .models import ProjectConfig

logger = logging.getLogger(__name__)

_NON_RETRYABLE_MARKERS = (
    "api key not valid",
    "invalid api key",
    "incorrect api key",
    "content_filter",
    "content management policy",
    "blocked",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_orchestrator() -> autogen.UserProxyAgent:
    """Create a standard orchestrator agent."""
    return autogen.UserProxyAgent(
        name="Orchestrator",
        human_input_mode="NEVER",
        code_execution_config=False,
    )


def _extract_text(response: Any) -> str:
    """Extract the reply text from an AG2 chat response."""
    if hasattr(response, "summary") and response.summary:
        return str(response.summary)
    if hasattr(response, "chat_history") and response.chat_history:
        last = response.chat_history[-1]
        if isinstance(last, dict):
            return last.get("content") or ""
        return str(last)
    return "" if response is None else str(response)


def is_retryable(exc: BaseException) -> bool:
    """Client errors (4xx except 429), bad credentials and blocked content are final.

    ``LLMError`` carries its own ``retryable`` flag; cancellation is never retried.
    """
    if isinstance(exc, CancellationSignal):
        return False
    if isinstance(exc, LLMError):
        return exc.retryable
    status = getattr(exc, "status_code", None)
    if isinstance(status, int) and 400 <= status < 500 and status != 429:
        return False
    message = str(exc).lower()
    return not any(marker in message for marker in _NON_RETRYABLE_MARKERS)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class LLMClient:
    """Send one prompt to the agent for a pipeline role and return its reply.

    Failed or all-whitespace replies are retried ``llm_max_retries`` times
    with exponential backoff (factor 2, from ``llm_retry_min_delay`` up to
    ``llm_retry_max_delay`` seconds). The backoff sleep wakes up as soon as
    the cancellation token is set.
    """

    def __init__(self, config: ProjectConfig):
        self.config = config

    def _call_once(self, prompt: str, role: str) -> str:
        agent = make_agent(role, self.config)
        orchestrator = _make_orchestrator()
        response = orchestrator.initiate_chat(agent, message=prompt, max_turns=1)
        return _extract_text(response)

    def _attempt(self, prompt: str, role: str, token: CancellationToken) -> str:
        token.raise_if_cancelled(f"LLM call ({role})")
        logger.debug("LLM call role=%s (%d chars)", role, len(prompt))
        text = self._call_once(prompt, role)
        if not text.strip():
            raise LLMError(f"LLM returned an empty response for {role}.", retryable=True)
        return text

    def _retrying(self, role: str, token: CancellationToken) -> Retrying:
        def sleep(seconds: float) -> None:
            if token.wait(seconds):
                raise CancellationSignal(f"LLM retry backoff ({role})")

        return Retrying(
            stop=stop_after_attempt(self.config.llm_max_retries + 1),
            wait=wait_exponential(
                multiplier=self.config.llm_retry_min_delay,
                max=self.config.llm_retry_max_delay,
            ),
            retry=retry_if_exception(is_retryable),
            sleep=sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def invoke(self, prompt: str, token: CancellationToken | None = None, role: str = "default") -> str:
        token = token or CancellationToken()
        try:
            return self._retrying(role, token)(self._attempt, prompt, role, token)
        except CancellationSignal:
            raise
        except Exception as e:
            if is_retryable(e):
                attempts = self.config.llm_max_retries + 1
                raise LLMError(f"LLM call failed after {attempts} attempts: {e}", retryable=True) from e
            logger.error("LLM call for %s failed permanently: %s", role, e)
            raise LLMError(f"LLM call failed: {e}") from e
