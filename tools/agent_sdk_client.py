"""Claude Agent SDK wrapper: the single text-generation client of the pipeline."""

import asyncio
import logging
import os
import re
from typing import Iterable, Optional

from claude_agent_sdk import (
    query,
    ClaudeAgentOptions,
    ResultMessage,
    AssistantMessage,
    TextBlock,
)

from config.settings import Settings
from config.exceptions import (
    LLMError,
    LLMOverloadedError,
    LLMRateLimitError,
    LLMResponseParseError,
    LLMTimeoutError,
    TRANSIENT_LLM_ERRORS,
)
from tools.llm_client import parse_json_response

logger = logging.getLogger(__name__)

# Allow launching Agent SDK even when running inside a Claude Code session.
# The SDK checks for this env var and refuses to start if set.
os.environ.pop("CLAUDECODE", None)

_RATE_LIMIT_MARKERS = ("rate limit", "rate_limit", "too many requests")
_OVERLOAD_MARKERS = ("overloaded", "internal server error", "service unavailable", "connection")
_RATE_LIMIT_STATUS_RE = re.compile(r"\b429\b")
_SERVER_STATUS_RE = re.compile(r"\b5(?:00|02|03|04|29)\b")
_RETRY_AFTER_RE = re.compile(r"retry[-_ ]after\W{0,3}(\d+(?:\.\d+)?)", re.IGNORECASE)


def collect_result_text(messages: Iterable) -> str:
    """Reduce a stream of SDK messages to the response text.

    The final ``ResultMessage.result`` wins when present; otherwise the text
    blocks of assistant messages are concatenated in order.

    Raises:
        LLMError: If the result message reports an error.
    """
    result_text: Optional[str] = None
    parts: list[str] = []
    for message in messages:
        if isinstance(message, ResultMessage):
            if message.is_error:
                raise classify_error(message.result or f"generation failed ({message.subtype})")
            if message.result:
                result_text = message.result
        elif isinstance(message, AssistantMessage):
            for block in message.content:
                if isinstance(block, TextBlock) and block.text:
                    parts.append(block.text)
    if result_text is not None:
        return result_text
    return "".join(parts)


def classify_error(error: BaseException | str) -> LLMError:
    """Map an arbitrary failure onto the LLMError hierarchy."""
    if isinstance(error, LLMError):
        return error
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return LLMTimeoutError("Generation request timed out")
    text = str(error)
    lowered = text.lower()
    if _RATE_LIMIT_STATUS_RE.search(text) or any(marker in lowered for marker in _RATE_LIMIT_MARKERS):
        retry_match = _RETRY_AFTER_RE.search(text)
        retry_after = float(retry_match.group(1)) if retry_match else None
        return LLMRateLimitError(f"Rate limited: {text}", retry_after=retry_after)
    if (
        isinstance(error, ConnectionError)
        or _SERVER_STATUS_RE.search(text)
        or any(marker in lowered for marker in _OVERLOAD_MARKERS)
    ):
        return LLMOverloadedError(f"Service unavailable: {text}")
    return LLMError(f"Agent SDK query failed: {text}")


class AgentSDKClient:
    """Text generation through claude_agent_sdk.query().

    Two call shapes are offered: free Markdown text and structured JSON.
    Each call has a timeout and is retried at most ``llm_max_retries`` times,
    and only for transient failures (rate limit, overload, timeout).
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.total_calls = 0
        self.failed_calls = 0

    def _options(self, system_prompt: Optional[str], model: str) -> ClaudeAgentOptions:
        options_kwargs = {
            "model": model,
            "max_turns": 1,
        }
        if system_prompt:
            options_kwargs["system_prompt"] = system_prompt
        if self.settings.auth_mode == "api_key" and self.settings.anthropic_api_key:
            options_kwargs["env"] = {"ANTHROPIC_API_KEY": self.settings.anthropic_api_key}
        return ClaudeAgentOptions(**options_kwargs)

    async def _query_once(self, prompt: str, system_prompt: Optional[str], model: str) -> str:
        messages = []
        # Do NOT return/break early from inside the async for loop: query()
        # uses anyio cancel scopes and must be exhausted in the same task.
        async for message in query(prompt=prompt, options=self._options(system_prompt, model)):
            messages.append(message)
        return collect_result_text(messages)

    async def _call(self, prompt: str, system_prompt: Optional[str], model: str) -> str:
        attempts = 1 + self.settings.llm_max_retries
        for attempt in range(1, attempts + 1):
            self.total_calls += 1
            logger.debug("AgentSDK call: model=%s, attempt=%d/%d", model, attempt, attempts)
            logger.debug("Prompt (%d chars): %s", len(prompt), prompt[:2000])
            try:
                text = await asyncio.wait_for(
                    self._query_once(prompt, system_prompt, model),
                    timeout=self.settings.llm_timeout_seconds,
                )
            except Exception as e:
                self.failed_calls += 1
                error = classify_error(e)
                if isinstance(error, TRANSIENT_LLM_ERRORS) and attempt < attempts:
                    delay = getattr(error, "retry_after", None) or 2.0
                    logger.warning("Transient LLM failure (%s), retrying in %.1fs", error, delay)
                    await asyncio.sleep(delay)
                    continue
                if error is e:
                    raise
                raise error from e
            logger.debug("AgentSDK result: %d chars", len(text))
            if not text.strip():
                logger.warning("AgentSDK returned no content (model=%s)", model)
            return text
        raise LLMError("Generation failed after retries")

    async def generate_markdown(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
    ) -> str:
        """Generate free-form Markdown text.

        Raises:
            LLMError: If the call fails after the permitted retry.
        """
        return await self._call(prompt, system_prompt, model or self.settings.llm_model_writing)

    async def generate_structured(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
    ) -> dict | list:
        """Generate a JSON value (object or array).

        Raises:
            LLMError: If the call fails after the permitted retry.
            LLMResponseParseError: If the response holds no parseable JSON.
        """
        text = await self._call(prompt, system_prompt, model or self.settings.llm_model_planning)
        try:
            return parse_json_response(text)
        except ValueError as e:
            raise LLMResponseParseError(str(e), raw_response=text) from e

    def get_usage_summary(self) -> dict:
        """Return call count statistics."""
        return {"total_calls": self.total_calls, "failed_calls": self.failed_calls}
