"""Tests for the JSON parsing boundary and AgentSDKClient."""

import asyncio

import pytest
from unittest.mock import patch, AsyncMock

from claude_agent_sdk import ResultMessage, AssistantMessage, TextBlock


def _make_result_message(result_text: str, is_error: bool = False) -> ResultMessage:
    """Helper to create a ResultMessage with required fields."""
    return ResultMessage(
        subtype="error_during_execution" if is_error else "success",
        duration_ms=100,
        duration_api_ms=80,
        is_error=is_error,
        num_turns=1,
        session_id="test-session",
        total_cost_usd=0.001,
        usage={"input_tokens": 10, "output_tokens": 20},
        result=result_text,
        structured_output=None,
    )


def _make_assistant_message(text: str) -> AssistantMessage:
    """Helper to create an AssistantMessage with a text block."""
    return AssistantMessage(
        content=[TextBlock(text=text)],
        model="claude-sonnet-4-5",
        parent_tool_use_id=None,
        error=None,
    )


class TestParseJsonResponse:
    def test_direct_json(self):
        from tools.llm_client import parse_json_response
        assert parse_json_response('{"key": "value", "num": 42}') == {"key": "value", "num": 42}

    def test_direct_array(self):
        from tools.llm_client import parse_json_response
        assert parse_json_response('[1, 2, 3]') == [1, 2, 3]

    def test_markdown_code_fence_with_lang(self):
        from tools.llm_client import parse_json_response
        assert parse_json_response('```json\n{"key": "value"}\n```') == {"key": "value"}

    def test_markdown_code_fence_without_lang(self):
        from tools.llm_client import parse_json_response
        assert parse_json_response('Here:\n```\n{"key": "value"}\n```\nDone.') == {"key": "value"}

    def test_raw_newlines_inside_strings(self):
        from tools.llm_client import parse_json_response
        result = parse_json_response('{"text": "line one\nline two"}')
        assert result == {"text": "line one\nline two"}

    def test_embedded_object_in_prose(self):
        from tools.llm_client import parse_json_response
        text = 'Sure! The plan is {"chapters": [{"title": "A"}]} as requested.'
        assert parse_json_response(text) == {"chapters": [{"title": "A"}]}

    def test_last_embedded_value_wins(self):
        from tools.llm_client import parse_json_response
        text = 'Draft: {"v": 1}\nFinal answer: {"v": 2}'
        assert parse_json_response(text) == {"v": 2}

    def test_nested_objects_not_reported_separately(self):
        from tools.llm_client import parse_json_response
        text = 'Result: {"outer": {"inner": 1}} end'
        assert parse_json_response(text) == {"outer": {"inner": 1}}

    def test_scalar_json_is_rejected(self):
        from tools.llm_client import parse_json_response
        with pytest.raises(ValueError):
            parse_json_response('"just a string"')

    def test_invalid_json_raises_value_error(self):
        from tools.llm_client import parse_json_response
        with pytest.raises(ValueError, match="Failed to parse JSON"):
            parse_json_response("this is not json at all")

    def test_empty_response_raises(self):
        from tools.llm_client import parse_json_response
        with pytest.raises(ValueError):
            parse_json_response("   ")


class TestEnsureDict:
    def test_dict_passes_through(self):
        from tools.llm_client import ensure_dict
        assert ensure_dict({"a": 1}) == {"a": 1}

    def test_list_is_wrapped(self):
        from tools.llm_client import ensure_dict
        assert ensure_dict([1, 2], list_key="milestones") == {"milestones": [1, 2]}


class TestCollectResultText:
    def test_result_message_wins(self):
        from tools.agent_sdk_client import collect_result_text
        messages = [_make_assistant_message("partial"), _make_result_message("final")]
        assert collect_result_text(messages) == "final"

    def test_falls_back_to_text_blocks(self):
        from tools.agent_sdk_client import collect_result_text
        messages = [_make_assistant_message("Hello, "), _make_assistant_message("world")]
        assert collect_result_text(messages) == "Hello, world"

    def test_error_result_raises_llm_error(self):
        from config.exceptions import LLMRateLimitError
        from tools.agent_sdk_client import collect_result_text
        with pytest.raises(LLMRateLimitError):
            collect_result_text([_make_result_message("429 Too Many Requests", is_error=True)])

    def test_no_messages_yield_empty_text(self):
        from tools.agent_sdk_client import collect_result_text
        assert collect_result_text([]) == ""


class TestClassifyError:
    def test_timeout(self):
        from config.exceptions import LLMTimeoutError
        from tools.agent_sdk_client import classify_error
        assert isinstance(classify_error(asyncio.TimeoutError()), LLMTimeoutError)

    def test_rate_limit(self):
        from config.exceptions import LLMRateLimitError
        from tools.agent_sdk_client import classify_error
        assert isinstance(classify_error(RuntimeError("HTTP 429")), LLMRateLimitError)
        assert isinstance(classify_error("rate limit reached"), LLMRateLimitError)

    def test_rate_limit_reads_retry_after(self):
        from tools.agent_sdk_client import classify_error
        err = classify_error(RuntimeError("429 Too Many Requests; retry-after: 12"))
        assert err.retry_after == 12.0
        assert classify_error("rate limit reached").retry_after is None

    def test_overloaded(self):
        from config.exceptions import LLMOverloadedError
        from tools.agent_sdk_client import classify_error
        assert isinstance(classify_error(RuntimeError("529 overloaded_error")), LLMOverloadedError)
        assert isinstance(classify_error(ConnectionResetError("reset")), LLMOverloadedError)

    def test_status_code_needs_word_boundary(self):
        from config.exceptions import LLMError, LLMOverloadedError, LLMRateLimitError
        from tools.agent_sdk_client import classify_error
        err = classify_error("request id 15003 failed")
        assert type(err) is LLMError
        assert not isinstance(err, (LLMOverloadedError, LLMRateLimitError))

    def test_other_errors_are_not_transient(self):
        from config.exceptions import LLMError, TRANSIENT_LLM_ERRORS
        from tools.agent_sdk_client import classify_error
        err = classify_error(ValueError("invalid model"))
        assert isinstance(err, LLMError)
        assert not isinstance(err, TRANSIENT_LLM_ERRORS)

    def test_llm_error_passes_through(self):
        from config.exceptions import LLMResponseParseError
        from tools.agent_sdk_client import classify_error
        err = LLMResponseParseError("bad")
        assert classify_error(err) is err


class TestAgentSDKClient:
    @pytest.mark.asyncio
    async def test_generate_markdown_uses_writing_model(self, settings):
        from tools.agent_sdk_client import AgentSDKClient
        client = AgentSDKClient(settings)
        with patch.object(client, "_query_once", AsyncMock(return_value="# Text")) as mock_query:
            result = await client.generate_markdown("prompt", system_prompt="sys")
        assert result == "# Text"
        mock_query.assert_awaited_once_with("prompt", "sys", settings.llm_model_writing)

    @pytest.mark.asyncio
    async def test_generate_structured_parses_json(self, settings):
        from tools.agent_sdk_client import AgentSDKClient
        client = AgentSDKClient(settings)
        with patch.object(client, "_query_once", AsyncMock(return_value='```json\n{"a": 1}\n```')) as mock_query:
            result = await client.generate_structured("prompt")
        assert result == {"a": 1}
        assert mock_query.await_args.args[2] == settings.llm_model_planning

    @pytest.mark.asyncio
    async def test_generate_structured_raises_parse_error(self, settings):
        from config.exceptions import LLMResponseParseError
        from tools.agent_sdk_client import AgentSDKClient
        client = AgentSDKClient(settings)
        with patch.object(client, "_query_once", AsyncMock(return_value="no json here")):
            with pytest.raises(LLMResponseParseError) as exc_info:
                await client.generate_structured("prompt")
        assert exc_info.value.raw_response == "no json here"

    @pytest.mark.asyncio
    async def test_transient_failure_retried_once(self, settings):
        from config.exceptions import LLMOverloadedError
        from tools.agent_sdk_client import AgentSDKClient
        client = AgentSDKClient(settings)
        side_effect = [LLMOverloadedError("overloaded"), "recovered"]
        with patch.object(client, "_query_once", AsyncMock(side_effect=side_effect)) as mock_query, \
                patch("tools.agent_sdk_client.asyncio.sleep", AsyncMock()) as mock_sleep:
            result = await client.generate_markdown("prompt")
        assert result == "recovered"
        assert mock_query.await_count == 2
        mock_sleep.assert_awaited_once_with(2.0)
        assert client.get_usage_summary() == {"total_calls": 2, "failed_calls": 1}

    @pytest.mark.asyncio
    async def test_rate_limit_retry_after_respected(self, settings):
        from config.exceptions import LLMRateLimitError
        from tools.agent_sdk_client import AgentSDKClient
        client = AgentSDKClient(settings)
        side_effect = [LLMRateLimitError(retry_after=7.5), "ok"]
        with patch.object(client, "_query_once", AsyncMock(side_effect=side_effect)), \
                patch("tools.agent_sdk_client.asyncio.sleep", AsyncMock()) as mock_sleep:
            await client.generate_markdown("prompt")
        mock_sleep.assert_awaited_once_with(7.5)

    @pytest.mark.asyncio
    async def test_second_transient_failure_propagates(self, settings):
        from config.exceptions import LLMOverloadedError
        from tools.agent_sdk_client import AgentSDKClient
        client = AgentSDKClient(settings)
        side_effect = [LLMOverloadedError("a"), LLMOverloadedError("b")]
        with patch.object(client, "_query_once", AsyncMock(side_effect=side_effect)) as mock_query, \
                patch("tools.agent_sdk_client.asyncio.sleep", AsyncMock()):
            with pytest.raises(LLMOverloadedError):
                await client.generate_markdown("prompt")
        assert mock_query.await_count == 2

    @pytest.mark.asyncio
    async def test_non_transient_failure_not_retried(self, settings):
        from config.exceptions import LLMError
        from tools.agent_sdk_client import AgentSDKClient
        client = AgentSDKClient(settings)
        with patch.object(client, "_query_once", AsyncMock(side_effect=ValueError("bad model"))) as mock_query:
            with pytest.raises(LLMError, match="bad model"):
                await client.generate_markdown("prompt")
        assert mock_query.await_count == 1

    @pytest.mark.asyncio
    async def test_timeout_raises_llm_timeout(self, tmp_path):
        from config.exceptions import LLMTimeoutError
        from config.settings import Settings
        from tools.agent_sdk_client import AgentSDKClient

        settings = Settings(
            _env_file=None,
            sqlite_db_path=tmp_path / "h.db",
            log_dir=tmp_path / "logs",
            llm_timeout_seconds=0.05,
            llm_max_retries=0,
        )
        client = AgentSDKClient(settings)

        async def never_returns(*args):
            await asyncio.Event().wait()

        with patch.object(client, "_query_once", side_effect=never_returns):
            with pytest.raises(LLMTimeoutError):
                await client.generate_markdown("prompt")

    def test_api_key_passed_in_env(self, tmp_path):
        from config.settings import Settings
        from tools.agent_sdk_client import AgentSDKClient
        settings = Settings(
            _env_file=None,
            sqlite_db_path=tmp_path / "h.db",
            log_dir=tmp_path / "logs",
            auth_mode="api_key",
            anthropic_api_key="sk-test",
        )
        options = AgentSDKClient(settings)._options("sys", "claude-haiku-4-5")
        assert options.env == {"ANTHROPIC_API_KEY": "sk-test"}
        assert options.model == "claude-haiku-4-5"
        assert options.max_turns == 1

    @pytest.mark.asyncio
    async def test_retry_after_from_error_text_sets_delay(self, settings):
        from tools.agent_sdk_client import AgentSDKClient
        client = AgentSDKClient(settings)
        side_effect = [RuntimeError("HTTP 429: rate_limit_error, Retry-After 3"), "ok"]
        with patch.object(client, "_query_once", AsyncMock(side_effect=side_effect)), \
                patch("tools.agent_sdk_client.asyncio.sleep", AsyncMock()) as mock_sleep:
            assert await client.generate_markdown("prompt") == "ok"
        mock_sleep.assert_awaited_once_with(3.0)
