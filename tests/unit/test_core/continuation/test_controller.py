"""Tests for ContinuationController and run_with_continuation."""

import asyncio
import time

import httpx
import pytest

from llm_continuation.config import ContinuationConfig
from llm_continuation.core.continuation import (
    ContinuationController,
    ConversationState,
    ProviderTransport,
    run_with_continuation,
)
from llm_continuation.core.continuation.models import (
    CompletionReason,
    ControllerState,
    FallbackLevel,
    OutputFormat,
)
from llm_continuation.core.errors import CompleteDegradationError, MergeError
from llm_continuation.core.providers import ResponsesAPIProvider


class TestLoop:
    """Bounded request loop."""

    @pytest.mark.asyncio
    async def test_single_complete_response(self, scripted, finished, config, metrics):
        transport = scripted([finished("Hello there.")])
        controller = ContinuationController(transport, config, metrics=metrics)

        outcome = await controller.run("Say hello")

        assert outcome.content == "Hello there."
        assert outcome.success is True
        assert outcome.metadata.was_continued is False
        assert outcome.metadata.attempt_count == 1
        assert controller.state == ControllerState.DONE
        assert transport.hints == [None]
        assert transport.calls[0].messages[0].content == "Say hello"

    @pytest.mark.asyncio
    async def test_continues_until_complete(self, scripted, truncated, finished, config, metrics):
        transport = scripted(
            [
                truncated("id,name\n1,Alice\n2,Bo", response_id="resp_1"),
                finished("b\n3,Carol\n", response_id="resp_2"),
            ]
        )
        controller = ContinuationController(transport, config, metrics=metrics)

        outcome = await controller.run("List people as CSV")

        assert outcome.content == "id,name\n1,Alice\n2,Bob\n3,Carol\n"
        assert outcome.metadata.was_continued is True
        assert outcome.metadata.completion_reasons == [CompletionReason.LENGTH, CompletionReason.STOP]
        assert outcome.metadata.format_used == OutputFormat.TABULAR
        assert outcome.metadata.truncation_points == ["resp_1"]
        assert len(outcome.fragments) == 2

    @pytest.mark.asyncio
    async def test_continuation_state_is_threaded(self, scripted, truncated, finished, config, metrics):
        transport = scripted([truncated("[1, 2,", response_id="resp_1"), finished(" 3]")])
        controller = ContinuationController(transport, config, metrics=metrics)

        outcome = await controller.run("Numbers as JSON")

        second = transport.calls[1]
        assert second.attempt == 2
        assert second.accumulated == "[1, 2,"
        assert second.previous_response_id == "resp_1"
        assert "JSON document" in transport.hints[1]
        assert outcome.content == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_stops_at_max_attempts(self, scripted, truncated, metrics):
        transport = scripted([truncated("part one "), truncated("part two "), truncated("part three ")])
        config = ContinuationConfig(max_attempts=3)
        controller = ContinuationController(transport, config, metrics=metrics)

        outcome = await controller.run("Write a lot")

        assert len(transport.calls) == 3
        assert outcome.metadata.attempt_count == 3
        assert outcome.metadata.completion_reasons == [CompletionReason.LENGTH] * 3
        assert outcome.metadata.max_attempts_reached is True
        assert outcome.content == "part one \npart two \npart three "

    @pytest.mark.asyncio
    async def test_terminal_reasons_end_the_loop(self, scripted, truncated, config, metrics):
        from llm_continuation.core.continuation.models import Fragment

        transport = scripted([truncated("text"), Fragment(content="", completion_reason="content_filter")])
        controller = ContinuationController(transport, config, metrics=metrics)

        outcome = await controller.run("prompt")

        assert len(transport.calls) == 2
        assert outcome.metadata.completion_reasons[-1] == CompletionReason.CONTENT_FILTER
        assert outcome.content == "text"

    @pytest.mark.asyncio
    async def test_attempt_counter_metrics(self, scripted, truncated, finished, config, metrics):
        seen = []
        metrics.subscribe(seen.append)
        transport = scripted([truncated("a "), finished("b")])

        await ContinuationController(transport, config, metrics=metrics).run("prompt")

        attempts = [m.labels["reason"] for m in seen if m.name == "continuation.attempts"]
        assert attempts == ["length", "stop"]
        assert any(m.name == "continuation.duration_ms" for m in seen)


class TestFailures:
    @pytest.mark.asyncio
    async def test_transport_error_ends_loop(self, scripted, truncated, transport_error, config, metrics):
        transport = scripted([truncated("partial output "), transport_error])
        controller = ContinuationController(transport, config, metrics=metrics)

        outcome = await controller.run("prompt")

        assert outcome.metadata.completion_reasons == [CompletionReason.LENGTH, CompletionReason.ERROR]
        assert outcome.metadata.details["transport_errors"][0]["type"] == "TransportError"
        assert outcome.content == "partial output "
        assert controller.state == ControllerState.DONE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ValueError("bad payload"), KeyError("output"), RuntimeError("boom")])
    async def test_unexpected_exception_keeps_fragments(self, scripted, truncated, error, config, metrics):
        transport = scripted([truncated("id,name\n1,Al"), error])
        controller = ContinuationController(transport, config, metrics=metrics)

        outcome = await controller.run("prompt")

        assert outcome.metadata.completion_reasons == [CompletionReason.LENGTH, CompletionReason.ERROR]
        assert outcome.metadata.details["transport_errors"][0]["type"] == type(error).__name__
        assert outcome.content == "id,name\n1,Al"
        assert controller.state == ControllerState.DONE

    @pytest.mark.asyncio
    async def test_non_json_provider_reply_keeps_fragments(self, config, metrics):
        replies = iter(
            [
                httpx.Response(
                    200,
                    json={
                        "id": "resp_1",
                        "status": "incomplete",
                        "incomplete_details": {"reason": "max_output_tokens"},
                        "output_text": "id,name\n1,Al",
                    },
                ),
                httpx.Response(200, text="<html>bad gateway</html>"),
            ]
        )
        provider = ResponsesAPIProvider(api_key="sk-test", transport=httpx.MockTransport(lambda r: next(replies)))
        controller = ContinuationController(ProviderTransport(provider), config, metrics=metrics)

        outcome = await controller.run("List people as CSV")

        assert [f.content for f in outcome.fragments] == ["id,name\n1,Al", ""]
        assert outcome.metadata.completion_reasons == [CompletionReason.INCOMPLETE, CompletionReason.ERROR]
        assert outcome.metadata.details["transport_errors"][0]["type"] == "TransportError"
        assert outcome.content == "id,name\n1,Al"

    @pytest.mark.asyncio
    async def test_timeout_becomes_error_fragment(self, scripted, truncated, finished, metrics):
        transport = scripted([truncated("first "), 1.0, finished("never")])
        config = ContinuationConfig(timeout_seconds=0.05)
        controller = ContinuationController(transport, config, metrics=metrics)

        outcome = await controller.run("prompt")

        assert outcome.metadata.completion_reasons == [CompletionReason.LENGTH, CompletionReason.ERROR]
        assert outcome.metadata.details["transport_errors"][0]["type"] == "TransportTimeoutError"

    @pytest.mark.asyncio
    async def test_raise_error_policy(self, scripted, finished, metrics):
        transport = scripted([finished('{"a": "unterminated')])
        config = ContinuationConfig(output_format="json", on_failure="raise_error")
        controller = ContinuationController(transport, config, metrics=metrics)

        with pytest.raises(MergeError) as exc_info:
            await controller.run("prompt")

        assert exc_info.value.metadata.merge_success is False
        assert exc_info.value.metadata.final_state == ControllerState.FAILED
        assert controller.state == ControllerState.FAILED

    @pytest.mark.asyncio
    async def test_return_partial_policy(self, scripted, finished, metrics):
        transport = scripted([finished('{"a": "unterminated')])
        config = ContinuationConfig(output_format="json")

        outcome = await ContinuationController(transport, config, metrics=metrics).run("prompt")

        assert outcome.success is False
        assert outcome.content == '{"a": "unterminated'
        assert outcome.metadata.fallback_level_used == FallbackLevel.SIMPLIFIED
        assert outcome.metadata.error_detail == '{"a": "unterminated'


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_before_first_attempt(self, scripted, finished, config, metrics):
        cancel = asyncio.Event()
        cancel.set()
        controller = ContinuationController(scripted([finished("x")]), config, metrics=metrics)

        with pytest.raises(CompleteDegradationError) as exc_info:
            await controller.run("prompt", cancel=cancel)

        assert exc_info.value.metadata.cancelled is True
        assert exc_info.value.metadata.attempt_count == 0
        assert controller.state == ControllerState.FAILED

    @pytest.mark.asyncio
    async def test_cancel_during_attempt_merges_collected(self, scripted, truncated, finished, config, metrics):
        transport = scripted([truncated("kept "), 1.0, finished("never")])
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel.set)

        outcome = await ContinuationController(transport, config, metrics=metrics).run("prompt", cancel=cancel)

        assert outcome.content == "kept "
        assert outcome.metadata.cancelled is True
        assert outcome.metadata.attempt_count == 1

    @pytest.mark.asyncio
    async def test_deadline_stops_loop(self, scripted, truncated, finished, config, metrics):
        transport = scripted([truncated("kept "), 1.0, finished("never")])

        outcome = await ContinuationController(transport, config, metrics=metrics).run(
            "prompt", deadline=time.monotonic() + 0.05
        )

        assert outcome.content == "kept "
        assert outcome.metadata.cancelled is True
        assert outcome.metadata.details == {}

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self, scripted, config, metrics):
        transport = scripted([5.0])
        controller = ContinuationController(transport, config, metrics=metrics)
        task = asyncio.ensure_future(controller.run("prompt"))
        await asyncio.sleep(0.01)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert controller.state == ControllerState.FAILED


class TestConstruction:
    @pytest.mark.asyncio
    async def test_single_use(self, scripted, finished, config, metrics):
        controller = ContinuationController(scripted([finished("x"), finished("y")]), config, metrics=metrics)
        await controller.run("prompt")

        with pytest.raises(RuntimeError, match="single-use"):
            await controller.run("prompt")

    def test_rejects_non_transport(self, config):
        with pytest.raises(TypeError):
            ContinuationController(object(), config)

    def test_run_ids_are_unique(self, scripted, config):
        first = ContinuationController(scripted([]), config)
        second = ContinuationController(scripted([]), config)
        assert first.run_id != second.run_id

    @pytest.mark.asyncio
    async def test_run_with_continuation_accepts_state(self, scripted, finished, config, metrics):
        state = ConversationState.from_prompt("question", system="be brief")
        transport = scripted([finished("answer")])

        outcome = await run_with_continuation(transport, state, config, metrics=metrics)

        assert outcome.text() == "answer"
        assert [m.role.value for m in transport.calls[0].messages] == ["system", "user"]
