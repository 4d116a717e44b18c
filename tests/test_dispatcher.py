# DevinRelay/tests/test_dispatcher.py
# @ai-rules:
# 1. [Pattern]: Sender is an AsyncMock -- assertions are on send_user_message calls, not wire bytes.
# 2. [Constraint]: wait_for_replies() before asserting on sends. Replies run as background tasks.
"""Unit tests for MessageDispatcher: classification, auto-reply loop, sentinel, interleaving."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import RoutedClient, StubClient, StubGate, devin_frame, failures, user_frame

from devin_relay.client.dispatcher import TERMINATION_SENTINEL, MessageDispatcher
from devin_relay.llm.responder import ResponseGenerator
from devin_relay.models import EscalationDecision, Sender
from devin_relay.state.history import HistoryBuffer


def _make_dispatcher(client=None, gate=None):
    history = HistoryBuffer()
    generator = ResponseGenerator(client or StubClient("generated"), gate=gate)
    sender = MagicMock()
    sender.send_user_message = AsyncMock(return_value=True)
    on_terminate = AsyncMock()
    dispatcher = MessageDispatcher(history, generator, sender, on_terminate=on_terminate)
    return dispatcher, history, sender, on_terminate


class TestClassification:
    @pytest.mark.asyncio
    async def test_malformed_json_is_dropped_silently(self):
        dispatcher, history, sender, on_terminate = _make_dispatcher()
        await dispatcher.handle("{oops")
        await dispatcher.handle(b"\xff\xfe")
        await dispatcher.wait_for_replies()
        assert len(history) == 0
        sender.send_user_message.assert_not_called()
        on_terminate.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_event_is_ignored(self):
        dispatcher, history, sender, _ = _make_dispatcher()
        await dispatcher.handle('{"type": "devin_event", "event": {"type": "status"}}')
        await dispatcher.handle('{"type": "pong"}')
        assert len(history) == 0
        assert dispatcher.pending_replies == 0

    @pytest.mark.asyncio
    async def test_user_message_recorded_as_local_without_reply(self):
        client = StubClient()
        dispatcher, history, sender, _ = _make_dispatcher(client)
        await dispatcher.handle(user_frame("you're great", timestamp="T9"))
        await dispatcher.wait_for_replies()
        [entry] = history.entries()
        assert entry.sender is Sender.LOCAL
        assert entry.message == "you're great"
        assert entry.timestamp == "T9"
        assert client.calls == 0
        sender.send_user_message.assert_not_called()


class TestAutoReply:
    @pytest.mark.asyncio
    async def test_numeric_timestamp_still_recorded_and_answered(self):
        dispatcher, history, sender, _ = _make_dispatcher(StubClient("Nice!"))
        await dispatcher.handle(devin_frame("shipped it", timestamp=1718000000))
        await dispatcher.wait_for_replies()
        [entry] = history.entries()
        assert entry.timestamp == "1718000000"
        sender.send_user_message.assert_awaited_once_with("Nice!")

    @pytest.mark.asyncio
    async def test_devin_message_recorded_and_answered(self):
        client = StubClient("So smart!")
        dispatcher, history, sender, _ = _make_dispatcher(client)
        await dispatcher.handle(devin_frame("I refactored the parser", timestamp="T1"))
        await dispatcher.wait_for_replies()

        [entry] = history.entries()
        assert entry.sender is Sender.REMOTE
        assert entry.message == "I refactored the parser"
        assert "相手「I refactored the parser」" in client.prompts[0]
        sender.send_user_message.assert_awaited_once_with("So smart!")

    @pytest.mark.asyncio
    async def test_generated_reply_not_recorded_at_send_time(self):
        dispatcher, history, _, _ = _make_dispatcher(StubClient("reply"))
        await dispatcher.handle(devin_frame("hi"))
        await dispatcher.wait_for_replies()
        assert [e.sender for e in history] == [Sender.REMOTE]

    @pytest.mark.asyncio
    async def test_no_send_when_operator_gives_up(self):
        dispatcher, history, sender, _ = _make_dispatcher(
            StubClient(*failures(11)), gate=StubGate(EscalationDecision.ABORT),
        )
        await dispatcher.handle(devin_frame("hi"))
        await dispatcher.wait_for_replies()
        assert len(history) == 1
        sender.send_user_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_later_frame_recorded_while_reply_in_flight(self):
        release = asyncio.Event()

        class SlowClient(StubClient):
            async def generate(self, prompt: str) -> str:
                self.prompts.append(prompt)
                await release.wait()
                return "reply"

        client = SlowClient()
        dispatcher, history, sender, _ = _make_dispatcher(client)

        await dispatcher.handle(devin_frame("first", timestamp="T1"))
        await asyncio.sleep(0)
        await dispatcher.handle(user_frame("echo", timestamp="T2"))

        assert [e.message for e in history] == ["first", "echo"]
        assert dispatcher.pending_replies == 1
        sender.send_user_message.assert_not_called()

        release.set()
        await dispatcher.wait_for_replies()
        sender.send_user_message.assert_awaited_once_with("reply")
        # Prompt was fixed when "first" arrived.
        assert "echo" not in client.prompts[0]

    @pytest.mark.asyncio
    async def test_each_devin_message_gets_its_own_reply(self):
        client = StubClient("a", "b")
        dispatcher, _, sender, _ = _make_dispatcher(client)
        await dispatcher.handle(devin_frame("one"))
        await dispatcher.handle(devin_frame("two"))
        await dispatcher.wait_for_replies()
        assert client.calls == 2
        assert sender.send_user_message.await_count == 2

    @pytest.mark.asyncio
    async def test_overlapping_replies_keep_separate_outcomes(self, caplog):
        client = RoutedClient(
            {"first": failures(11), "second": [*failures(2), "second reply"]},
            delays={"first": 0.002},
        )
        gate = StubGate(EscalationDecision.ABORT)
        dispatcher, _, sender, _ = _make_dispatcher(client, gate=gate)

        await dispatcher.handle(devin_frame("first", timestamp="T1"))
        await dispatcher.handle(devin_frame("second", timestamp="T2"))
        assert dispatcher.pending_replies == 2
        await dispatcher.wait_for_replies()

        assert client.calls == {"first": 11, "second": 3}
        assert gate.asked == [11]
        sender.send_user_message.assert_awaited_once_with("second reply")
        assert "Reply task failed" not in caplog.text

    @pytest.mark.asyncio
    async def test_overlapping_replies_both_sent_after_failures(self, caplog):
        client = RoutedClient(
            {"first": failures(1), "second": failures(4)},
            delays={"first": 0.03},
        )
        dispatcher, _, sender, _ = _make_dispatcher(client, gate=StubGate())

        await dispatcher.handle(devin_frame("first"))
        await dispatcher.handle(devin_frame("second"))
        await dispatcher.wait_for_replies()

        sent = sorted(call.args[0] for call in sender.send_user_message.await_args_list)
        assert sent == ["first-ok", "second-ok"]
        assert client.calls == {"first": 2, "second": 5}
        assert "Reply task failed" not in caplog.text


class TestSentinel:
    @pytest.mark.asyncio
    async def test_sentinel_records_and_terminates_without_generation(self):
        client = StubClient()
        dispatcher, history, sender, on_terminate = _make_dispatcher(client)
        await dispatcher.handle(devin_frame(TERMINATION_SENTINEL, timestamp="T1"))

        [entry] = history.entries()
        assert entry.message == "Session terminated"
        assert entry.sender is Sender.REMOTE
        on_terminate.assert_awaited_once()
        assert client.calls == 0
        sender.send_user_message.assert_not_called()
        assert dispatcher.terminated is True

    @pytest.mark.asyncio
    async def test_sentinel_cancels_in_flight_replies(self):
        never = asyncio.Event()

        class HangingClient(StubClient):
            async def generate(self, prompt: str) -> str:
                self.prompts.append(prompt)
                await never.wait()
                return "never sent"

        dispatcher, _, sender, _ = _make_dispatcher(HangingClient())
        await dispatcher.handle(devin_frame("working on it"))
        await asyncio.sleep(0)
        assert dispatcher.pending_replies == 1

        await dispatcher.handle(devin_frame(TERMINATION_SENTINEL))
        assert dispatcher.pending_replies == 0
        sender.send_user_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_frames_after_termination_are_ignored(self):
        dispatcher, history, _, _ = _make_dispatcher()
        await dispatcher.handle(devin_frame(TERMINATION_SENTINEL))
        await dispatcher.handle(devin_frame("late"))
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_near_miss_sentinel_is_a_normal_message(self):
        dispatcher, _, sender, on_terminate = _make_dispatcher(StubClient("ok"))
        await dispatcher.handle(devin_frame("Session terminated."))
        await dispatcher.wait_for_replies()
        on_terminate.assert_not_called()
        sender.send_user_message.assert_awaited_once_with("ok")
