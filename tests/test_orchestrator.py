"""Tests for ConversationOrchestrator chat turns."""

import asyncio
import json

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage
from pydantic import BaseModel

from agent.projection import project_history
from agent.tools.base import BaseTool, ToolResult
from agent.tools.catalog import ToolCatalog
from agent.tools.providers import LocalToolProvider
from conftest import BoomTool, EchoTool, FlakyProvider, HangingCompletion, ScriptedCompletion
from domain.entities import Message, ToolCall
from domain.exceptions import (
    DataIntegrityError,
    EmptyMessageError,
    ThreadNotFoundError,
    UpstreamError,
)
from domain.models import Completion, ToolDescriptor, TurnState


def _local_catalog():
    return ToolCatalog([LocalToolProvider([EchoTool(), BoomTool()])])


def _tool_turn(*calls, final="done"):
    """First completion asks for the given calls, follow-up answers with `final`."""
    return (Completion(text="", tool_calls=tuple(calls)), Completion(text=final))


@pytest.fixture
def make_orchestrator(factory):
    def _make(*responses, catalog=None):
        completion = ScriptedCompletion(*responses)
        orchestrator = factory.create_orchestrator(
            completion=completion,
            tool_catalog=catalog if catalog is not None else ToolCatalog(),
        )
        return orchestrator, completion
    return _make


async def _stored(message_store, thread_id):
    return await message_store.messages_for(thread_id)


# ---------------------------------------------------------------------------
# Plain turns
# ---------------------------------------------------------------------------

async def test_first_message_creates_thread(make_orchestrator, message_store, thread_repo):
    orch, completion = make_orchestrator(Completion(text="Use a two-column layout."))

    result = await orch.chat("Design a login form")

    assert result.response == "Use a two-column layout."
    assert orch.session.active_thread_id == result.thread_id
    stored = await _stored(message_store, result.thread_id)
    assert [(m.role, m.content) for m in stored] == [
        ("user", "Design a login form"),
        ("assistant", "Use a two-column layout."),
    ]
    assert list(orch.history) == stored
    assert orch.state is TurnState.DONE
    assert (await thread_repo.get_by_id(result.thread_id)).title == "Design a login form"


async def test_no_tools_available_sends_none(make_orchestrator):
    orch, completion = make_orchestrator(Completion(text="ok"))

    await orch.chat("hello")

    messages, tools = completion.calls[0]
    assert tools is None
    assert isinstance(messages[0], SystemMessage)
    assert messages[0].content == orch.session.system_prompt
    assert isinstance(messages[-1], HumanMessage)
    assert len(completion.calls) == 1


async def test_second_turn_projects_full_history(make_orchestrator):
    orch, completion = make_orchestrator(Completion(text="one"), Completion(text="two"))

    first = await orch.chat("first")
    second = await orch.chat("second")

    assert first.thread_id == second.thread_id
    messages, _ = completion.calls[1]
    assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage, HumanMessage]
    assert [m.content for m in messages[1:]] == ["first", "one", "second"]


async def test_empty_message_is_rejected_before_anything_is_stored(
    make_orchestrator, thread_repo,
):
    orch, completion = make_orchestrator()

    with pytest.raises(EmptyMessageError):
        await orch.chat("   ")
    with pytest.raises(ValueError):
        await orch.chat("")

    assert completion.calls == []
    assert await thread_repo.list_all() == []
    assert orch.state is TurnState.IDLE


async def test_unknown_thread_id_raises(make_orchestrator, thread_repo):
    orch, completion = make_orchestrator(Completion(text="unused"))

    with pytest.raises(ThreadNotFoundError):
        await orch.chat("hi", thread_id="no-such-thread")

    assert completion.calls == []
    assert await thread_repo.list_all() == []
    assert orch.state is TurnState.IDLE


async def test_chat_on_explicit_thread_switches_and_continues(make_orchestrator, message_store):
    orch, completion = make_orchestrator(
        Completion(text="a1"), Completion(text="b1"), Completion(text="a2"),
    )
    first = await orch.chat("thread a")
    await orch.create_thread("other")
    other = await orch.chat("thread b")

    result = await orch.chat("back to a", thread_id=first.thread_id)

    assert result.thread_id == first.thread_id != other.thread_id
    assert orch.session.active_thread_id == first.thread_id
    contents = [m.content for m in await _stored(message_store, first.thread_id)]
    assert contents == ["thread a", "a1", "back to a", "a2"]
    assert [m.content for m in completion.calls[2][0][1:]] == ["thread a", "a1", "back to a"]


async def test_title_is_only_derived_from_first_user_message(make_orchestrator, thread_repo):
    orch, _ = make_orchestrator(Completion(text="x"), Completion(text="y"))

    result = await orch.chat("Audit our navigation")
    await orch.chat("And the footer")

    assert (await thread_repo.get_by_id(result.thread_id)).title == "Audit our navigation"


# ---------------------------------------------------------------------------
# Tool rounds
# ---------------------------------------------------------------------------

async def test_single_tool_call_round(make_orchestrator, message_store):
    call = ToolCall("call_1", "echo", '{"text": "hi"}')
    orch, completion = make_orchestrator(*_tool_turn(call), catalog=_local_catalog())

    result = await orch.chat("use echo")

    assert result.response == "done"
    stored = await _stored(message_store, result.thread_id)
    assert [m.role for m in stored] == ["user", "assistant", "tool", "assistant"]
    assert stored[1].tool_calls == [call]
    assert stored[2].tool_call_id == "call_1"
    assert stored[2].content == "echo:hi"
    assert list(orch.history) == stored

    first_tools = completion.calls[0][1]
    assert sorted(t.name for t in first_tools) == ["boom", "echo"]
    follow_up_messages, follow_up_tools = completion.calls[1]
    assert follow_up_tools is None
    assert isinstance(follow_up_messages[-2], AIMessage)
    assert follow_up_messages[-2].tool_calls[0]["id"] == "call_1"
    assert follow_up_messages[-2].tool_calls[0]["args"] == {"text": "hi"}
    assert isinstance(follow_up_messages[-1], ToolMessage)
    assert follow_up_messages[-1].tool_call_id == "call_1"
    assert follow_up_messages[-1].content == "echo:hi"


async def test_multiple_tool_calls_run_in_issued_order(make_orchestrator, message_store):
    calls = (
        ToolCall("c2", "echo", '{"text": "second"}'),
        ToolCall("c1", "echo", '{"text": "first"}'),
    )
    orch, _ = make_orchestrator(*_tool_turn(*calls), catalog=_local_catalog())

    result = await orch.chat("two calls")

    tool_messages = [m for m in await _stored(message_store, result.thread_id) if m.role == "tool"]
    assert [(m.tool_call_id, m.content) for m in tool_messages] == [
        ("c2", "echo:second"),
        ("c1", "echo:first"),
    ]


async def test_failing_tool_becomes_error_payload(make_orchestrator, message_store):
    call = ToolCall("call_b", "boom", "{}")
    orch, _ = make_orchestrator(*_tool_turn(call, final="sorry"), catalog=_local_catalog())

    result = await orch.chat("explode")

    assert result.response == "sorry"
    tool_msg = (await _stored(message_store, result.thread_id))[2]
    assert json.loads(tool_msg.content) == {"error": "Tool 'boom' failed: boom"}


async def test_unknown_tool_becomes_error_payload(make_orchestrator, message_store):
    call = ToolCall("call_m", "missing", "{}")
    orch, _ = make_orchestrator(*_tool_turn(call), catalog=_local_catalog())

    result = await orch.chat("call something odd")

    tool_msg = (await _stored(message_store, result.thread_id))[2]
    assert json.loads(tool_msg.content) == {"error": "Tool not found: missing"}


async def test_bad_arguments_become_error_payload(make_orchestrator, message_store):
    calls = (
        ToolCall("c_json", "echo", "{not json"),
        ToolCall("c_schema", "echo", '{"wrong": 1}'),
    )
    orch, _ = make_orchestrator(*_tool_turn(*calls), catalog=_local_catalog())

    result = await orch.chat("bad args")

    bad_json, bad_schema = [
        json.loads(m.content)["error"]
        for m in await _stored(message_store, result.thread_id) if m.role == "tool"
    ]
    assert "Invalid JSON arguments for tool 'echo'" in bad_json
    assert "Invalid arguments for 'echo'" in bad_schema


async def test_non_string_tool_results_are_json_encoded(make_orchestrator, message_store):
    provider = FlakyProvider(
        name="remote", failures=0,
        tools=[ToolDescriptor(name="lookup")],
        result={"content": [{"type": "text", "text": "ok"}]},
    )
    call = ToolCall("c1", "lookup", '{"q": "x"}')
    orch, _ = make_orchestrator(*_tool_turn(call), catalog=ToolCatalog([provider]))

    result = await orch.chat("look it up")

    tool_msg = (await _stored(message_store, result.thread_id))[2]
    assert json.loads(tool_msg.content) == {"content": [{"type": "text", "text": "ok"}]}
    assert provider.calls == [("lookup", {"q": "x"})]


async def test_follow_up_tool_calls_are_ignored(make_orchestrator, message_store):
    orch, completion = make_orchestrator(
        Completion(tool_calls=(ToolCall("c1", "echo", '{"text": "a"}'),)),
        Completion(text="partial", tool_calls=(ToolCall("c2", "echo", '{"text": "b"}'),)),
        catalog=_local_catalog(),
    )

    result = await orch.chat("chain tools")

    assert result.response == "partial"
    stored = await _stored(message_store, result.thread_id)
    assert [m.role for m in stored] == ["user", "assistant", "tool", "assistant"]
    assert stored[-1].tool_calls == []
    assert len(completion.calls) == 2


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

async def test_first_completion_failure_keeps_only_user_message(
    make_orchestrator, message_store,
):
    orch, _ = make_orchestrator(UpstreamError("model down"))

    with pytest.raises(UpstreamError):
        await orch.chat("hello?")

    thread_id = orch.session.active_thread_id
    stored = await _stored(message_store, thread_id)
    assert [m.role for m in stored] == ["user"]
    assert list(orch.history) == stored
    assert orch.state is TurnState.IDLE


async def test_follow_up_failure_keeps_tool_round(make_orchestrator, message_store):
    call = ToolCall("call_1", "echo", '{"text": "hi"}')
    orch, _ = make_orchestrator(
        Completion(tool_calls=(call,)), UpstreamError("model down"),
        catalog=_local_catalog(),
    )

    with pytest.raises(UpstreamError):
        await orch.chat("use echo")

    stored = await _stored(message_store, orch.session.active_thread_id)
    assert [m.role for m in stored] == ["user", "assistant", "tool"]
    assert orch.state is TurnState.IDLE


async def test_recovers_after_failed_turn(make_orchestrator, message_store):
    orch, completion = make_orchestrator(UpstreamError("blip"), Completion(text="back"))

    with pytest.raises(UpstreamError):
        await orch.chat("first try")
    result = await orch.chat("second try")

    assert result.response == "back"
    contents = [m.content for m in await _stored(message_store, result.thread_id)]
    assert contents == ["first try", "second try", "back"]
    assert [m.content for m in completion.calls[1][0][1:]] == ["first try", "second try"]


async def test_tool_provider_connection_failure_is_not_fatal(make_orchestrator):
    provider = FlakyProvider(
        name="remote", failures=1, tools=[ToolDescriptor(name="remote_lookup")],
    )
    catalog = ToolCatalog([LocalToolProvider([EchoTool()]), provider])
    orch, completion = make_orchestrator(
        Completion(text="without remote"), Completion(text="with remote"), catalog=catalog,
    )

    await orch.chat("first")
    await orch.chat("second")

    assert [t.name for t in completion.calls[0][1]] == ["echo"]
    assert [t.name for t in completion.calls[1][1]] == ["echo", "remote_lookup"]
    assert provider.connect_attempts == 2


async def test_cancellation_resets_state_and_releases_lock(factory, message_store):
    completion = HangingCompletion()
    orch = factory.create_orchestrator(completion=completion, tool_catalog=ToolCatalog())

    task = asyncio.create_task(orch.chat("slow question"))
    await asyncio.wait_for(completion.started.wait(), timeout=5)
    assert orch.state is TurnState.AWAITING_FIRST_COMPLETION
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert orch.state is TurnState.IDLE
    assert not orch._lock.locked()
    stored = await _stored(message_store, orch.session.active_thread_id)
    assert [m.role for m in stored] == ["user"]


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

async def test_concurrent_turns_are_serialized(make_orchestrator, message_store):
    orch, completion = make_orchestrator(Completion(text="r1"), Completion(text="r2"))

    first, second = await asyncio.gather(orch.chat("q1"), orch.chat("q2"))

    assert first.thread_id == second.thread_id
    contents = [m.content for m in await _stored(message_store, first.thread_id)]
    assert contents == ["q1", "r1", "q2", "r2"]
    # The second request already sees the completed first turn.
    assert [m.content for m in completion.calls[1][0][1:]] == ["q1", "r1", "q2"]


class SlowInput(BaseModel):
    pass


class SlowTool(BaseTool):
    """Blocks until cancelled."""

    name = "slow"
    description = "Never finishes."

    def __init__(self):
        self.started = asyncio.Event()

    def get_schema(self):
        return SlowInput

    async def execute(self, **kwargs) -> ToolResult:
        self.started.set()
        await asyncio.sleep(3600)
        return ToolResult(output="unreachable")


def _ids(messages):
    return [m.id for m in messages]


async def test_cancellation_at_any_point_keeps_history_in_sync(
    make_orchestrator, message_store,
):
    for k in range(0, 400, 5):
        call = ToolCall("c1", "echo", '{"text": "x"}')
        orch, _ = make_orchestrator(*_tool_turn(call), catalog=_local_catalog())

        task = asyncio.create_task(orch.chat("question"))
        for _ in range(k):
            await asyncio.sleep(0)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert orch.state in (TurnState.IDLE, TurnState.DONE)
        assert not orch._lock.locked()
        thread_id = orch.session.active_thread_id
        if thread_id is None:
            assert orch.history == ()
            continue
        stored = await _stored(message_store, thread_id)
        assert _ids(orch.history) == _ids(stored), f"diverged after {k} yields"
        # Whatever was left behind can still be sent to the model.
        project_history("persona", stored)


async def test_interrupted_tool_round_is_closed_with_error_results(
    factory, message_store,
):
    slow = SlowTool()
    calls = (ToolCall("c1", "slow", "{}"), ToolCall("c2", "slow", "{}"))
    completion = ScriptedCompletion(
        Completion(tool_calls=calls), Completion(text="recovered"),
    )
    orch = factory.create_orchestrator(
        completion=completion, tool_catalog=ToolCatalog([LocalToolProvider([slow])]),
    )

    task = asyncio.create_task(orch.chat("run the slow tool"))
    await asyncio.wait_for(slow.started.wait(), timeout=5)
    assert orch.state is TurnState.TOOL_ROUND_IN_PROGRESS
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    thread_id = orch.session.active_thread_id
    stored = await _stored(message_store, thread_id)
    assert [m.role for m in stored] == ["user", "assistant", "tool", "tool"]
    assert [m.tool_call_id for m in stored[2:]] == ["c1", "c2"]
    assert json.loads(stored[2].content) == {"error": "Tool call 'slow' was interrupted"}
    assert list(orch.history) == stored

    result = await orch.chat("try again")

    assert result.response == "recovered"
    assert isinstance(completion.calls[1][0][-2], ToolMessage)


async def test_load_thread_rebuilds_what_chat_appended(factory, message_store):
    call = ToolCall("call_1", "echo", '{"text": "grid"}')
    completion = ScriptedCompletion(
        Completion(text="Start with a 12-column grid."),
        *_tool_turn(call, final="Echoed."),
        Completion(text="Use 24px gutters."),
    )
    orch = factory.create_orchestrator(completion=completion, tool_catalog=_local_catalog())
    thread_id = await orch.create_thread("Layout")

    for text in ("layout?", "echo grid", "gutters?"):
        await orch.chat(text)

    fresh = factory.create_orchestrator(
        completion=ScriptedCompletion(), tool_catalog=ToolCatalog(),
    )
    assert await fresh.load_thread(thread_id) is True

    def _shape(messages):
        return [(m.role, m.content, m.tool_calls, m.tool_call_id) for m in messages]

    assert _shape(fresh.history) == _shape(orch.history)
    assert _ids(fresh.history) == _ids(orch.history)
    assert [m.role for m in fresh.history] == [
        "user", "assistant",
        "user", "assistant", "tool", "assistant",
        "user", "assistant",
    ]
    assert fresh.history[3].tool_calls == [call]
    assert fresh.history[4].tool_call_id == "call_1"


async def test_unprojectable_history_fails_the_turn(factory, message_store):
    thread_id = await factory.create_thread_service().create_thread()
    await message_store.append(Message(
        id="ghost", thread_id=thread_id, role="tool",
        content="orphan", tool_call_id="never-issued", created_at=1,
    ))
    completion = ScriptedCompletion(Completion(text="unused"))
    orch = factory.create_orchestrator(completion=completion, tool_catalog=ToolCatalog())

    with pytest.raises(DataIntegrityError):
        await orch.chat("hello", thread_id=thread_id)

    assert completion.calls == []
    assert orch.state is TurnState.IDLE
    stored = await _stored(message_store, thread_id)
    assert [m.role for m in stored] == ["tool", "user"]
    assert list(orch.history) == stored
