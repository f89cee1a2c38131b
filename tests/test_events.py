import asyncio
import json

import pytest

from shellgate.adapters.event_bus import EventBus
from shellgate.adapters.events import (
    BackgroundPromptOffered,
    BackgroundTaskFinished,
    ShellEvent,
    ToolCallDelta,
    dict_to_event,
    event_to_dict,
)
from shellgate.adapters.permission_store import AllowListStore


def test_dict_to_event_known_type() -> None:
    event = dict_to_event({
        "event": "bash_prompt_background",
        "correlation_id": "temp_1",
        "command": "npm run dev",
        "current_output": "ready",
        "unexpected": 1,
    })
    assert isinstance(event, BackgroundPromptOffered)
    assert event.correlation_id == "temp_1"
    assert event.current_output == "ready"


def test_dict_to_event_unknown_type() -> None:
    event = dict_to_event({"event": "something_new", "x": 1})
    assert type(event) is ShellEvent
    assert event.event_type == "something_new"


def test_event_to_dict_uses_event_key() -> None:
    d = event_to_dict(BackgroundTaskFinished(task_id="bg_1", status="completed"))
    assert d == {"event": "bash_background_finished", "task_id": "bg_1", "status": "completed"}
    assert dict_to_event(d) == BackgroundTaskFinished(task_id="bg_1", status="completed")


@pytest.mark.asyncio
async def test_event_bus_delivers_in_order() -> None:
    bus = EventBus()
    callback = bus.make_callback()
    await callback({"event": "tool_call_delta", "delta": "a"})
    await callback({"event": "tool_call_delta", "delta": "b"})

    received = []

    async def consume():
        async for event in bus.consume():
            received.append(event)
            if len(received) == 2:
                bus.close()

    await asyncio.wait_for(consume(), timeout=5)
    assert [e.delta for e in received] == ["a", "b"]
    assert all(isinstance(e, ToolCallDelta) for e in received)


@pytest.mark.asyncio
async def test_closed_bus_drops_events_and_reset_reopens() -> None:
    bus = EventBus()
    await bus.emit(ToolCallDelta(delta="kept"))
    bus.close()
    await bus.emit(ToolCallDelta(delta="dropped"))
    assert bus.qsize() == 1
    bus.reset()
    assert not bus.closed
    assert bus.qsize() == 0


@pytest.mark.asyncio
async def test_full_bus_times_out_instead_of_blocking() -> None:
    bus = EventBus(maxsize=1, put_timeout=0.05)
    await bus.emit(ToolCallDelta(delta="1"))
    await bus.emit(ToolCallDelta(delta="2"))
    assert bus.qsize() == 1


def test_allow_list_store(tmp_path) -> None:
    store = AllowListStore(project_dir=tmp_path / "proj", global_dir=tmp_path / "home")
    assert store.load() == set()
    store.add_project("bash")
    store.add_global("kill_bash")
    store.add_global("kill_bash")
    assert store.load() == {"bash", "kill_bash"}
    assert json.loads(store.global_path.read_text()) == ["kill_bash"]
    assert store.project_path == tmp_path / "proj" / ".shellgate" / "allowed_tools.json"


def test_allow_list_store_without_project(tmp_path) -> None:
    store = AllowListStore(global_dir=tmp_path)
    store.add_project("bash")
    assert json.loads(store.global_path.read_text()) == ["bash"]


def test_allow_list_store_ignores_bad_files(tmp_path) -> None:
    store = AllowListStore(global_dir=tmp_path)
    store.global_path.write_text("{not json")
    assert store.load() == set()
    store.global_path.write_text('{"bash": true}')
    assert store.load() == set()
