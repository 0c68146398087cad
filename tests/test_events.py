"""Tests for specbind.events."""

from __future__ import annotations

import asyncio
import threading
from typing import List

import pytest

from specbind.events import ChannelClosedError, DoneEvent, ProgressChannel, Status, StatusEvent, Step, SyncEvent


def test_events_are_recorded_and_fanned_out_in_order() -> None:
    seen: List[SyncEvent] = []
    channel = ProgressChannel([seen.append])

    channel.status(Status.STARTED, "petstore", Step.FETCHING_SPEC)
    channel.status(Status.SUCCESS, "petstore", Step.FETCHING_SPEC)
    channel.done(True)

    assert seen == channel.events
    assert [type(event) for event in seen] == [StatusEvent, StatusEvent, DoneEvent]
    assert channel.closed


def test_emit_after_done_raises() -> None:
    channel = ProgressChannel()
    channel.done(False)

    with pytest.raises(ChannelClosedError):
        channel.status(Status.STARTED, "petstore", Step.FETCHING_SPEC)
    with pytest.raises(ChannelClosedError):
        channel.done(True)
    assert channel.events == [DoneEvent(success=False)]


def test_to_dict_shapes() -> None:
    started = StatusEvent(status=Status.STARTED, source_id="petstore", step=Step.GENERATING)
    failed = StatusEvent(
        status=Status.ERROR,
        source_id="petstore",
        step=Step.GENERATING,
        error="PluginGenerationError: boom",
    )

    assert started.to_dict() == {
        "type": "status",
        "sourceId": "petstore",
        "step": "GENERATING",
        "status": "started",
    }
    assert failed.to_dict()["error"] == "PluginGenerationError: boom"
    assert DoneEvent(success=True).to_dict() == {"type": "done", "success": True}


def test_concurrent_emitters_share_one_total_order() -> None:
    first: List[SyncEvent] = []
    second: List[SyncEvent] = []
    channel = ProgressChannel([first.append, second.append])

    def _emit(source_id: str) -> None:
        for step in (Step.FETCHING_SPEC, Step.BUILDING_DESCRIPTORS, Step.RESOLVING_CONFLICTS, Step.GENERATING):
            channel.status(Status.STARTED, source_id, step)
            channel.status(Status.SUCCESS, source_id, step)

    threads = [threading.Thread(target=_emit, args=(f"source-{index}",)) for index in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    channel.done(True)

    assert first == second == channel.events
    assert len(channel.events) == 4 * 8 + 1
    for index in range(4):
        steps = [event.step for event in channel.events if isinstance(event, StatusEvent) and event.source_id == f"source-{index}"]
        assert steps == sorted(steps, key=list(Step).index)


def test_stream_replays_backlog_and_stops_after_done() -> None:
    async def scenario() -> List[SyncEvent]:
        channel = ProgressChannel()
        channel.status(Status.STARTED, "", Step.RESOLVING_CONFIG)

        async def _produce() -> None:
            await asyncio.sleep(0)
            channel.status(Status.SUCCESS, "", Step.RESOLVING_CONFIG)
            channel.done(True)

        producer = asyncio.ensure_future(_produce())
        received = [event async for event in channel.stream()]
        await producer
        return received

    received = asyncio.run(scenario())

    assert [getattr(event, "status", None) for event in received[:2]] == [Status.STARTED, Status.SUCCESS]
    assert received[-1] == DoneEvent(success=True)
