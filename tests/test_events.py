"""Tests for the progress event channel."""
import asyncio
import threading
from pathlib import Path

import pytest

from bunkr_uploader.utils.events import ALL_EVENTS, ProgressChannel, ProgressEvent, ProgressState


def _event(name, state):
    return ProgressEvent(Path(name), state)


def test_terminal_states():
    assert ProgressState.SUCCEEDED.is_terminal
    assert ProgressState.FAILED.is_terminal
    assert ProgressState.CANCELLED.is_terminal
    assert not ProgressState.QUEUED.is_terminal
    assert not ProgressState.RETRYING.is_terminal


@pytest.mark.asyncio
async def test_events_are_delivered_in_publish_order():
    channel = ProgressChannel()
    seen = []
    channel.on(ALL_EVENTS, lambda e: seen.append((e.file_path.name, e.state)))

    channel.publish(_event("a", ProgressState.QUEUED))
    channel.publish(_event("a", ProgressState.IN_PROGRESS))
    channel.publish(_event("a", ProgressState.SUCCEEDED))
    await channel.aclose()

    assert seen == [
        ("a", ProgressState.QUEUED),
        ("a", ProgressState.IN_PROGRESS),
        ("a", ProgressState.SUCCEEDED),
    ]


@pytest.mark.asyncio
async def test_state_specific_subscription():
    channel = ProgressChannel()
    failed = []
    channel.on("failed", failed.append)

    channel.publish(_event("a", ProgressState.SUCCEEDED))
    channel.publish(_event("b", ProgressState.FAILED))
    await channel.aclose()

    assert [e.file_path.name for e in failed] == ["b"]


@pytest.mark.asyncio
async def test_raising_listener_does_not_stop_others():
    channel = ProgressChannel()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    channel.on(ALL_EVENTS, broken)
    channel.on(ALL_EVENTS, seen.append)

    channel.publish(_event("a", ProgressState.QUEUED))
    channel.publish(_event("b", ProgressState.QUEUED))
    await channel.aclose()

    assert len(seen) == 2


@pytest.mark.asyncio
async def test_publish_does_not_wait_for_slow_listener():
    channel = ProgressChannel()
    release = asyncio.Event()
    seen = []

    async def slow(event):
        await release.wait()
        seen.append(event)

    channel.on(ALL_EVENTS, slow)
    for i in range(5):
        channel.publish(_event(str(i), ProgressState.QUEUED))

    # publish returned without delivering anything yet
    assert seen == []
    release.set()
    await channel.aclose()
    assert len(seen) == 5


@pytest.mark.asyncio
async def test_off_removes_listener():
    channel = ProgressChannel()
    seen = []
    channel.on(ALL_EVENTS, seen.append)
    channel.off(ALL_EVENTS, seen.append)

    channel.publish(_event("a", ProgressState.QUEUED))
    await channel.aclose()

    assert seen == []


@pytest.mark.asyncio
async def test_blocking_sync_listener_does_not_block_the_loop():
    channel = ProgressChannel()
    gate = threading.Event()
    seen = []

    def blocking_listener(event):
        gate.wait(timeout=5)
        seen.append(event.file_path.name)

    channel.on(ALL_EVENTS, blocking_listener)
    channel.publish(_event("a", ProgressState.QUEUED))
    channel.publish(_event("b", ProgressState.QUEUED))

    ticks = 0
    for _ in range(5):
        await asyncio.sleep(0.01)
        ticks += 1
    assert ticks == 5
    assert seen == []

    gate.set()
    await asyncio.wait_for(channel.aclose(), timeout=5)
    assert seen == ["a", "b"]
