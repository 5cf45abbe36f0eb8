import asyncio

import pytest

from lib.shared.messagetracker import MessageTracker


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_push_keeps_newest(clock):
    tracker = MessageTracker(keep=2, minAge=20, clock=clock)
    assert tracker.Push("k", "a") == []
    assert tracker.Push("k", "b") == []
    clock.now = 5
    assert tracker.Push("k", "c") == [("a", 15)]
    assert tracker.GetTracked("k") == ["b", "c"]


def test_keys_are_independent(clock):
    tracker = MessageTracker(keep=1, minAge=20, clock=clock)
    tracker.Push("chan-1", "a")
    assert tracker.Push("chan-2", "b") == []
    assert tracker.GetTracked("chan-1") == ["a"]


@pytest.mark.asyncio
async def test_old_enough_message_is_cleaned_right_away(clock):
    cleaned = []

    async def action(handle):
        cleaned.append(handle)

    tracker = MessageTracker(keep=1, minAge=20, clock=clock)
    await tracker.Track("k", "a", action)
    clock.now = 30
    await tracker.Track("k", "b", action)
    assert cleaned == ["a"]


@pytest.mark.asyncio
async def test_young_message_waits_for_min_age(clock):
    cleaned = []
    delays = []

    async def action(handle):
        cleaned.append(handle)

    async def sleep(delay):
        delays.append(delay)

    tracker = MessageTracker(keep=1, minAge=20, clock=clock, sleep=sleep)
    await tracker.Track("k", "a", action)
    clock.now = 8
    await tracker.Track("k", "b", action)
    assert cleaned == []
    for _ in range(3):
        await asyncio.sleep(0)
    assert delays == [12]
    assert cleaned == ["a"]


@pytest.mark.asyncio
async def test_failing_cleanup_is_swallowed(clock):
    async def action(handle):
        raise RuntimeError("already deleted")

    tracker = MessageTracker(keep=1, minAge=0, clock=clock)
    await tracker.Track("k", "a", action)
    await tracker.Track("k", "b", action)
    assert tracker.GetTracked("k") == ["b"]


@pytest.mark.asyncio
async def test_none_handle_is_ignored(clock):
    tracker = MessageTracker(keep=1, minAge=0, clock=clock)
    await tracker.Track("k", None, None)
    assert tracker.GetTracked("k") == []


def test_least_recently_used_keys_are_forgotten(clock):
    tracker = MessageTracker(keep=1, minAge=0, clock=clock, maxKeys=2)
    tracker.Push("user-1", "a")
    tracker.Push("user-2", "b")
    tracker.Push("user-1", "c")
    tracker.Push("user-3", "d")
    assert tracker.GetKeyCount() == 2
    assert tracker.GetTracked("user-2") == []
    assert tracker.GetTracked("user-1") == ["c"]
    assert tracker.GetTracked("user-3") == ["d"]
