"""Tests for the detection session lifecycle and callbacks."""

from __future__ import annotations

import asyncio

import pytest

from fakes import FakeFrameSource, blowing_face, smiling_face
from processing.detection import DetectionSession
from processing.errors import SourceUnavailable


class _Callbacks:
    def __init__(self):
        self.confirmed = 0
        self.ready = 0
        self.blowing: list[bool] = []

    def session(self, **kwargs) -> DetectionSession:
        return DetectionSession(
            on_gesture_confirmed=self._on_confirmed,
            on_blowing_changed=self.blowing.append,
            on_ready=self._on_ready,
            **kwargs,
        )

    def _on_confirmed(self) -> None:
        self.confirmed += 1

    def _on_ready(self) -> None:
        self.ready += 1


async def _started(cb: _Callbacks, **kwargs) -> tuple[DetectionSession, FakeFrameSource]:
    source = FakeFrameSource()
    session = cb.session(**kwargs)
    result = await session.start(source)
    assert result.started
    assert session.running
    return session, source


@pytest.mark.asyncio
async def test_confirms_once_after_threshold_frames():
    cb = _Callbacks()
    session, source = await _started(cb)

    for _ in range(14):
        source.feed([blowing_face()])
    assert cb.confirmed == 0

    source.feed([blowing_face()])
    assert cb.confirmed == 1
    assert not session.running

    for _ in range(20):
        source.feed([blowing_face()])
    assert cb.confirmed == 1


@pytest.mark.asyncio
async def test_ready_fires_on_first_face_only():
    cb = _Callbacks()
    _, source = await _started(cb)

    source.feed([])
    source.feed([])
    assert cb.ready == 0

    source.feed([smiling_face()])
    source.feed([smiling_face()])
    assert cb.ready == 1


@pytest.mark.asyncio
async def test_blowing_changed_only_on_transitions():
    cb = _Callbacks()
    _, source = await _started(cb)

    source.feed([smiling_face()])
    source.feed([blowing_face()])
    source.feed([blowing_face()])
    source.feed([smiling_face()])
    source.feed([smiling_face()])
    assert cb.blowing == [True, False]


@pytest.mark.asyncio
async def test_no_face_counts_as_not_blowing():
    cb = _Callbacks()
    session, source = await _started(cb, frames_required=5)

    for _ in range(4):
        source.feed([blowing_face()])
    source.feed([])
    assert cb.blowing == [True, False]
    assert session.debouncer.state.consecutive_blow_frames == 2

    source.feed([blowing_face()])
    source.feed([blowing_face()])
    assert cb.confirmed == 0
    source.feed([blowing_face()])
    assert cb.confirmed == 1


@pytest.mark.asyncio
async def test_start_failure_is_reported_not_raised():
    cb = _Callbacks()
    source = FakeFrameSource(error=SourceUnavailable("permission denied"))
    session = cb.session()

    result = await session.start(source)

    assert not result.started
    assert isinstance(result.error, SourceUnavailable)
    assert not session.running

    session.stop()
    session.stop()
    assert source.stops == 1


@pytest.mark.asyncio
async def test_start_without_source_fails():
    session = _Callbacks().session()
    result = await session.start(None)
    assert not result.started


@pytest.mark.asyncio
async def test_stop_is_idempotent_and_silences_callbacks():
    cb = _Callbacks()
    session, source = await _started(cb)

    session.stop()
    session.stop()
    assert source.stops == 1

    for _ in range(30):
        source.feed([blowing_face()])
    assert cb.confirmed == 0
    assert cb.ready == 0
    assert cb.blowing == []


@pytest.mark.asyncio
async def test_stop_before_start_completes():
    cb = _Callbacks()
    gate = asyncio.Event()
    source = FakeFrameSource(gate=gate)
    session = cb.session()

    start_task = asyncio.create_task(session.start(source))
    await asyncio.sleep(0)
    session.stop()
    gate.set()
    result = await start_task

    assert not result.started
    assert not session.running
    assert source.stops == 1


@pytest.mark.asyncio
async def test_stop_before_start_never_touches_source():
    session = _Callbacks().session()
    session.stop()
    source = FakeFrameSource()

    result = await session.start(source)

    assert not result.started
    assert source.starts == 0
    assert source.stops == 0


@pytest.mark.asyncio
async def test_pause_keeps_camera():
    cb = _Callbacks()
    session, source = await _started(cb)

    session.pause()
    source.feed([blowing_face()])
    assert cb.ready == 0
    assert source.stops == 0
