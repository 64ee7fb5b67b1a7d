"""Tests for the WebSocket-fed camera source."""

from __future__ import annotations

import asyncio
import time

import cv2
import numpy as np
import pytest

import processing.frame_source as frame_source_module
from processing.errors import SourceUnavailable
from processing.frame_source import WebSocketFrameSource


class _FakeLandmarker:
    def __init__(self):
        self.closed = False

    def close(self) -> None:
        self.closed = True


def _jpeg(h=8, w=8) -> bytes:
    ok, buf = cv2.imencode(".jpg", np.full((h, w, 3), 128, np.uint8))
    assert ok
    return buf.tobytes()


@pytest.fixture
def landmarker(monkeypatch):
    lm = _FakeLandmarker()
    monkeypatch.setattr(frame_source_module, "create_landmarker", lambda model: lm)
    monkeypatch.setattr(frame_source_module, "detect_faces", lambda landmarker, rgb: ["face"])
    return lm


@pytest.mark.asyncio
async def test_camera_disabled_is_unavailable():
    source = WebSocketFrameSource(b"model", camera_enabled=False)
    with pytest.raises(SourceUnavailable):
        await source.start(lambda faces: None)


@pytest.mark.asyncio
async def test_missing_model_is_unavailable():
    source = WebSocketFrameSource(None)
    with pytest.raises(SourceUnavailable):
        await source.start(lambda faces: None)


@pytest.mark.asyncio
async def test_landmarker_creation_error_is_unavailable(monkeypatch):
    def _boom(model):
        raise RuntimeError("bad model")

    monkeypatch.setattr(frame_source_module, "create_landmarker", _boom)
    source = WebSocketFrameSource(b"model")
    with pytest.raises(SourceUnavailable):
        await source.start(lambda faces: None)


@pytest.mark.asyncio
async def test_delivers_faces_and_keeps_latest_frame(landmarker):
    delivered = []
    got_frame = asyncio.Event()

    def on_frame(faces):
        delivered.append(faces)
        got_frame.set()

    source = WebSocketFrameSource(b"model", start_timeout=1.0)
    source.push(_jpeg(8, 12))
    await source.start(on_frame)
    await asyncio.wait_for(got_frame.wait(), timeout=1.0)

    assert delivered == [["face"]]
    assert source.latest_frame.shape == (8, 12, 3)
    assert source.frame_count == 1

    source.stop()
    await asyncio.wait_for(source._task, timeout=1.0)
    assert landmarker.closed


@pytest.mark.asyncio
async def test_no_frames_times_out(landmarker):
    source = WebSocketFrameSource(b"model", start_timeout=0.05)
    with pytest.raises(SourceUnavailable):
        await source.start(lambda faces: None)

    # The processor loop winds down without an explicit stop()
    await asyncio.wait_for(source._task, timeout=1.0)
    assert landmarker.closed

    source.push(_jpeg())
    assert source._pending is None


@pytest.mark.asyncio
async def test_cancelled_start_closes_landmarker_built_in_background(monkeypatch):
    created = []

    def _slow_create(model):
        time.sleep(0.2)
        lm = _FakeLandmarker()
        created.append(lm)
        return lm

    monkeypatch.setattr(frame_source_module, "create_landmarker", _slow_create)
    source = WebSocketFrameSource(b"model", start_timeout=1.0)

    start_task = asyncio.create_task(source.start(lambda faces: None))
    await asyncio.sleep(0.05)
    start_task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await start_task
    source.stop()

    for _ in range(100):
        if created and created[0].closed:
            break
        await asyncio.sleep(0.01)

    assert len(created) == 1
    assert created[0].closed
    assert source._task is None


@pytest.mark.asyncio
async def test_undecodable_frame_reports_error(landmarker):
    errors = []
    source = WebSocketFrameSource(b"model", start_timeout=1.0)
    source.on_error = errors.append
    source.push(b"not a jpeg")
    await source.start(lambda faces: None)

    for _ in range(50):
        if errors:
            break
        await asyncio.sleep(0.01)
    source.stop()
    await asyncio.wait_for(source._task, timeout=1.0)

    assert errors == ["Could not decode frame"]
    assert source.latest_frame is None


@pytest.mark.asyncio
async def test_push_after_stop_is_dropped(landmarker):
    source = WebSocketFrameSource(b"model", start_timeout=1.0)
    source.push(_jpeg())
    await source.start(lambda faces: None)
    source.stop()
    source.push(_jpeg())
    await asyncio.wait_for(source._task, timeout=1.0)
    assert source._pending is None
