import asyncio
import logging
from typing import Callable

import cv2
import numpy as np

from config import CAMERA_START_TIMEOUT, FRAME_POLL_INTERVAL
from processing.errors import SourceUnavailable
from processing.face_detection import create_landmarker, detect_faces

logger = logging.getLogger("uvicorn.error")


def _close_orphaned_landmarker(future: asyncio.Future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()
    logger.info("[FrameSource] closed landmarker created after start was cancelled")


class WebSocketFrameSource:
    """Camera frames pushed by the browser as JPEG bytes.

    Only the newest frame is kept; anything that arrives while the landmarker
    is busy overwrites the pending one. The landmarker is created per session
    from the model asset loaded at startup and is closed by the processor loop
    itself once stop() has been requested.
    """

    def __init__(self, model_buffer: bytes | None, camera_enabled: bool = True,
                 start_timeout: float = CAMERA_START_TIMEOUT):
        self.model_buffer = model_buffer
        self.camera_enabled = camera_enabled
        self.start_timeout = start_timeout
        self.on_error: Callable[[str], None] | None = None

        self.latest_frame: np.ndarray | None = None
        self.frame_count = 0

        self._pending: bytes | None = None
        self._first_frame = asyncio.Event()
        self._on_frame: Callable[[list], None] | None = None
        self._landmarker = None
        self._task: asyncio.Task | None = None
        self._closed = False

    def push(self, jpeg_bytes: bytes) -> None:
        if self._closed:
            return
        # Always overwrite, we only care about the latest frame
        self._pending = jpeg_bytes
        self._first_frame.set()

    async def start(self, on_frame: Callable[[list], None]) -> None:
        if not self.camera_enabled:
            raise SourceUnavailable("client reported no camera")
        if self.model_buffer is None:
            raise SourceUnavailable("face landmarker model not loaded")

        creating = asyncio.ensure_future(asyncio.to_thread(create_landmarker, self.model_buffer))
        try:
            # The worker thread finishes even if start() is cancelled
            self._landmarker = await asyncio.shield(creating)
        except asyncio.CancelledError:
            creating.add_done_callback(_close_orphaned_landmarker)
            raise
        except Exception as e:
            raise SourceUnavailable(f"could not create face landmarker: {e}") from e

        self._on_frame = on_frame
        self._task = asyncio.create_task(self._process())

        try:
            await asyncio.wait_for(self._first_frame.wait(), timeout=self.start_timeout)
        except asyncio.TimeoutError:
            self.stop()
            raise SourceUnavailable(f"no camera frames within {self.start_timeout:.1f}s")

    async def _process(self) -> None:
        """Process the latest frame, skipping stale ones."""
        landmarker = self._landmarker
        try:
            while not self._closed:
                if self._pending is None:
                    await asyncio.sleep(FRAME_POLL_INTERVAL)
                    continue

                jpeg_bytes = self._pending
                self._pending = None

                frame = cv2.imdecode(
                    np.frombuffer(jpeg_bytes, np.uint8),
                    cv2.IMREAD_COLOR,
                )
                if frame is None:
                    if self.on_error:
                        self.on_error("Could not decode frame")
                    continue

                self.latest_frame = frame
                frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                faces = await asyncio.to_thread(detect_faces, landmarker, frame_rgb)
                self.frame_count += 1

                if self._closed:
                    break
                self._on_frame(faces)
        finally:
            logger.info(f"[FrameSource] closing landmarker after {self.frame_count} frames")
            landmarker.close()

    def stop(self) -> None:
        self._closed = True
        self._pending = None
