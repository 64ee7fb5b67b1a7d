import logging
from dataclasses import dataclass
from typing import Callable

from processing.blow_detection import is_blowing_pose
from processing.debounce import GestureDebouncer, GestureEvent

logger = logging.getLogger("uvicorn.error")


@dataclass
class StartResult:
    started: bool
    error: Exception | None = None


class DetectionSession:
    """Consumes face observations from one frame source and reports a blow.

    Callbacks are plain synchronous functions; they run on the event loop
    that delivers the frames. After stop() (or once the gesture is
    confirmed) no further callbacks fire.
    """

    def __init__(
        self,
        on_gesture_confirmed: Callable[[], None],
        on_blowing_changed: Callable[[bool], None] | None = None,
        on_ready: Callable[[], None] | None = None,
        frames_required: int | None = None,
    ):
        self.on_gesture_confirmed = on_gesture_confirmed
        self.on_blowing_changed = on_blowing_changed
        self.on_ready = on_ready
        self.debouncer = GestureDebouncer(threshold=frames_required)

        self.running = False
        self.ready = False
        self.blowing = False
        self.frame_count = 0

        self._source = None
        self._stopped = False
        self._released = False

    async def start(self, frame_source) -> StartResult:
        if self._stopped:
            return StartResult(started=False, error=RuntimeError("session already stopped"))
        if frame_source is None:
            return StartResult(started=False, error=RuntimeError("no frame source"))

        self._source = frame_source
        try:
            await frame_source.start(self.process_faces)
        except Exception as e:
            logger.info(f"[Detection] start failed: {type(e).__name__}: {e}")
            return StartResult(started=False, error=e)

        if self._stopped:
            # stop() raced the camera start; the source is already released
            return StartResult(started=False, error=RuntimeError("session stopped during start"))

        self.running = True
        logger.info("[Detection] frame source started")
        return StartResult(started=True)

    def process_faces(self, faces) -> None:
        """Handle one frame worth of faces (possibly empty)."""
        if not self.running:
            return
        self.frame_count += 1

        if not faces:
            self._set_blowing(False)
            self.debouncer.observe(False)
            return

        if not self.ready:
            self.ready = True
            if self.on_ready:
                self.on_ready()
            if not self.running:
                return

        blowing = is_blowing_pose(faces[0])
        self._set_blowing(blowing)
        if not self.running:
            return

        event = self.debouncer.observe(blowing)
        if self.frame_count <= 3 or self.frame_count % 30 == 0:
            logger.info(
                f"[Detection] frame #{self.frame_count} blowing={blowing}, "
                f"streak={self.debouncer.state.consecutive_blow_frames}/{self.debouncer.state.threshold}"
            )

        if event == GestureEvent.CONFIRMED:
            self.running = False
            logger.info(f"[Detection] blow confirmed after {self.frame_count} frames")
            self.on_gesture_confirmed()

    def _set_blowing(self, blowing: bool) -> None:
        if blowing == self.blowing:
            return
        self.blowing = blowing
        if self.on_blowing_changed:
            self.on_blowing_changed(blowing)

    def pause(self) -> None:
        """Stop consuming frames but keep the camera for the photo."""
        self.running = False

    def stop(self) -> None:
        self.running = False
        self._stopped = True
        if self._source is None or self._released:
            return
        self._released = True
        try:
            self._source.stop()
        finally:
            logger.info(f"[Detection] frame source released after {self.frame_count} frames")
