import asyncio
import base64
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

from pydantic import BaseModel

from config import (
    DETECTION_DELAY, CANDLE_DELAY_MIN, CANDLE_DELAY_MAX,
    AFTER_CANDLES_DELAY, NO_CAMERA_REVEAL_DELAY,
    OVERLAY_SETTLE_DELAY, CAMERA_FOCUS_DELAY, COUNTDOWN_FROM, COUNTDOWN_TICK,
    SHUTTER_HOLD, CAMERA_EXIT_DELAY,
    CONFETTI_DELAY, CONFETTI_SECOND_WAVE_DELAY, CONFETTI_FIRST_BURST, CONFETTI_SECOND_BURST,
)
from processing.detection import DetectionSession
from processing.errors import CaptureFailure, SaveFailure
from schemas.messages import (
    StageEvent, CandleEvent, BlowingEvent, DetectionEvent,
    CountdownEvent, CueEvent, CaptureEvent, SaveEvent,
)
from state.celebration import CelebrationStage, CaptureStep, CelebrationState

logger = logging.getLogger("uvicorn.error")


@dataclass
class CelebrationTimings:
    detection_delay: float = field(default_factory=lambda: DETECTION_DELAY)
    candle_delay_min: float = field(default_factory=lambda: CANDLE_DELAY_MIN)
    candle_delay_max: float = field(default_factory=lambda: CANDLE_DELAY_MAX)
    after_candles_delay: float = field(default_factory=lambda: AFTER_CANDLES_DELAY)
    no_camera_reveal_delay: float = field(default_factory=lambda: NO_CAMERA_REVEAL_DELAY)

    overlay_settle_delay: float = field(default_factory=lambda: OVERLAY_SETTLE_DELAY)
    camera_focus_delay: float = field(default_factory=lambda: CAMERA_FOCUS_DELAY)
    countdown_from: int = field(default_factory=lambda: COUNTDOWN_FROM)
    countdown_tick: float = field(default_factory=lambda: COUNTDOWN_TICK)
    shutter_hold: float = field(default_factory=lambda: SHUTTER_HOLD)
    camera_exit_delay: float = field(default_factory=lambda: CAMERA_EXIT_DELAY)

    confetti_delay: float = field(default_factory=lambda: CONFETTI_DELAY)
    confetti_second_wave_delay: float = field(default_factory=lambda: CONFETTI_SECOND_WAVE_DELAY)
    confetti_first_burst: int = field(default_factory=lambda: CONFETTI_FIRST_BURST)
    confetti_second_burst: int = field(default_factory=lambda: CONFETTI_SECOND_BURST)


class OrchestratorEvent(str, Enum):
    START = "START"
    MANUAL_CONFIRM = "MANUAL_CONFIRM"
    SKIP_CAPTURE = "SKIP_CAPTURE"
    SAVE_PHOTO = "SAVE_PHOTO"
    GESTURE_CONFIRMED = "GESTURE_CONFIRMED"
    BLOWING_CHANGED = "BLOWING_CHANGED"
    DETECTION_READY = "DETECTION_READY"


class _CaptureAborted(Exception):
    pass


class CelebrationOrchestrator:
    """Runs one celebration: candles, blow detection, polaroid, reveal.

    UI commands and detection callbacks are queued and handled one at a time
    by run(). Handlers only check the stage and flip it; the timed parts
    (lighting, blowing out, capture, reveal) run in a single background
    timeline task. Any command that is not valid for the current stage is
    dropped, never queued for later.
    """

    def __init__(
        self,
        frame_source,
        audio,
        particles,
        photo,
        emit: Callable[[BaseModel], None],
        timings: CelebrationTimings | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = datetime.now,
        frames_required: int | None = None,
    ):
        self.frame_source = frame_source
        self.audio = audio
        self.particles = particles
        self.photo = photo
        self.emit = emit
        self.timings = timings or CelebrationTimings()
        self.rng = rng or random.Random()
        self.clock = clock

        self.state = CelebrationState()
        self.detection = DetectionSession(
            on_gesture_confirmed=lambda: self._post(OrchestratorEvent.GESTURE_CONFIRMED),
            on_blowing_changed=lambda active: self._post(OrchestratorEvent.BLOWING_CHANGED, active),
            on_ready=lambda: self._post(OrchestratorEvent.DETECTION_READY),
            frames_required=frames_required,
        )

        self._events: asyncio.Queue = asyncio.Queue()
        self._timeline: asyncio.Task | None = None
        self._skip = asyncio.Event()

    @property
    def stage(self) -> CelebrationStage:
        return self.state.stage

    # --- UI commands ---

    def start(self) -> None:
        self._post(OrchestratorEvent.START)

    def manual_gesture_confirm(self) -> None:
        self._post(OrchestratorEvent.MANUAL_CONFIRM)

    def skip_capture(self) -> None:
        self._post(OrchestratorEvent.SKIP_CAPTURE)

    def save_photo(self) -> None:
        self._post(OrchestratorEvent.SAVE_PHOTO)

    # --- Event loop ---

    def _post(self, event: OrchestratorEvent, payload=None) -> None:
        self._events.put_nowait((event, payload))

    async def run(self) -> None:
        while True:
            event, payload = await self._events.get()
            try:
                await self._dispatch(event, payload)
            finally:
                self._events.task_done()

    async def settle(self) -> None:
        """Wait until every queued event is handled and no timeline is running."""
        while True:
            await self._events.join()
            timeline = self._timeline
            if timeline is not None and not timeline.done():
                await asyncio.wait({timeline})
                continue
            if self._events.empty():
                return

    async def close(self) -> None:
        if self._timeline is not None and not self._timeline.done():
            self._timeline.cancel()
            await asyncio.gather(self._timeline, return_exceptions=True)
        self.detection.stop()
        self.audio.stop()
        logger.info(f"[Celebration] closed in stage {self.state.stage.value}")

    async def _dispatch(self, event: OrchestratorEvent, payload) -> None:
        if event == OrchestratorEvent.START:
            self._on_start()
        elif event == OrchestratorEvent.MANUAL_CONFIRM:
            self._on_gesture("manual")
        elif event == OrchestratorEvent.GESTURE_CONFIRMED:
            self._on_gesture("camera")
        elif event == OrchestratorEvent.SKIP_CAPTURE:
            self._on_skip()
        elif event == OrchestratorEvent.SAVE_PHOTO:
            await self._on_save()
        elif event == OrchestratorEvent.BLOWING_CHANGED:
            if self.state.stage == CelebrationStage.AWAITING_GESTURE:
                self.emit(BlowingEvent(active=payload))
        elif event == OrchestratorEvent.DETECTION_READY:
            if self.state.stage == CelebrationStage.AWAITING_GESTURE:
                self.emit(DetectionEvent(status="ready", message="Blow out the candles!"))

    def _set_stage(self, stage: CelebrationStage) -> None:
        self.state.stage = stage
        logger.info(
            f"[Celebration] stage={stage.value}, candles_lit={self.state.candles_lit}, "
            f"capture_step={int(self.state.capture_step)}"
        )
        self.emit(StageEvent(
            stage=stage.value,
            candles_lit=self.state.candles_lit,
            capture_step=int(self.state.capture_step),
        ))

    def _run_timeline(self, coro) -> None:
        # A newer timeline supersedes one still waiting on the camera
        if self._timeline is not None and not self._timeline.done():
            self._timeline.cancel()
        self._timeline = asyncio.create_task(coro)

    # --- Handlers ---

    def _on_start(self) -> None:
        if self.state.stage != CelebrationStage.IDLE:
            logger.info(f"[Celebration] start ignored in stage {self.state.stage.value}")
            return
        self._set_stage(CelebrationStage.CANDLES_LIT)
        self.audio.play()
        self._run_timeline(self._start_detection())

    def _on_gesture(self, source: str) -> None:
        if self.state.stage != CelebrationStage.AWAITING_GESTURE:
            logger.info(f"[Celebration] {source} blow ignored in stage {self.state.stage.value}")
            return
        logger.info(f"[Celebration] blow confirmed ({source})")
        self.detection.pause()
        self._set_stage(CelebrationStage.BLOWING)
        self._run_timeline(self._blow_out_candles())

    def _on_skip(self) -> None:
        if self.state.stage not in (CelebrationStage.BLOWING, CelebrationStage.CAPTURE_SEQUENCE):
            logger.info(f"[Celebration] skip ignored in stage {self.state.stage.value}")
            return
        if self.state.skip_requested:
            return
        logger.info(f"[Celebration] skip requested at capture_step={int(self.state.capture_step)}")
        self.state.skip_requested = True
        self._skip.set()

    async def _on_save(self) -> None:
        artifact = self.state.artifact
        if self.state.stage != CelebrationStage.REVEALED or artifact is None:
            self.emit(SaveEvent(ok=False, message="No photo to save"))
            return
        try:
            path = await self.photo.save(artifact)
        except SaveFailure as e:
            logger.warning(f"[Celebration] save failed: {e}")
            self.emit(SaveEvent(ok=False, message=str(e)))
            return
        self.emit(SaveEvent(ok=True, filename=path.name))

    # --- Timelines ---

    async def _start_detection(self) -> None:
        await asyncio.sleep(self.timings.detection_delay)

        self._set_stage(CelebrationStage.AWAITING_GESTURE)
        self.emit(DetectionEvent(status="loading", message="Loading face detection…"))

        result = await self.detection.start(self.frame_source)
        if result.started:
            self.state.camera_available = True
            return

        self.state.manual_fallback = True
        self.emit(DetectionEvent(
            status="unavailable",
            manual_fallback=True,
            message=str(result.error) if result.error else None,
        ))

    async def _blow_out_candles(self) -> None:
        t = self.timings
        order = [c.id for c in self.state.candles]
        self.rng.shuffle(order)

        for candle_id in order:
            self.state.extinguish(candle_id)
            self.emit(CandleEvent(candle_id=candle_id, lit=False, candles_lit=self.state.candles_lit))
            gap = t.candle_delay_min + self.rng.random() * (t.candle_delay_max - t.candle_delay_min)
            await asyncio.sleep(gap)

        self.emit(CueEvent(name="glow_off"))
        self.audio.stop()

        await self._pause(t.after_candles_delay)
        if self.state.camera_available and not self.state.skip_requested:
            await self._capture_sequence()
        elif not self.state.skip_requested:
            await asyncio.sleep(t.no_camera_reveal_delay)

        await self._reveal()

    async def _pause(self, seconds: float) -> bool:
        """Sleep for a timeline delay. Returns False if a skip cut it short."""
        if self._skip.is_set():
            return False
        try:
            await asyncio.wait_for(self._skip.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False

    async def _hold(self, seconds: float) -> None:
        if not await self._pause(seconds):
            raise _CaptureAborted()

    def _advance(self, step: CaptureStep) -> None:
        if self._skip.is_set():
            raise _CaptureAborted()
        self.state.capture_step = step
        self._set_stage(CelebrationStage.CAPTURE_SEQUENCE)

    async def _capture_sequence(self) -> None:
        self.state.capture_step = CaptureStep.PENDING
        self._set_stage(CelebrationStage.CAPTURE_SEQUENCE)
        try:
            await self._run_capture_steps()
        except _CaptureAborted:
            logger.info(f"[Celebration] capture aborted at step {self.state.capture_step.name}")
            self.state.artifact = None
            self.detection.stop()

    async def _run_capture_steps(self) -> None:
        t = self.timings

        self._advance(CaptureStep.OVERLAY_SETTLE)
        await self._hold(t.overlay_settle_delay)

        self._advance(CaptureStep.CAMERA_ENTER)
        self.emit(CueEvent(name="camera_enter"))

        self._advance(CaptureStep.FOCUS_SETTLE)
        await self._hold(t.camera_focus_delay)

        self._advance(CaptureStep.COUNTDOWN)
        for n in range(t.countdown_from, 0, -1):
            self.emit(CountdownEvent(value=n))
            await self._hold(t.countdown_tick)

        self._advance(CaptureStep.CAPTURE)
        artifact = await self._take_photo()

        self._advance(CaptureStep.SHUTTER)
        self.emit(CueEvent(name="flash"))
        self.audio.cue("shutter")
        await self._hold(t.shutter_hold)

        self._advance(CaptureStep.CAMERA_EXIT)
        self.emit(CueEvent(name="camera_exit"))
        await self._hold(t.camera_exit_delay)

        self._advance(CaptureStep.TEARDOWN)
        self.detection.stop()

        self._advance(CaptureStep.TIMESTAMP)
        if artifact is None:
            return
        artifact.taken_at = self.clock()
        self.state.artifact = artifact
        self.emit(CaptureEvent(
            ok=True,
            photo_png_b64=base64.b64encode(artifact.png_bytes).decode("ascii"),
            timestamp=artifact.timestamp_label,
        ))

    async def _take_photo(self):
        try:
            return await self.photo.capture()
        except CaptureFailure as e:
            logger.warning(f"[Celebration] capture failed: {e}")
            self.emit(CaptureEvent(ok=False, message=str(e)))
            return None
        except Exception as e:
            logger.warning(f"[Celebration] capture error: {type(e).__name__}: {e}")
            self.emit(CaptureEvent(ok=False, message="Could not take photo"))
            return None

    async def _reveal(self) -> None:
        if self.state.stage == CelebrationStage.REVEALED:
            return
        t = self.timings
        self.detection.stop()
        self.audio.stop()
        self._set_stage(CelebrationStage.REVEALED)

        await asyncio.sleep(t.confetti_delay)
        self.particles.burst(t.confetti_first_burst)
        await asyncio.sleep(t.confetti_second_wave_delay)
        self.particles.burst(t.confetti_second_burst)
