from datetime import datetime
from enum import Enum, IntEnum
from dataclasses import dataclass, field

import numpy as np

from config import CANDLE_COUNT


class CelebrationStage(str, Enum):
    IDLE = "IDLE"
    CANDLES_LIT = "CANDLES_LIT"
    AWAITING_GESTURE = "AWAITING_GESTURE"
    BLOWING = "BLOWING"
    CAPTURE_SEQUENCE = "CAPTURE_SEQUENCE"
    REVEALED = "REVEALED"


class CaptureStep(IntEnum):
    PENDING = 0
    OVERLAY_SETTLE = 1
    CAMERA_ENTER = 2
    FOCUS_SETTLE = 3
    COUNTDOWN = 4
    CAPTURE = 5
    SHUTTER = 6
    CAMERA_EXIT = 7
    TEARDOWN = 8
    TIMESTAMP = 9


@dataclass
class Candle:
    id: int
    lit: bool = True


@dataclass
class CaptureArtifact:
    image: np.ndarray
    png_bytes: bytes
    taken_at: datetime | None = None

    @property
    def timestamp_label(self) -> str | None:
        # CCD camera style, e.g. "03.14.2026  18:05"
        if self.taken_at is None:
            return None
        return self.taken_at.strftime("%m.%d.%Y  %H:%M")


@dataclass
class CelebrationState:
    stage: CelebrationStage = CelebrationStage.IDLE
    candles: list[Candle] = field(default_factory=lambda: [Candle(i) for i in range(CANDLE_COUNT)])
    capture_step: CaptureStep = CaptureStep.PENDING

    camera_available: bool = False
    manual_fallback: bool = False
    skip_requested: bool = False

    artifact: CaptureArtifact | None = None

    @property
    def candles_lit(self) -> int:
        return sum(1 for c in self.candles if c.lit)

    def extinguish(self, candle_id: int) -> bool:
        candle = self.candles[candle_id]
        if not candle.lit:
            return False
        candle.lit = False
        return True
