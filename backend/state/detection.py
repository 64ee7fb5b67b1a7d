from dataclasses import dataclass, field

from config import BLOW_FRAMES_REQUIRED


@dataclass
class DebounceState:
    consecutive_blow_frames: int = 0
    threshold: int = field(default_factory=lambda: BLOW_FRAMES_REQUIRED)
    confirmed: bool = False
