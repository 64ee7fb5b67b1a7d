from enum import Enum

from config import BLOW_FRAME_DECAY
from state.detection import DebounceState


class GestureEvent(str, Enum):
    NONE = "NONE"
    STILL_BLOWING = "STILL_BLOWING"
    CONFIRMED = "CONFIRMED"


class GestureDebouncer:
    """Turns the per-frame blow signal into a single confirmed gesture.

    Each blowing frame adds one to the counter, each non-blowing frame takes
    `decay` away (floored at zero), so short detection dropouts only cost a
    little progress while a false start dies off quickly. CONFIRMED is
    returned once, on the frame where the counter reaches the threshold.
    """

    def __init__(self, threshold: int | None = None, decay: int = BLOW_FRAME_DECAY):
        self.state = DebounceState()
        if threshold is not None:
            self.state.threshold = threshold
        self.decay = decay

    @property
    def confirmed(self) -> bool:
        return self.state.confirmed

    def observe(self, signal: bool) -> GestureEvent:
        state = self.state
        if not signal:
            state.consecutive_blow_frames = max(0, state.consecutive_blow_frames - self.decay)
            return GestureEvent.NONE

        state.consecutive_blow_frames += 1
        if state.confirmed:
            return GestureEvent.NONE
        if state.consecutive_blow_frames >= state.threshold:
            state.confirmed = True
            return GestureEvent.CONFIRMED
        return GestureEvent.STILL_BLOWING
