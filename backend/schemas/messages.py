from pydantic import BaseModel


class StageEvent(BaseModel):
    type: str = "stage"
    stage: str
    candles_lit: int
    capture_step: int = 0


class CandleEvent(BaseModel):
    type: str = "candle"
    candle_id: int
    lit: bool
    candles_lit: int


class BlowingEvent(BaseModel):
    type: str = "blowing"
    active: bool


class DetectionEvent(BaseModel):
    type: str = "detection"
    status: str  # "loading" | "ready" | "unavailable"
    manual_fallback: bool = False
    message: str | None = None


class CountdownEvent(BaseModel):
    type: str = "countdown"
    value: int


class CueEvent(BaseModel):
    type: str = "cue"
    name: str  # "glow_off" | "camera_enter" | "flash" | "camera_exit"


class CaptureEvent(BaseModel):
    type: str = "capture"
    ok: bool
    photo_png_b64: str | None = None
    timestamp: str | None = None
    message: str | None = None


class SaveEvent(BaseModel):
    type: str = "save"
    ok: bool
    filename: str | None = None
    message: str | None = None


class AudioCommand(BaseModel):
    type: str = "audio"
    action: str  # "play" | "stop" | "cue"
    sound: str | None = None


class ConfettiCommand(BaseModel):
    type: str = "confetti"
    count: int


class ErrorEvent(BaseModel):
    type: str = "error"
    message: str
