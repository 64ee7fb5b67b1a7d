import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")
load_dotenv(Path(__file__).resolve().parent / ".env")

BASE_DIR = Path(__file__).resolve().parent

# Model / output paths
LANDMARKER_PATH = BASE_DIR / os.getenv("LANDMARKER_PATH", "weights/face_landmarker.task")
CAPTURE_DIR = BASE_DIR / os.getenv("CAPTURE_DIR", "captures")

# Mouth landmarks (MediaPipe Face Mesh indices)
MOUTH_TOP = 13
MOUTH_BOTTOM = 14
MOUTH_LEFT = 78
MOUTH_RIGHT = 308

# Blow pose: slightly open, narrow, roughly circular mouth
MOUTH_MIN_WIDTH = float(os.getenv("MOUTH_MIN_WIDTH", "0.001"))
BLOW_MIN_OPEN = float(os.getenv("BLOW_MIN_OPEN", "0.01"))
BLOW_MAX_WIDTH = float(os.getenv("BLOW_MAX_WIDTH", "0.15"))
BLOW_MIN_RATIO = float(os.getenv("BLOW_MIN_RATIO", "0.25"))

# Debounce
BLOW_FRAMES_REQUIRED = int(os.getenv("BLOW_FRAMES_REQUIRED", "15"))
BLOW_FRAME_DECAY = int(os.getenv("BLOW_FRAME_DECAY", "2"))

# Camera
CAMERA_START_TIMEOUT = float(os.getenv("CAMERA_START_TIMEOUT", "10.0"))
FRAME_POLL_INTERVAL = 0.01

# Celebration timeline (seconds)
CANDLE_COUNT = 3
DETECTION_DELAY = float(os.getenv("DETECTION_DELAY", "1.4"))
CANDLE_DELAY_MIN = float(os.getenv("CANDLE_DELAY_MIN", "0.25"))
CANDLE_DELAY_MAX = float(os.getenv("CANDLE_DELAY_MAX", "0.45"))
AFTER_CANDLES_DELAY = float(os.getenv("AFTER_CANDLES_DELAY", "0.8"))
NO_CAMERA_REVEAL_DELAY = float(os.getenv("NO_CAMERA_REVEAL_DELAY", "0.6"))

# Polaroid capture
OVERLAY_SETTLE_DELAY = float(os.getenv("OVERLAY_SETTLE_DELAY", "0.4"))
CAMERA_FOCUS_DELAY = float(os.getenv("CAMERA_FOCUS_DELAY", "2.0"))
COUNTDOWN_FROM = 3
COUNTDOWN_TICK = float(os.getenv("COUNTDOWN_TICK", "0.9"))
SHUTTER_HOLD = float(os.getenv("SHUTTER_HOLD", "0.4"))
CAMERA_EXIT_DELAY = float(os.getenv("CAMERA_EXIT_DELAY", "0.8"))

# Reveal
CONFETTI_DELAY = float(os.getenv("CONFETTI_DELAY", "1.15"))
CONFETTI_SECOND_WAVE_DELAY = float(os.getenv("CONFETTI_SECOND_WAVE_DELAY", "1.5"))
CONFETTI_FIRST_BURST = int(os.getenv("CONFETTI_FIRST_BURST", "200"))
CONFETTI_SECOND_BURST = int(os.getenv("CONFETTI_SECOND_BURST", "80"))

# Server
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
