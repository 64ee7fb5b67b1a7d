import asyncio
import logging
from pathlib import Path

import cv2
import numpy as np

from config import CAPTURE_DIR
from processing.errors import CaptureFailure, SaveFailure
from state.celebration import CaptureArtifact

logger = logging.getLogger("uvicorn.error")


def square_selfie_crop(frame_bgr: np.ndarray) -> np.ndarray:
    """Centre-crop to a square and mirror horizontally, like the preview the user saw."""
    h, w = frame_bgr.shape[:2]
    size = min(w, h)
    x = (w - size) // 2
    y = (h - size) // 2
    square = frame_bgr[y:y+size, x:x+size]
    return cv2.flip(square, 1)


def _encode_png(image: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", image)
    if not ok:
        raise CaptureFailure("Could not encode photo")
    return buf.tobytes()


class PhotoBooth:
    def __init__(self, frame_source, capture_dir: Path = CAPTURE_DIR):
        self.frame_source = frame_source
        self.capture_dir = Path(capture_dir)

    async def capture(self) -> CaptureArtifact:
        frame = getattr(self.frame_source, "latest_frame", None)
        if frame is None or frame.size == 0:
            raise CaptureFailure("No camera frame available")

        try:
            image = square_selfie_crop(frame)
            png_bytes = await asyncio.to_thread(_encode_png, image)
        except cv2.error as e:
            raise CaptureFailure(f"Could not process photo: {e}") from e
        logger.info(f"[Capture] photo captured: {image.shape[1]}x{image.shape[0]}, {len(png_bytes)} bytes")
        return CaptureArtifact(image=image, png_bytes=png_bytes)

    async def save(self, artifact: CaptureArtifact) -> Path:
        stamp = artifact.taken_at.strftime("%Y%m%d-%H%M%S") if artifact.taken_at else "undated"
        path = self.capture_dir / f"birthday-polaroid-{stamp}.png"
        try:
            await asyncio.to_thread(self._write, path, artifact.png_bytes)
        except OSError as e:
            raise SaveFailure(f"Could not save photo: {e}") from e
        logger.info(f"[Capture] photo saved to {path}")
        return path

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
