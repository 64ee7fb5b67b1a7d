from dataclasses import dataclass
from pathlib import Path


@dataclass
class ModelRegistry:
    landmarker_path: Path | None = None
    landmarker_model: bytes | None = None

    @property
    def landmarker_loaded(self) -> bool:
        return self.landmarker_model is not None
