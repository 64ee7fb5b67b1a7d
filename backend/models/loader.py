from pathlib import Path

from config import LANDMARKER_PATH
from models.registry import ModelRegistry


def _load_landmarker_asset(path: Path) -> bytes | None:
    if not path.is_file():
        print(f"Face landmarker not found at {path}; sessions will use the manual fallback")
        return None
    data = path.read_bytes()
    print(f"Loaded face landmarker: {path.name} ({len(data) / 1e6:.1f} MB)")
    return data


def load_all_models(landmarker_path: Path = LANDMARKER_PATH) -> ModelRegistry:
    """Read model assets once; each session builds its own landmarker from the buffer."""
    registry = ModelRegistry(landmarker_path=Path(landmarker_path))
    registry.landmarker_model = _load_landmarker_asset(registry.landmarker_path)
    return registry
