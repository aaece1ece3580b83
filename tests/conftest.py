from typing import List, Optional, Tuple

import numpy as np
import pytest

from head_window.config import CalibrationConfig
from head_window.topology import FACE_MESH_LANDMARK_COUNT, LEFT_EYE_INDEX, RIGHT_EYE_INDEX


def make_landmarks(
    left: Tuple[float, float],
    right: Tuple[float, float],
    count: int = FACE_MESH_LANDMARK_COUNT,
) -> np.ndarray:
    points = np.full((count, 3), 0.5, dtype=np.float32)
    points[:, 2] = 0.0
    points[LEFT_EYE_INDEX, :2] = left
    points[RIGHT_EYE_INDEX, :2] = right
    return points


def centered_eyes(separation: float, center: Tuple[float, float] = (0.5, 0.5)) -> np.ndarray:
    cx, cy = center
    return make_landmarks((cx - separation / 2, cy), (cx + separation / 2, cy))


class ScriptedDetector:
    def __init__(self, outputs: List[Optional[np.ndarray]]) -> None:
        self.outputs = list(outputs)
        self.calls = 0

    def __call__(self, frame: np.ndarray) -> Optional[np.ndarray]:
        self.calls += 1
        if not self.outputs:
            return None
        return self.outputs.pop(0)


@pytest.fixture
def config() -> CalibrationConfig:
    return CalibrationConfig()
