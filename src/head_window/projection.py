from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .config import CalibrationConfig
from .estimator import ViewerPosition

SCREEN_CENTER = (0.0, 0.0, 0.0)
WORLD_UP = (0.0, 1.0, 0.0)


@dataclass(frozen=True)
class Frustum:
    left: float
    right: float
    bottom: float
    top: float
    near: float
    far: float

    @property
    def is_symmetric(self) -> bool:
        return bool(np.isclose(self.left, -self.right) and np.isclose(self.bottom, -self.top))


@dataclass(frozen=True)
class OffAxisView:
    """Everything the renderer needs for one frame."""

    frustum: Frustum
    projection_matrix: np.ndarray
    view_matrix: np.ndarray
    camera_position: Tuple[float, float, float]
    camera_look_at: Tuple[float, float, float]


def screen_half_extents(config: CalibrationConfig, aspect: Optional[float] = None) -> Tuple[float, float]:
    half_height = config.screen_height_m * 0.5
    if aspect is None or aspect <= 0.0:
        return config.screen_width_m * 0.5, half_height
    # Keep the physical height and widen or narrow the window to the viewport.
    return half_height * float(aspect), half_height


def compute_frustum(
    position: ViewerPosition,
    config: CalibrationConfig,
    aspect: Optional[float] = None,
) -> Frustum:
    """Near-plane bounds of the frustum from the eye through the screen rectangle.

    The screen is centered at the origin in the z=0 plane. Each edge is the
    screen edge, taken relative to the eye, scaled by ``near / z``. Depth is
    floored at the near plane so the frustum never inverts.
    """
    half_width, half_height = screen_half_extents(config, aspect)
    near = config.near_plane
    z = max(float(position.z), near)
    scale = near / z
    return Frustum(
        left=(-half_width - position.x) * scale,
        right=(half_width - position.x) * scale,
        bottom=(-half_height - position.y) * scale,
        top=(half_height - position.y) * scale,
        near=near,
        far=config.far_plane,
    )


def perspective_matrix(frustum: Frustum) -> np.ndarray:
    """OpenGL ``glFrustum`` matrix (column vectors, clip z in [-1, 1])."""
    l, r = frustum.left, frustum.right
    b, t = frustum.bottom, frustum.top
    n, f = frustum.near, frustum.far
    return np.array(
        [
            [2.0 * n / (r - l), 0.0, (r + l) / (r - l), 0.0],
            [0.0, 2.0 * n / (t - b), (t + b) / (t - b), 0.0],
            [0.0, 0.0, -(f + n) / (f - n), -2.0 * f * n / (f - n)],
            [0.0, 0.0, -1.0, 0.0],
        ],
        dtype=np.float64,
    )


def _normalize(vector: np.ndarray) -> np.ndarray:
    magnitude = float(np.linalg.norm(vector))
    if magnitude < 1e-12:
        raise ValueError("Cannot normalize a zero-length vector")
    return vector / magnitude


def look_at_matrix(
    eye: Sequence[float],
    target: Sequence[float] = SCREEN_CENTER,
    up: Sequence[float] = WORLD_UP,
) -> np.ndarray:
    """World-to-camera matrix for a camera at ``eye`` facing ``target``."""
    eye_v = np.asarray(eye, dtype=np.float64)
    forward = _normalize(np.asarray(target, dtype=np.float64) - eye_v)
    side = _normalize(np.cross(forward, np.asarray(up, dtype=np.float64)))
    true_up = np.cross(side, forward)

    view = np.eye(4, dtype=np.float64)
    view[0, :3] = side
    view[1, :3] = true_up
    view[2, :3] = -forward
    view[:3, 3] = -view[:3, :3] @ eye_v
    return view


def project_viewer(
    position: ViewerPosition,
    config: CalibrationConfig,
    aspect: Optional[float] = None,
) -> OffAxisView:
    """Off-axis projection and camera placement for the current viewer position.

    The camera sits at the eye and always faces the screen center; only its
    position and frustum follow the head.
    """
    frustum = compute_frustum(position, config, aspect)
    eye = (float(position.x), float(position.y), max(float(position.z), config.near_plane))
    return OffAxisView(
        frustum=frustum,
        projection_matrix=perspective_matrix(frustum),
        view_matrix=look_at_matrix(eye, SCREEN_CENTER, WORLD_UP),
        camera_position=eye,
        camera_look_at=SCREEN_CENTER,
    )
