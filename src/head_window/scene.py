from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .projection import OffAxisView

Color = Tuple[int, int, int]


@dataclass
class Primitive:
    segments: np.ndarray  # [M, 2, 3] world-space line segments
    color: Color
    thickness: int = 1


def _hex_to_bgr(value: int) -> Color:
    return (value & 0xFF, (value >> 8) & 0xFF, (value >> 16) & 0xFF)


def _rotation(rx: float, ry: float) -> np.ndarray:
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    rot_x = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    rot_y = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    return rot_y @ rot_x


def _loop(points: np.ndarray) -> np.ndarray:
    return np.stack([points, np.roll(points, -1, axis=0)], axis=1)


def cube_segments(center: Tuple[float, float, float], size: float, rx: float = 0.0, ry: float = 0.0) -> np.ndarray:
    h = size * 0.5
    corners = np.array(
        [[sx * h, sy * h, sz * h] for sx in (-1, 1) for sy in (-1, 1) for sz in (-1, 1)],
        dtype=np.float64,
    )
    corners = corners @ _rotation(rx, ry).T + np.asarray(center, dtype=np.float64)
    # Corners differing in exactly one coordinate share an edge.
    edges = [(i, j) for i in range(8) for j in range(i + 1, 8) if bin(i ^ j).count("1") == 1]
    return np.array([[corners[i], corners[j]] for i, j in edges], dtype=np.float64)


def sphere_segments(center: Tuple[float, float, float], radius: float, steps: int = 32) -> np.ndarray:
    t = np.linspace(0.0, 2.0 * math.pi, steps, endpoint=False)
    c, s = np.cos(t) * radius, np.sin(t) * radius
    zero = np.zeros_like(t)
    rings = [np.stack(axes, axis=1) for axes in ((c, s, zero), (c, zero, s), (zero, c, s))]
    return np.concatenate([_loop(ring + np.asarray(center)) for ring in rings], axis=0)


def grid_segments(size: float, divisions: int, z: float) -> np.ndarray:
    half = size * 0.5
    ticks = np.linspace(-half, half, divisions + 1)
    vertical = [[[t, -half, z], [t, half, z]] for t in ticks]
    horizontal = [[[-half, t, z], [half, t, z]] for t in ticks]
    return np.array(vertical + horizontal, dtype=np.float64)


def room_scene() -> List[Primitive]:
    """A shallow box behind the screen with objects at several depths."""
    back_wall = _loop(np.array([[-0.5, -0.3, -0.3], [0.5, -0.3, -0.3], [0.5, 0.3, -0.3], [-0.5, 0.3, -0.3]]))
    floor = _loop(np.array([[-0.5, -0.3, -0.5], [0.5, -0.3, -0.5], [0.5, -0.3, 0.5], [-0.5, -0.3, 0.5]]))
    primitives = [
        Primitive(back_wall, _hex_to_bgr(0x4A5568), 2),
        Primitive(grid_segments(1.0, 10, -0.29), _hex_to_bgr(0x00FF00)),
        Primitive(floor, _hex_to_bgr(0x2D3748), 2),
    ]

    colors = (0xFF6B6B, 0x4ECDC4, 0xFFE66D, 0x95E1D3, 0xFF6B9D)
    positions = ((-0.2, 0.1, -0.1), (0.2, -0.05, -0.15), (0.0, 0.15, -0.2), (-0.15, -0.1, -0.05), (0.15, 0.0, -0.25))
    for i, (color, pos) in enumerate(zip(colors, positions)):
        segments = cube_segments(pos, 0.08, rx=0.6 * (i + 1), ry=0.45 * (i + 2))
        primitives.append(Primitive(segments, _hex_to_bgr(color), 2))

    primitives.append(Primitive(sphere_segments((0.0, 0.0, -0.12), 0.06), _hex_to_bgr(0x4A9EFF)))
    return primitives


class WireframeScene:
    """Draws line primitives through an off-axis view into an OpenCV image."""

    BACKGROUND = _hex_to_bgr(0x1A1A2E)
    _PIXEL_LIMIT = 1e5

    def __init__(self, width: int, height: int, primitives: Optional[List[Primitive]] = None) -> None:
        self.width = int(width)
        self.height = int(height)
        self.primitives = room_scene() if primitives is None else primitives
        self.last_image: Optional[np.ndarray] = None

    def _clip_near(self, cam: np.ndarray, near: float) -> Optional[np.ndarray]:
        # Camera looks down -z; keep the part of the segment with z <= -near.
        a, b = cam
        za, zb = a[2] + near, b[2] + near
        if za > 0.0 and zb > 0.0:
            return None
        if za > 0.0:
            a = a + (b - a) * (za / (za - zb))
        elif zb > 0.0:
            b = b + (a - b) * (zb / (zb - za))
        return np.stack([a, b])

    def _to_pixels(self, points: np.ndarray, projection: np.ndarray) -> np.ndarray:
        homogeneous = np.concatenate([points, np.ones((len(points), 1))], axis=1)
        clip = homogeneous @ projection.T
        ndc = clip[:, :2] / clip[:, 3:4]
        px = (ndc[:, 0] + 1.0) * 0.5 * self.width
        py = (1.0 - ndc[:, 1]) * 0.5 * self.height
        return np.clip(np.stack([px, py], axis=1), -self._PIXEL_LIMIT, self._PIXEL_LIMIT)

    def project_segments(self, segments: np.ndarray, view: OffAxisView) -> List[np.ndarray]:
        """Pixel coordinates of the visible part of each segment."""
        near = view.frustum.near
        rotation = view.view_matrix[:3, :3]
        translation = view.view_matrix[:3, 3]
        out = []
        for segment in segments:
            clipped = self._clip_near(segment @ rotation.T + translation, near)
            if clipped is None:
                continue
            out.append(self._to_pixels(clipped, view.projection_matrix))
        return out

    def render(self, view: OffAxisView, image: Optional[np.ndarray] = None) -> np.ndarray:
        if image is None:
            image = np.empty((self.height, self.width, 3), dtype=np.uint8)
            image[:] = self.BACKGROUND
        for primitive in self.primitives:
            for a, b in self.project_segments(primitive.segments, view):
                cv2.line(
                    image,
                    (int(round(a[0])), int(round(a[1]))),
                    (int(round(b[0])), int(round(b[1]))),
                    primitive.color,
                    primitive.thickness,
                    cv2.LINE_AA,
                )
        self.last_image = image
        return image
