from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .config import CalibrationConfig
from .filters import exponential_smooth
from .topology import FACE_MESH_LANDMARK_COUNT, LEFT_EYE_INDEX, RIGHT_EYE_INDEX

# Smallest eye separation, in pixels, treated as a real measurement.
MIN_IPD_PX = 1e-6


@dataclass
class ViewerPosition:
    """Eye position in meters relative to the screen center.

    x grows toward the viewer's right, y grows upward and z is the distance
    from the screen plane toward the viewer.
    """

    x: float = 0.0
    y: float = 0.0
    z: float = 0.5

    @classmethod
    def initial(cls, config: CalibrationConfig) -> "ViewerPosition":
        return cls(0.0, 0.0, config.reference_distance_m)

    def copy(self) -> "ViewerPosition":
        return ViewerPosition(self.x, self.y, self.z)

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)


def has_landmarks(landmarks: Optional[np.ndarray]) -> bool:
    """True when the frame is long enough and both eye points are finite."""
    if landmarks is None or len(landmarks) < FACE_MESH_LANDMARK_COUNT:
        return False
    eyes = np.asarray(landmarks, dtype=np.float64)[[LEFT_EYE_INDEX, RIGHT_EYE_INDEX], :2]
    return bool(np.isfinite(eyes).all())


def observed_ipd(landmarks: np.ndarray) -> float:
    """Planar distance between the two eye landmarks, in normalized image units."""
    left = np.asarray(landmarks[LEFT_EYE_INDEX][:2], dtype=np.float64)
    right = np.asarray(landmarks[RIGHT_EYE_INDEX][:2], dtype=np.float64)
    return float(np.linalg.norm(right - left))


def focal_length_px(frame_width_px: float, config: CalibrationConfig) -> float:
    half_fov = math.radians(config.camera_hfov_deg) * 0.5
    return float(frame_width_px) / (2.0 * math.tan(half_fov))


def estimate_depth(observed_ipd_norm: float, frame_width_px: float, config: CalibrationConfig) -> float:
    """Viewer distance from the apparent eye separation (pinhole model).

    A face twice as close shows eyes twice as far apart, so depth is the known
    interpupillary distance scaled by focal length over observed pixels. The
    result is clamped into the configured depth range.
    """
    observed_px = observed_ipd_norm * float(frame_width_px)
    if not observed_px > MIN_IPD_PX:
        # Coincident eyes are a detector glitch, not a viewer at infinity.
        return config.min_depth_m
    z = config.interpupillary_distance_m * focal_length_px(frame_width_px, config) / observed_px
    return float(np.clip(z, config.min_depth_m, config.max_depth_m))


def estimate_raw_position(
    landmarks: np.ndarray,
    frame_width_px: float,
    config: CalibrationConfig,
) -> ViewerPosition:
    """Unsmoothed viewer position for one landmark frame."""
    z = estimate_depth(observed_ipd(landmarks), frame_width_px, config)

    left = landmarks[LEFT_EYE_INDEX]
    right = landmarks[RIGHT_EYE_INDEX]
    center_x = (float(left[0]) + float(right[0])) * 0.5
    center_y = (float(left[1]) + float(right[1])) * 0.5

    # Offsets on the image plane cover more ground the farther the viewer is.
    scale = z / config.reference_distance_m
    # A raw webcam frame shows the viewer's right on the image left.
    direction = 1.0 if config.mirrored_input else -1.0
    x = direction * (center_x - 0.5) * config.screen_width_m * scale
    y = (0.5 - center_y) * config.screen_height_m * scale
    return ViewerPosition(x, y, z)


def smooth(previous: ViewerPosition, raw: ViewerPosition, factor: float) -> ViewerPosition:
    """Apply one exponential smoothing step to ``previous`` in place."""
    previous.x = float(exponential_smooth(previous.x, raw.x, factor))
    previous.y = float(exponential_smooth(previous.y, raw.y, factor))
    previous.z = float(exponential_smooth(previous.z, raw.z, factor))
    return previous


def estimate_viewer_position(
    landmarks: Optional[np.ndarray],
    previous: ViewerPosition,
    config: CalibrationConfig,
    frame_width_px: float,
) -> ViewerPosition:
    """Update ``previous`` from a landmark frame and return it.

    Missing or truncated frames leave ``previous`` untouched so tracking loss
    holds the last known position.
    """
    if not has_landmarks(landmarks):
        return previous
    raw = estimate_raw_position(landmarks, frame_width_px, config)
    return smooth(previous, raw, config.smoothing_factor)

