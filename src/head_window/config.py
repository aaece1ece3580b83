from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Tuple

import yaml

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationConfig:
    """Physical constants shared by the position estimator and the projector.

    Distances are in meters. ``smoothing_factor`` is the weight kept from the
    previous smoothed position each frame.
    """

    interpupillary_distance_m: float = 0.063
    screen_width_m: float = 0.28
    screen_height_m: float = 0.16
    smoothing_factor: float = 0.7
    min_depth_m: float = 0.2
    max_depth_m: float = 2.0
    reference_distance_m: float = 0.5
    camera_hfov_deg: float = 60.0
    mirrored_input: bool = False
    near_plane: float = 0.01
    far_plane: float = 10.0

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "mirrored_input":
                if not isinstance(value, bool):
                    raise ValueError(f"mirrored_input must be true or false, got {value!r}")
            elif isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{f.name} must be a number, got {value!r}")
        for name in (
            "interpupillary_distance_m",
            "screen_width_m",
            "screen_height_m",
            "min_depth_m",
            "max_depth_m",
            "reference_distance_m",
            "near_plane",
            "far_plane",
        ):
            if not getattr(self, name) > 0.0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)!r}")
        if not 0.0 <= self.smoothing_factor < 1.0:
            raise ValueError(f"smoothing_factor must be in [0, 1), got {self.smoothing_factor!r}")
        if self.min_depth_m >= self.max_depth_m:
            raise ValueError("min_depth_m must be smaller than max_depth_m")
        if self.near_plane >= self.far_plane:
            raise ValueError("near_plane must be smaller than far_plane")
        if not 0.0 < self.camera_hfov_deg < 180.0:
            raise ValueError(f"camera_hfov_deg must be in (0, 180), got {self.camera_hfov_deg!r}")

    @property
    def depth_range(self) -> Tuple[float, float]:
        return self.min_depth_m, self.max_depth_m


@dataclass
class RuntimeConfig:
    camera_id: int = 0
    frame_width: int = 1280
    frame_height: int = 720
    target_fps: int = 30
    window_width: int = 1280
    window_height: int = 720
    show_debug: bool = True
    show_preview: bool = True
    match_window_aspect: bool = False


def _pick(cls: type, values: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        log.warning(f"Ignoring unknown {cls.__name__} keys: {', '.join(unknown)}")
    return {k: v for k, v in values.items() if k in known}


def load_yaml_section(path: str, section: str) -> Dict[str, Any]:
    """
    Load one top-level section of a YAML file as a dict.
    Returns {} when the file or the section is missing or malformed.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        log.warning(f"Config error for section '{section}' at '{path}': {e}. Using defaults.")
        return {}
    if not isinstance(raw, dict):
        return {}
    node = raw.get(section, {})
    return node if isinstance(node, dict) else {}


def load_config(
    path: Optional[str],
    **overrides: Any,
) -> Tuple[CalibrationConfig, RuntimeConfig]:
    """Build both configs from an optional YAML file, then apply non-None overrides."""
    calibration_values: Dict[str, Any] = {}
    runtime_values: Dict[str, Any] = {}
    if path:
        calibration_values = _pick(CalibrationConfig, load_yaml_section(path, "calibration"))
        runtime_values = _pick(RuntimeConfig, load_yaml_section(path, "runtime"))

    calibration_names = {f.name for f in fields(CalibrationConfig)}
    runtime_names = {f.name for f in fields(RuntimeConfig)}
    for key, value in overrides.items():
        if value is None:
            continue
        if key in calibration_names:
            calibration_values[key] = value
        elif key in runtime_names:
            runtime_values[key] = value
        else:
            raise TypeError(f"Unknown config override: {key}")

    return CalibrationConfig(**calibration_values), RuntimeConfig(**runtime_values)
