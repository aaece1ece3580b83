from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Protocol

import numpy as np

from .config import CalibrationConfig
from .estimator import ViewerPosition, estimate_viewer_position, has_landmarks
from .projection import OffAxisView, project_viewer

log = logging.getLogger(__name__)


class TrackingStatus(str, Enum):
    STARTING = "starting"
    TRACKING = "tracking"
    NO_FACE = "no face detected"


class Detector(Protocol):
    def __call__(self, frame: np.ndarray) -> Optional[np.ndarray]:
        ...


class Renderer(Protocol):
    def render(self, view: OffAxisView) -> Any:
        ...


@dataclass
class PipelineState:
    position: ViewerPosition
    last_frame_id: int = 0
    status: TrackingStatus = TrackingStatus.STARTING


@dataclass
class FrameResult:
    frame_id: int
    detected: bool
    status: TrackingStatus
    position: ViewerPosition
    view: OffAxisView
    rendered: Any = None


@dataclass
class FramePipeline:
    """Runs detection, position estimation and projection once per new frame.

    Frame ids must grow monotonically; a frame whose id was already seen is
    skipped without calling the detector.
    """

    detector: Detector
    config: CalibrationConfig = field(default_factory=CalibrationConfig)
    renderer: Optional[Renderer] = None
    aspect: Optional[float] = None
    on_status_change: Optional[Callable[[TrackingStatus], None]] = None
    state: PipelineState = field(init=False)

    def __post_init__(self) -> None:
        self.state = PipelineState(position=ViewerPosition.initial(self.config))

    @property
    def position(self) -> ViewerPosition:
        return self.state.position

    @property
    def status(self) -> TrackingStatus:
        return self.state.status

    def is_new_frame(self, frame_id: int) -> bool:
        return frame_id > self.state.last_frame_id

    def process(
        self,
        frame: np.ndarray,
        frame_id: int,
        frame_width: Optional[int] = None,
    ) -> Optional[FrameResult]:
        if not self.is_new_frame(frame_id):
            return None
        self.state.last_frame_id = frame_id

        if frame_width is None:
            frame_width = frame.shape[1]
        landmarks = self.detector(frame)
        detected = has_landmarks(landmarks)
        self._set_status(TrackingStatus.TRACKING if detected else TrackingStatus.NO_FACE)

        position = estimate_viewer_position(landmarks, self.state.position, self.config, frame_width)
        view = project_viewer(position, self.config, self.aspect)
        if detected:
            log.debug(
                f"frame {frame_id}: x={position.x:+.3f} y={position.y:+.3f} z={position.z:.3f}"
            )

        rendered = self.renderer.render(view) if self.renderer is not None else None
        return FrameResult(
            frame_id=frame_id,
            detected=detected,
            status=self.state.status,
            position=position.copy(),
            view=view,
            rendered=rendered,
        )

    def reset(self) -> None:
        self.state.position = ViewerPosition.initial(self.config)
        log.info("Viewer position reset")

    def _set_status(self, status: TrackingStatus) -> None:
        if status is self.state.status:
            return
        log.info(f"Status: {self.state.status.value} -> {status.value}")
        self.state.status = status
        if self.on_status_change is not None:
            self.on_status_change(status)
