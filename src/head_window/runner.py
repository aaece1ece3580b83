from __future__ import annotations

import argparse
import json
import logging
import time
from collections import deque
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from .capture import AsyncCamera
from .config import CalibrationConfig, RuntimeConfig, load_config
from .landmarks import FaceLandmarkTracker
from .pipeline import FramePipeline, FrameResult, TrackingStatus
from .scene import WireframeScene
from .topology import LEFT_EYE_INDEX, RIGHT_EYE_INDEX

log = logging.getLogger(__name__)

WINDOW_NAME = "Head Window"


@dataclass
class PositionEvent:
    ts: float
    frame_id: int
    x: float
    y: float
    z: float
    status: str


class EventLogger:
    def __init__(self, output_path: Optional[str]) -> None:
        self._file = None
        if output_path:
            path = Path(output_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            self._file = path.open("a", encoding="utf-8")

    def write(self, event: PositionEvent) -> None:
        if self._file is None:
            return
        self._file.write(json.dumps(asdict(event), ensure_ascii=True) + "\n")

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


def position_event(result: FrameResult, ts: float) -> PositionEvent:
    return PositionEvent(
        ts=ts,
        frame_id=result.frame_id,
        x=result.position.x,
        y=result.position.y,
        z=result.position.z,
        status=result.status.value,
    )


def viewport_aspect(runtime: RuntimeConfig) -> Optional[float]:
    """Render aspect for the frustum, or None to keep the physical screen rectangle."""
    if not runtime.match_window_aspect:
        return None
    return runtime.window_width / max(runtime.window_height, 1)


class HeadWindowApp:
    def __init__(
        self,
        calibration: CalibrationConfig,
        runtime: RuntimeConfig,
        event_log_path: Optional[str] = None,
    ) -> None:
        self.calibration = calibration
        self.config = runtime
        self.camera = AsyncCamera(runtime)
        self.tracker = FaceLandmarkTracker()
        self.scene = WireframeScene(runtime.window_width, runtime.window_height)
        self.pipeline = FramePipeline(
            detector=self._detect,
            config=calibration,
            renderer=self.scene,
            aspect=viewport_aspect(runtime),
        )
        self.logger = EventLogger(event_log_path)
        self._fps_times: deque[float] = deque(maxlen=60)
        self._frame_ts = 0.0
        self._last_landmarks: Optional[np.ndarray] = None

    def _detect(self, frame: np.ndarray) -> Optional[np.ndarray]:
        self._last_landmarks = self.tracker.process(frame, int(self._frame_ts * 1000.0))
        return self._last_landmarks

    def _compute_fps(self, now: float) -> float:
        self._fps_times.append(now)
        if len(self._fps_times) < 2:
            return 0.0
        span = self._fps_times[-1] - self._fps_times[0]
        if span <= 1e-6:
            return 0.0
        return (len(self._fps_times) - 1) / span

    def _draw_preview(self, output: np.ndarray, frame: np.ndarray) -> None:
        height, width = output.shape[:2]
        inset_w = width // 5
        inset_h = int(inset_w * frame.shape[0] / max(frame.shape[1], 1))
        if inset_w < 8 or inset_h < 8 or inset_h >= height:
            return
        preview = cv2.resize(frame, (inset_w, inset_h), interpolation=cv2.INTER_AREA)
        if self._last_landmarks is not None:
            for idx in (LEFT_EYE_INDEX, RIGHT_EYE_INDEX):
                px = int(self._last_landmarks[idx][0] * (inset_w - 1))
                py = int(self._last_landmarks[idx][1] * (inset_h - 1))
                cv2.circle(preview, (px, py), 3, (0, 255, 0), -1, cv2.LINE_AA)
        x0 = width - inset_w - 12
        y0 = height - inset_h - 12
        output[y0 : y0 + inset_h, x0 : x0 + inset_w] = preview
        cv2.rectangle(output, (x0, y0), (x0 + inset_w, y0 + inset_h), (240, 240, 240), 1)

    def _draw_debug(self, output: np.ndarray, result: Optional[FrameResult], fps: float) -> None:
        status = self.pipeline.status
        position = self.pipeline.position
        if status is TrackingStatus.TRACKING:
            headline = "Tracking active - move your head!"
        elif status is TrackingStatus.NO_FACE:
            headline = "No face detected"
        else:
            headline = "Starting head tracking..."

        lines = [
            headline,
            f"FPS: {fps:5.1f}",
            f"Viewer (m): x={position.x:+.3f} y={position.y:+.3f} z={position.z:.3f}",
            f"IPD: {self.calibration.interpupillary_distance_m * 1000:.0f} mm | "
            f"Screen: {self.calibration.screen_width_m:.2f} x {self.calibration.screen_height_m:.2f} m",
        ]
        if result is not None:
            f = result.view.frustum
            lines.append(f"Frustum: l={f.left:+.4f} r={f.right:+.4f} b={f.bottom:+.4f} t={f.top:+.4f}")
        lines.append("Keys: D debug | P preview | R reset | Q quit")

        y = 26
        for text in lines:
            cv2.putText(output, text, (12, y), cv2.FONT_HERSHEY_SIMPLEX, 0.55, (10, 10, 10), 3, cv2.LINE_AA)
            cv2.putText(output, text, (12, y), cv2.FONT_HERSHEY_SIMPLEX, 0.55, (240, 240, 240), 1, cv2.LINE_AA)
            y += 22

    def run(self) -> None:
        self.camera.start()
        show_debug = self.config.show_debug
        show_preview = self.config.show_preview
        last_result: Optional[FrameResult] = None
        fps = 0.0

        try:
            while True:
                frame, frame_id, frame_ts = self.camera.read()
                if frame is None:
                    time.sleep(0.001)
                    continue

                if self.pipeline.is_new_frame(frame_id):
                    self._frame_ts = frame_ts
                    result = self.pipeline.process(frame, frame_id)
                    if result is not None:
                        last_result = result
                        fps = self._compute_fps(frame_ts)
                        self.logger.write(position_event(result, frame_ts))

                if last_result is None or last_result.rendered is None:
                    time.sleep(0.001)
                    continue

                output = last_result.rendered.copy()
                if show_preview:
                    self._draw_preview(output, frame)
                if show_debug:
                    self._draw_debug(output, last_result, fps)

                cv2.imshow(WINDOW_NAME, output)
                key = cv2.waitKey(1) & 0xFF
                if key in (ord("q"), 27):
                    break
                if key == ord("d"):
                    show_debug = not show_debug
                if key == ord("p"):
                    show_preview = not show_preview
                if key == ord("r"):
                    self.pipeline.reset()

        finally:
            self.logger.close()
            self.tracker.close()
            self.camera.stop()
            cv2.destroyAllWindows()


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Head-tracked 3D window with a regular webcam.")
    parser.add_argument("--config", type=str, default="", help="Optional YAML config file.")
    parser.add_argument("--camera-id", type=int, default=None, help="Webcam index.")
    parser.add_argument("--width", type=int, default=None, help="Capture width.")
    parser.add_argument("--height", type=int, default=None, help="Capture height.")
    parser.add_argument("--window-width", type=int, default=None, help="Render window width.")
    parser.add_argument("--window-height", type=int, default=None, help="Render window height.")
    parser.add_argument("--screen-width", type=float, default=None, help="Physical screen width in meters.")
    parser.add_argument("--screen-height", type=float, default=None, help="Physical screen height in meters.")
    parser.add_argument("--ipd", type=float, default=None, help="Interpupillary distance in meters.")
    parser.add_argument("--smoothing", type=float, default=None, help="Smoothing factor in [0, 1).")
    parser.add_argument("--hfov", type=float, default=None, help="Webcam horizontal field of view in degrees.")
    parser.add_argument(
        "--mirrored",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Input frames are horizontally mirrored.",
    )
    parser.add_argument(
        "--match-window-aspect",
        action="store_true",
        help="Stretch the simulated window to the render window aspect.",
    )
    parser.add_argument("--no-debug", action="store_true", help="Disable debug overlay.")
    parser.add_argument("--no-preview", action="store_true", help="Disable camera preview inset.")
    parser.add_argument("--log-events", type=str, default="", help="Optional NDJSON output path.")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level.")
    return parser


def main() -> None:
    parser = build_arg_parser()
    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        calibration, runtime = load_config(
            args.config or None,
            camera_id=args.camera_id,
            frame_width=args.width,
            frame_height=args.height,
            window_width=args.window_width,
            window_height=args.window_height,
            screen_width_m=args.screen_width,
            screen_height_m=args.screen_height,
            interpupillary_distance_m=args.ipd,
            smoothing_factor=args.smoothing,
            camera_hfov_deg=args.hfov,
            mirrored_input=args.mirrored,
            show_debug=False if args.no_debug else None,
            show_preview=False if args.no_preview else None,
            match_window_aspect=True if args.match_window_aspect else None,
        )
    except (TypeError, ValueError) as e:
        parser.error(str(e))

    log.info(f"Calibration: {calibration}")
    app = HeadWindowApp(calibration=calibration, runtime=runtime, event_log_path=args.log_events or None)
    app.run()


if __name__ == "__main__":
    main()
