from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional
from urllib.request import urlretrieve

import cv2
import mediapipe as mp
import numpy as np

from .topology import FACE_MESH_LANDMARK_COUNT

log = logging.getLogger(__name__)


class FaceLandmarkTracker:
    """Single-face MediaPipe detector returning normalized (x, y, z) points."""

    MODEL_URL = "https://storage.googleapis.com/mediapipe-models/face_landmarker/face_landmarker/float16/latest/face_landmarker.task"

    def __init__(self) -> None:
        self._backend = "solutions" if self._has_solutions_backend() else "tasks"
        self._face_mesh = None
        self._face_landmarker = None
        self._last_timestamp_ms = -1

        if self._backend == "solutions":
            self._face_mesh = mp.solutions.face_mesh.FaceMesh(
                max_num_faces=1,
                refine_landmarks=True,
                min_detection_confidence=0.5,
                min_tracking_confidence=0.5,
            )
        else:
            model_path = self._ensure_task_model()
            options = mp.tasks.vision.FaceLandmarkerOptions(
                base_options=mp.tasks.BaseOptions(model_asset_path=str(model_path)),
                running_mode=mp.tasks.vision.RunningMode.VIDEO,
                num_faces=1,
                min_face_detection_confidence=0.5,
                min_face_presence_confidence=0.5,
                min_tracking_confidence=0.5,
                output_face_blendshapes=False,
                output_facial_transformation_matrixes=False,
            )
            self._face_landmarker = mp.tasks.vision.FaceLandmarker.create_from_options(options)
        log.info(f"Face landmarker ready (backend={self._backend})")

    @staticmethod
    def _has_solutions_backend() -> bool:
        return hasattr(mp, "solutions") and hasattr(mp.solutions, "face_mesh")

    @classmethod
    def _ensure_task_model(cls) -> Path:
        root = Path(__file__).resolve().parents[2]
        model_dir = root / "models"
        model_dir.mkdir(parents=True, exist_ok=True)
        model_path = model_dir / "face_landmarker.task"
        if model_path.exists():
            return model_path

        log.info(f"Downloading face landmarker model to {model_path}")
        tmp_path = model_dir / "face_landmarker.task.tmp"
        try:
            urlretrieve(cls.MODEL_URL, tmp_path)
            tmp_path.replace(model_path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)
        return model_path

    @staticmethod
    def _to_array(mesh: object) -> np.ndarray:
        return np.array([(p.x, p.y, p.z) for p in mesh], dtype=np.float32)

    def process(self, frame_bgr: np.ndarray, timestamp_ms: int) -> Optional[np.ndarray]:
        """Landmarks of the first face as an (N, 3) array, or None.

        ``timestamp_ms`` must increase between calls; the video-mode landmarker
        rejects repeated timestamps.
        """
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)

        if self._backend == "solutions":
            assert self._face_mesh is not None
            result = self._face_mesh.process(frame_rgb)
            if not result.multi_face_landmarks:
                return None
            mesh = result.multi_face_landmarks[0].landmark
        else:
            assert self._face_landmarker is not None
            timestamp_ms = max(int(timestamp_ms), self._last_timestamp_ms + 1)
            self._last_timestamp_ms = timestamp_ms
            mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)
            result = self._face_landmarker.detect_for_video(mp_image, timestamp_ms)
            if not result.face_landmarks:
                return None
            mesh = result.face_landmarks[0]

        points = self._to_array(mesh)
        # Without iris refinement the mesh is short; the estimator would ignore it anyway.
        if len(points) < FACE_MESH_LANDMARK_COUNT:
            return None
        return points

    def close(self) -> None:
        if self._face_mesh is not None:
            self._face_mesh.close()
        if self._face_landmarker is not None:
            self._face_landmarker.close()
