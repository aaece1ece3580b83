import json

import pytest

pytest.importorskip("mediapipe")

import numpy as np  # noqa: E402

from conftest import ScriptedDetector, centered_eyes  # noqa: E402
from head_window.config import RuntimeConfig  # noqa: E402
from head_window.pipeline import FramePipeline  # noqa: E402
from head_window.runner import (  # noqa: E402
    EventLogger,
    PositionEvent,
    build_arg_parser,
    position_event,
    viewport_aspect,
)

FRAME = np.zeros((720, 1280, 3), dtype=np.uint8)


def test_event_logger_appends_ndjson(tmp_path):
    path = tmp_path / "logs" / "positions.ndjson"
    logger = EventLogger(str(path))
    logger.write(PositionEvent(ts=1.5, frame_id=3, x=0.01, y=-0.02, z=0.55, status="tracking"))
    logger.write(PositionEvent(ts=1.6, frame_id=4, x=0.02, y=-0.02, z=0.54, status="tracking"))
    logger.close()

    rows = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [row["frame_id"] for row in rows] == [3, 4]
    assert rows[0]["z"] == pytest.approx(0.55)


def test_event_logger_without_path_is_a_noop():
    logger = EventLogger(None)
    logger.write(PositionEvent(ts=0.0, frame_id=1, x=0.0, y=0.0, z=0.5, status="tracking"))
    logger.close()


def test_cli_flags_default_to_unset():
    args = build_arg_parser().parse_args([])
    assert args.screen_width is None
    assert args.smoothing is None
    assert not args.mirrored

    args = build_arg_parser().parse_args(["--screen-width", "0.34", "--mirrored", "--smoothing", "0.5"])
    assert args.screen_width == pytest.approx(0.34)
    assert args.smoothing == pytest.approx(0.5)
    assert args.mirrored


def test_mirrored_flag_is_tri_state():
    parser = build_arg_parser()
    assert parser.parse_args([]).mirrored is None
    assert parser.parse_args(["--mirrored"]).mirrored is True
    assert parser.parse_args(["--no-mirrored"]).mirrored is False


def test_events_are_written_for_every_processed_frame(tmp_path):
    face = centered_eyes(0.1)
    pipeline = FramePipeline(detector=ScriptedDetector([face, None, None]))
    path = tmp_path / "positions.ndjson"
    logger = EventLogger(str(path))
    for frame_id in (1, 2, 3):
        result = pipeline.process(FRAME, frame_id)
        logger.write(position_event(result, ts=frame_id * 0.033))
    logger.close()

    rows = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [row["status"] for row in rows] == ["tracking", "no face detected", "no face detected"]
    assert rows[1]["z"] == rows[2]["z"] == rows[0]["z"]


def test_viewport_aspect_only_when_requested():
    assert viewport_aspect(RuntimeConfig(window_width=1280, window_height=720)) is None
    matched = RuntimeConfig(window_width=1280, window_height=720, match_window_aspect=True)
    assert viewport_aspect(matched) == pytest.approx(1280 / 720)
