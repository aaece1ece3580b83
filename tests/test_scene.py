import numpy as np
import pytest

from head_window.config import CalibrationConfig
from head_window.estimator import ViewerPosition
from head_window.projection import project_viewer
from head_window.scene import Primitive, WireframeScene, cube_segments, room_scene, sphere_segments


@pytest.fixture
def centered_view():
    return project_viewer(ViewerPosition(0.0, 0.0, 0.5), CalibrationConfig())


def test_screen_corners_land_on_image_corners(centered_view):
    scene = WireframeScene(640, 360, primitives=[])
    segment = np.array([[[-0.14, -0.08, 0.0], [0.14, 0.08, 0.0]]])
    (pixels,) = scene.project_segments(segment, centered_view)
    assert pixels[0] == pytest.approx([0.0, 360.0])
    assert pixels[1] == pytest.approx([640.0, 0.0])


def test_screen_center_lands_on_image_center(centered_view):
    scene = WireframeScene(640, 360, primitives=[])
    segment = np.array([[[0.0, 0.0, 0.0], [0.0, 0.0, -0.3]]])
    (pixels,) = scene.project_segments(segment, centered_view)
    assert pixels[0] == pytest.approx([320.0, 180.0])
    assert pixels[1] == pytest.approx([320.0, 180.0])


def test_segments_behind_the_eye_are_dropped(centered_view):
    scene = WireframeScene(640, 360, primitives=[])
    behind = np.array([[[0.0, 0.0, 0.9], [0.1, 0.0, 1.2]]])
    assert scene.project_segments(behind, centered_view) == []


def test_segment_crossing_near_plane_is_clipped(centered_view):
    scene = WireframeScene(640, 360, primitives=[])
    crossing = np.array([[[0.05, 0.0, 0.0], [0.05, 0.0, 1.0]]])
    (pixels,) = scene.project_segments(crossing, centered_view)
    assert np.isfinite(pixels).all()


def test_render_draws_room(centered_view):
    scene = WireframeScene(320, 180)
    image = scene.render(centered_view)
    assert image.shape == (180, 320, 3)
    assert image.dtype == np.uint8
    background = np.array(WireframeScene.BACKGROUND, dtype=np.uint8)
    assert (image != background).any(axis=2).sum() > 100
    assert scene.last_image is image


def test_render_draws_into_given_image(centered_view):
    scene = WireframeScene(64, 48, primitives=[Primitive(np.array([[[-0.1, 0.0, -0.1], [0.1, 0.0, -0.1]]]), (0, 0, 255))])
    canvas = np.zeros((48, 64, 3), dtype=np.uint8)
    out = scene.render(centered_view, canvas)
    assert out is canvas
    assert canvas[:, :, 2].max() > 0


def test_primitive_builders():
    assert cube_segments((0.0, 0.0, 0.0), 0.08).shape == (12, 2, 3)
    edges = cube_segments((0.0, 0.0, 0.0), 0.08)
    lengths = np.linalg.norm(edges[:, 1] - edges[:, 0], axis=1)
    assert lengths == pytest.approx(np.full(12, 0.08))
    sphere = sphere_segments((0.0, 0.0, -0.12), 0.06, steps=16)
    assert sphere.shape == (48, 2, 3)
    radii = np.linalg.norm(sphere[:, 0] - np.array([0.0, 0.0, -0.12]), axis=1)
    assert radii == pytest.approx(np.full(48, 0.06))
    assert len(room_scene()) == 9
