import pytest

from head_window.config import CalibrationConfig, RuntimeConfig, load_config, load_yaml_section


def test_defaults_match_reference_setup():
    config = CalibrationConfig()
    assert config.interpupillary_distance_m == pytest.approx(0.063)
    assert config.screen_width_m == pytest.approx(0.28)
    assert config.screen_height_m == pytest.approx(0.16)
    assert config.smoothing_factor == pytest.approx(0.7)
    assert config.depth_range == (0.2, 2.0)
    assert (config.near_plane, config.far_plane) == (0.01, 10.0)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"smoothing_factor": 1.0},
        {"smoothing_factor": -0.1},
        {"screen_width_m": 0.0},
        {"interpupillary_distance_m": -0.06},
        {"near_plane": 0.0},
        {"min_depth_m": 2.0, "max_depth_m": 1.0},
        {"near_plane": 5.0, "far_plane": 1.0},
        {"camera_hfov_deg": 180.0},
    ],
)
def test_invalid_calibration_is_rejected(kwargs):
    with pytest.raises(ValueError):
        CalibrationConfig(**kwargs)


def test_calibration_is_immutable():
    config = CalibrationConfig()
    with pytest.raises(AttributeError):
        config.smoothing_factor = 0.1


def test_load_config_reads_yaml_sections(tmp_path):
    path = tmp_path / "window.yaml"
    path.write_text(
        "calibration:\n"
        "  screen_width_m: 0.34\n"
        "  smoothing_factor: 0.5\n"
        "runtime:\n"
        "  camera_id: 2\n",
        encoding="utf-8",
    )
    calibration, runtime = load_config(str(path))
    assert calibration.screen_width_m == pytest.approx(0.34)
    assert calibration.smoothing_factor == pytest.approx(0.5)
    assert runtime.camera_id == 2


def test_overrides_win_over_file_and_none_is_ignored(tmp_path):
    path = tmp_path / "window.yaml"
    path.write_text("calibration:\n  smoothing_factor: 0.5\n", encoding="utf-8")
    calibration, runtime = load_config(str(path), smoothing_factor=0.9, camera_id=None, show_debug=False)
    assert calibration.smoothing_factor == pytest.approx(0.9)
    assert runtime.camera_id == RuntimeConfig().camera_id
    assert runtime.show_debug is False


def test_unknown_override_raises():
    with pytest.raises(TypeError):
        load_config(None, bogus=1)


def test_missing_file_falls_back_to_defaults(tmp_path):
    assert load_yaml_section(str(tmp_path / "missing.yaml"), "calibration") == {}
    calibration, runtime = load_config(str(tmp_path / "missing.yaml"))
    assert calibration == CalibrationConfig()
    assert runtime == RuntimeConfig()


def test_unknown_yaml_keys_are_ignored(tmp_path):
    path = tmp_path / "window.yaml"
    path.write_text("calibration:\n  colour: blue\n  far_plane: 20\n", encoding="utf-8")
    calibration, _ = load_config(str(path))
    assert calibration.far_plane == 20


@pytest.mark.parametrize(
    "kwargs",
    [
        {"screen_width_m": "0.28"},
        {"smoothing_factor": None},
        {"near_plane": True},
        {"mirrored_input": "yes"},
        {"mirrored_input": 1},
    ],
)
def test_wrongly_typed_values_raise_value_error(kwargs):
    with pytest.raises(ValueError):
        CalibrationConfig(**kwargs)


def test_quoted_number_in_yaml_raises_value_error(tmp_path):
    path = tmp_path / "window.yaml"
    path.write_text('calibration:\n  screen_width_m: "0.3"\n', encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_override_can_turn_mirroring_back_off(tmp_path):
    path = tmp_path / "window.yaml"
    path.write_text("calibration:\n  mirrored_input: true\n", encoding="utf-8")
    assert load_config(str(path))[0].mirrored_input is True
    assert load_config(str(path), mirrored_input=False)[0].mirrored_input is False


def test_window_aspect_matching_is_off_by_default():
    assert RuntimeConfig().match_window_aspect is False
