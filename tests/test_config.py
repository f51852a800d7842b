import pytest

from topo.config import ConfigError, Settings, load_settings


def test_defaults():
    settings = load_settings(environ={})
    assert settings == Settings()
    assert settings.jitter_factor == 1.2


def test_yaml_file_overlaid_by_environment(tmp_path):
    path = tmp_path / "topo.yaml"
    path.write_text("interval_s: 60\ntolerance_ppm: 100\n")

    settings = load_settings(str(path), environ={"TOPO_INTERVAL_S": "15", "TOPO_LOG_LEVEL": "debug"})

    assert settings.interval_s == 15.0
    assert settings.log_level == "debug"
    policy = settings.scaling()
    assert policy.tolerance_ppm == 100


def test_config_path_from_environment(tmp_path):
    path = tmp_path / "topo.yaml"
    path.write_text("status_port: 9090\n")

    settings = load_settings(environ={"TOPO_CONFIG": str(path)})

    assert settings.status_port == 9090


@pytest.mark.parametrize(
    "environ",
    [
        {"TOPO_INTERVAL_S": "soon"},
        {"TOPO_INTERVAL_S": "0"},
        {"TOPO_JITTER_FACTOR": "-1"},
        {"TOPO_TOLERANCE_PPM": "-3"},
        {"TOPO_LOG_LEVEL": "LOUD"},
    ],
)
def test_invalid_values(environ):
    with pytest.raises(ConfigError):
        load_settings(environ=environ)


def test_unknown_file_key(tmp_path):
    path = tmp_path / "topo.yaml"
    path.write_text("intervall: 5\n")
    with pytest.raises(ConfigError):
        load_settings(str(path), environ={})


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_settings(str(tmp_path / "absent.yaml"), environ={})


def test_removed_scaling_policy_key_is_rejected(tmp_path):
    path = tmp_path / "topo.yaml"
    path.write_text("scaling_policy: strict\n")
    with pytest.raises(ConfigError):
        load_settings(str(path), environ={})
