"""Unit tests for configuration loading and validation."""

import pytest
import yaml

from symbolsync import config as config_module
from symbolsync.config import (
    SymbolSyncConfig,
    coerce_env_value,
    config_to_dict,
    load_config,
    save_config,
    validate_config,
)
from symbolsync.dsp.timing_error_detector import ConfigurationError


@pytest.fixture(autouse=True)
def no_env(monkeypatch):
    """Isolate tests from SYMBOLSYNC__* variables in the real environment."""
    monkeypatch.setattr(config_module, "os_environ_items", lambda: [])


def _write(tmp_path, data):
    path = tmp_path / "symbolsync.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


class TestLoadConfig:
    def test_defaults_without_file(self):
        cfg = load_config()
        assert cfg == SymbolSyncConfig()
        assert cfg.detector.algorithm == "mueller_and_muller"
        assert cfg.loop.min_period == pytest.approx(3.5)
        assert cfg.loop.max_period == pytest.approx(4.5)

    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_config(str(tmp_path / "absent.yaml"))
        assert cfg == SymbolSyncConfig()

    def test_yaml_values(self, tmp_path):
        path = _write(
            tmp_path,
            {
                "loop": {"loop_bw": 0.02, "damping": 0.707},
                "detector": {"algorithm": "gardner", "constellation": None},
                "simulation": {"num_symbols": 100, "settle_symbols": 10},
                "log_level": "debug",
            },
        )
        cfg = load_config(path)
        assert cfg.loop.loop_bw == 0.02
        assert cfg.loop.damping == 0.707
        assert cfg.loop.ted_gain == 1.0
        assert cfg.detector.algorithm == "gardner"
        assert cfg.detector.constellation is None
        assert cfg.simulation.num_symbols == 100
        assert cfg.log_level == "debug"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(str(path)) == SymbolSyncConfig()

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_config(str(path))

    def test_non_mapping_section(self, tmp_path):
        path = _write(tmp_path, {"loop": [1, 2]})
        with pytest.raises(ConfigurationError, match="loop"):
            load_config(path)

    def test_unknown_key(self, tmp_path):
        path = _write(tmp_path, {"loop": {"bandwidth": 0.1}})
        with pytest.raises(ConfigurationError, match="loop"):
            load_config(path)

    def test_overrides_win_over_file(self, tmp_path):
        path = _write(tmp_path, {"simulation": {"num_symbols": 100, "seed": 3}})
        cfg = load_config(path, overrides={"simulation": {"num_symbols": 200}})
        assert cfg.simulation.num_symbols == 200
        assert cfg.simulation.seed == 3

    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setattr(
            config_module,
            "os_environ_items",
            lambda: [
                ("SYMBOLSYNC__LOOP__LOOP_BW", "0.03"),
                ("SYMBOLSYNC__DETECTOR__ALGORITHM", "early_late"),
                ("SYMBOLSYNC__SIMULATION__SEED", "none"),
                ("SYMBOLSYNC__UNKNOWN__KEY", "1"),
                ("SYMBOLSYNC__LOOP", "ignored"),
                ("OTHER__LOOP__LOOP_BW", "0.5"),
            ],
        )
        path = _write(tmp_path, {"loop": {"loop_bw": 0.02}})
        cfg = load_config(path)
        assert cfg.loop.loop_bw == 0.03
        assert cfg.detector.algorithm == "early_late"
        assert cfg.simulation.seed is None

    def test_overrides_win_over_env(self, monkeypatch):
        monkeypatch.setattr(
            config_module, "os_environ_items", lambda: [("SYMBOLSYNC__LOOP__DAMPING", "2.0")]
        )
        cfg = load_config(overrides={"loop": {"damping": 0.5}})
        assert cfg.loop.damping == 0.5


class TestValidateConfig:
    @pytest.mark.parametrize(
        "section,key,value",
        [
            ("loop", "loop_bw", -0.1),
            ("loop", "loop_bw", 2.0),
            ("loop", "damping", 0.0),
            ("loop", "ted_gain", 0.0),
            ("loop", "ted_gain", "steep"),
            ("loop", "max_deviation", 5.0),
            ("loop", "loop_bw", True),
            ("detector", "inputs_per_symbol", 0),
            ("detector", "error_depth", 2.5),
            ("detector", "constellation", "qam64"),
            ("simulation", "num_symbols", 0),
            ("simulation", "rolloff", 1.5),
            ("simulation", "noise_std", float("nan")),
            ("simulation", "pulse_shape", "gaussian"),
        ],
    )
    def test_invalid_values(self, section, key, value):
        with pytest.raises(ConfigurationError, match=key):
            load_config(overrides={section: {key: value}})

    def test_max_deviation_equal_to_period_rejected(self):
        # min_period would be 0
        with pytest.raises(ConfigurationError, match="min_period"):
            load_config(overrides={"loop": {"max_deviation": 4.0}})

    def test_settle_longer_than_run_warns(self, caplog):
        cfg = SymbolSyncConfig()
        cfg.simulation.num_symbols = 10
        cfg.simulation.settle_symbols = 20
        with caplog.at_level("WARNING", logger="symbolsync.config"):
            validate_config(cfg)
        assert "settle_symbols" in caplog.text

    def test_defaults_valid(self):
        validate_config(SymbolSyncConfig())


class TestSaveConfig:
    def test_round_trip(self, tmp_path):
        cfg = load_config(overrides={"loop": {"loop_bw": 0.05}, "log_level": "warning"})
        path = tmp_path / "out.yaml"
        save_config(cfg, str(path))
        assert load_config(str(path)) == cfg

    def test_unset_log_level_omitted(self):
        data = config_to_dict(SymbolSyncConfig())
        assert "log_level" not in data
        assert set(data) == {"loop", "detector", "simulation"}


class TestCoerceEnvValue:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("true", True),
            ("FALSE", False),
            ("none", None),
            ("null", None),
            ("42", 42),
            ("0.25", 0.25),
            ("1e-3", 1e-3),
            ("gardner", "gardner"),
        ],
    )
    def test_coercion(self, raw, expected):
        assert coerce_env_value(raw) == expected
