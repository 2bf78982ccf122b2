from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml

from symbolsync.dsp.timing_error_detector import ConfigurationError
from symbolsync.validation import (
    DAMPING_MAX,
    DAMPING_MIN,
    ERROR_DEPTH_MAX,
    ERROR_DEPTH_MIN,
    INPUTS_PER_SYMBOL_MAX,
    INPUTS_PER_SYMBOL_MIN,
    LOOP_BW_MAX,
    LOOP_BW_MIN,
    PERIOD_MAX,
    PERIOD_MIN,
    TED_GAIN_MAX,
    TED_GAIN_MIN,
    validate_float_range,
    validate_int_range,
    validate_period_bounds,
)

logger = logging.getLogger(__name__)

ConstellationName = Literal["bpsk", "qpsk", "pam4"]

ENV_PREFIX = "SYMBOLSYNC__"
_SECTIONS = ("loop", "detector", "simulation")


@dataclass
class LoopConfig:
    # Normalized natural radian frequency (omega_n * T)
    loop_bw: float = 0.01
    # 1.0 = critically damped
    damping: float = 1.0
    # Slope of the detector S-curve at zero offset
    ted_gain: float = 1.0
    # Nominal samples per symbol
    samples_per_symbol: float = 4.0
    # Average period may wander this many samples from nominal
    max_deviation: float = 0.5

    @property
    def min_period(self) -> float:
        return self.samples_per_symbol - self.max_deviation

    @property
    def max_period(self) -> float:
        return self.samples_per_symbol + self.max_deviation


@dataclass
class DetectorConfig:
    algorithm: str = "mueller_and_muller"
    constellation: ConstellationName | None = "bpsk"
    # None = use the algorithm default
    inputs_per_symbol: int | None = None
    error_depth: int | None = None


@dataclass
class SimulationConfig:
    num_symbols: int = 5000
    # True symbol period of the synthetic waveform, in input samples
    samples_per_symbol: float = 4.0
    # Timing offset of the waveform's symbol grid, in input samples
    delay: float = 0.7
    # First sampling instant; None = two nominal periods in
    start_time: float | None = None
    pulse_shape: Literal["triangle", "raised_cosine"] = "triangle"
    rolloff: float = 0.35
    noise_std: float = 0.0
    seed: int | None = 1
    # Symbols excluded from the convergence statistics
    settle_symbols: int = 2000
    # Allowed |timing offset| after settling, in input samples
    tolerance: float = 0.05


@dataclass
class SymbolSyncConfig:
    loop: LoopConfig = field(default_factory=LoopConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    log_level: str | None = None


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError("Config root must be a mapping")
        return data


def _overlay(dst: dict[str, Any], src: dict[str, Any]) -> dict[str, Any]:
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _overlay(dst[k], v)
        else:
            dst[k] = v
    return dst


def _section(cls: type, raw: Any, name: str) -> Any:
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigurationError(f"config section '{name}' must be a mapping")
    try:
        return cls(**raw)
    except TypeError as exc:
        raise ConfigurationError(f"invalid config section '{name}': {exc}") from exc


def load_config(path_str: str | None = None, overrides: dict[str, Any] | None = None) -> SymbolSyncConfig:
    """Load configuration from YAML, then env vars, then explicit overrides.

    Environment overrides use SYMBOLSYNC__SECTION__KEY, for example
    SYMBOLSYNC__LOOP__LOOP_BW=0.02.

    Raises:
        ValueError: YAML root is not a mapping
        ConfigurationError: unknown keys or out-of-range values
    """
    raw: dict[str, Any] = _read_yaml(Path(path_str)) if path_str else {}

    for k, v in os_environ_items():
        if not k.startswith(ENV_PREFIX):
            continue
        parts = k[len(ENV_PREFIX) :].split("__")
        if len(parts) != 2:
            continue
        section, key = (p.lower() for p in parts)
        if section not in _SECTIONS:
            continue
        if not isinstance(raw.setdefault(section, {}), dict):
            continue
        raw[section][key] = coerce_env_value(v)

    if overrides:
        _overlay(raw, overrides)

    config = SymbolSyncConfig(
        loop=_section(LoopConfig, raw.get("loop"), "loop"),
        detector=_section(DetectorConfig, raw.get("detector"), "detector"),
        simulation=_section(SimulationConfig, raw.get("simulation"), "simulation"),
        log_level=raw.get("log_level"),
    )
    validate_config(config)
    return config


def _raise_on_failure(checks: list[tuple[bool, str]]) -> None:
    for ok, msg in checks:
        if not ok:
            raise ConfigurationError(msg)


def validate_config(config: SymbolSyncConfig) -> None:
    """Check every numeric setting, raising ConfigurationError on the first failure."""
    loop = config.loop
    checks = [
        validate_float_range(loop.loop_bw, LOOP_BW_MIN, LOOP_BW_MAX, "loop.loop_bw"),
        validate_float_range(loop.damping, DAMPING_MIN, DAMPING_MAX, "loop.damping"),
        validate_float_range(loop.ted_gain, TED_GAIN_MIN, TED_GAIN_MAX, "loop.ted_gain"),
        validate_float_range(
            loop.samples_per_symbol, PERIOD_MIN, PERIOD_MAX, "loop.samples_per_symbol"
        ),
    ]
    _raise_on_failure(checks)
    # Needs a valid nominal period
    checks = [
        validate_float_range(
            loop.max_deviation, 0.0, loop.samples_per_symbol, "loop.max_deviation"
        ),
    ]

    det = config.detector
    if det.inputs_per_symbol is not None:
        checks.append(
            validate_int_range(
                det.inputs_per_symbol,
                INPUTS_PER_SYMBOL_MIN,
                INPUTS_PER_SYMBOL_MAX,
                "detector.inputs_per_symbol",
            )
        )
    if det.error_depth is not None:
        checks.append(
            validate_int_range(
                det.error_depth, ERROR_DEPTH_MIN, ERROR_DEPTH_MAX, "detector.error_depth"
            )
        )
    if det.constellation not in (None, "bpsk", "qpsk", "pam4"):
        checks.append((False, f"detector.constellation '{det.constellation}' is not supported"))

    sim = config.simulation
    checks.extend(
        [
            validate_int_range(sim.num_symbols, 1, 10_000_000, "simulation.num_symbols"),
            validate_int_range(sim.settle_symbols, 0, 10_000_000, "simulation.settle_symbols"),
            validate_float_range(
                sim.samples_per_symbol, PERIOD_MIN, PERIOD_MAX, "simulation.samples_per_symbol"
            ),
            validate_float_range(sim.delay, -PERIOD_MAX, PERIOD_MAX, "simulation.delay"),
            validate_float_range(sim.rolloff, 0.0, 1.0, "simulation.rolloff"),
            validate_float_range(sim.noise_std, 0.0, 10.0, "simulation.noise_std"),
            validate_float_range(sim.tolerance, 0.0, PERIOD_MAX, "simulation.tolerance"),
        ]
    )
    if sim.pulse_shape not in ("triangle", "raised_cosine"):
        checks.append((False, f"simulation.pulse_shape '{sim.pulse_shape}' is not supported"))

    _raise_on_failure(checks)

    ok, msg = validate_period_bounds(loop.min_period, loop.samples_per_symbol, loop.max_period)
    if not ok:
        raise ConfigurationError(f"loop: {msg}")
    if sim.settle_symbols >= sim.num_symbols:
        logger.warning(
            f"settle_symbols ({sim.settle_symbols}) >= num_symbols ({sim.num_symbols}); "
            "convergence statistics will be empty"
        )


def config_to_dict(config: SymbolSyncConfig) -> dict[str, Any]:
    data = asdict(config)
    if data.get("log_level") is None:
        data.pop("log_level", None)
    return data


def save_config(config: SymbolSyncConfig, path_str: str) -> None:
    """Write the config back to YAML."""
    path = Path(path_str)
    with path.open("w", encoding="utf-8") as f:
        yaml.dump(config_to_dict(config), f, default_flow_style=False, sort_keys=False)


def coerce_env_value(val: str) -> Any:
    # Basic bool/none/int/float coercion for convenience
    lower = val.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    if lower in {"none", "null"}:
        return None
    try:
        return int(val)
    except ValueError:
        pass
    try:
        return float(val)
    except ValueError:
        return val


def os_environ_items() -> list[tuple[str, str]]:
    # Wrapped for testability
    from os import environ

    return [(k, v) for k, v in environ.items()]
