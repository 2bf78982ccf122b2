"""Timing error detector algorithms.

Each algorithm is a stateless error formula over the detector histories
(index 0 = newest). Sign convention: a positive error means the sampling
instant is early, so the loop should lengthen the next period.

- Mueller & Muller: decision directed, 1 sample/symbol
- Zero crossing: decision directed, 2 samples/symbol
- Gardner: non-data-aided, 2 samples/symbol
- Early-late: non-data-aided, 2 samples/symbol, evaluated with look-ahead
- Signal times slope ML: non-data-aided, 1 sample/symbol plus derivative
- Signum times slope ML: as above, using the sign of the sample

Reference: Rice, Michael. "Digital Communications: A Discrete-Time Approach",
Chapter 8.
"""

from __future__ import annotations

import logging
from typing import Callable

from symbolsync.dsp.constellation import Constellation
from symbolsync.dsp.timing_error_detector import (
    ConfigurationError,
    DetectorMode,
    History,
    TimingErrorAlgorithm,
    TimingErrorDetector,
)

logger = logging.getLogger(__name__)

# Algorithm registry
_ALGORITHMS: dict[str, type[TimingErrorAlgorithm]] = {}


def register(name: str) -> Callable[[type[TimingErrorAlgorithm]], type[TimingErrorAlgorithm]]:
    """Decorator to register a TED algorithm under a name."""

    def decorator(cls: type[TimingErrorAlgorithm]) -> type[TimingErrorAlgorithm]:
        cls.name = name
        _ALGORITHMS[name] = cls
        return cls

    return decorator


def _sgn(x: float) -> float:
    if x < 0.0:
        return -1.0
    if x > 0.0:
        return 1.0
    return 0.0


@register("mueller_and_muller")
class MuellerAndMuller(TimingErrorAlgorithm):
    """Mueller & Muller TED.

        e[n] = Re{ d*[n-1] * x[n] - d*[n] * x[n-1] }

    computed per component so it works for real and complex 1-D
    constellations alike.
    """

    mode = DetectorMode.RETROSPECTIVE
    inputs_per_symbol = 1
    error_depth = 2
    needs_constellation = True

    @staticmethod
    def compute_error(decision: History, inputs: History, derivative: History) -> float:
        return (decision[1].real * inputs[0].real - decision[0].real * inputs[1].real) + (
            decision[1].imag * inputs[0].imag - decision[0].imag * inputs[1].imag
        )


@register("zero_crossing")
class ZeroCrossing(TimingErrorAlgorithm):
    """Zero crossing TED: midpoint sample weighted by the decision transition."""

    mode = DetectorMode.RETROSPECTIVE
    inputs_per_symbol = 2
    error_depth = 3
    needs_constellation = True

    @staticmethod
    def compute_error(decision: History, inputs: History, derivative: History) -> float:
        return (decision[2].real - decision[0].real) * inputs[1].real + (
            decision[2].imag - decision[0].imag
        ) * inputs[1].imag


@register("gardner")
class Gardner(TimingErrorAlgorithm):
    """Gardner TED.

        e[n] = x[n-1/2] * (x[n-1] - x[n])

    Non-data-aided; needs 2 samples per symbol.
    """

    mode = DetectorMode.RETROSPECTIVE
    inputs_per_symbol = 2
    error_depth = 3

    @staticmethod
    def compute_error(decision: History, inputs: History, derivative: History) -> float:
        return (inputs[2].real - inputs[0].real) * inputs[1].real + (
            inputs[2].imag - inputs[0].imag
        ) * inputs[1].imag


@register("early_late")
class EarlyLate(TimingErrorAlgorithm):
    """Early-late TED.

    The on-time sample is bracketed by a late sample (newest, taken through
    look-ahead) and an early one (oldest).
    """

    mode = DetectorMode.PREDICTIVE
    inputs_per_symbol = 2
    error_depth = 3

    @staticmethod
    def compute_error(decision: History, inputs: History, derivative: History) -> float:
        return (inputs[0].real - inputs[2].real) * inputs[1].real + (
            inputs[0].imag - inputs[2].imag
        ) * inputs[1].imag


@register("signal_times_slope_ml")
class SignalTimesSlopeML(TimingErrorAlgorithm):
    """Maximum likelihood TED approximation: sample times its slope."""

    mode = DetectorMode.RETROSPECTIVE_DERIVATIVE
    inputs_per_symbol = 1
    error_depth = 1

    @staticmethod
    def compute_error(decision: History, inputs: History, derivative: History) -> float:
        return inputs[0].real * derivative[0].real + inputs[0].imag * derivative[0].imag


@register("signum_times_slope_ml")
class SignumTimesSlopeML(TimingErrorAlgorithm):
    """Maximum likelihood TED approximation: sample sign times its slope."""

    mode = DetectorMode.RETROSPECTIVE_DERIVATIVE
    inputs_per_symbol = 1
    error_depth = 1

    @staticmethod
    def compute_error(decision: History, inputs: History, derivative: History) -> float:
        x, dx = inputs[0], derivative[0]
        return _sgn(x.real) * dx.real + _sgn(x.imag) * dx.imag


def available_algorithms() -> list[str]:
    return sorted(_ALGORITHMS)


def get_algorithm(name: str) -> type[TimingErrorAlgorithm]:
    """Look up a TED algorithm by registry name.

    Raises:
        ConfigurationError: unknown name
    """
    key = name.strip().lower().replace("-", "_")
    try:
        return _ALGORITHMS[key]
    except KeyError:
        raise ConfigurationError(
            f"unknown TED algorithm '{name}' (available: {', '.join(available_algorithms())})"
        ) from None


def create_detector(
    name: str,
    constellation: Constellation | None = None,
    inputs_per_symbol: int | None = None,
    error_depth: int | None = None,
) -> TimingErrorDetector:
    """Build a detector for a registered algorithm.

    Args:
        name: Registry name, e.g. 'mueller_and_muller' or 'gardner'
        constellation: Decision constellation (required by decision-directed TEDs)
        inputs_per_symbol: Override the algorithm's default oversampling
        error_depth: Override the algorithm's default history length

    Returns:
        Configured TimingErrorDetector, already sync-reset
    """
    algorithm = get_algorithm(name)
    ted = algorithm.build(
        constellation,
        inputs_per_symbol=inputs_per_symbol,
        error_depth=error_depth,
    )
    logger.debug(f"Created {algorithm.name} detector ({algorithm.mode.name})")
    return ted
