"""Closed-loop symbol timing simulation.

Provides a synthetic pulse-shaped baseband waveform that can be evaluated
at any real-valued instant, and a driver that closes the loop between a
timing error detector and a clock tracking loop:

    t = loop.phase            # next sampling instant, in input samples
    ted.input(waveform(t))
    loop.advance_loop(ted.error)

Because the waveform is evaluated analytically no interpolating resampler
is involved. The driver handles one detector input per symbol.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

import numpy as np

from symbolsync.dsp.clock_tracking_loop import ClockTrackingLoop
from symbolsync.dsp.constellation import PointConstellation
from symbolsync.dsp.ted_algorithms import create_detector
from symbolsync.dsp.timing_error_detector import TimingErrorDetector
from symbolsync.typing import NDArrayComplex, NDArrayFloat
from symbolsync.validation import validate_samples

if TYPE_CHECKING:
    from symbolsync.config import SymbolSyncConfig

logger = logging.getLogger(__name__)

PulseShape = Literal["triangle", "raised_cosine"]

# Step used for central-difference derivatives, in input samples
_DERIVATIVE_STEP = 1e-3
_MAX_SYMBOL_MAGNITUDE = 1e6


def random_symbols(
    constellation: PointConstellation, count: int, seed: int | None = None
) -> NDArrayComplex:
    """Draw `count` equiprobable symbols from a 1-D constellation."""
    rng = np.random.default_rng(seed)
    indices = rng.integers(0, len(constellation), size=count)
    return constellation.points[indices]


def triangle_pulse(t: NDArrayFloat, samples_per_symbol: float) -> NDArrayFloat:
    """Triangular pulse of width 2T, p(0) = 1 and p(+-T) = 0."""
    return np.maximum(0.0, 1.0 - np.abs(t) / samples_per_symbol)


def raised_cosine_pulse(
    t: NDArrayFloat, samples_per_symbol: float, rolloff: float
) -> NDArrayFloat:
    """Raised cosine pulse with p(0) = 1 and zero crossings at multiples of T."""
    x = np.asarray(t, dtype=np.float64) / samples_per_symbol
    if rolloff <= 0.0:
        return np.sinc(x)
    denom = 1.0 - (2.0 * rolloff * x) ** 2
    singular = np.abs(denom) < 1e-10
    safe = np.where(singular, 1.0, denom)
    p = np.sinc(x) * np.cos(np.pi * rolloff * x) / safe
    # Limit at t = +-T/(2*rolloff)
    return np.where(singular, (np.pi / 4.0) * np.sinc(1.0 / (2.0 * rolloff)), p)


class PulseShapedWaveform:
    """Continuous-time linearly modulated waveform.

        r(t) = sum_k a_k p(t - k*T - delay) + n(t)

    with t, T and delay in units of input samples.
    """

    def __init__(
        self,
        symbols: NDArrayComplex,
        samples_per_symbol: float,
        delay: float = 0.0,
        shape: PulseShape = "triangle",
        rolloff: float = 0.35,
        span: int = 6,
        noise_std: float = 0.0,
        seed: int | None = None,
    ) -> None:
        if samples_per_symbol <= 0.0:
            raise ValueError("samples_per_symbol must be > 0")
        if shape not in ("triangle", "raised_cosine"):
            raise ValueError(f"unknown pulse shape '{shape}'")
        self.symbols = np.asarray(symbols, dtype=np.complex128)
        ok, reason = validate_samples(self.symbols, _MAX_SYMBOL_MAGNITUDE)
        if not ok:
            raise ValueError(f"invalid symbols: {reason}")
        self.samples_per_symbol = samples_per_symbol
        self.delay = delay
        self.shape = shape
        self.rolloff = rolloff
        # Triangle pulses only overlap their neighbours
        self.span = 1 if shape == "triangle" else span
        self.noise_std = noise_std
        self._rng = np.random.default_rng(seed)

    def _pulse(self, t: NDArrayFloat) -> NDArrayFloat:
        if self.shape == "triangle":
            return triangle_pulse(t, self.samples_per_symbol)
        return raised_cosine_pulse(t, self.samples_per_symbol, self.rolloff)

    def _clean(self, t: float) -> complex:
        position = (t - self.delay) / self.samples_per_symbol
        centre = math.floor(position)
        first = max(0, centre - self.span)
        last = min(len(self.symbols), centre + self.span + 2)
        if first >= last:
            return 0j
        k = np.arange(first, last)
        taps = self._pulse(t - k * self.samples_per_symbol - self.delay)
        return complex(np.dot(self.symbols[first:last], taps))

    def __call__(self, t: float) -> complex:
        value = self._clean(t)
        if self.noise_std > 0.0:
            value += complex(*self._rng.normal(0.0, self.noise_std, size=2))
        return value

    def derivative(self, t: float) -> complex:
        """Noise-free slope dr/dt by central difference."""
        h = _DERIVATIVE_STEP
        return (self._clean(t + h) - self._clean(t - h)) / (2.0 * h)

    @property
    def duration(self) -> float:
        """Time of the last symbol centre."""
        return (len(self.symbols) - 1) * self.samples_per_symbol + self.delay


def wrap_offset(offset: NDArrayFloat, period: float) -> NDArrayFloat:
    """Wrap offsets into [-period/2, period/2), like ClockTrackingLoop.phase_wrap()."""
    offset = np.asarray(offset, dtype=np.float64)
    return offset - period * np.floor(offset / period + 0.5)


@dataclass
class TrackingResult:
    """Per-symbol trace of a closed-loop run."""

    times: NDArrayFloat = field(default_factory=lambda: np.zeros(0))
    samples: NDArrayComplex = field(default_factory=lambda: np.zeros(0, dtype=np.complex128))
    errors: NDArrayFloat = field(default_factory=lambda: np.zeros(0))
    phases: NDArrayFloat = field(default_factory=lambda: np.zeros(0))
    avg_periods: NDArrayFloat = field(default_factory=lambda: np.zeros(0))
    inst_periods: NDArrayFloat = field(default_factory=lambda: np.zeros(0))

    def __len__(self) -> int:
        return len(self.times)

    def timing_offset(self, samples_per_symbol: float, delay: float = 0.0) -> NDArrayFloat:
        """Offset of each sampling instant from the nearest symbol centre."""
        return wrap_offset(self.times - delay, samples_per_symbol)


def track_timing(
    ted: TimingErrorDetector,
    loop: ClockTrackingLoop,
    waveform: PulseShapedWaveform,
    num_symbols: int,
    start_time: float | None = None,
) -> TrackingResult:
    """Run the detector and loop over `num_symbols` symbols.

    Args:
        ted: Detector with one input per symbol
        loop: Clock tracking loop; its phase is the next sampling instant
        waveform: Signal to sample
        num_symbols: Number of symbol decisions to make
        start_time: First sampling instant (default: keep loop.phase)

    Returns:
        TrackingResult with one entry per symbol
    """
    if ted.inputs_per_symbol != 1:
        raise ValueError(
            f"track_timing drives one input per symbol (detector wants {ted.inputs_per_symbol})"
        )
    if start_time is not None:
        loop.set_phase(start_time)

    needs_derivative = ted.mode.needs_derivative
    times = np.empty(num_symbols, dtype=np.float64)
    samples = np.empty(num_symbols, dtype=np.complex128)
    errors = np.empty(num_symbols, dtype=np.float64)
    phases = np.empty(num_symbols, dtype=np.float64)
    avg_periods = np.empty(num_symbols, dtype=np.float64)
    inst_periods = np.empty(num_symbols, dtype=np.float64)

    for n in range(num_symbols):
        t = loop.phase
        x = waveform(t)
        if needs_derivative:
            ted.input(x, waveform.derivative(t))
        else:
            ted.input(x)
        loop.advance_loop(ted.error)

        times[n] = t
        samples[n] = x
        errors[n] = ted.error
        phases[n] = loop.phase
        avg_periods[n] = loop.avg_period
        inst_periods[n] = loop.inst_period

    logger.debug(
        f"Tracked {num_symbols} symbols: final T_avg={loop.avg_period:.5f}, "
        f"last instant={loop.phase:.3f}"
    )
    return TrackingResult(
        times=times,
        samples=samples,
        errors=errors,
        phases=phases,
        avg_periods=avg_periods,
        inst_periods=inst_periods,
    )


@dataclass
class SimulationReport:
    """Convergence summary of a configured simulation run."""

    result: TrackingResult
    offsets: NDArrayFloat
    settle_symbols: int
    tolerance: float
    final_avg_period: float
    alpha: float
    beta: float

    @property
    def settled_offsets(self) -> NDArrayFloat:
        return self.offsets[self.settle_symbols :]

    @property
    def max_abs_offset(self) -> float:
        settled = self.settled_offsets
        return float(np.max(np.abs(settled))) if settled.size else math.nan

    @property
    def mean_offset(self) -> float:
        settled = self.settled_offsets
        return float(np.mean(settled)) if settled.size else math.nan

    @property
    def converged(self) -> bool:
        settled = self.settled_offsets
        return bool(settled.size) and self.max_abs_offset <= self.tolerance


def constellation_by_name(name: str | None) -> PointConstellation | None:
    if name is None:
        return None
    factories = {
        "bpsk": PointConstellation.bpsk,
        "qpsk": PointConstellation.qpsk,
        "pam4": lambda: PointConstellation.pam(4),
    }
    try:
        return factories[name]()
    except KeyError:
        raise ValueError(f"unknown constellation '{name}'") from None


def run_simulation(config: SymbolSyncConfig) -> SimulationReport:
    """Build detector, loop and waveform from config and track timing."""
    det_cfg = config.detector
    loop_cfg = config.loop
    sim_cfg = config.simulation

    constellation = constellation_by_name(det_cfg.constellation)
    ted = create_detector(
        det_cfg.algorithm,
        constellation,
        inputs_per_symbol=det_cfg.inputs_per_symbol,
        error_depth=det_cfg.error_depth,
    )
    loop = ClockTrackingLoop.from_config(
        loop_bw=loop_cfg.loop_bw,
        max_period=loop_cfg.max_period,
        min_period=loop_cfg.min_period,
        nominal_period=loop_cfg.samples_per_symbol,
        damping=loop_cfg.damping,
        ted_gain=loop_cfg.ted_gain,
    )

    # Symbols for the whole run plus pulse tails on both ends
    symbol_source = constellation or PointConstellation.bpsk()
    margin = 16
    count = int(sim_cfg.num_symbols * loop_cfg.max_period / sim_cfg.samples_per_symbol) + 2 * margin
    symbols = random_symbols(symbol_source, count, seed=sim_cfg.seed)
    waveform = PulseShapedWaveform(
        symbols,
        samples_per_symbol=sim_cfg.samples_per_symbol,
        delay=sim_cfg.delay,
        shape=sim_cfg.pulse_shape,
        rolloff=sim_cfg.rolloff,
        noise_std=sim_cfg.noise_std,
        seed=None if sim_cfg.seed is None else sim_cfg.seed + 1,
    )

    start_time = sim_cfg.start_time
    if start_time is None:
        start_time = 2.0 * loop_cfg.samples_per_symbol

    logger.info(
        f"Simulating {sim_cfg.num_symbols} symbols: {ted.algorithm.name}, "
        f"T={sim_cfg.samples_per_symbol}, delay={sim_cfg.delay}, "
        f"alpha={loop.alpha:.6f}, beta={loop.beta:.8f}"
    )
    result = track_timing(ted, loop, waveform, sim_cfg.num_symbols, start_time=start_time)
    offsets = result.timing_offset(sim_cfg.samples_per_symbol, sim_cfg.delay)

    return SimulationReport(
        result=result,
        offsets=offsets,
        settle_symbols=sim_cfg.settle_symbols,
        tolerance=sim_cfg.tolerance,
        final_avg_period=loop.avg_period,
        alpha=loop.alpha,
        beta=loop.beta,
    )
