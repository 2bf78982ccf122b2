"""Second-order clock tracking loop for symbol timing recovery.

The loop is a proportional-integral (PI) servo driven by the output of a
timing error detector. It tracks three quantities, all in units of input
sample clocks:

- Average clock period (integral arm output, samples/symbol)
- Instantaneous clock period (final PI output)
- Unwrapped clock phase (accumulated instantaneous period)

Loop gains are derived from the damping factor, the normalized natural
frequency and the detector gain using the closed-form discrete loop filter
design equations.

Reference: Rice, Michael. "Digital Communications: A Discrete-Time Approach",
Appendix C.
"""

from __future__ import annotations

import logging
import math

from symbolsync.validation import require

logger = logging.getLogger(__name__)


def calculate_loop_gains(
    omega_n_norm: float, zeta: float, ted_gain: float
) -> tuple[float, float]:
    """Calculate PI loop filter gains.

    Args:
        omega_n_norm: Normalized natural radian frequency (omega_n * T)
        zeta: Damping factor (1.0 = critically damped)
        ted_gain: Slope of the detector S-curve at zero timing offset

    Returns:
        Tuple of (alpha, beta): proportional and integral gains
    """
    omega_n_t = omega_n_norm
    zeta_omega_n_t = zeta * omega_n_t
    k0 = 2.0 / ted_gain
    k1 = math.exp(-zeta_omega_n_t)
    sinh_zeta_omega_n_t = math.sinh(zeta_omega_n_t)

    if zeta > 1.0:
        # Over-damped
        omega_d_t = omega_n_t * math.sqrt(zeta * zeta - 1.0)
        cosx_omega_d_t = math.cosh(omega_d_t)
    elif zeta == 1.0:
        # Critically damped: cosh(0) == cos(0) == 1
        cosx_omega_d_t = 1.0
    else:
        # Under-damped
        omega_d_t = omega_n_t * math.sqrt(1.0 - zeta * zeta)
        cosx_omega_d_t = math.cos(omega_d_t)

    alpha = k0 * k1 * sinh_zeta_omega_n_t
    beta = k0 * (1.0 - k1 * (sinh_zeta_omega_n_t + cosx_omega_d_t))
    return alpha, beta


class ClockTrackingLoop:
    """PI clock tracking loop with one-step rollback.

    Every field is supplied explicitly. When alpha/beta were not computed
    from zeta, omega_n_norm and ted_gain, call update_gains() afterwards
    (from_config() does this for you).

    Example usage:
        loop = ClockTrackingLoop.from_config(
            loop_bw=0.01, max_period=4.4, min_period=3.6,
            nominal_period=4.0, damping=0.707, ted_gain=0.25,
        )
        loop.advance_loop(ted.error)
        next_strobe = loop.phase
    """

    def __init__(
        self,
        avg_period: float,
        max_avg_period: float,
        min_avg_period: float,
        nom_avg_period: float,
        inst_period: float,
        phase: float,
        zeta: float,
        omega_n_norm: float,
        ted_gain: float,
        alpha: float,
        beta: float,
        prev_avg_period: float,
        prev_inst_period: float,
        prev_phase: float,
    ) -> None:
        self._avg_period = avg_period
        self._max_avg_period = max_avg_period
        self._min_avg_period = min_avg_period
        self._nom_avg_period = nom_avg_period
        self._inst_period = inst_period
        self._phase = phase
        self._zeta = zeta
        self._omega_n_norm = omega_n_norm
        self._ted_gain = ted_gain
        self._alpha = alpha
        self._beta = beta

        # For reverting the loop state one iteration (only)
        self._prev_avg_period = prev_avg_period
        self._prev_inst_period = prev_inst_period
        self._prev_phase = prev_phase

    @classmethod
    def from_config(
        cls,
        loop_bw: float,
        max_period: float,
        min_period: float,
        nominal_period: float = 0.0,
        damping: float = 2.0,
        ted_gain: float = 1.0,
    ) -> ClockTrackingLoop:
        """Build a loop starting at the nominal period with phase 0.

        A nominal period outside [min_period, max_period] (including the
        default 0.0) is replaced by the midpoint of the bounds.
        """
        require(max_period > 0.0, "maximum period must be > 0.0")
        require(min_period > 0.0, "minimum period must be > 0.0")
        require(min_period <= max_period, "minimum period must not exceed maximum period")
        require(loop_bw >= 0.0, "loop bandwidth must be >= 0.0")
        require(damping > 0.0, "damping factor must be > 0.0")
        require(ted_gain > 0.0, "expected ted gain must be > 0.0")

        loop = cls(
            avg_period=0.0,
            max_avg_period=max_period,
            min_avg_period=min_period,
            nom_avg_period=0.0,
            inst_period=0.0,
            phase=0.0,
            zeta=damping,
            omega_n_norm=loop_bw,
            ted_gain=ted_gain,
            alpha=0.0,
            beta=0.0,
            prev_avg_period=0.0,
            prev_inst_period=0.0,
            prev_phase=0.0,
        )
        loop.set_nom_avg_period(nominal_period)
        loop.set_avg_period(loop.nom_avg_period)
        loop.set_inst_period(loop.nom_avg_period)
        loop.set_phase(0.0)
        loop.update_gains()

        logger.debug(
            f"Clock tracking loop: T_nom={loop.nom_avg_period:.4f} "
            f"[{min_period:.4f}, {max_period:.4f}], bw={loop_bw:.5f}, "
            f"zeta={damping:.3f}, ted_gain={ted_gain:.4f}, "
            f"alpha={loop.alpha:.6f}, beta={loop.beta:.8f}"
        )
        return loop

    # ------------------------------------------------------------------
    # Loop operation
    # ------------------------------------------------------------------

    def advance_loop(self, error: float) -> None:
        """Advance the loop by one symbol using a timing error sample."""
        self._prev_avg_period = self._avg_period
        self._prev_inst_period = self._inst_period
        self._prev_phase = self._phase

        # Integral arm. Limited here since a large negative error would
        # otherwise drive the average period negative and hang phase_wrap().
        self._avg_period = self._avg_period + self._beta * error
        self.period_limit()

        # Proportional arm and final sum. A non-positive increment would move
        # the phase backwards, away from the next symbol.
        self._inst_period = self._avg_period + self._alpha * error
        if self._inst_period <= 0.0:
            self._inst_period = self._avg_period

        # Unwrapped; callers wrap lazily via phase_wrap()
        self._phase = self._phase + self._inst_period

    def revert_loop(self) -> None:
        """Undo the last advance_loop(). Only one level of undo is kept."""
        self._avg_period = self._prev_avg_period
        self._inst_period = self._prev_inst_period
        self._phase = self._prev_phase

    def phase_wrap(self) -> None:
        """Wrap the phase into [-avg_period/2, avg_period/2).

        A phase of exactly +avg_period/2 wraps to -avg_period/2. A non-finite
        phase, or a non-positive average period, leaves the phase unchanged.
        """
        period = self._avg_period
        if period <= 0.0 or not math.isfinite(self._phase):
            return
        limit = period / 2.0

        self._phase -= period * math.floor(self._phase / period + 0.5)
        # Rounding in the division can leave the result one period out
        if self._phase >= limit:
            self._phase -= period
        elif self._phase < -limit:
            self._phase += period

    def period_limit(self) -> None:
        """Clamp the average period into [min_avg_period, max_avg_period]."""
        if self._avg_period > self._max_avg_period:
            self._avg_period = self._max_avg_period
        elif self._avg_period < self._min_avg_period:
            self._avg_period = self._min_avg_period

    def update_gains(self) -> None:
        """Recompute alpha and beta from zeta, omega_n_norm and ted_gain."""
        self._alpha, self._beta = calculate_loop_gains(
            self._omega_n_norm, self._zeta, self._ted_gain
        )

    # ------------------------------------------------------------------
    # Loop parameters
    # ------------------------------------------------------------------

    def set_loop_bandwidth(self, bw: float) -> None:
        require(bw >= 0.0, "clock_tracking_loop: loop bandwidth must be >= 0.0")
        self._omega_n_norm = bw
        self.update_gains()

    def set_damping_factor(self, df: float) -> None:
        require(df > 0.0, "clock_tracking_loop: damping factor must be > 0.0")
        self._zeta = df
        self.update_gains()

    def set_ted_gain(self, ted_gain: float) -> None:
        require(ted_gain > 0.0, "clock_tracking_loop: expected ted gain must be > 0.0")
        self._ted_gain = ted_gain
        self.update_gains()

    def set_alpha(self, alpha: float) -> None:
        """Override the proportional gain until the next update_gains()."""
        self._alpha = alpha

    def set_beta(self, beta: float) -> None:
        """Override the integral gain until the next update_gains()."""
        self._beta = beta

    @property
    def loop_bandwidth(self) -> float:
        return self._omega_n_norm

    @property
    def damping_factor(self) -> float:
        return self._zeta

    @property
    def ted_gain(self) -> float:
        return self._ted_gain

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def beta(self) -> float:
        return self._beta

    # ------------------------------------------------------------------
    # Loop state
    # ------------------------------------------------------------------

    def set_avg_period(self, period: float) -> None:
        self._avg_period = period
        self._prev_avg_period = period

    def set_inst_period(self, period: float) -> None:
        self._inst_period = period
        self._prev_inst_period = period

    def set_phase(self, phase: float) -> None:
        # The shadow phase is likely inconsistent with tracking now, but a
        # revert right after an external override is not expected.
        self._prev_phase = phase
        self._phase = phase

    def set_nom_avg_period(self, period: float) -> None:
        if period < self._min_avg_period or period > self._max_avg_period:
            self._nom_avg_period = (self._max_avg_period + self._min_avg_period) / 2.0
        else:
            self._nom_avg_period = period

    def set_max_avg_period(self, period: float) -> None:
        self._max_avg_period = period

    def set_min_avg_period(self, period: float) -> None:
        self._min_avg_period = period

    @property
    def avg_period(self) -> float:
        return self._avg_period

    @property
    def inst_period(self) -> float:
        return self._inst_period

    @property
    def phase(self) -> float:
        return self._phase

    @property
    def nom_avg_period(self) -> float:
        return self._nom_avg_period

    @property
    def max_avg_period(self) -> float:
        return self._max_avg_period

    @property
    def min_avg_period(self) -> float:
        return self._min_avg_period
