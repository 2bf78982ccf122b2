"""Linearized analysis of the clock tracking loop.

Around lock the detector behaves like a gain K (the S-curve slope), so the
closed loop from the true symbol timing to the loop's sampling instants is

                  K*(alpha + beta)*z^-1 - K*alpha*z^-2
    H(z) = -------------------------------------------------
           1 + (K*(alpha + beta) - 2)*z^-1 + (1 - K*alpha)*z^-2

with one step per symbol. The integral arm is updated before the
proportional sum is formed, which is where the (alpha + beta) term comes
from. H(1) = 1: a static timing offset is tracked with no residual error.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from scipy import signal as scipy_signal

from symbolsync.typing import NDArrayFloat

logger = logging.getLogger(__name__)

# Impulse responses are run until the slowest pole decays below this
_IMPULSE_FLOOR = 1e-12
_MIN_IMPULSE_LENGTH = 64
_MAX_IMPULSE_LENGTH = 10_000_000


def loop_transfer_function(
    alpha: float, beta: float, ted_gain: float
) -> tuple[NDArrayFloat, NDArrayFloat]:
    """Return (b, a) coefficients of the closed-loop timing transfer function."""
    k1 = ted_gain * alpha
    k2 = ted_gain * beta
    b = np.array([0.0, k1 + k2, -k1])
    a = np.array([1.0, k1 + k2 - 2.0, 1.0 - k1])
    return b, a


def pole_radius(alpha: float, beta: float, ted_gain: float) -> float:
    """Largest closed-loop pole magnitude."""
    _, a = loop_transfer_function(alpha, beta, ted_gain)
    return float(np.max(np.abs(np.roots(a))))


def is_stable(alpha: float, beta: float, ted_gain: float) -> bool:
    """Jury test on the closed-loop denominator.

    A zero-bandwidth loop has a double pole at z = 1 and is reported unstable.
    """
    _, (_, a1, a2) = loop_transfer_function(alpha, beta, ted_gain)
    return bool(abs(a2) < 1.0 and 1.0 + a1 + a2 > 0.0 and 1.0 - a1 + a2 > 0.0)


def _require_stable(alpha: float, beta: float, ted_gain: float) -> float:
    if not is_stable(alpha, beta, ted_gain):
        raise ValueError(
            f"loop is not stable (alpha={alpha:.6g}, beta={beta:.6g}, "
            f"ted_gain={ted_gain:.6g})"
        )
    return pole_radius(alpha, beta, ted_gain)


def impulse_response(
    alpha: float, beta: float, ted_gain: float, length: int | None = None
) -> NDArrayFloat:
    """Closed-loop impulse response h[n].

    With length=None the response runs until the slowest pole has decayed
    to about 1e-12.

    Raises:
        ValueError: the loop is not stable
    """
    radius = _require_stable(alpha, beta, ted_gain)
    if length is None:
        if radius == 0.0:
            length = _MIN_IMPULSE_LENGTH
        else:
            length = math.ceil(math.log(_IMPULSE_FLOOR) / math.log(radius))
            length = min(max(length, _MIN_IMPULSE_LENGTH), _MAX_IMPULSE_LENGTH)

    b, a = loop_transfer_function(alpha, beta, ted_gain)
    impulse = np.zeros(length)
    impulse[0] = 1.0
    return scipy_signal.lfilter(b, a, impulse)


def noise_bandwidth(alpha: float, beta: float, ted_gain: float) -> float:
    """One-sided equivalent noise bandwidth B_n*T, normalized to the symbol rate.

    Uses Parseval: sum |h[n]|^2 = (1/2pi) * integral of |H|^2 over a full
    period, which is twice the one-sided bandwidth.
    """
    h = impulse_response(alpha, beta, ted_gain)
    bn_t = 0.5 * float(np.sum(h * h))
    logger.debug(f"Noise bandwidth B_n*T={bn_t:.6g} (alpha={alpha:.6g}, beta={beta:.6g})")
    return bn_t


def step_response(
    alpha: float, beta: float, ted_gain: float, num_symbols: int
) -> NDArrayFloat:
    """Sampling-instant response to a unit step in symbol timing."""
    b, a = loop_transfer_function(alpha, beta, ted_gain)
    return scipy_signal.lfilter(b, a, np.ones(num_symbols))


def settling_symbols(
    alpha: float,
    beta: float,
    ted_gain: float,
    tolerance: float = 0.05,
    max_symbols: int = 1_000_000,
) -> int:
    """Symbols until a timing step stays within `tolerance` of its final value.

    Raises:
        ValueError: the loop is not stable, or does not settle within
            max_symbols
    """
    _require_stable(alpha, beta, ted_gain)
    residual = np.abs(1.0 - step_response(alpha, beta, ted_gain, max_symbols))
    outside = np.flatnonzero(residual > tolerance)
    if outside.size == 0:
        return 0
    last = int(outside[-1])
    if last == max_symbols - 1:
        raise ValueError(f"loop does not settle within {max_symbols} symbols")
    return last + 1
