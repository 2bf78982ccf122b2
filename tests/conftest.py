"""Shared pytest fixtures for symbolsync tests."""

import numpy as np
import pytest

from symbolsync.dsp.clock_tracking_loop import ClockTrackingLoop
from symbolsync.dsp.constellation import PointConstellation


@pytest.fixture
def bpsk() -> PointConstellation:
    return PointConstellation.bpsk()


@pytest.fixture
def qpsk() -> PointConstellation:
    return PointConstellation.qpsk()


@pytest.fixture
def two_dim_constellation() -> PointConstellation:
    """Constellation carrying two complex values per symbol."""
    return PointConstellation([1 + 0j, 1 + 0j, -1 + 0j, -1 + 0j], dimensionality=2)


@pytest.fixture
def make_loop():
    """Factory for loops built through the explicit constructor."""

    def _make(
        period: float = 4.0,
        min_period: float = 3.6,
        max_period: float = 4.4,
        phase: float = 0.0,
        zeta: float = 1.0,
        omega_n_norm: float = 0.01,
        ted_gain: float = 1.0,
    ) -> ClockTrackingLoop:
        loop = ClockTrackingLoop(
            avg_period=period,
            max_avg_period=max_period,
            min_avg_period=min_period,
            nom_avg_period=period,
            inst_period=period,
            phase=phase,
            zeta=zeta,
            omega_n_norm=omega_n_norm,
            ted_gain=ted_gain,
            alpha=0.0,
            beta=0.0,
            prev_avg_period=period,
            prev_inst_period=period,
            prev_phase=phase,
        )
        loop.update_gains()
        return loop

    return _make


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)
