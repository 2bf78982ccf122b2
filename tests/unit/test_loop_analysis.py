"""Tests for the linearized clock tracking loop model."""

import numpy as np
import pytest

from symbolsync.dsp.clock_tracking_loop import ClockTrackingLoop, calculate_loop_gains
from symbolsync.dsp.loop_analysis import (
    impulse_response,
    is_stable,
    loop_transfer_function,
    noise_bandwidth,
    pole_radius,
    settling_symbols,
    step_response,
)


def _gains(bw=0.01, zeta=0.707, ted_gain=0.25):
    alpha, beta = calculate_loop_gains(bw, zeta, ted_gain)
    return alpha, beta, ted_gain


class TestTransferFunction:
    def test_unity_dc_gain(self):
        b, a = loop_transfer_function(*_gains())
        assert np.sum(b) / np.sum(a) == pytest.approx(1.0)

    def test_pole_radius_matches_damping(self):
        # Poles sit near exp(-zeta * omega_n) for a narrow loop
        radius = pole_radius(*_gains(bw=0.01, zeta=0.707))
        assert radius == pytest.approx(np.exp(-0.707 * 0.01), abs=1e-4)

    def test_stability(self):
        assert is_stable(*_gains())
        assert not is_stable(*_gains(bw=0.0))
        # Proportional gain past the Jury bound
        assert not is_stable(2.5, 0.0001, 1.0)

    def test_unstable_loop_rejected(self):
        with pytest.raises(ValueError, match="not stable"):
            noise_bandwidth(*_gains(bw=0.0))
        with pytest.raises(ValueError, match="not stable"):
            settling_symbols(*_gains(bw=0.0))


class TestNoiseBandwidth:
    @pytest.mark.parametrize("bw,zeta", [(0.005, 0.707), (0.01, 0.707), (0.01, 1.0), (0.02, 2.0)])
    def test_matches_analog_loop(self, bw, zeta):
        """Narrow loops approach B_n*T = (omega_n*T/2) * (zeta + 1/(4*zeta))."""
        expected = 0.5 * bw * (zeta + 1.0 / (4.0 * zeta))
        assert noise_bandwidth(*_gains(bw=bw, zeta=zeta)) == pytest.approx(expected, rel=0.05)

    def test_independent_of_ted_gain(self):
        """The gains are scaled by 1/ted_gain, so the closed loop is unchanged."""
        assert noise_bandwidth(*_gains(ted_gain=0.25)) == pytest.approx(
            noise_bandwidth(*_gains(ted_gain=2.0))
        )

    def test_grows_with_bandwidth(self):
        assert noise_bandwidth(*_gains(bw=0.02)) > noise_bandwidth(*_gains(bw=0.01))

    def test_impulse_response_decays(self):
        h = impulse_response(*_gains())
        assert h[0] == 0.0
        assert abs(h[-1]) < 1e-9


class TestStepResponse:
    def test_settles_to_unity(self):
        step = step_response(*_gains(), num_symbols=5000)
        assert step[0] == 0.0
        assert step[-1] == pytest.approx(1.0, abs=1e-4)

    def test_wider_loop_settles_faster(self):
        assert settling_symbols(*_gains(bw=0.05)) < settling_symbols(*_gains(bw=0.01))

    def test_settling_count(self):
        alpha, beta, gain = _gains()
        n = settling_symbols(alpha, beta, gain, tolerance=0.05)
        step = step_response(alpha, beta, gain, num_symbols=n + 2000)
        assert abs(1.0 - step[n - 1]) > 0.05
        assert np.all(np.abs(1.0 - step[n:]) <= 0.05)

    def test_matches_clock_tracking_loop(self):
        """An ideal linear detector makes the real loop follow the model exactly."""
        alpha, beta, gain = _gains(bw=0.02)
        loop = ClockTrackingLoop.from_config(
            loop_bw=0.02, max_period=4.4, min_period=3.6,
            nominal_period=4.0, damping=0.707, ted_gain=gain,
        )
        num_symbols = 400
        deviation = np.empty(num_symbols)
        for n in range(num_symbols):
            deviation[n] = loop.phase - 4.0 * n
            # Symbol centres are one sample later than the nominal grid
            loop.advance_loop(gain * (1.0 - deviation[n]))

        np.testing.assert_allclose(
            deviation, step_response(alpha, beta, gain, num_symbols), atol=1e-9
        )
