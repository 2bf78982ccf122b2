"""Unit tests for the TED algorithm formulas and registry."""

import pytest

from symbolsync.dsp.constellation import PointConstellation
from symbolsync.dsp.ted_algorithms import (
    EarlyLate,
    Gardner,
    MuellerAndMuller,
    SignalTimesSlopeML,
    SignumTimesSlopeML,
    ZeroCrossing,
    available_algorithms,
    create_detector,
    get_algorithm,
)
from symbolsync.dsp.timing_error_detector import ConfigurationError, DetectorMode


def _feed(ted, samples):
    for x in samples:
        ted.input(x)
    return ted.error


class TestFormulas:
    """Tests for each error formula against hand-computed values."""

    def test_mueller_and_muller_real(self, bpsk):
        ted = MuellerAndMuller.build(bpsk)
        # x = [-0.8, 0.9], d = [-1, 1]
        assert _feed(ted, [0.9, -0.8]) == pytest.approx(1.0 * -0.8 - (-1.0) * 0.9)

    def test_mueller_and_muller_complex(self, qpsk):
        ted = MuellerAndMuller.build(qpsk)
        a = 0.6 + 0.8j
        b = -0.7 + 0.5j
        _feed(ted, [a, b])
        s = 2**-0.5
        d_a = complex(s, s)
        d_b = complex(-s, s)
        expected = (d_a.real * b.real - d_b.real * a.real) + (d_a.imag * b.imag - d_b.imag * a.imag)
        assert ted.error == pytest.approx(expected)

    def test_mueller_and_muller_zero_on_repeated_symbol(self, bpsk):
        ted = MuellerAndMuller.build(bpsk)
        assert _feed(ted, [1.0, 1.0]) == 0.0

    def test_zero_crossing(self, bpsk):
        ted = ZeroCrossing.build(bpsk)
        assert ted.inputs_per_symbol == 2
        assert ted.error_depth == 3
        # x = [-0.9, 0.1, 0.8], d = [-1, ., 1]
        assert _feed(ted, [0.8, 0.1, -0.9]) == pytest.approx((1.0 - (-1.0)) * 0.1)

    def test_gardner(self):
        ted = Gardner.build()
        # x = [-0.9, 0.1, 0.8]
        assert _feed(ted, [0.8, 0.1, -0.9]) == pytest.approx((0.8 - (-0.9)) * 0.1)

    def test_gardner_complex(self):
        ted = Gardner.build()
        _feed(ted, [1 + 1j, 0.2 - 0.1j, -1 + 1j])
        expected = (1.0 - (-1.0)) * 0.2 + (1.0 - 1.0) * -0.1
        assert ted.error == pytest.approx(expected)

    def test_gardner_ignores_constellation(self, bpsk):
        with_const = Gardner.build(bpsk)
        without = Gardner.build()
        samples = [0.8, 0.1, -0.9]
        assert _feed(with_const, samples) == pytest.approx(_feed(without, samples))

    def test_early_late(self):
        ted = EarlyLate.build()
        ted.input(0.4)
        ted.input(0.9)
        assert ted.input_clock == 1
        ted.input(0.5)
        assert ted.input_clock == 0
        ted.input_lookahead(0.3)
        # inputs during evaluation: [0.3, 0.5, 0.9]
        assert ted.error == pytest.approx((0.3 - 0.9) * 0.5)

    def test_signal_times_slope(self):
        ted = SignalTimesSlopeML.build()
        ted.input(0.5 - 2.0j, -1.5 + 0.25j)
        assert ted.error == pytest.approx(0.5 * -1.5 + -2.0 * 0.25)

    @pytest.mark.parametrize(
        "x,dx,expected",
        [
            (0.3, 2.0, 2.0),
            (-0.3, 2.0, -2.0),
            (0.0, 2.0, 0.0),
            (0.1 - 4.0j, 0.5 + 1.5j, 0.5 - 1.5),
        ],
    )
    def test_signum_times_slope(self, x, dx, expected):
        ted = SignumTimesSlopeML.build()
        ted.input(x, dx)
        assert ted.error == pytest.approx(expected)


class TestModes:
    """Tests for declared algorithm capabilities."""

    @pytest.mark.parametrize(
        "algorithm,mode,needs_constellation",
        [
            (MuellerAndMuller, DetectorMode.RETROSPECTIVE, True),
            (ZeroCrossing, DetectorMode.RETROSPECTIVE, True),
            (Gardner, DetectorMode.RETROSPECTIVE, False),
            (EarlyLate, DetectorMode.PREDICTIVE, False),
            (SignalTimesSlopeML, DetectorMode.RETROSPECTIVE_DERIVATIVE, False),
            (SignumTimesSlopeML, DetectorMode.RETROSPECTIVE_DERIVATIVE, False),
        ],
    )
    def test_declared_mode(self, algorithm, mode, needs_constellation):
        assert algorithm.mode is mode
        assert algorithm.needs_constellation is needs_constellation

    def test_zero_crossing_requires_constellation(self):
        with pytest.raises(ConfigurationError):
            ZeroCrossing.build()

    def test_overrides_applied(self, bpsk):
        ted = MuellerAndMuller.build(bpsk, inputs_per_symbol=4, error_depth=5)
        assert ted.inputs_per_symbol == 4
        assert ted.error_depth == 5


class TestRegistry:
    """Tests for algorithm lookup by name."""

    def test_all_registered(self):
        assert available_algorithms() == [
            "early_late",
            "gardner",
            "mueller_and_muller",
            "signal_times_slope_ml",
            "signum_times_slope_ml",
            "zero_crossing",
        ]

    def test_names_set_by_decorator(self):
        for name in available_algorithms():
            assert get_algorithm(name).name == name

    @pytest.mark.parametrize("name", ["Gardner", "  gardner ", "GARDNER"])
    def test_lookup_normalizes_case(self, name):
        assert get_algorithm(name) is Gardner

    def test_lookup_accepts_hyphens(self):
        assert get_algorithm("mueller-and-muller") is MuellerAndMuller

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError, match="unknown TED algorithm"):
            get_algorithm("costas")

    def test_create_detector(self):
        ted = create_detector("mueller_and_muller", PointConstellation.bpsk())
        assert ted.algorithm is MuellerAndMuller
        assert ted.input_clock == 0

    def test_create_detector_missing_constellation(self):
        with pytest.raises(ConfigurationError):
            create_detector("zero_crossing")
