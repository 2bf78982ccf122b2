"""Symbol timing recovery DSP components.

- Clock tracking loop: 2nd-order PI servo with one-step rollback
- Timing error detector framework with pluggable algorithms
  (Mueller & Muller, zero crossing, Gardner, early-late, ML slope detectors)
- Constellations for decision-directed detectors
- Linearized loop analysis (noise bandwidth, step response)
"""

from symbolsync.dsp.clock_tracking_loop import ClockTrackingLoop, calculate_loop_gains
from symbolsync.dsp.constellation import Constellation, PointConstellation
from symbolsync.dsp.loop_analysis import (
    is_stable,
    loop_transfer_function,
    noise_bandwidth,
    settling_symbols,
    step_response,
)
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
from symbolsync.dsp.timing_error_detector import (
    ConfigurationError,
    DetectorMode,
    ErrorPolicy,
    TimingErrorAlgorithm,
    TimingErrorDetector,
)

__all__ = [
    "ClockTrackingLoop",
    "calculate_loop_gains",
    "Constellation",
    "PointConstellation",
    "is_stable",
    "loop_transfer_function",
    "noise_bandwidth",
    "settling_symbols",
    "step_response",
    "EarlyLate",
    "Gardner",
    "MuellerAndMuller",
    "SignalTimesSlopeML",
    "SignumTimesSlopeML",
    "ZeroCrossing",
    "available_algorithms",
    "create_detector",
    "get_algorithm",
    "ConfigurationError",
    "DetectorMode",
    "ErrorPolicy",
    "TimingErrorAlgorithm",
    "TimingErrorDetector",
]
