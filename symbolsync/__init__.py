from symbolsync.dsp import (
    ClockTrackingLoop,
    ConfigurationError,
    DetectorMode,
    ErrorPolicy,
    MuellerAndMuller,
    PointConstellation,
    TimingErrorDetector,
    create_detector,
)

__all__ = [
    "__version__",
    "ClockTrackingLoop",
    "ConfigurationError",
    "DetectorMode",
    "ErrorPolicy",
    "MuellerAndMuller",
    "PointConstellation",
    "TimingErrorDetector",
    "create_detector",
]

__version__ = "0.1.0"
