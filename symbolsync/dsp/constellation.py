"""Symbol constellations and nearest-point decisions.

Timing error detectors that are decision directed only need three things
from a constellation: a decision index for a received sample, the ideal
point for an index, and the number of complex values per symbol.
PointConstellation also maps an index to all of its points.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

import numpy as np

from symbolsync.typing import NDArrayComplex, Sample


@runtime_checkable
class Constellation(Protocol):
    """Decision capability consumed by timing error detectors."""

    def decide(self, sample: Sample) -> int: ...

    def point(self, index: int) -> complex: ...

    def dimensionality(self) -> int: ...


class PointConstellation:
    """Constellation defined by an explicit list of ideal points.

    Decisions pick the nearest point in Euclidean distance. For
    dimensionality > 1 each symbol index maps to `dimensionality`
    consecutive points and decisions are not supported.

    Example usage:
        qpsk = PointConstellation.qpsk()
        idx = qpsk.decide(0.9 + 0.8j)
        ideal = qpsk.point(idx)
    """

    def __init__(self, points: Sequence[complex], dimensionality: int = 1) -> None:
        if dimensionality < 1:
            raise ValueError("constellation dimensionality must be >= 1")
        if len(points) == 0 or len(points) % dimensionality != 0:
            raise ValueError(
                f"constellation needs a non-zero multiple of {dimensionality} points"
            )
        self._points: NDArrayComplex = np.asarray(points, dtype=np.complex128)
        self._dimensionality = dimensionality

    @classmethod
    def bpsk(cls) -> PointConstellation:
        return cls([-1.0 + 0j, 1.0 + 0j])

    @classmethod
    def qpsk(cls) -> PointConstellation:
        # Gray-ordered, unit energy
        return cls(np.array([1 + 1j, -1 + 1j, -1 - 1j, 1 - 1j]) / np.sqrt(2))

    @classmethod
    def pam(cls, order: int) -> PointConstellation:
        """Real-valued PAM with levels -(M-1), ..., M-1 normalized to unit energy."""
        if order < 2:
            raise ValueError("PAM order must be >= 2")
        levels = np.arange(-(order - 1), order, 2, dtype=np.float64)
        levels /= np.sqrt(np.mean(levels**2))
        return cls(levels.astype(np.complex128))

    @property
    def points(self) -> NDArrayComplex:
        return self._points

    def __len__(self) -> int:
        return len(self._points) // self._dimensionality

    def dimensionality(self) -> int:
        return self._dimensionality

    def decide(self, sample: Sample) -> int:
        if self._dimensionality != 1:
            raise ValueError("nearest-point decisions need a 1-D constellation")
        distances = np.abs(self._points - complex(sample))
        return int(np.argmin(distances))

    def map_to_points(self, index: int) -> list[complex]:
        start = index * self._dimensionality
        return [complex(p) for p in self._points[start : start + self._dimensionality]]

    def point(self, index: int) -> complex:
        return complex(self._points[index * self._dimensionality])
