"""Generic timing error detector (TED) framework.

A TimingErrorDetector keeps rolling histories of recent input samples,
their derivatives and their sliced constellation decisions, and evaluates
a pluggable error algorithm once per symbol.

Algorithms differ along two axes, captured by DetectorMode:

- Derivative: whether the error formula consumes sample derivatives
- Look-ahead: whether the error is evaluated predictively, on the upcoming
  sample before the input clock advances (input_lookahead), or
  retrospectively once the input clock wraps (input)

All histories keep index 0 as the newest entry.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from enum import Enum
from typing import ClassVar, Sequence

from symbolsync.dsp.constellation import Constellation
from symbolsync.typing import Sample

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when a detector cannot be built from the given configuration."""


class ErrorPolicy(Enum):
    """What revert() does with the error value at a symbol boundary."""

    PRESERVE = "preserve"
    RESET = "reset"


class DetectorMode(Enum):
    """Input entry point combination implemented by an error algorithm."""

    RETROSPECTIVE = (False, False)
    RETROSPECTIVE_DERIVATIVE = (True, False)
    PREDICTIVE = (False, True)
    PREDICTIVE_DERIVATIVE = (True, True)

    @property
    def needs_derivative(self) -> bool:
        return self.value[0]

    @property
    def needs_lookahead(self) -> bool:
        return self.value[1]


History = Sequence[complex]


class TimingErrorAlgorithm(ABC):
    """Error formula plugged into a TimingErrorDetector.

    Subclasses declare their mode and data requirements as class attributes
    and implement compute_error(). Algorithms are stateless.
    """

    name: ClassVar[str]
    mode: ClassVar[DetectorMode]
    inputs_per_symbol: ClassVar[int] = 1
    error_depth: ClassVar[int] = 1
    needs_constellation: ClassVar[bool] = False

    @staticmethod
    @abstractmethod
    def compute_error(
        decision: History, inputs: History, derivative: History
    ) -> float:
        """Compute the timing error from the current histories."""

    @classmethod
    def check_constellation(cls, constellation: Constellation | None) -> None:
        if cls.needs_constellation and constellation is None:
            raise ConfigurationError(
                f"timing_error_detector: {cls.name} requires a constellation"
            )
        if constellation is not None and constellation.dimensionality() != 1:
            raise ConfigurationError(
                "timing_error_detector: constellation dimensionality "
                "(ie complex numbers per symbol) must be 1."
            )

    @classmethod
    def build(
        cls,
        constellation: Constellation | None = None,
        inputs_per_symbol: int | None = None,
        error_depth: int | None = None,
    ) -> TimingErrorDetector:
        """Build a detector running this algorithm.

        Raises:
            ConfigurationError: constellation is missing or not 1-D
        """
        return TimingErrorDetector(
            cls,
            inputs_per_symbol=cls.inputs_per_symbol if inputs_per_symbol is None else inputs_per_symbol,
            error_depth=cls.error_depth if error_depth is None else error_depth,
            constellation=constellation,
        )


def _zero_history(length: int) -> deque[complex]:
    return deque([0j] * length)


def _dup_back_same_size(history: deque[complex]) -> None:
    # Drop the newest entry and re-use the oldest one in place of the value
    # that was evicted by the last push.
    history.append(history[-1])
    history.popleft()


class TimingErrorDetector:
    """Rolling-history timing error detector.

    Example usage:
        ted = MuellerAndMuller.build(PointConstellation.bpsk())
        for x in strobe_samples:
            ted.input(x)
            loop.advance_loop(ted.error)
    """

    def __init__(
        self,
        algorithm: type[TimingErrorAlgorithm],
        inputs_per_symbol: int,
        error_depth: int,
        constellation: Constellation | None = None,
    ) -> None:
        algorithm.check_constellation(constellation)
        if inputs_per_symbol < 1:
            raise ValueError("timing_error_detector: inputs per symbol must be >= 1")
        if error_depth < algorithm.error_depth:
            raise ValueError(
                f"timing_error_detector: {algorithm.name} needs an error depth of "
                f"at least {algorithm.error_depth} (got {error_depth})"
            )

        self._algorithm = algorithm
        self._mode = algorithm.mode
        self._constellation = constellation
        self._inputs_per_symbol = inputs_per_symbol
        self._error_depth = error_depth

        self._error = 0.0
        self._prev_error = 0.0
        self._input_clock = 0
        self._input: deque[complex] = deque()
        self._input_derivative: deque[complex] = deque()
        self._decision: deque[complex] = deque()

        self.sync_reset()

        logger.debug(
            f"TED {algorithm.name}: mode={self._mode.name}, "
            f"ips={inputs_per_symbol}, depth={error_depth}, "
            f"constellation={'yes' if constellation is not None else 'no'}"
        )

    @property
    def algorithm(self) -> type[TimingErrorAlgorithm]:
        return self._algorithm

    @property
    def mode(self) -> DetectorMode:
        return self._mode

    @property
    def inputs_per_symbol(self) -> int:
        return self._inputs_per_symbol

    @property
    def error_depth(self) -> int:
        return self._error_depth

    @property
    def input_clock(self) -> int:
        return self._input_clock

    @property
    def error(self) -> float:
        """Most recent timing error."""
        return self._error

    @property
    def history(self) -> tuple[list[complex], list[complex], list[complex]]:
        """Snapshot of (inputs, derivatives, decisions), newest first."""
        return list(self._input), list(self._input_derivative), list(self._decision)

    def sync_reset(self) -> None:
        """Zero the error and histories and realign the input clock.

        The clock is left one step before a symbol boundary so the next
        input() lands on it.
        """
        self._error = 0.0
        self._prev_error = 0.0

        self._input = _zero_history(self._error_depth)
        self._input_derivative = _zero_history(self._error_depth)
        if self._constellation is not None:
            self._decision = _zero_history(self._error_depth)

        self._input_clock = self._inputs_per_symbol - 1

    def slice(self, x: Sample) -> complex:
        """Map a sample to its nearest ideal constellation point."""
        if self._constellation is None:
            return 0j
        index = self._constellation.decide(x)
        return complex(self._constellation.point(index))

    def input(self, x: Sample, dx: Sample | None = None) -> None:
        """Push one input sample (and derivative, if the mode uses one)."""
        self._check_derivative(dx)
        x = complex(x)

        self._input.appendleft(x)
        self._input.pop()

        if self._constellation is not None:
            self._decision.appendleft(self.slice(x))
            self._decision.pop()

        if self._mode.needs_derivative:
            self._input_derivative.appendleft(complex(dx))  # type: ignore[arg-type]
            self._input_derivative.pop()

        self._advance_input_clock()

        if not self._mode.needs_lookahead and self._input_clock == 0:
            self._prev_error = self._error
            self._error = self._compute_error()

    def input_lookahead(self, x: Sample, dx: Sample | None = None) -> None:
        """Evaluate the error on an upcoming sample without consuming it.

        Only predictive detectors use this, and only at a symbol boundary;
        otherwise it does nothing.
        """
        if not self._mode.needs_lookahead:
            return
        self._check_derivative(dx)
        if self._input_clock != 0:
            return

        x = complex(x)
        self._input.appendleft(x)
        if self._constellation is not None:
            self._decision.appendleft(self.slice(x))
        if self._mode.needs_derivative:
            self._input_derivative.appendleft(complex(dx))  # type: ignore[arg-type]

        self._prev_error = self._error
        self._error = self._compute_error()

        if self._mode.needs_derivative:
            self._input_derivative.popleft()
        if self._constellation is not None:
            self._decision.popleft()
        self._input.popleft()

    def revert(self, policy: ErrorPolicy = ErrorPolicy.PRESERVE) -> None:
        """Undo the last input() call.

        The evicted history entries are not kept; the oldest remaining entry
        is duplicated in their place, which no algorithm reads before it is
        pushed out again.
        """
        if self._input_clock == 0 and policy is ErrorPolicy.PRESERVE:
            self._error = self._prev_error
        self._revert_input_clock()

        if self._mode.needs_derivative:
            _dup_back_same_size(self._input_derivative)

        if self._constellation is not None:
            _dup_back_same_size(self._decision)

        _dup_back_same_size(self._input)

    def _compute_error(self) -> float:
        return float(
            self._algorithm.compute_error(
                self._decision, self._input, self._input_derivative
            )
        )

    def _check_derivative(self, dx: Sample | None) -> None:
        if self._mode.needs_derivative and dx is None:
            raise ValueError(
                f"timing_error_detector: {self._algorithm.name} needs a sample derivative"
            )
        if not self._mode.needs_derivative and dx is not None:
            raise ValueError(
                f"timing_error_detector: {self._algorithm.name} does not use derivatives"
            )

    def _advance_input_clock(self) -> None:
        self._input_clock = (self._input_clock + 1) % self._inputs_per_symbol

    def _revert_input_clock(self) -> None:
        if self._input_clock == 0:
            self._input_clock = self._inputs_per_symbol - 1
        else:
            self._input_clock -= 1
