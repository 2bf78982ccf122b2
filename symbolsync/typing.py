from __future__ import annotations

from typing import Any, TypeAlias

import numpy as np
import numpy.typing as npt

NDArrayFloat: TypeAlias = npt.NDArray[np.floating[Any]]
NDArrayComplex: TypeAlias = npt.NDArray[np.complexfloating[Any, Any]]

# Scalar sample accepted by detectors and constellations
Sample: TypeAlias = complex | float
