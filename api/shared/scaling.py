"""
Feature scaling for distribution views.

Zero-variance inputs (zero range, zero std, zero IQR) are returned
unscaled rather than producing NaN or infinities.
"""

from enum import Enum
from typing import List, Sequence, Union

import numpy as np


class ScalingMethod(str, Enum):
    """Available scaling transforms."""

    NONE = "none"
    MINMAX = "minmax"
    ZSCORE = "zscore"
    ROBUST = "robust"

    @classmethod
    def parse(cls, value: Union[str, "ScalingMethod"]) -> "ScalingMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown scaling method {value!r} (expected one of: {valid})") from None


def _minmax(arr: np.ndarray) -> np.ndarray:
    span = arr.max() - arr.min()
    if span == 0:
        return arr
    return (arr - arr.min()) / span


def _zscore(arr: np.ndarray) -> np.ndarray:
    # The mean of a constant sequence can drift by one ulp
    if arr.max() == arr.min():
        return arr
    mean = arr.mean()
    std = np.sqrt(np.mean((arr - mean) ** 2))
    if std == 0:
        return arr
    return (arr - mean) / std


def _robust(arr: np.ndarray) -> np.ndarray:
    ordered = np.sort(arr)
    n = ordered.size
    # Quartiles by floored index, no interpolation
    q1 = ordered[int(n * 0.25)]
    q3 = ordered[int(n * 0.75)]
    median = ordered[int(n * 0.5)]
    iqr = q3 - q1
    if iqr == 0:
        return arr
    return (arr - median) / iqr


_TRANSFORMS = {
    ScalingMethod.MINMAX: _minmax,
    ScalingMethod.ZSCORE: _zscore,
    ScalingMethod.ROBUST: _robust,
}


def scale(values: Sequence[float], method: Union[str, ScalingMethod] = ScalingMethod.NONE) -> List[float]:
    """Apply a scaling transform to a numeric sequence.

    Args:
        values: Input numbers. Not modified.
        method: Scaling method or its name.

    Returns:
        A new list of transformed values (empty for empty input).
    """
    method = ScalingMethod.parse(method)
    arr = np.array(values, dtype=np.float64)
    if arr.size == 0:
        return []
    if method is ScalingMethod.NONE:
        return arr.tolist()
    return _TRANSFORMS[method](arr).tolist()
