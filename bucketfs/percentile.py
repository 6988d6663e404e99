"""Percentiles of sorted duration observations."""

import math
from collections.abc import Sequence


def duration_percentile(values: Sequence[int], p: int) -> int:
    """Return the p-th percentile of sorted durations, in the same unit.

    Linear interpolation between the two closest observations is used, which
    matches the PERCENTILE function of common spreadsheet programs. ``values``
    must be sorted and non-empty, and ``p`` must lie within 0..100.
    """
    count = len(values)
    rank = (float(p) / 100) * float(count - 1)
    fraction, whole = math.modf(rank)
    k = int(whole)

    if 0 <= k < count - 1:
        low = float(values[k])
        high = float(values[k + 1])
        return int(low + fraction * (high - low))

    if k == count - 1 and count > 0:
        return values[count - 1]

    raise ValueError("Invalid input")