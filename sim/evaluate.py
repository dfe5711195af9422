"""
Trajectory evaluation.

Piecewise-linear interpolation of a Solution at arbitrary query times.
Works the same for primary and auxiliary solutions, whose sample times
may differ.

Out-of-range policy: any query time before times[0] or after times[-1]
raises OutOfRangeError. Nothing is clamped or extrapolated. Queries that
hit a sample time return the stored value exactly.
"""

import numpy as np
from typing import Optional, Sequence, Union

from core.exceptions import EvaluationError, OutOfRangeError


def evaluate(result, query_times: Union[float, Sequence[float], np.ndarray],
             indices: Optional[Union[int, Sequence[int], slice]] = None) -> np.ndarray:
    """
    Interpolate a solution at the given times.

    Args:
        result: Solution (primary or auxiliary)
        query_times: Scalar or 1-D sequence of times
        indices: Flat row indices to return (default: all rows). Resolve
            names to indices with VariableMap.indices().

    Returns:
        Interpolated values (n_selected_rows x n_query_times)

    Raises:
        OutOfRangeError: A query time lies outside [times[0], times[-1]]
        EvaluationError: An index is not a valid row
    """
    q = np.atleast_1d(np.asarray(query_times, dtype=float))
    if q.ndim != 1:
        raise EvaluationError("Query times must be a scalar or a 1-D sequence",
                              {'shape': q.shape})
    times = result.times
    lo, hi = times[0], times[-1]
    outside = (q < lo) | (q > hi)
    if np.any(outside):
        raise OutOfRangeError("Query time outside the solved interval",
                              {'interval': (float(lo), float(hi)),
                               'query': float(q[outside][0])})

    rows = _select_rows(result.values, indices)
    if rows.shape[0] == 0:
        return np.empty((0, q.size))
    if times.size == 1:
        return np.repeat(rows[:, :1], q.size, axis=1)
    return np.vstack([np.interp(q, times, row) for row in rows])


def _select_rows(values: np.ndarray, indices) -> np.ndarray:
    if indices is None:
        return values
    if isinstance(indices, slice):
        return values[indices]
    idx = np.atleast_1d(np.asarray(indices))
    if idx.size and not np.issubdtype(idx.dtype, np.integer):
        raise EvaluationError("Row indices must be integers", {'dtype': str(idx.dtype)})
    idx = idx.astype(int)
    n = values.shape[0]
    if np.any((idx < 0) | (idx >= n)):
        raise EvaluationError("Row index out of range", {'n_rows': n})
    return values[idx]
