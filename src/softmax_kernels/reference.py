"""
Host-side NumPy statement of the row reduction the kernels share.

For row i: m = max_j x[i, j], d = sum_j exp(x[i, j] - m),
softmax(x)[i, j] = exp(x[i, j] - m) / d. Used as the oracle in tests.
"""

import numpy as np


def row_max(row):
    """
    Linear scan for the row maximum with a strict > comparison.

    Returns (index, value). Ties keep the earliest maximum, the same choice
    the kernels make.
    """
    row = np.asarray(row, dtype=np.float32)
    if row.size == 0:
        raise ValueError("row must contain at least one element")
    best_idx = 0
    best = row[0]
    for idx in range(1, row.size):
        if row[idx] > best:
            best = row[idx]
            best_idx = idx
    return best_idx, best


def row_stats(x):
    """
    Per-row shift and denominator of a 2D float32 matrix.

    Returns (maxes, denoms), both of shape (n_rows,).
    """
    x = np.asarray(x, dtype=np.float32)
    if x.ndim != 2:
        raise ValueError(f"Expected a 2D matrix, got {x.ndim} dimensions")
    if x.shape[1] == 0:
        raise ValueError("Rows must contain at least one element")
    maxes = np.max(x, axis=1)
    denoms = np.sum(np.exp(x - maxes[:, None]), axis=1, dtype=np.float32)
    return maxes, denoms


def online_row_stats(row):
    """
    Single pass over a row, rescaling the running sum whenever the max moves.

    Returns (running_max, denom) as float32 scalars.
    """
    row = np.asarray(row, dtype=np.float32)
    if row.size == 0:
        raise ValueError("row must contain at least one element")
    running_max = row[0]
    denom = np.float32(0.0)
    for val in row:
        if val > running_max:
            denom = denom * np.exp(running_max - val)
            running_max = val
        denom = denom + np.exp(val - running_max)
    return running_max, np.float32(denom)


def softmax_reference(x, stable=True):
    """
    Row-wise softmax of a 2D matrix.

    With stable=False no shift is applied, which overflows for inputs above
    roughly 88.7 like the naive kernel does.
    """
    x = np.asarray(x, dtype=np.float32)
    if stable:
        maxes, denoms = row_stats(x)
        return np.exp(x - maxes[:, None]) / denoms[:, None]
    with np.errstate(over='ignore', invalid='ignore'):
        exp_x = np.exp(x)
        return exp_x / np.sum(exp_x, axis=1, keepdims=True)
