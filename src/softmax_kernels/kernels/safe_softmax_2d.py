#!/usr/bin/env python3

import triton
import triton.language as tl

@triton.jit
def safe_softmax_2d(
    dst_ptr,        # Pointer to output matrix
    src_ptr,        # Pointer to input matrix
    n_rows,         # Number of rows
    n_cols,         # Number of columns
    BLOCK_SIZE_M: tl.constexpr, # Threads per program along rows
    BLOCK_SIZE_N: tl.constexpr, # Threads per program along columns
):
    """
    Element-parallel stable softmax on a 2-D grid.

    Every lane (i, j) rescans all of row i for its max and denominator, then
    writes dst[i, j] only. The row scan is repeated once per column.
    """
    pid_m = tl.program_id(axis=0)
    pid_n = tl.program_id(axis=1)
    offs_m = pid_m * BLOCK_SIZE_M + tl.arange(0, BLOCK_SIZE_M)
    offs_n = pid_n * BLOCK_SIZE_N + tl.arange(0, BLOCK_SIZE_N)

    # Per-lane coordinates, shape (BLOCK_SIZE_M, BLOCK_SIZE_N)
    lane_rows = offs_m[:, None] + 0 * offs_n[None, :]
    lane_cols = offs_n[None, :] + 0 * offs_m[:, None]
    mask = (lane_rows < n_rows) & (lane_cols < n_cols)
    row_start = lane_rows * n_cols

    row_max = tl.load(src_ptr + row_start, mask=mask, other=0.0)
    for k in range(0, n_cols):
        x = tl.load(src_ptr + row_start + k, mask=mask, other=0.0)
        row_max = tl.where(x > row_max, x, row_max)

    denom = tl.zeros([BLOCK_SIZE_M, BLOCK_SIZE_N], dtype=tl.float32)
    for k in range(0, n_cols):
        x = tl.load(src_ptr + row_start + k, mask=mask, other=0.0)
        denom += tl.exp(x - row_max)

    x = tl.load(src_ptr + row_start + lane_cols, mask=mask, other=0.0)
    tl.store(dst_ptr + row_start + lane_cols, tl.exp(x - row_max) / denom, mask=mask)


# Variants with different block shapes
VARIANTS = [
    {'BLOCK_SIZE_M': 16, 'BLOCK_SIZE_N': 16},
    {'BLOCK_SIZE_M': 8, 'BLOCK_SIZE_N': 32},
    {'BLOCK_SIZE_M': 32, 'BLOCK_SIZE_N': 8},
]
