#!/usr/bin/env python3

import triton
import triton.language as tl

@triton.jit
def safe_softmax(
    dst_ptr,        # Pointer to output matrix
    src_ptr,        # Pointer to input matrix
    n_rows,         # Number of rows
    n_cols,         # Number of columns
    BLOCK_SIZE: tl.constexpr, # Rows (threads) per program
):
    """
    Row-parallel stable softmax: max, then shifted exp-sum, then divide.
    Each lane owns one row and walks it three times.
    """
    pid = tl.program_id(axis=0)
    rows = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    row_mask = rows < n_rows
    row_start = rows * n_cols

    # First pass: row max, strict > keeps the earliest maximum
    row_max = tl.load(src_ptr + row_start, mask=row_mask, other=0.0)
    for j in range(0, n_cols):
        x = tl.load(src_ptr + row_start + j, mask=row_mask, other=0.0)
        row_max = tl.where(x > row_max, x, row_max)

    # Second pass: shifted denominator
    denom = tl.zeros([BLOCK_SIZE], dtype=tl.float32)
    for j in range(0, n_cols):
        x = tl.load(src_ptr + row_start + j, mask=row_mask, other=0.0)
        denom += tl.exp(x - row_max)

    # Third pass: normalize
    for j in range(0, n_cols):
        x = tl.load(src_ptr + row_start + j, mask=row_mask, other=0.0)
        tl.store(dst_ptr + row_start + j, tl.exp(x - row_max) / denom, mask=row_mask)


# Variants with different block sizes
VARIANTS = [
    {'BLOCK_SIZE': 256},
    {'BLOCK_SIZE': 128},
    {'BLOCK_SIZE': 512},
]
