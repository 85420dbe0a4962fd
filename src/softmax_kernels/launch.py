#!/usr/bin/env python3

import logging

import numpy as np
import torch
import triton

from .config import BLOCK_SIZE_1D, BLOCK_SIZE_2D, ELEMENT_SIZE
from .device import Device
from .kernels import naive_softmax as naive_softmax_module
from .kernels import online_safe_softmax as online_safe_softmax_module
from .kernels import safe_softmax as safe_softmax_module
from .kernels import safe_softmax_2d as safe_softmax_2d_module

logger = logging.getLogger(__name__)


def grid_1d(n_rows, block_size=BLOCK_SIZE_1D):
    """One lane per row."""
    return (triton.cdiv(n_rows, block_size),)


def grid_2d(n_rows, n_cols, block_size=BLOCK_SIZE_2D):
    """One lane per output element."""
    block_m, block_n = block_size
    return (triton.cdiv(n_rows, block_m), triton.cdiv(n_cols, block_n))


def check_shape(shape):
    if len(shape) != 2:
        raise ValueError(f"shape must be (rows, cols), got {shape!r}")
    n_rows, n_cols = shape
    for name, value in (('rows', n_rows), ('cols', n_cols)):
        if not isinstance(value, (int, np.integer)) or isinstance(value, bool) or value <= 0:
            raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return int(n_rows), int(n_cols)


def check_buffer(buffer, n_rows, n_cols, role):
    expected = n_rows * n_cols * ELEMENT_SIZE
    if buffer.byte_length != expected:
        raise ValueError(
            f"{role} buffer is {buffer.byte_length} bytes, "
            f"shape ({n_rows}, {n_cols}) needs {expected}"
        )


def _launch(device, module, dst, src, shape, grid_fn, **constexprs):
    n_rows, n_cols = check_shape(shape)
    check_buffer(dst, n_rows, n_cols, "dst")
    check_buffer(src, n_rows, n_cols, "src")

    kernel = device.compile(module).entry_point(module.__name__.rsplit('.', 1)[-1])
    grid = grid_fn(n_rows, n_cols)
    logger.debug("%s shape=(%d, %d) grid=%s", kernel.name, n_rows, n_cols, grid)
    kernel.dispatch(grid, dst, src, n_rows, n_cols, **constexprs)
    return grid


def naive_softmax(device, dst, src, shape, block_size=BLOCK_SIZE_1D):
    """First exp, then sum, then divide. Returns the launch grid."""
    return _launch(
        device, naive_softmax_module, dst, src, shape,
        lambda rows, cols: grid_1d(rows, block_size),
        BLOCK_SIZE=block_size,
    )


def safe_softmax(device, dst, src, shape, block_size=BLOCK_SIZE_1D):
    """First max, then shifted exp and sum, then divide. Returns the launch grid."""
    return _launch(
        device, safe_softmax_module, dst, src, shape,
        lambda rows, cols: grid_1d(rows, block_size),
        BLOCK_SIZE=block_size,
    )


def safe_softmax_2d(device, dst, src, shape, block_size=BLOCK_SIZE_2D):
    """Max, shifted sum and divide, one lane per output element. Returns the launch grid."""
    return _launch(
        device, safe_softmax_2d_module, dst, src, shape,
        lambda rows, cols: grid_2d(rows, cols, block_size),
        BLOCK_SIZE_M=block_size[0], BLOCK_SIZE_N=block_size[1],
    )


def online_safe_softmax(device, dst, src, shape, block_size=BLOCK_SIZE_2D):
    """Max and sum in a single pass, one lane per output element. Returns the launch grid."""
    return _launch(
        device, online_safe_softmax_module, dst, src, shape,
        lambda rows, cols: grid_2d(rows, cols, block_size),
        BLOCK_SIZE_M=block_size[0], BLOCK_SIZE_N=block_size[1],
    )


SOFTMAX_VARIANTS = {
    'naive': naive_softmax,
    'safe': safe_softmax,
    'safe_2d': safe_softmax_2d,
    'online_safe': online_safe_softmax,
}


def softmax(x, variant='online_safe', device=None):
    """
    Row-wise softmax of a 2D float32 matrix through one of the kernels.

    Args:
        x: numpy array or torch tensor of shape (rows, cols)
        variant: key of SOFTMAX_VARIANTS
        device: open Device; a temporary one is opened and closed if None

    Returns:
        CPU float32 torch tensor of the same shape
    """
    if variant not in SOFTMAX_VARIANTS:
        raise ValueError(f"Unknown variant '{variant}'. Available: {sorted(SOFTMAX_VARIANTS)}")
    if isinstance(x, torch.Tensor):
        host = x.detach().to('cpu', torch.float32).numpy()
    else:
        host = np.asarray(x, dtype=np.float32)
    if host.ndim != 2:
        raise ValueError(f"Expected a 2D matrix, got {host.ndim} dimensions")
    shape = check_shape(host.shape)

    if device is None:
        with Device.open() as dev:
            return softmax(host, variant, dev)

    src = device.allocate(host.nbytes)
    dst = device.allocate(host.nbytes)
    try:
        device.copy_host_to_device(src, host)
        SOFTMAX_VARIANTS[variant](device, dst, src, shape)
        device.synchronize()
        out = device.copy_device_to_host(dst, np.float32)
    finally:
        device.free(src)
        device.free(dst)
    return torch.from_numpy(out.reshape(shape))
