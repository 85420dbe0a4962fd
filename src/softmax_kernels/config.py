#!/usr/bin/env python3

import os

import torch

# Launch geometry
BLOCK_SIZE_1D = 256
BLOCK_SIZE_2D = (16, 16)

# Bytes per float32 element
ELEMENT_SIZE = 4

DEVICE_ENV_VAR = "SOFTMAX_KERNELS_DEVICE"


def default_device_type():
    """
    Pick the torch device type kernels run on.

    SOFTMAX_KERNELS_DEVICE wins when set; otherwise cuda if present, else cpu
    (cpu only works with TRITON_INTERPRET=1).
    """
    requested = os.environ.get(DEVICE_ENV_VAR)
    if requested:
        requested = requested.strip().lower()
        if requested not in ("cuda", "cpu"):
            raise ValueError(
                f"{DEVICE_ENV_VAR} must be 'cuda' or 'cpu', got '{requested}'"
            )
        return requested
    return "cuda" if torch.cuda.is_available() else "cpu"


def interpreter_enabled():
    return os.environ.get("TRITON_INTERPRET", "0") == "1"
