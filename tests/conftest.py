import os

import pytest
import torch

# Must be set before any @triton.jit decorator runs
if not torch.cuda.is_available():
    os.environ.setdefault("TRITON_INTERPRET", "1")

from softmax_kernels import Device  # noqa: E402


@pytest.fixture(scope="module")
def device():
    """Open one device for all tests in a module"""
    dev = Device.open()
    yield dev
    dev.close()
