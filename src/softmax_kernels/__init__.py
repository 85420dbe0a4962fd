from .device import Buffer, Device, DeviceError, Kernel, Program
from .launch import (
    SOFTMAX_VARIANTS,
    grid_1d,
    grid_2d,
    naive_softmax,
    online_safe_softmax,
    safe_softmax,
    safe_softmax_2d,
    softmax,
)

__version__ = "0.1.0"
