#!/usr/bin/env python3

import inspect
import logging
import platform

import numpy as np
import torch

from .config import default_device_type, interpreter_enabled

logger = logging.getLogger(__name__)


class DeviceError(RuntimeError):
    """Fatal device-side failure: compile, launch, allocation or use after close."""


class Buffer:
    """
    Opaque handle to a fixed-size block of device memory.

    Created by Device.allocate and owned by whoever allocated it. Kernels only
    read or write through it.
    """

    def __init__(self, device, storage):
        self.device = device
        self._storage = storage

    @property
    def byte_length(self):
        return self.storage.numel()

    @property
    def released(self):
        return self._storage is None

    @property
    def storage(self):
        if self._storage is None:
            raise DeviceError("Buffer used after it was freed")
        return self._storage

    def as_tensor(self, dtype=torch.float32):
        """Flat view of the buffer as elements of `dtype`."""
        return self.storage.view(dtype)

    def __repr__(self):
        state = "released" if self.released else f"{self.byte_length} bytes"
        return f"Buffer({state})"


class Kernel:
    """A single entry point of a compiled program, launched over a grid."""

    def __init__(self, device, name, fn):
        self.device = device
        self.name = name
        self.fn = fn

    def dispatch(self, grid, *args, **constexprs):
        self.device._check_open()
        grid = tuple(int(g) for g in grid)
        launch_args = [a.as_tensor() if isinstance(a, Buffer) else a for a in args]
        logger.debug("dispatch %s grid=%s constexprs=%s", self.name, grid, constexprs)
        try:
            self.fn[grid](*launch_args, **constexprs)
        except Exception as e:
            raise DeviceError(f"Dispatch of kernel '{self.name}' failed: {e}") from e


class Program:
    """Kernels found in one kernel module, looked up by entry-point name."""

    def __init__(self, device, module):
        self.device = device
        self.module = module
        self.kernels = {}
        for name, obj in vars(module).items():
            if inspect.ismodule(obj):
                continue
            if hasattr(obj, '__call__') and hasattr(obj, 'fn'):
                self.kernels[name] = obj

    def entry_point(self, name):
        if name not in self.kernels:
            raise DeviceError(
                f"No kernel '{name}' in {self.module.__name__}. "
                f"Available: {sorted(self.kernels)}"
            )
        return Kernel(self.device, name, self.kernels[name])


class Device:
    """
    Context object for one compute device.

    Lifecycle is open -> use -> close. Every buffer allocated through the
    device is released on close. Also usable as a context manager:

        with Device.open() as dev:
            buf = dev.allocate(rows * cols * 4)
    """

    def __init__(self, device_type=None):
        self.device_type = device_type or default_device_type()
        self.torch_device = None
        self._buffers = []
        self._programs = {}

    @classmethod
    def open(cls, device_type=None):
        device = cls(device_type)
        device._open()
        return device

    def _open(self):
        if self.device_type == "cuda":
            if not torch.cuda.is_available():
                raise DeviceError("CUDA device requested but torch.cuda is not available")
            self.torch_device = torch.device("cuda", torch.cuda.current_device())
        elif self.device_type == "cpu":
            if not interpreter_enabled():
                raise DeviceError("CPU execution requires TRITON_INTERPRET=1")
            self.torch_device = torch.device("cpu")
        else:
            raise DeviceError(f"Unsupported device type '{self.device_type}'")
        logger.info("Opened device %s", self.torch_device)

    @property
    def is_open(self):
        return self.torch_device is not None

    def _check_open(self):
        if not self.is_open:
            raise DeviceError("Device is not open")

    def close(self):
        if not self.is_open:
            return
        for buffer in self._buffers:
            buffer._storage = None
        self._buffers = []
        self._programs = {}
        logger.info("Closed device %s", self.torch_device)
        self.torch_device = None

    def __enter__(self):
        if not self.is_open:
            self._open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def info(self):
        """Describe the device."""
        self._check_open()
        info = {
            'type': self.device_type,
            'interpreter': interpreter_enabled(),
        }
        if self.device_type == "cuda":
            props = torch.cuda.get_device_properties(self.torch_device)
            info['name'] = props.name
            info['capability'] = f"{props.major}.{props.minor}"
            info['total_memory'] = props.total_memory
            info['multiprocessors'] = props.multi_processor_count
        else:
            info['name'] = platform.processor() or platform.machine()
        return info

    # Memory

    def allocate(self, byte_length):
        self._check_open()
        if not isinstance(byte_length, (int, np.integer)) or byte_length <= 0:
            raise ValueError(f"byte_length must be a positive integer, got {byte_length!r}")
        try:
            storage = torch.empty(int(byte_length), dtype=torch.uint8, device=self.torch_device)
        except torch.cuda.OutOfMemoryError as e:
            raise DeviceError(f"Out of memory allocating {byte_length} bytes") from e
        buffer = Buffer(self, storage)
        self._buffers.append(buffer)
        logger.debug("allocate %d bytes", byte_length)
        return buffer

    def free(self, buffer):
        if buffer in self._buffers:
            self._buffers.remove(buffer)
        buffer._storage = None

    def copy_host_to_device(self, buffer, host_data):
        self._check_open()
        if isinstance(host_data, torch.Tensor):
            src = host_data.detach().contiguous().reshape(-1)
        else:
            src = torch.from_numpy(np.ascontiguousarray(host_data)).reshape(-1)
        src = src.view(torch.uint8)
        if src.numel() > buffer.byte_length:
            raise ValueError(
                f"Host data is {src.numel()} bytes, buffer holds {buffer.byte_length}"
            )
        buffer.storage[:src.numel()].copy_(src)
        logger.debug("copy host->device %d bytes", src.numel())

    def copy_device_to_host(self, buffer, dtype=np.float32):
        """
        Snapshot of the buffer contents as a flat numpy array of `dtype`.

        Only meaningful for kernel output after synchronize().
        """
        self._check_open()
        host = buffer.storage.cpu().numpy().copy()
        logger.debug("copy device->host %d bytes", host.nbytes)
        return host.view(dtype)

    def synchronize(self):
        self._check_open()
        if self.device_type == "cuda":
            torch.cuda.synchronize(self.torch_device)

    # Programs

    def compile(self, kernel_module):
        """Wrap a kernel module; Triton compiles each entry point on first dispatch."""
        self._check_open()
        key = kernel_module.__name__
        if key not in self._programs:
            self._programs[key] = Program(self, kernel_module)
        return self._programs[key]
