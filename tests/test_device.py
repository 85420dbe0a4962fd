#!/usr/bin/env python3

import numpy as np
import pytest
import torch

from softmax_kernels import Device, DeviceError
from softmax_kernels.config import BLOCK_SIZE_1D, BLOCK_SIZE_2D, default_device_type
from softmax_kernels.kernels import naive_softmax, online_safe_softmax


def test_copy_round_trip(device):
    host = np.arange(24, dtype=np.float32) / 7.0
    buf = device.allocate(host.nbytes)

    device.copy_host_to_device(buf, host)
    device.synchronize()
    back = device.copy_device_to_host(buf, np.float32)

    assert buf.byte_length == 96
    assert np.array_equal(back, host)
    device.free(buf)


def test_copy_from_tensor(device):
    host = torch.linspace(-1.0, 1.0, 12, dtype=torch.float32).reshape(3, 4)
    buf = device.allocate(host.numel() * 4)

    device.copy_host_to_device(buf, host)
    back = device.copy_device_to_host(buf)

    assert np.array_equal(back, host.reshape(-1).numpy())


def test_copy_to_host_is_a_snapshot(device):
    buf = device.allocate(16)
    device.copy_host_to_device(buf, np.zeros(4, dtype=np.float32))
    snapshot = device.copy_device_to_host(buf)

    device.copy_host_to_device(buf, np.ones(4, dtype=np.float32))

    assert np.array_equal(snapshot, np.zeros(4, dtype=np.float32))


@pytest.mark.parametrize("byte_length", [0, -4, 3.5, "16"])
def test_allocate_rejects_bad_lengths(device, byte_length):
    with pytest.raises(ValueError):
        device.allocate(byte_length)


def test_copy_larger_than_buffer(device):
    buf = device.allocate(8)
    with pytest.raises(ValueError, match="buffer holds 8"):
        device.copy_host_to_device(buf, np.zeros(4, dtype=np.float32))


def test_freed_buffer_is_unusable(device):
    buf = device.allocate(16)
    device.free(buf)

    assert buf.released
    with pytest.raises(DeviceError):
        device.copy_device_to_host(buf)


def test_close_releases_buffers():
    dev = Device.open()
    buf = dev.allocate(64)

    dev.close()

    assert not dev.is_open
    assert buf.released
    with pytest.raises(DeviceError):
        dev.allocate(64)
    with pytest.raises(DeviceError):
        dev.synchronize()
    # Closing twice is harmless
    dev.close()


def test_context_manager():
    with Device.open() as dev:
        buf = dev.allocate(16)
        assert dev.is_open
    assert not dev.is_open
    assert buf.released


def test_program_entry_points(device):
    program = device.compile(naive_softmax)

    assert list(program.kernels) == ['naive_softmax']
    assert device.compile(naive_softmax) is program
    kernel = program.entry_point('naive_softmax')
    assert kernel.name == 'naive_softmax'

    with pytest.raises(DeviceError, match="No kernel 'main'"):
        program.entry_point('main')


def test_dispatch_failure_is_a_device_error(device):
    kernel = device.compile(online_safe_softmax).entry_point('online_safe_softmax')
    buf = device.allocate(64)

    # Missing the block-size constexprs
    with pytest.raises(DeviceError, match="online_safe_softmax"):
        kernel.dispatch((1, 1), buf, buf, 4, 4)


def test_info(device):
    info = device.info()

    assert info['type'] == device.device_type
    assert 'name' in info


def test_unsupported_device_type():
    with pytest.raises(DeviceError, match="Unsupported device type"):
        Device.open('tpu')


def test_cpu_requires_interpreter(monkeypatch):
    monkeypatch.setenv("TRITON_INTERPRET", "0")
    with pytest.raises(DeviceError, match="TRITON_INTERPRET"):
        Device.open('cpu')


def test_device_type_from_environment(monkeypatch):
    monkeypatch.setenv("SOFTMAX_KERNELS_DEVICE", " CPU ")
    assert default_device_type() == 'cpu'

    monkeypatch.setenv("SOFTMAX_KERNELS_DEVICE", "metal")
    with pytest.raises(ValueError, match="SOFTMAX_KERNELS_DEVICE"):
        default_device_type()

    monkeypatch.delenv("SOFTMAX_KERNELS_DEVICE")
    assert default_device_type() == ('cuda' if torch.cuda.is_available() else 'cpu')


def test_default_launch_geometry():
    assert BLOCK_SIZE_1D == 256
    assert BLOCK_SIZE_2D == (16, 16)
