#!/usr/bin/env python3

import argparse
import sys

import numpy as np

from .device import Device, DeviceError
from .launch import SOFTMAX_VARIANTS

FILLS = ['ones', 'range', 'random']


def gen_data(shape, fill='ones', seed=0):
    """Host input matrix, flat float32 of rows*cols elements."""
    rows, cols = shape
    n = rows * cols
    if fill == 'ones':
        return np.ones(n, dtype=np.float32)
    if fill == 'range':
        return (np.arange(n, dtype=np.float32) % cols) / cols
    if fill == 'random':
        return np.random.default_rng(seed).standard_normal(n).astype(np.float32)
    raise ValueError(f"Unknown fill '{fill}'. Use one of {FILLS}")


def format_matrix(host, shape):
    rows, cols = shape
    host = np.asarray(host).reshape(rows, cols)
    lines = [" ".join(f"{v:.3f}" for v in row) + " " for row in host]
    return "\n".join(lines) + "\n\n"


def print_matrix(device, buffer, shape):
    host = device.copy_device_to_host(buffer, np.float32)
    print(format_matrix(host, shape), end="")


def print_device_info(device):
    print("DEVICE")
    for key, value in device.info().items():
        print(f"  {key}: {value}")


def run(variant, shape, fill='ones', seed=0, show=True, device_type=None):
    """Upload a matrix, run one softmax kernel and print input and result."""
    launch = SOFTMAX_VARIANTS[variant]
    with Device.open(device_type) as device:
        print_device_info(device)

        a = gen_data(shape, fill, seed)
        a_dev = device.allocate(a.nbytes)
        device.copy_host_to_device(a_dev, a)
        if show:
            print("INPUT")
            print_matrix(device, a_dev, shape)

        result = device.allocate(a.nbytes)
        grid = launch(device, result, a_dev, shape)
        device.synchronize()
        print(f"{variant}: shape={shape[0]}x{shape[1]} grid={list(grid)}")
        if show:
            print_matrix(device, result, shape)
        return device.copy_device_to_host(result, np.float32).reshape(shape)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Run a softmax kernel over a matrix and print the result",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --variant online_safe --rows 1000 --cols 1000 --no-print
  %(prog)s --variant naive --rows 5 --cols 4 --fill random --seed 3
        """
    )
    parser.add_argument("--variant", choices=sorted(SOFTMAX_VARIANTS), default="online_safe",
                        help="Kernel to run (default: online_safe)")
    parser.add_argument("--rows", type=int, default=1000, help="Number of rows")
    parser.add_argument("--cols", type=int, default=1000, help="Number of columns")
    parser.add_argument("--fill", choices=FILLS, default="ones",
                        help="Input matrix contents (default: ones)")
    parser.add_argument("--seed", type=int, default=0, help="Seed for --fill random")
    parser.add_argument("--device", choices=["cuda", "cpu"],
                        help="Device type (default: cuda if available)")
    parser.add_argument("--no-print", dest="show", action="store_false",
                        help="Do not print the matrices")

    args = parser.parse_args(argv)

    if args.rows <= 0 or args.cols <= 0:
        parser.error("--rows and --cols must be positive")

    try:
        run(args.variant, (args.rows, args.cols), args.fill, args.seed, args.show, args.device)
    except DeviceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
