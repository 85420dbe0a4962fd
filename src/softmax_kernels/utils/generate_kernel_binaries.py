#!/usr/bin/env python3

import importlib.util
import inspect
import json
import re
import sys
from pathlib import Path


def variant_name(kernel_name, constexprs):
    """Unique entry-point name for a kernel compiled with `constexprs`."""
    name_parts = [kernel_name]
    for key, value in sorted(constexprs.items()):
        # Replace minus with underscore for scientific notation
        value_str = str(value).replace('-', '_')
        name_parts.append(f"{key}_{value_str}")
    return '_'.join(name_parts)


def kernel_signature(kernel, constexprs):
    """Triton signature: fp32 pointers, i32 scalars, constexpr block sizes."""
    signature = {}
    for name in kernel.arg_names:
        if name in constexprs:
            signature[name] = 'constexpr'
        elif 'ptr' in name:
            signature[name] = '*fp32'
        else:
            signature[name] = 'i32'
    return signature


def compile_variant(kernel, constexprs):
    """Compile a kernel variant with specific constexpr values."""
    from triton.compiler import ASTSource, compile as triton_compile

    signature = kernel_signature(kernel, constexprs)
    src = ASTSource(kernel, signature, constexprs)
    compiled = triton_compile(src)

    runtime_args = [n for n in kernel.arg_names if n not in constexprs]
    ptx = compiled.asm['ptx']

    unique_name = variant_name(kernel.fn.__name__, constexprs)

    # Rename kernel in PTX so variants can share a module
    ptx = re.sub(r'\.visible \.entry \w+\(', f'.visible .entry {unique_name}(', ptx)
    ptx = re.sub(r'\.visible \.func \w+\(', f'.visible .func {unique_name}(', ptx)

    return {
        'ptx': ptx,
        'original_kernel_name': compiled.name,
        'renamed_kernel_name': unique_name,
        'cache_hash': compiled.hash,
        'runtime_args': runtime_args,
        'constexpr': constexprs
    }


def load_kernel_module(file_path):
    """Load a Python file and extract Triton kernels and variants."""
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Kernel file not found: {file_path}")

    module_name = f"kernel_module_{file_path.stem}_{hash(str(file_path))}"
    spec = importlib.util.spec_from_file_location(module_name, file_path)
    module = importlib.util.module_from_spec(spec)

    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise ImportError(f"Failed to load kernel module {file_path}: {e}") from e

    kernels = {}
    variants = None

    for name, obj in vars(module).items():
        if inspect.ismodule(obj):
            continue
        if hasattr(obj, '__call__') and hasattr(obj, 'fn'):
            kernels[name] = obj
        elif name == 'VARIANTS' and isinstance(obj, list):
            variants = obj

    return kernels, variants


def compile_kernel_file(file_path, output_dir):
    """Compile every variant of every kernel in a file to PTX."""
    print(f"\n{'='*60}")
    print(f"Processing: {file_path}")
    print('='*60)

    try:
        kernels, variants = load_kernel_module(file_path)
    except (FileNotFoundError, ImportError) as e:
        print(f"✗ Error loading file: {e}")
        return []

    if not kernels:
        print("✗ No Triton kernels found")
        return []

    if variants is None:
        print("✗ No VARIANTS list found")
        return []

    print(f"Found {len(kernels)} kernel(s): {list(kernels.keys())}")
    print(f"Found {len(variants)} variant(s)")

    all_results = []

    for kernel_name, kernel_func in kernels.items():
        print(f"\nCompiling {kernel_name}:")

        for i, config in enumerate(variants):
            config_str = ', '.join(f"{k}={v}" for k, v in config.items())
            print(f"  [{i+1}/{len(variants)}] {config_str}...", end=" ")

            try:
                result = compile_variant(kernel_func, config)
            except Exception as e:
                print(f"✗ Failed: {e}")
                continue
            print("✓")

            ptx_filename = f"{result['renamed_kernel_name']}.ptx"
            with open(output_dir / ptx_filename, 'w') as f:
                f.write(result.pop('ptx'))

            result['ptx_file'] = ptx_filename
            result['source_file'] = str(file_path)
            result['kernel_name'] = kernel_name
            all_results.append(result)

    return all_results


def find_kernel_files(directory):
    """Find all Python files that might contain Triton kernels."""
    directory = Path(directory)
    if not directory.exists():
        raise FileNotFoundError(f"Directory not found: {directory}")

    excluded_patterns = [
        "__pycache__",
        ".git",
        ".pytest_cache",
        "test_",
        "_test.py",
        "setup.py",
        "__init__.py"
    ]

    return sorted(
        path for path in directory.rglob("*.py")
        if not any(pattern in str(path.relative_to(directory)) for pattern in excluded_patterns)
    )


def build_metadata(all_results):
    """Group compiled variants by (source file, kernel)."""
    by_file = {}
    for result in all_results:
        key = (result['source_file'], result['kernel_name'])
        if key not in by_file:
            by_file[key] = {
                'kernel_name': result['kernel_name'],
                'source_file': result['source_file'],
                'runtime_args': result['runtime_args'],
                'variants': []
            }
        by_file[key]['variants'].append({
            'constexpr': result['constexpr'],
            'renamed_kernel_name': result['renamed_kernel_name'],
            'cache_hash': result['cache_hash'],
            'ptx_file': result['ptx_file'],
        })
    return {'kernels': list(by_file.values())}


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("Usage: python -m softmax_kernels.utils.generate_kernel_binaries <directory>")
        print("\nExample:")
        print("  python -m softmax_kernels.utils.generate_kernel_binaries src/softmax_kernels/kernels/")
        print("\nSearches for Python files containing:")
        print("  - @triton.jit decorated functions")
        print("  - A 'VARIANTS' list with parameter combinations")
        return 1

    input_dir = Path(argv[0])
    output_dir = Path(f"./ptx_{input_dir.name}")
    output_dir.mkdir(parents=True, exist_ok=True)

    print("="*60)
    print("SOFTMAX KERNEL COMPILER")
    print("="*60)
    print(f"Input directory:  {input_dir}")
    print(f"Output directory: {output_dir}")

    kernel_files = find_kernel_files(input_dir)
    print(f"\nFound {len(kernel_files)} Python file(s) to examine")

    if not kernel_files:
        print("No Python files found")
        return 1

    all_results = []
    for file_path in kernel_files:
        all_results.extend(compile_kernel_file(file_path, output_dir))

    if all_results:
        with open(output_dir / 'metadata.json', 'w') as f:
            json.dump(build_metadata(all_results), f, indent=2)

    print("\n" + "="*60)
    print("COMPILATION SUMMARY")
    print("="*60)
    print(f"Files processed:      {len(kernel_files)}")
    print(f"Total variants:       {len(all_results)}")
    print(f"Output directory:     {output_dir}")

    if not all_results:
        print("\n✗ No variants were compiled")
        return 1

    print(f"\n✓ Saved {len(all_results)} PTX files")
    print("✓ Saved metadata.json")
    return 0


if __name__ == "__main__":
    sys.exit(main())
