from setuptools import setup, find_packages

setup(
    name="softmax_kernels",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.9",
    install_requires=[
        "triton>=3.0.0",
        "torch>=2.0.0",
        "numpy",
    ],
    extras_require={
        "test": ["pytest"],
    },
    author="Kernelize AI",
    description="Naive, safe and online-safe softmax kernels in Triton",
)
