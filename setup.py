"""
Setup script for stable_fluids package.
"""

from setuptools import setup, find_packages

setup(
    name="stable_fluids",
    version="0.1.0",
    description="Real-time 2D stable fluids solver with FFT projection and tracer particles",
    author="Andrey",
    packages=find_packages(include=["stablefluids", "stablefluids.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20",
        "numba>=0.56",
        "matplotlib>=3.5",
        "scipy>=1.7",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
        "dev": ["pytest>=7.0", "black", "flake8"],
    },
)
