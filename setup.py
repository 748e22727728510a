"""
Setup script for gpprobit.

This setup is required or else
    >> ModuleNotFoundError: No module named 'gpprobit'
will occur.
"""

from setuptools import setup, find_packages
import pathlib


# The directory containing this file
HERE = pathlib.Path(__file__).parent


# The text of the README file
README = (HERE / "README.md").read_text()


setup(
    name="gpprobit",
    version="0.1.0",
    python_requires=">=3.8",
    description="gpprobit is a numerically stable probit likelihood for "
    "Gaussian process classification",
    long_description=README,
    long_description_content_type="text/markdown",
    license="MIT",
    packages=find_packages(exclude=["*.test", "examples"]),
    include_package_data=True,
    install_requires=[
        "numpy",
        "scipy",
        "jax",
        "backends>=1.4.32",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
        "examples": [
            "mlkernels>=0.3.6",
            "matplotlib",
        ],
    },
)
