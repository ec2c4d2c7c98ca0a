"""
Setup script so `fastpress` can be installed / recognized as a package.
"""

from setuptools import setup, find_packages

setup(
    name="fastpress",
    version="1.0.0",
    description="Request layer for the Fastpress Python web framework",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
)
