#!/usr/bin/env python3
"""
connmgr - Setup Script

For development installation:
    pip install -e .[dev]
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read version from package
version = "0.1.0"

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text() if readme_path.exists() else ""

setup(
    name="connmgr",
    version=version,
    description="Connectivity status aggregation and notification daemon",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="connmgr Project",
    license="Apache-2.0",

    packages=find_packages(include=["connmgrd", "connmgrd.*", "connctl", "connctl.*"]),
    python_requires=">=3.9",

    install_requires=[
        "toml>=0.10",
    ],

    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=3.0",
            "black>=22.0",
            "mypy>=0.9",
        ],
    },

    entry_points={
        "console_scripts": [
            "connmgrd=connmgrd.main:main",
            "connctl=connctl.main:main",
        ],
    },

    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: No Input/Output (Daemon)",
        "Intended Audience :: System Administrators",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: System :: Networking",
    ],

    keywords="connectivity network status daemon connman",
)
