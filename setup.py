#!/usr/bin/env python3
"""
Setup configuration for the Backup Store Integrity Layer.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the contents of README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

# Read requirements from requirements.txt
requirements = []
if (this_directory / "requirements.txt").exists():
    requirements = (this_directory / "requirements.txt").read_text().strip().split('\n')
    requirements = [req.strip() for req in requirements if req.strip() and not req.startswith('#')]

setup(
    name="backupstore-integrity",
    version="1.0.0",
    author="Project Think",
    author_email="",
    description="Block compression, checksum verification and mount reconciliation for backup stores",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=['compressors*', 'pipeline*']),
    py_modules=[
        'base_classes',
        'pipeline_configs',
        'resilience_patterns',
        'secure_utils',
    ],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: System :: Archiving :: Backup",
        "Topic :: System :: Archiving :: Compression",
        "Topic :: System :: Filesystems",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: POSIX :: Linux",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov",
            "pytest-asyncio",
            "pytest-mock",
            "black",
            "flake8",
            "mypy",
        ],
        "test": [
            "pytest>=7.0",
            "pytest-cov",
            "pytest-asyncio",
            "pytest-mock",
        ],
    },
    keywords=[
        "backup",
        "compression",
        "checksum",
        "integrity",
        "mount",
        "lz4",
        "zstd",
    ],
)
