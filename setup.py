"""
Setup script for Labelmaker - per-repository GitHub web hooks
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

# Read requirements
requirements = []
with open(this_directory / "requirements.txt", "r") as f:
    for line in f:
        line = line.strip()
        if line and not line.startswith("#"):
            requirements.append(line)

# Core dependencies (without development tools)
core_requirements = [
    req for req in requirements
    if not any(dev in req for dev in ["pytest"])
]

# Development dependencies
dev_requirements = [
    req for req in requirements
    if any(dev in req for dev in ["pytest"])
]

setup(
    name="labelmaker",
    version="0.2.0",
    author="Labelmaker Team",
    author_email="",
    description="Install GitHub web hooks per repository and verify their callbacks",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Version Control :: Git",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.11",
    install_requires=core_requirements,
    extras_require={
        "dev": dev_requirements,
        "test": dev_requirements,
    },
    entry_points={
        "console_scripts": [
            "labelmaker=labelmaker.cli.main:main",
        ],
    },
    zip_safe=False,
)
