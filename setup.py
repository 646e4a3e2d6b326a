#!/usr/bin/env python3
# =============================================================================
#  nwscript-blocks — setup.py
#
#  For new tooling, prefer:
#      pip install -e ".[dev]"
#      python -m build
#      python -m pytest
# =============================================================================

from __future__ import annotations

import re
from pathlib import Path

from setuptools import setup, find_packages

# ---------------------------------------------------------------------------
#  Read version from the package so we have a single source of truth.
# ---------------------------------------------------------------------------
_HERE = Path(__file__).resolve().parent


def _read_version() -> str:
    """Extract ``__version__`` from nwscript_blocks/__init__.py."""
    init = _HERE / "nwscript_blocks" / "__init__.py"
    text = init.read_text(encoding="utf-8")
    match = re.search(r'^__version__\s*=\s*"([^"]+)"', text, re.MULTILINE)
    if match:
        return match.group(1)
    return "0.0.0"


def _read_long_description() -> str:
    """Read README.md for the long description."""
    readme = _HERE / "README.md"
    if readme.exists():
        return readme.read_text(encoding="utf-8")
    return ""


def _read_requirements() -> list[str]:
    """Read requirements.txt if it exists."""
    req_file = _HERE / "requirements.txt"
    if req_file.exists():
        lines = req_file.read_text(encoding="utf-8").splitlines()
        return [
            ln.strip()
            for ln in lines
            if ln.strip() and not ln.strip().startswith("#")
        ]
    return []


setup(
    name="nwscript-blocks",
    version=_read_version(),
    description=(
        "Basic-block and control-flow graph construction for compiled "
        "NWScript (BioWare Aurora engine) bytecode."
    ),
    long_description=_read_long_description(),
    long_description_content_type="text/markdown",
    license="GPL-3.0-or-later",
    author="nwscript-blocks contributors",
    python_requires=">=3.8",
    packages=find_packages(
        include=[
            "nwscript_blocks",
            "nwscript_blocks.*",
        ],
        exclude=[
            "tests",
            "tests.*",
        ],
    ),
    install_requires=_read_requirements(),
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
        ],
        "viz": [
            "graphviz>=0.20",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Software Development :: Disassemblers",
        "Topic :: Games/Entertainment",
    ],
    keywords=[
        "nwscript",
        "aurora",
        "bioware",
        "bytecode",
        "control-flow",
        "reverse-engineering",
    ],
    zip_safe=False,
)
