# Copyright (C) 2022-2026, François-Guillaume Fernandez.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

"""
Package build: metadata lives in pyproject.toml, this only resolves & stamps the version
"""

import os
from pathlib import Path

from setuptools import setup

PKG_NAME = "tagger-api"
DEFAULT_VERSION = "0.1.0.dev0"
VERSION_FILE = Path(__file__).parent.absolute().joinpath("tagger", "version.py")


def resolve_version() -> str:
    # Release pipelines provide the version, tags may carry a leading "v"
    version = os.getenv("BUILD_VERSION", "").strip()
    return version[1:] if version.startswith("v") else (version or DEFAULT_VERSION)


if __name__ == "__main__":
    version = resolve_version()
    print(f"Building {PKG_NAME}=={version}")

    # Keep tagger.__version__ in sync with the built distribution
    VERSION_FILE.write_text(f"__version__ = '{version}'\n", encoding="utf-8")

    setup(name=PKG_NAME, version=version)
