"""Raw-to-clean ETL pipeline for opinion polling data."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pollbase")
except PackageNotFoundError:
    __version__ = "0.0.0+local"
