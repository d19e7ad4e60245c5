"""
Bidscreen package initializer.

This package keeps live auction displays in sync: it decides whether an
auction lives in per-device storage or in the hosted database, queues
writes made while offline and fans reconciled snapshots out to displays.

The package exposes a ``__version__`` attribute read from the installed
distribution metadata (pyproject.toml is the single source of truth).
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("bidscreen")
except PackageNotFoundError:
    # Package is not installed (running from source without pip install -e .)
    __version__ = "0.0.0.dev"

__all__: list[str] = ["__version__"]
