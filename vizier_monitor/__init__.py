"""vizier-monitor - health reconciliation controller for Vizier instances."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("vizier-monitor")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
