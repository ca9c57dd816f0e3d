"""Installed version of the terraform mirror."""

from importlib.metadata import PackageNotFoundError, version

DISTRIBUTION_NAME = "terraform-mirror"

try:
    __version__ = version(DISTRIBUTION_NAME)
except PackageNotFoundError:
    # Source checkout that was never installed
    __version__ = "0.0.0"
