"""Owlanter - keep Pleasanter server and client scripts in sync with a local workspace."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("owlanter")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
