"""govcore: event-driven decision governance, in process."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("govcore")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
