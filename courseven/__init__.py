"""
Client core for the Courseven course-management platform.

The package is importable without network configuration; remote access is only
wired up by :func:`courseven.container.bootstrap_client`.
"""

from importlib import metadata


def get_version() -> str:
    """Return the installed project version."""
    try:
        return metadata.version("courseven")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__all__ = ["get_version"]
