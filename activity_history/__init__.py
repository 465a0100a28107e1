"""Top level package for the activity_history project."""
from importlib import metadata


def get_version() -> str:
    """Return the installed package version.

    When running from a development checkout, ``importlib.metadata`` will
    resolve the version defined in ``pyproject.toml``.
    """

    try:
        return metadata.version("activity-history")
    except metadata.PackageNotFoundError:  # pragma: no cover - during tests
        return "0.0.0"


__all__ = ["get_version"]
