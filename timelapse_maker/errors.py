"""Exception hierarchy for the timelapse maker."""

from __future__ import annotations

from typing import Optional


class TimelapseError(Exception):
    """Base class for all timelapse maker failures."""


class ConfigError(TimelapseError):
    """A required configuration value is missing or invalid."""


class FetchError(TimelapseError):
    """The source image could not be retrieved."""


class TransportError(FetchError):
    """Network level failure while talking to the image source."""


class RemoteError(FetchError):
    """The image source answered with a non-success status."""

    def __init__(self, status_code: int, url: Optional[str] = None) -> None:
        self.status_code = status_code
        self.url = url
        target = f" from {url}" if url else ""
        super().__init__(f"got status {status_code}{target}")


class EmptyPartitionError(TimelapseError):
    """A partition directory holds no images to assemble."""

    def __init__(self, directory) -> None:
        self.directory = directory
        super().__init__(f"No files found at {directory}")


class EncodingError(TimelapseError):
    """The external encoder failed to produce a video."""

    def __init__(self, message: str, *, returncode: Optional[int] = None, stderr: str = "") -> None:
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class CatalogError(TimelapseError):
    """The artifact catalog could not be opened or written."""


__all__ = [
    "CatalogError",
    "ConfigError",
    "EmptyPartitionError",
    "EncodingError",
    "FetchError",
    "RemoteError",
    "TimelapseError",
    "TransportError",
]
