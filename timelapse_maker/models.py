"""Data models shared across the timelapse maker."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class ProgressStatus(Enum):
    """Encoder state carried by the ``progress`` key."""

    RUNNING = "continue"
    FINISHED = "end"


@dataclass
class ProgressSnapshot:
    """One progress report decoded from the encoder's telemetry stream."""

    frame: int = 0
    fps: str = ""
    bitrate: int = 0
    total_size: int = 0
    out_time_us: int = 0
    dup_frames: int = 0
    drop_frames: int = 0
    speed: str = ""
    status: Optional[ProgressStatus] = None


@dataclass(frozen=True)
class CachedPayload:
    """Fetched bytes together with the monotonic time they expire at."""

    content: bytes
    valid_until: float


@dataclass(frozen=True)
class FrameEntry:
    """Single frame reference written to the encoder manifest."""

    path: Path
    duration: float


@dataclass(frozen=True)
class ArtifactRecord:
    """Catalog entry describing an assembled timelapse video."""

    display_name: str
    window_name: str
    absolute_path: Path
    uploaded: bool = False


__all__ = [
    "ArtifactRecord",
    "CachedPayload",
    "FrameEntry",
    "ProgressSnapshot",
    "ProgressStatus",
]
