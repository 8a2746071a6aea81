"""Frame ordering and concat manifest generation for the encoder."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from timelapse_maker.errors import EmptyPartitionError
from timelapse_maker.models import FrameEntry

CAPTURE_FILENAME_FORMAT = "%d-%m-%Y %H_%M_%S.jpg"
DEFAULT_FRAME_DURATION = 0.2


def capture_filename(moment: datetime) -> str:
    """Return the image file name used for a capture taken at ``moment``."""
    return moment.strftime(CAPTURE_FILENAME_FORMAT)


def parse_capture_time(filename: str) -> Optional[datetime]:
    """Parse the capture timestamp encoded in an image file name."""
    try:
        return datetime.strptime(filename, CAPTURE_FILENAME_FORMAT)
    except ValueError:
        return None


def _escape_for_concat(path: Path) -> str:
    """Escape single quotes for FFmpeg concat demuxer entries."""
    return str(path).replace("'", "'\\''")


class FrameSequencer:
    """Order captured images by timestamp and materialize a concat manifest."""

    def __init__(
        self,
        logger: logging.Logger,
        *,
        frame_duration: float = DEFAULT_FRAME_DURATION,
        temp_dir: Optional[Path] = None,
    ) -> None:
        self.logger = logger
        self.frame_duration = frame_duration
        self.temp_dir = temp_dir

    def collect_frames(self, directory: Path) -> List[FrameEntry]:
        """Return every entry of ``directory`` in capture order.

        Names that do not match the capture format sort as ``datetime.min``
        and therefore land at the start of the sequence.
        """
        entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
        if not entries:
            raise EmptyPartitionError(directory)

        unparsed = [entry.name for entry in entries if parse_capture_time(entry.name) is None]
        if unparsed:
            self.logger.warning(
                "%s entries in %s have no capture timestamp and sort first: %s",
                len(unparsed),
                directory,
                ", ".join(unparsed),
            )

        entries.sort(key=lambda entry: parse_capture_time(entry.name) or datetime.min)
        absolute_dir = directory.resolve()
        return [
            FrameEntry(path=absolute_dir / entry.name, duration=self.frame_duration)
            for entry in entries
        ]

    def build_manifest(self, directory: Path) -> Path:
        """Write the concat manifest for ``directory`` to a fresh temporary file."""
        frames = self.collect_frames(Path(directory))

        fd, name = tempfile.mkstemp(
            suffix=".txt",
            prefix="frames_",
            dir=str(self.temp_dir) if self.temp_dir is not None else None,
        )
        manifest_path = Path(name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                for frame in frames:
                    handle.write(f"file '{_escape_for_concat(frame.path)}'\n")
                    handle.write(f"duration {frame.duration:g}\n")
        except OSError:
            manifest_path.unlink(missing_ok=True)
            raise

        self.logger.debug(
            "Wrote manifest with %s frames from %s to %s",
            len(frames),
            directory,
            manifest_path,
        )
        return manifest_path


__all__ = [
    "CAPTURE_FILENAME_FORMAT",
    "DEFAULT_FRAME_DURATION",
    "FrameSequencer",
    "capture_filename",
    "parse_capture_time",
]
