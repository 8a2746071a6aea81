"""Scheduled capture of the source image into window partitions."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from timelapse_maker.errors import FetchError
from timelapse_maker.fetcher import CachingFetcher
from timelapse_maker.manifests import capture_filename
from timelapse_maker.windows import TimelapseWindow


class AcquisitionJob:
    """Fetch the current image and store it under the window's partition."""

    def __init__(
        self,
        root_directory: Path,
        window: TimelapseWindow,
        fetcher: CachingFetcher,
        logger: logging.Logger,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.root_directory = Path(root_directory)
        self.window = window
        self.fetcher = fetcher
        self.logger = logger
        self.clock = clock

    def destination_for(self, moment: datetime) -> Path:
        return (
            self.root_directory
            / self.window.directory
            / self.window.subdirectory_for(moment)
            / capture_filename(moment)
        )

    def run(self) -> Optional[Path]:
        """Capture one image; failures are logged and the run is skipped."""
        self.logger.info("Started job %s", self.window.name)
        try:
            content = self.fetcher.fetch()
        except FetchError as exc:
            self.logger.error(
                "Error occurred while loading image for %s: %s",
                self.window.name,
                exc,
            )
            return None

        destination = self.destination_for(self.clock())
        # Staged outside the partition; assembly must only ever list complete images.
        temp_path = destination.parent.parent / f".tmp_{uuid.uuid4().hex}_{destination.name}"
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(content)
            temp_path.replace(destination)
        except OSError as exc:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)
            self.logger.error(
                "Error occurred while saving %s image to %s: %s",
                self.window.name,
                destination,
                exc,
            )
            return None

        self.logger.info("Saved image sized %s to %s", len(content), destination)
        return destination


__all__ = ["AcquisitionJob"]
