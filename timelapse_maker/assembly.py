"""Scheduled assembly of a window partition into a timelapse video."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from timelapse_maker.catalog import CatalogRecorder
from timelapse_maker.encoding import Encoder
from timelapse_maker.errors import CatalogError, EmptyPartitionError, EncodingError
from timelapse_maker.manifests import FrameSequencer
from timelapse_maker.models import ArtifactRecord
from timelapse_maker.progress import ProgressChannel, ProgressObserver
from timelapse_maker.windows import TimelapseWindow

VIDEO_FILENAME = "timelapse.mp4"


class AssemblyState(Enum):
    IDLE = "idle"
    BUILDING_MANIFEST = "building_manifest"
    ENCODING = "encoding"
    RECORDING = "recording"
    CLEANUP = "cleanup"
    DONE = "done"
    ABORTED = "aborted"


class AssemblyJob:
    """Encode the current partition of a window and catalog the result.

    Source images are only removed after the catalog accepted the video;
    a failed encode or insert leaves them in place for the next run.
    """

    def __init__(
        self,
        videos_root: Path,
        images_root: Path,
        window: TimelapseWindow,
        sequencer: FrameSequencer,
        encoder: Encoder,
        catalog: CatalogRecorder,
        logger: logging.Logger,
        *,
        progress_observer: Optional[ProgressObserver] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.videos_root = Path(videos_root)
        self.images_root = Path(images_root)
        self.window = window
        self.sequencer = sequencer
        self.encoder = encoder
        self.catalog = catalog
        self.logger = logger
        self.progress_observer = progress_observer
        self.clock = clock
        self.state = AssemblyState.IDLE

    def partition_for(self, label: str) -> Path:
        return self.images_root / self.window.directory / label

    def output_for(self, label: str) -> Path:
        return self.videos_root / self.window.directory / label / VIDEO_FILENAME

    def _transition(self, state: AssemblyState) -> None:
        self.logger.debug("%s assembly: %s -> %s", self.window.name, self.state.name, state.name)
        self.state = state

    def _abort(self, step: str, exc: BaseException) -> AssemblyState:
        self.logger.error("%s assembly aborted while %s: %s", self.window.name, step, exc)
        self._transition(AssemblyState.ABORTED)
        return self.state

    def _open_progress_channel(self) -> Optional[ProgressChannel]:
        if self.progress_observer is None:
            return None
        return ProgressChannel.open(self.progress_observer, self.logger)

    def run(self) -> AssemblyState:
        """Execute one assembly pass and return the terminal state reached."""
        self.state = AssemblyState.IDLE
        label = self.window.subdirectory_for(self.clock())
        partition = self.partition_for(label)
        output_path = self.output_for(label)

        self._transition(AssemblyState.BUILDING_MANIFEST)
        try:
            manifest_path = self.sequencer.build_manifest(partition)
        except (EmptyPartitionError, OSError) as exc:
            return self._abort("building manifest", exc)
        self.logger.info("Prepared frame order in file %s", manifest_path)

        try:
            return self._encode_and_record(label, partition, manifest_path, output_path)
        except Exception:
            self.logger.exception(
                "%s assembly aborted unexpectedly in state %s", self.window.name, self.state.name
            )
            self._transition(AssemblyState.ABORTED)
            return self.state
        finally:
            manifest_path.unlink(missing_ok=True)

    def _encode_and_record(
        self,
        label: str,
        partition: Path,
        manifest_path: Path,
        output_path: Path,
    ) -> AssemblyState:
        self._transition(AssemblyState.ENCODING)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            return self._abort(f"creating directory {output_path.parent}", exc)

        channel = self._open_progress_channel()
        self.logger.info("Starting to create video from images to %s", output_path)
        try:
            if channel is not None:
                channel.start()
            self.encoder.encode(
                manifest_path,
                output_path,
                channel.address if channel is not None else None,
            )
        except EncodingError as exc:
            if exc.stderr:
                self.logger.debug("Encoder output: %s", exc.stderr)
            return self._abort("encoding", exc)
        finally:
            if channel is not None:
                channel.close()
        self.logger.info("Finished creating video from images to %s", output_path)

        self._transition(AssemblyState.RECORDING)
        record = ArtifactRecord(
            display_name=label,
            window_name=self.window.name,
            absolute_path=output_path.resolve(),
            uploaded=False,
        )
        try:
            artifact_id = self.catalog.insert_artifact(record)
        except CatalogError as exc:
            return self._abort("saving info to catalog", exc)
        self.logger.info(
            "Saved information about %s in catalog with id %s",
            record.absolute_path,
            artifact_id,
        )

        self._transition(AssemblyState.CLEANUP)
        try:
            shutil.rmtree(partition)
        except OSError as exc:
            self.logger.error("Error while removing images from %s: %s", partition, exc)

        self._transition(AssemblyState.DONE)
        return self.state


__all__ = ["AssemblyJob", "AssemblyState", "VIDEO_FILENAME"]
