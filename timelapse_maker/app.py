"""
Timelapse Maker
Captures the source image on a tight schedule and assembles day, week,
month and quarter timelapse videos from the accumulated frames.
"""

from datetime import datetime
from typing import Dict, Optional

from dotenv import load_dotenv

from timelapse_maker import scheduler as scheduler_module
from timelapse_maker.acquisition import AcquisitionJob
from timelapse_maker.assembly import AssemblyJob
from timelapse_maker.catalog import CatalogRecorder, SqliteCatalog
from timelapse_maker.config import Config, load_config
from timelapse_maker.encoding import Encoder, FFmpegEncoder
from timelapse_maker.fetcher import CachingFetcher
from timelapse_maker.logging_setup import configure_logging
from timelapse_maker.manifests import FrameSequencer
from timelapse_maker.progress import logging_observer
from timelapse_maker.windows import TimelapseWindow

# Load environment variables
load_dotenv()


class TimelapseMaker:
    """Wire configuration, shared collaborators and per-window jobs together."""

    def __init__(
        self,
        config_file: str = 'config.json',
        *,
        config: Optional[Config] = None,
        catalog: Optional[CatalogRecorder] = None,
        encoder: Optional[Encoder] = None,
    ):
        self.config = config if config is not None else load_config(config_file)
        settings = self.config.global_settings
        self.tz = settings.tzinfo()

        self.logger = configure_logging(log_file=settings.log_file)

        # Catalog failures at startup are fatal and propagate to the caller.
        self.catalog = catalog if catalog is not None else SqliteCatalog(settings.catalog_path)
        self.logger.info("Connected to catalog at %s", settings.catalog_path)

        self.fetcher = CachingFetcher(
            settings.image_url,
            self.logger,
            cache_ttl=settings.cache_ttl_seconds,
            http_timeout=settings.http_timeout_seconds,
        )
        self.sequencer = FrameSequencer(self.logger)
        self.encoder = encoder if encoder is not None else FFmpegEncoder(self.logger)
        self.progress_observer = logging_observer(self.logger)

        self.acquisition_jobs: Dict[TimelapseWindow, AcquisitionJob] = {}
        self.assembly_jobs: Dict[TimelapseWindow, AssemblyJob] = {}
        for schedule in self.config.enabled_schedules():
            window = schedule.window
            self.acquisition_jobs[window] = AcquisitionJob(
                settings.images_directory,
                window,
                self.fetcher,
                self.logger,
                clock=self.now,
            )
            self.assembly_jobs[window] = AssemblyJob(
                settings.videos_directory,
                settings.images_directory,
                window,
                self.sequencer,
                self.encoder,
                self.catalog,
                self.logger,
                progress_observer=self.progress_observer,
                clock=self.now,
            )

    def now(self) -> datetime:
        """Current wall-clock time in the configured timezone."""
        return datetime.now(self.tz)

    def close(self) -> None:
        close = getattr(self.catalog, "close", None)
        if close is not None:
            close()
            self.logger.info("Catalog closed")

    def run(self):
        """Run the scheduler until interrupted, then release the catalog."""
        try:
            scheduler_module.run(self)
        finally:
            self.close()
