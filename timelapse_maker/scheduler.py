"""Scheduling orchestration for the timelapse maker."""

from __future__ import annotations

from typing import Any, Mapping

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from timelapse_maker.errors import ConfigError


def _build_trigger(fields: Mapping[str, str], timezone: Any, context: str) -> CronTrigger:
    try:
        return CronTrigger(timezone=timezone, **fields)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{context} job not created due to {exc}") from exc


def register_jobs(scheduler: Any, maker: Any) -> None:
    """Add acquisition and assembly jobs for every enabled window."""
    timezone = maker.tz
    for schedule in maker.config.enabled_schedules():
        window = schedule.window
        scheduler.add_job(
            maker.acquisition_jobs[window].run,
            trigger=_build_trigger(schedule.acquisition, timezone, f"{window.name} image"),
            id=f"acquire_{window.name.lower()}",
            name=f"Acquire {window.name} image",
            max_instances=1,
        )
        scheduler.add_job(
            maker.assembly_jobs[window].run,
            trigger=_build_trigger(schedule.assembly, timezone, f"{window.name} video"),
            id=f"assemble_{window.name.lower()}",
            name=f"Assemble {window.name} timelapse",
            max_instances=1,
        )


def run(maker: Any) -> None:
    """Run acquisition and assembly jobs until interrupted."""
    scheduler = BlockingScheduler(timezone=maker.tz)
    register_jobs(scheduler, maker)

    schedules = maker.config.enabled_schedules()
    maker.logger.info("Timelapse maker started")
    maker.logger.info("Image source: %s", maker.config.global_settings.image_url)
    maker.logger.info("Scheduling %s windows:", len(schedules))
    for schedule in schedules:
        maker.logger.info(
            "  - %s: acquisition %s, assembly %s",
            schedule.window.name,
            dict(schedule.acquisition),
            dict(schedule.assembly),
        )

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        maker.logger.info("Timelapse maker stopped")
        scheduler.shutdown()


__all__ = ["register_jobs", "run"]
