"""Timelapse cadences and their partition labels."""

from __future__ import annotations

from datetime import datetime
from enum import Enum


class TimelapseWindow(Enum):
    """Closed set of timelapse cadences, finest to coarsest."""

    DAY = "days_of_year"
    WEEK = "weeks_of_year"
    MONTH = "months_of_year"
    QUARTER = "quarters_of_year"

    @property
    def directory(self) -> str:
        """Storage directory segment for this cadence."""
        return self.value

    def subdirectory_for(self, moment: datetime) -> str:
        """Return the partition label that ``moment`` belongs to.

        Labels are pure functions of the timestamp. Weeks follow ISO 8601
        week numbering, so the last days of December may belong to week 1
        of the following ISO year.
        """
        if self is TimelapseWindow.DAY:
            return moment.strftime("%d-%m-%Y")
        if self is TimelapseWindow.WEEK:
            iso_year, iso_week, _ = moment.isocalendar()
            return f"{iso_year}-W{iso_week}"
        if self is TimelapseWindow.MONTH:
            return moment.strftime("%Y-%m")
        return f"{moment.year}-Q{(moment.month + 2) // 3}"

    @classmethod
    def from_name(cls, name: str) -> "TimelapseWindow":
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown timelapse window: {name!r}") from None


__all__ = ["TimelapseWindow"]
