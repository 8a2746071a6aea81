"""
Scheduled image capture and timelapse assembly.
"""

from .app import TimelapseMaker
from .windows import TimelapseWindow

__all__ = ["TimelapseMaker", "TimelapseWindow"]
