"""Live encoder progress: telemetry decoding, the loopback listener and formatting."""

from __future__ import annotations

import logging
import re
import socket
import threading
from typing import Callable, Optional

from timelapse_maker.models import ProgressSnapshot, ProgressStatus

ProgressObserver = Callable[[ProgressSnapshot], None]

_BITRATE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)kbits/s")
_NOT_AVAILABLE = "N/A"


def _format_duration(seconds: float) -> str:
    """Return a compact human-readable duration string."""
    total_seconds = int(round(seconds))
    if total_seconds <= 0:
        return "<1s"
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds_remaining = divmod(remainder, 60)
    if hours:
        return f"{hours}h{minutes:02d}m{seconds_remaining:02d}s"
    if minutes:
        return f"{minutes}m{seconds_remaining:02d}s"
    return f"{seconds_remaining}s"


def byte_count_si(size: int) -> str:
    """Format a byte count with decimal (SI) unit prefixes."""
    unit = 1000
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'kMGTPE'[exp]}B"


def _parse_unsigned(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        return 0
    return parsed if parsed > 0 else 0


def _parse_bitrate(value: str) -> int:
    """Convert ``<number>kbits/s`` to bits per second."""
    if value == _NOT_AVAILABLE:
        return 0
    match = _BITRATE_PATTERN.search(value)
    if match is None:
        return 0
    return int(round(float(match.group(1)) * 1000))


def _parse_out_time(value: str) -> int:
    if value.startswith("-"):
        return 0
    return _parse_unsigned(value)


class ProgressDecoder:
    """Incrementally build progress snapshots from ``key=value`` lines.

    A snapshot is complete when a ``progress`` line arrives. The builder is
    reset after every emitted snapshot, ``progress=continue`` included, so
    each snapshot only carries the fields reported since the last marker.
    Malformed values decode to zero instead of raising.
    """

    def __init__(self) -> None:
        self._current = ProgressSnapshot()

    def reset(self) -> None:
        self._current = ProgressSnapshot()

    def feed_line(self, line: str) -> Optional[ProgressSnapshot]:
        """Consume one line, returning a snapshot when it closes a report."""
        trimmed = line.strip()
        if not trimmed:
            return None

        parts = trimmed.split("=")
        if len(parts) != 2:
            return None
        key, value = parts
        snapshot = self._current

        if key == "frame":
            snapshot.frame = _parse_unsigned(value)
        elif key == "fps":
            snapshot.fps = value
        elif key == "bitrate":
            snapshot.bitrate = _parse_bitrate(value)
        elif key == "total_size":
            snapshot.total_size = 0 if value == _NOT_AVAILABLE else _parse_unsigned(value)
        elif key == "out_time_ms":
            snapshot.out_time_us = _parse_out_time(value)
        elif key == "dup_frames":
            snapshot.dup_frames = _parse_unsigned(value)
        elif key == "drop_frames":
            snapshot.drop_frames = _parse_unsigned(value)
        elif key == "speed":
            snapshot.speed = value
        elif key == "progress":
            if value == ProgressStatus.RUNNING.value:
                snapshot.status = ProgressStatus.RUNNING
            elif value == ProgressStatus.FINISHED.value:
                snapshot.status = ProgressStatus.FINISHED
            self.reset()
            return snapshot
        return None


class ProgressChannel:
    """Loopback TCP listener receiving the encoder's progress stream.

    Exactly one connection is accepted. Every decoded snapshot is handed to
    ``observer`` on the listener thread; observer failures are logged and
    never interrupt decoding.
    """

    def __init__(
        self,
        listener: socket.socket,
        observer: ProgressObserver,
        logger: logging.Logger,
        *,
        accept_poll_interval: float = 0.5,
    ) -> None:
        self._listener = listener
        self.observer = observer
        self.logger = logger
        self.accept_poll_interval = accept_poll_interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        host, port = listener.getsockname()[:2]
        self.host = host
        self.port = port

    @classmethod
    def open(
        cls,
        observer: ProgressObserver,
        logger: logging.Logger,
        *,
        host: str = "127.0.0.1",
    ) -> Optional["ProgressChannel"]:
        """Bind an ephemeral port, returning ``None`` when that is impossible."""
        listener = None
        try:
            listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            listener.bind((host, 0))
            listener.listen(1)
        except OSError as exc:
            if listener is not None:
                listener.close()
            logger.warning("Error while opening socket for listening ffmpeg progress: %s", exc)
            return None
        return cls(listener, observer, logger)

    @property
    def address(self) -> str:
        return f"tcp://{self.host}:{self.port}"

    def __enter__(self) -> "ProgressChannel":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def start(self) -> None:
        if self._thread is not None:
            return
        self.logger.info("Preparing to listen ffmpeg progress on %s", self.address)
        self._thread = threading.Thread(
            target=self._serve,
            name=f"progress-{self.port}",
            daemon=True,
        )
        self._thread.start()

    def close(self, timeout: float = 5.0) -> None:
        """Stop listening and wait for the listener thread to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                self.logger.warning(
                    "Progress listener on %s did not stop within %ss",
                    self.address,
                    timeout,
                )
        self._listener.close()

    # ------------------------------------------------------------------
    # Listener thread
    # ------------------------------------------------------------------

    def _accept(self) -> Optional[socket.socket]:
        self._listener.settimeout(self.accept_poll_interval)
        while True:
            try:
                connection, _ = self._listener.accept()
            except socket.timeout:
                if self._stop.is_set():
                    return None
                continue
            except OSError as exc:
                if not self._stop.is_set():
                    self.logger.warning(
                        "Error while accepting connection using %s: %s",
                        self.address,
                        exc,
                    )
                return None
            connection.settimeout(None)
            return connection

    def _deliver(self, snapshot: ProgressSnapshot) -> None:
        try:
            self.observer(snapshot)
        except Exception:
            self.logger.exception("Progress observer failed")

    def _serve(self) -> None:
        try:
            connection = self._accept()
            if connection is None:
                return
            with connection:
                self.logger.debug("Serving %s", connection.getpeername())
                self._read_stream(connection)
        finally:
            self._listener.close()

    def _read_stream(self, connection: socket.socket) -> None:
        decoder = ProgressDecoder()
        try:
            with connection.makefile("rb") as stream:
                for raw_line in stream:
                    snapshot = decoder.feed_line(raw_line.decode("ascii", errors="replace"))
                    if snapshot is None:
                        continue
                    self._deliver(snapshot)
                    if snapshot.status is ProgressStatus.FINISHED:
                        return
        except OSError as exc:
            self.logger.debug("Progress stream from %s ended: %s", self.address, exc)


def logging_observer(logger: logging.Logger) -> ProgressObserver:
    """Build an observer that writes each snapshot to ``logger``."""

    def observe(snapshot: ProgressSnapshot) -> None:
        status = snapshot.status.name if snapshot.status is not None else "UNKNOWN"
        logger.info(
            "Frame:%d; Fps:%s; Size:%s; Time Passed: %s; Status: %s",
            snapshot.frame,
            snapshot.fps,
            byte_count_si(snapshot.total_size),
            _format_duration(snapshot.out_time_us / 1_000_000),
            status,
        )

    return observe


__all__ = [
    "ProgressChannel",
    "ProgressDecoder",
    "ProgressObserver",
    "byte_count_si",
    "logging_observer",
]
