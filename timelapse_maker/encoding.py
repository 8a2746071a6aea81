"""FFmpeg invocation turning a frame manifest into a timelapse video."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Protocol

from timelapse_maker.errors import EncodingError

_STDERR_TAIL_CHARS = 2000


class Encoder(Protocol):
    """Anything able to encode a concat manifest into a video file."""

    def encode(
        self,
        manifest_path: Path,
        output_path: Path,
        progress_address: Optional[str] = None,
    ) -> None:
        ...


class FFmpegEncoder:
    """Run ffmpeg's concat demuxer over a manifest of still images."""

    def __init__(
        self,
        logger: logging.Logger,
        *,
        ffmpeg_binary: str = "ffmpeg",
        input_rate: str = "5/1",
        quality: int = 28,
        size: str = "1280x720",
        codec: str = "libx265",
    ) -> None:
        self.logger = logger
        self.ffmpeg_binary = ffmpeg_binary
        self.input_rate = input_rate
        self.quality = quality
        self.size = size
        self.codec = codec

    def build_command(
        self,
        manifest_path: Path,
        output_path: Path,
        progress_address: Optional[str] = None,
    ) -> List[str]:
        cmd = [
            self.ffmpeg_binary,
            "-y",
            "-f",
            "concat",
            "-safe",
            "0",
            "-r",
            self.input_rate,
        ]
        if progress_address:
            cmd.extend(["-progress", progress_address])
        cmd.extend(
            [
                "-i",
                str(manifest_path),
                "-c:v",
                self.codec,
                "-crf",
                str(self.quality),
                "-s",
                self.size,
                str(output_path),
            ]
        )
        return cmd

    def encode(
        self,
        manifest_path: Path,
        output_path: Path,
        progress_address: Optional[str] = None,
    ) -> None:
        if shutil.which(self.ffmpeg_binary) is None:
            raise EncodingError(
                f"{self.ffmpeg_binary} not found on PATH. Install ffmpeg with libx265."
            )

        cmd = self.build_command(manifest_path, output_path, progress_address)
        self.logger.debug("Running %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                check=False,
            )
        except OSError as exc:
            raise EncodingError(f"Failed to launch {self.ffmpeg_binary}: {exc}") from exc

        if result.returncode != 0:
            stderr_text = result.stderr.decode("utf-8", errors="replace")[-_STDERR_TAIL_CHARS:]
            raise EncodingError(
                f"{self.ffmpeg_binary} exited with status {result.returncode}",
                returncode=result.returncode,
                stderr=stderr_text,
            )


__all__ = ["Encoder", "FFmpegEncoder"]
