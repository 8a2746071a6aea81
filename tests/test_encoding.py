import logging
import subprocess
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import timelapse_maker.encoding as encoding_module  # noqa: E402
from timelapse_maker.encoding import FFmpegEncoder  # noqa: E402
from timelapse_maker.errors import EncodingError  # noqa: E402

LOGGER = logging.getLogger("encoding-tests")


def test_command_wires_manifest_output_and_progress(tmp_path):
    encoder = FFmpegEncoder(LOGGER)
    manifest = tmp_path / "frames.txt"
    output = tmp_path / "timelapse.mp4"

    cmd = encoder.build_command(manifest, output, "tcp://127.0.0.1:40000")

    assert cmd == [
        "ffmpeg",
        "-y",
        "-f",
        "concat",
        "-safe",
        "0",
        "-r",
        "5/1",
        "-progress",
        "tcp://127.0.0.1:40000",
        "-i",
        str(manifest),
        "-c:v",
        "libx265",
        "-crf",
        "28",
        "-s",
        "1280x720",
        str(output),
    ]


def test_command_without_progress_sink(tmp_path):
    cmd = FFmpegEncoder(LOGGER).build_command(tmp_path / "m.txt", tmp_path / "o.mp4")
    assert "-progress" not in cmd


def test_missing_binary_raises(monkeypatch, tmp_path):
    monkeypatch.setattr(encoding_module.shutil, "which", lambda name: None)

    with pytest.raises(EncodingError, match="not found on PATH"):
        FFmpegEncoder(LOGGER).encode(tmp_path / "m.txt", tmp_path / "o.mp4")


def test_non_zero_exit_raises_with_stderr(monkeypatch, tmp_path):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 1, stdout=None, stderr=b"Invalid data found")

    monkeypatch.setattr(encoding_module.shutil, "which", lambda name: "/usr/bin/ffmpeg")
    monkeypatch.setattr(encoding_module.subprocess, "run", fake_run)

    with pytest.raises(EncodingError) as excinfo:
        FFmpegEncoder(LOGGER).encode(tmp_path / "m.txt", tmp_path / "o.mp4")

    assert excinfo.value.returncode == 1
    assert "Invalid data found" in excinfo.value.stderr
    assert len(calls) == 1


def test_successful_run_returns_quietly(monkeypatch, tmp_path):
    monkeypatch.setattr(encoding_module.shutil, "which", lambda name: "/usr/bin/ffmpeg")
    monkeypatch.setattr(
        encoding_module.subprocess,
        "run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 0, stdout=None, stderr=b""),
    )

    FFmpegEncoder(LOGGER).encode(tmp_path / "m.txt", tmp_path / "o.mp4")


def test_launch_failure_is_wrapped(monkeypatch, tmp_path):
    def fake_run(cmd, **kwargs):
        raise PermissionError("not executable")

    monkeypatch.setattr(encoding_module.shutil, "which", lambda name: "/usr/bin/ffmpeg")
    monkeypatch.setattr(encoding_module.subprocess, "run", fake_run)

    with pytest.raises(EncodingError, match="Failed to launch"):
        FFmpegEncoder(LOGGER).encode(tmp_path / "m.txt", tmp_path / "o.mp4")
