import logging
import socket
import sys
import threading
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import timelapse_maker.progress as progress_module  # noqa: E402
from timelapse_maker.models import ProgressStatus  # noqa: E402
from timelapse_maker.progress import ProgressChannel  # noqa: E402

LOGGER = logging.getLogger("progress-channel-tests")


def send_lines(address: str, payload: bytes) -> None:
    host, port = address[len("tcp://"):].rsplit(":", 1)
    with socket.create_connection((host, int(port)), timeout=5) as client:
        client.sendall(payload)


def test_snapshots_are_streamed_to_observer():
    received = []
    channel = ProgressChannel.open(received.append, LOGGER)
    assert channel is not None
    assert channel.address.startswith("tcp://127.0.0.1:")

    with channel:
        send_lines(
            channel.address,
            b"frame=1\nprogress=continue\nframe=2\nbitrate=N/A\nprogress=end\n",
        )
        channel._thread.join(timeout=5)

    assert [snapshot.frame for snapshot in received] == [1, 2]
    assert [snapshot.status for snapshot in received] == [
        ProgressStatus.RUNNING,
        ProgressStatus.FINISHED,
    ]


def test_peer_closing_early_ends_stream():
    received = []
    channel = ProgressChannel.open(received.append, LOGGER)
    channel.start()
    send_lines(channel.address, b"frame=5\nprogress=continue\nframe=6\n")
    channel.close()

    assert [snapshot.frame for snapshot in received] == [5]
    assert not channel._thread.is_alive()


def test_observer_failure_does_not_stop_decoding(caplog):
    received = []

    def flaky(snapshot):
        received.append(snapshot)
        if len(received) == 1:
            raise RuntimeError("observer broke")

    channel = ProgressChannel.open(flaky, LOGGER)
    with caplog.at_level(logging.ERROR, logger="progress-channel-tests"):
        with channel:
            send_lines(channel.address, b"progress=continue\nprogress=end\n")
            channel._thread.join(timeout=5)

    assert len(received) == 2
    assert "Progress observer failed" in caplog.text


def test_close_without_connection_returns_promptly():
    channel = ProgressChannel.open(lambda snapshot: None, LOGGER)
    channel.start()

    started = time.monotonic()
    channel.close(timeout=5)

    assert time.monotonic() - started < 3
    assert not channel._thread.is_alive()


def test_bind_failure_yields_no_channel(monkeypatch, caplog):
    class FailingSocket:
        closed = False

        def __init__(self, *args, **kwargs):
            pass

        def bind(self, address):
            raise OSError("address unavailable")

        def listen(self, backlog):
            raise AssertionError("listen must not be reached")

        def close(self):
            FailingSocket.closed = True

    monkeypatch.setattr(progress_module.socket, "socket", FailingSocket)

    with caplog.at_level(logging.WARNING, logger="progress-channel-tests"):
        channel = ProgressChannel.open(lambda snapshot: None, LOGGER)

    assert channel is None
    assert FailingSocket.closed is True
    assert "ffmpeg progress" in caplog.text


def test_channels_use_distinct_ports():
    first = ProgressChannel.open(lambda snapshot: None, LOGGER)
    second = ProgressChannel.open(lambda snapshot: None, LOGGER)
    try:
        assert first.port != second.port
    finally:
        first.close()
        second.close()


def test_listener_runs_on_daemon_thread():
    channel = ProgressChannel.open(lambda snapshot: None, LOGGER)
    channel.start()
    try:
        assert channel._thread.daemon is True
        assert channel._thread in threading.enumerate()
    finally:
        channel.close()


def test_socket_creation_failure_returns_none(monkeypatch, caplog):
    def no_sockets(*args, **kwargs):
        raise OSError(24, "Too many open files")

    monkeypatch.setattr(progress_module.socket, "socket", no_sockets)

    with caplog.at_level(logging.WARNING):
        channel = ProgressChannel.open(lambda snapshot: None, logging.getLogger("progress-tests"))

    assert channel is None
    assert "Error while opening socket" in caplog.text
