from __future__ import annotations

import abc
import logging
import socket
import threading
from typing import Hashable

import serial

from .constants import DEFAULT_BAUDRATE, DEFAULT_CONNECT_TIMEOUT_MS, LINE_ENCODING, SERIAL_POLL_MS
from .errors import LinkError
from .events import EventQueue, MoteEvent

logger = logging.getLogger(__name__)


class LineLink(abc.ABC):
    """Line-oriented connection to one mote.

    ``write`` sends a newline-terminated command. A reader thread turns
    every received line into a ``MoteEvent`` tagged with ``mote_id`` and
    closes the event queue when the connection ends.
    """

    def __init__(self, mote_id: Hashable, events: EventQueue):
        self.mote_id = mote_id
        self.events = events
        self._closing = threading.Event()
        self._reader: threading.Thread | None = None

    def start(self) -> "LineLink":
        self._reader = threading.Thread(target=self._read_loop, name=f"link-{self.mote_id}", daemon=True)
        self._reader.start()
        return self

    def write(self, command: str) -> None:
        data = (command + "\n").encode(LINE_ENCODING)
        try:
            self._send(data)
        except (OSError, serial.SerialException) as exc:
            raise LinkError(f"write to mote {self.mote_id} failed: {exc}") from exc

    def close(self) -> None:
        self._closing.set()
        self._shutdown()
        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(timeout=1.0)

    def __enter__(self) -> "LineLink":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _read_loop(self) -> None:
        buf = b""
        try:
            while not self._closing.is_set():
                try:
                    chunk = self._recv()
                except (OSError, serial.SerialException) as exc:
                    if not self._closing.is_set():
                        logger.warning("link to mote %s failed: %s", self.mote_id, exc)
                    break
                if chunk is None:
                    break
                buf += chunk
                while b"\n" in buf:
                    raw, buf = buf.split(b"\n", 1)
                    line = raw.decode(LINE_ENCODING, errors="replace").rstrip("\r")
                    logger.debug("mote %s -> %r", self.mote_id, line)
                    self.events.publish(MoteEvent(self.mote_id, line))
        finally:
            self.events.close()

    @abc.abstractmethod
    def _send(self, data: bytes) -> None: ...

    @abc.abstractmethod
    def _recv(self) -> bytes | None:
        """Return received bytes (possibly empty), or None at end of stream."""

    @abc.abstractmethod
    def _shutdown(self) -> None: ...


class SocketLink(LineLink):
    """TCP line stream, e.g. a simulator's serial-socket server for one mote."""

    def __init__(self, sock: socket.socket, mote_id: Hashable, events: EventQueue):
        super().__init__(mote_id, events)
        self.sock = sock

    @classmethod
    def connect(
        cls,
        host: str,
        port: int,
        mote_id: Hashable,
        events: EventQueue,
        timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS,
    ) -> "SocketLink":
        try:
            sock = socket.create_connection((host, port), timeout=timeout_ms / 1000.0)
        except OSError as exc:
            raise LinkError(f"cannot connect to {host}:{port}: {exc}") from exc
        sock.settimeout(None)
        logger.info("connected to mote %s at %s:%d", mote_id, host, port)
        return cls(sock, mote_id, events)

    def _send(self, data: bytes) -> None:
        self.sock.sendall(data)

    def _recv(self) -> bytes | None:
        data = self.sock.recv(4096)
        return data or None

    def _shutdown(self) -> None:
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # already disconnected by the peer
            pass
        self.sock.close()


class SerialLink(LineLink):
    """Serial port (or any pyserial URL such as ``loop://``) to a mote."""

    def __init__(self, port: serial.SerialBase, mote_id: Hashable, events: EventQueue):
        super().__init__(mote_id, events)
        self.port = port

    @classmethod
    def open(
        cls,
        url: str,
        mote_id: Hashable,
        events: EventQueue,
        baudrate: int = DEFAULT_BAUDRATE,
    ) -> "SerialLink":
        try:
            port = serial.serial_for_url(url, baudrate=baudrate, timeout=SERIAL_POLL_MS / 1000.0)
        except (serial.SerialException, ValueError) as exc:
            raise LinkError(f"cannot open serial port {url}: {exc}") from exc
        logger.info("opened %s at %d baud for mote %s", url, baudrate, mote_id)
        return cls(port, mote_id, events)

    def _send(self, data: bytes) -> None:
        self.port.write(data)
        self.port.flush()

    def _recv(self) -> bytes | None:
        # empty result is the poll timeout, the loop re-checks _closing
        return self.port.read(self.port.in_waiting or 1)

    def _shutdown(self) -> None:
        self.port.close()
