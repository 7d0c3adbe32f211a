from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol

from .constants import ACK_TOKEN, DEFAULT_TIMEOUT_MS, DONE_TOKEN, LINE_ENCODING, SENDFILE_COMMAND
from .errors import LinkError, PrematureCompletion, TransferCancelled, TransferError, TransferTimeout
from .events import EventQueue, MoteEvent
from .session import SessionState, TransferSession

logger = logging.getLogger(__name__)


class Mote(Protocol):
    def write(self, command: str) -> None: ...


def _log_progress(line: str) -> None:
    logger.info("progress %s%%", line)


@dataclass(frozen=True, slots=True)
class DriverConfig:
    ack_token: str = ACK_TOKEN
    done_token: str = DONE_TOKEN
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    dedupe_progress: bool = False


@dataclass(slots=True)
class Metrics:
    events_seen: int = 0
    events_ignored: int = 0
    malformed_acks: int = 0
    lines_sent: int = 0
    bytes_sent: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)


@dataclass(frozen=True, slots=True)
class TransferResult:
    state: SessionState
    cursor: int
    length: int
    progress: tuple[int, ...]
    metrics: Metrics
    error: TransferError | None = None

    @property
    def ok(self) -> bool:
        return self.state is SessionState.COMPLETE

    def raise_for_state(self) -> None:
        if self.error is not None:
            raise self.error


class TransferDriver:
    """Feeds a session's lines to a mote, one line per acknowledgment.

    ``on_event`` is the whole state machine; ``run`` only pulls events
    off a queue and enforces the per-wait timeout. Either can be used,
    e.g. a simulator callback may call ``on_event`` directly.
    """

    def __init__(
        self,
        session: TransferSession,
        mote: Mote,
        log: Callable[[str], None] | None = None,
        config: DriverConfig | None = None,
        on_complete: Callable[[TransferResult], None] | None = None,
    ):
        self.session = session
        self.mote = mote
        self.log = log or _log_progress
        self.config = config or DriverConfig()
        self.on_complete = on_complete
        self.metrics = Metrics()
        self.progress: list[int] = []
        self._lock = threading.RLock()
        self._events: EventQueue | None = None

    @property
    def state(self) -> SessionState:
        return self.session.state

    def start(self) -> None:
        s = self.session
        with self._lock:
            if s.state is not SessionState.PENDING:
                raise RuntimeError(f"session already started (state={s.state.value})")
            s.state = SessionState.WAITING_READY
            self.metrics.start_ts = time.monotonic()
        logger.info(
            "waiting for mote %s; target=%s file=%s lines=%d",
            s.sender_id,
            s.target,
            s.filename,
            s.length,
        )

    def on_event(self, event: MoteEvent) -> bool:
        """Apply one event; True when it moved the session forward."""
        s = self.session
        with self._lock:
            if s.state is SessionState.PENDING:
                raise RuntimeError("start() must be called before events are delivered")
            if s.state.terminal:
                return False

            self.metrics.events_seen += 1
            if not event.is_from(s.sender_id):
                self.metrics.events_ignored += 1
                return False

            if s.state is SessionState.WAITING_READY:
                self._begin()
                return True

            if event.payload == self.config.ack_token:
                self._send_next()
                return True

            if event.payload == self.config.done_token:
                self._finish(
                    SessionState.FAILED,
                    PrematureCompletion(
                        f"mote {s.sender_id} reported done after {s.cursor}/{s.length} lines"
                    ),
                )
                return True

            self.metrics.malformed_acks += 1
            logger.debug("ignoring payload %r from mote %s at line %d", event.payload, s.sender_id, s.cursor)
            return False

    def cancel(self, reason: str = "cancelled by caller") -> bool:
        with self._lock:
            if self.session.state.terminal:
                return False
            self._finish(SessionState.CANCELLED, TransferCancelled(reason))
            if self._events is not None:
                self._events.wake()
            return True

    def run(self, events: EventQueue, timeout_ms: int | None = None) -> TransferResult:
        if self.session.state is SessionState.PENDING:
            self.start()

        self._events = events
        if timeout_ms is None:
            timeout_ms = self.config.timeout_ms
        timeout_s = timeout_ms / 1000.0 if timeout_ms > 0 else None
        deadline = None if timeout_s is None else time.monotonic() + timeout_s

        while not self.session.state.terminal:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                event = events.next_event(remaining)
            except TimeoutError:
                self._expire(timeout_ms)
                break

            if event is None:
                if not events.closed:
                    # woken by cancel(), or a stale wake-up from an earlier session
                    continue
                with self._lock:
                    if not self.session.state.terminal:
                        self._finish(SessionState.FAILED, LinkError("event stream closed"))
                break

            if self.on_event(event) and deadline is not None:
                deadline = time.monotonic() + timeout_s

        return self.result()

    def result(self) -> TransferResult:
        s = self.session
        with self._lock:
            return TransferResult(
                state=s.state,
                cursor=s.cursor,
                length=s.length,
                progress=tuple(self.progress),
                metrics=self.metrics,
                error=s.error,
            )

    def _begin(self) -> None:
        s = self.session
        if not self._write(f"{SENDFILE_COMMAND} {s.target} {s.filename}"):
            return
        s.state = SessionState.SENDING
        self._report()
        if s.at_end:
            self._finish(SessionState.COMPLETE)

    def _send_next(self) -> None:
        s = self.session
        line = s.current_line()
        if not self._write(line):
            return
        s.advance()
        self.metrics.lines_sent += 1
        self.metrics.bytes_sent += len(line.encode(LINE_ENCODING))
        logger.debug("sent line %d/%d to %s", s.cursor, s.length, s.target)
        self._report()
        if s.at_end:
            self._finish(SessionState.COMPLETE)

    def _write(self, command: str) -> bool:
        try:
            self.mote.write(command)
        except LinkError as exc:
            self._finish(SessionState.FAILED, exc)
            return False
        return True

    def _report(self) -> None:
        pct = self.session.progress
        if self.config.dedupe_progress and self.progress and self.progress[-1] == pct:
            return
        self.progress.append(pct)
        self.log(str(pct))

    def _expire(self, timeout_ms: int) -> None:
        s = self.session
        with self._lock:
            if s.state.terminal:
                return
            if s.state is SessionState.WAITING_READY:
                waiting = "readiness signal"
            else:
                waiting = f"acknowledgment for line {s.cursor + 1}/{s.length}"
            self._finish(
                SessionState.FAILED,
                TransferTimeout(f"no {waiting} from mote {s.sender_id} within {timeout_ms} ms"),
            )

    def _finish(self, state: SessionState, error: TransferError | None = None) -> None:
        s = self.session
        s.state = state
        s.error = error
        self.metrics.end_ts = time.monotonic()
        if error is None:
            logger.info(
                "transfer of %s to %s complete; lines=%d seconds=%.3f",
                s.filename,
                s.target,
                s.length,
                self.metrics.duration_s,
            )
        else:
            logger.warning("transfer of %s to %s %s at line %d/%d: %s", s.filename, s.target, state.value, s.cursor, s.length, error)
        if self.on_complete is not None:
            self.on_complete(self.result())
