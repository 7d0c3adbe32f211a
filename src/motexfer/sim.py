from __future__ import annotations

import logging
import queue
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Hashable, Sequence

from .constants import ACK_TOKEN, DEFAULT_TIMEOUT_MS, DONE_TOKEN, READY_PAYLOAD, SENDFILE_COMMAND
from .driver import DriverConfig, TransferDriver, TransferResult
from .events import EventQueue, MoteEvent
from .session import TransferSession

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass(frozen=True, slots=True)
class Impairment:
    drop_rate: float = 0.0
    delay_ms: int = 0

    def __post_init__(self) -> None:
        if not 0.0 <= self.drop_rate < 1.0:
            raise ValueError(f"drop_rate must be in [0, 1): {self.drop_rate}")
        if self.delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0: {self.delay_ms}")

    def should_drop(self, rng: random.Random) -> bool:
        return rng.random() < self.drop_rate

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


class SimulatedMote:
    """In-process stand-in for the sending mote.

    Commands written to it are handled on its own thread: ``sendfile``
    opens a transfer, every later command is a payload line. Each
    command is answered with the acknowledgment token unless the
    impairment drops it, or with the done token once ``done_after`` lines
    have arrived.
    """

    def __init__(
        self,
        mote_id: Hashable,
        events: EventQueue,
        impairment: Impairment | None = None,
        done_after: int | None = None,
        ack_token: str = ACK_TOKEN,
        done_token: str = DONE_TOKEN,
        seed: int | None = None,
    ):
        self.mote_id = mote_id
        self.events = events
        self.impairment = impairment or Impairment()
        self.done_after = done_after
        self.ack_token = ack_token
        self.done_token = done_token
        self.rng = random.Random(seed)
        self.commands: list[str] = []
        self.received: list[str] = []
        self.target: str | None = None
        self.filename: str | None = None
        self.dropped = 0
        self._inbox: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None

    def boot(self) -> None:
        self._thread = threading.Thread(target=self._serve, name=f"sim-mote-{self.mote_id}", daemon=True)
        self._thread.start()
        self._emit(READY_PAYLOAD)

    def write(self, command: str) -> None:
        self._inbox.put(command)

    def stop(self, timeout_s: float = 5.0) -> None:
        self._inbox.put(_STOP)
        if self._thread is not None:
            self._thread.join(timeout=timeout_s)

    def _serve(self) -> None:
        while True:
            command = self._inbox.get()
            if command is _STOP:
                return
            self.commands.append(command)
            if self.target is None:
                if not self._open(command):
                    continue
            else:
                self.received.append(command)

            self.impairment.sleep_if_needed()
            if self.done_after is not None and len(self.received) >= self.done_after:
                self._emit(self.done_token)
            elif self.impairment.should_drop(self.rng):
                self.dropped += 1
                logger.debug("mote %s dropped acknowledgment after %d lines", self.mote_id, len(self.received))
            else:
                self._emit(self.ack_token)

    def _open(self, command: str) -> bool:
        parts = command.split()
        if len(parts) != 3 or parts[0] != SENDFILE_COMMAND:
            logger.warning("mote %s ignoring command before sendfile: %r", self.mote_id, command)
            return False
        self.target, self.filename = parts[1], parts[2]
        return True

    def _emit(self, payload: str) -> None:
        self.events.publish(MoteEvent(self.mote_id, payload))


@dataclass(frozen=True, slots=True)
class SimulationResult:
    result: TransferResult
    commands: tuple[str, ...]
    received: tuple[str, ...]
    dropped: int
    logged: tuple[str, ...] = field(default=())

    @property
    def intact(self) -> bool:
        return self.result.ok and len(self.received) == self.result.length


def run_simulation(
    lines: Sequence[str],
    *,
    sender_id: Hashable = 1,
    target: str = "2",
    filename: str = "data.txt",
    drop_rate: float = 0.0,
    delay_ms: int = 0,
    done_after: int | None = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    dedupe_progress: bool = False,
    seed: int | None = None,
) -> SimulationResult:
    events = EventQueue()
    mote = SimulatedMote(
        sender_id,
        events,
        impairment=Impairment(drop_rate=drop_rate, delay_ms=delay_ms),
        done_after=done_after,
        seed=seed,
    )
    session = TransferSession(sender_id=sender_id, target=target, filename=filename, lines=lines)
    logged: list[str] = []

    def log(line: str) -> None:
        logged.append(line)
        logger.info("progress %s%%", line)

    driver = TransferDriver(
        session,
        mote,
        log=log,
        config=DriverConfig(timeout_ms=timeout_ms, dedupe_progress=dedupe_progress),
    )

    mote.boot()
    try:
        result = driver.run(events)
    finally:
        mote.stop()

    return SimulationResult(
        result=result,
        commands=tuple(mote.commands),
        received=tuple(mote.received),
        dropped=mote.dropped,
        logged=tuple(logged),
    )
