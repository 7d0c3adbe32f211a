from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import Hashable, Sequence

from .constants import LINE_ENCODING
from .errors import TransferError


class SessionState(enum.Enum):
    PENDING = "pending"
    WAITING_READY = "waiting_ready"
    SENDING = "sending"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (SessionState.COMPLETE, SessionState.FAILED, SessionState.CANCELLED)


def split_lines(text: str) -> list[str]:
    """Split on line feeds only, dropping a trailing CR and the empty tail."""
    lines = [line.removesuffix("\r") for line in text.split("\n")]
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def progress_percent(cursor: int, length: int) -> int:
    # an empty buffer is complete as soon as it starts
    if length == 0:
        return 100
    return cursor * 100 // length


@dataclass(slots=True)
class TransferSession:
    sender_id: Hashable
    target: str
    filename: str
    lines: Sequence[str] = ()
    cursor: int = 0
    state: SessionState = SessionState.PENDING
    error: TransferError | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.lines = tuple(self.lines)
        for name, value in (("target", self.target), ("filename", self.filename)):
            if not value or any(ch.isspace() for ch in value):
                raise ValueError(f"{name} must be a non-empty token without whitespace: {value!r}")
        for i, line in enumerate(self.lines):
            if "\n" in line or "\r" in line:
                raise ValueError(f"line {i + 1} contains a line break: {line!r}")
        if not 0 <= self.cursor <= len(self.lines):
            raise ValueError(f"cursor out of range: {self.cursor} (length {len(self.lines)})")

    @classmethod
    def from_file(
        cls,
        path: str,
        sender_id: Hashable,
        target: str,
        filename: str | None = None,
        encoding: str = LINE_ENCODING,
    ) -> "TransferSession":
        with open(path, encoding=encoding) as f:
            lines = split_lines(f.read())
        return cls(
            sender_id=sender_id,
            target=target,
            filename=filename or os.path.basename(path),
            lines=lines,
        )

    @property
    def length(self) -> int:
        return len(self.lines)

    @property
    def remaining(self) -> int:
        return len(self.lines) - self.cursor

    @property
    def at_end(self) -> bool:
        return self.cursor == len(self.lines)

    @property
    def progress(self) -> int:
        return progress_percent(self.cursor, len(self.lines))

    def current_line(self) -> str:
        if self.at_end:
            raise IndexError("session is already at end of file")
        return self.lines[self.cursor]

    def advance(self) -> None:
        if self.at_end:
            raise IndexError("session is already at end of file")
        self.cursor += 1
