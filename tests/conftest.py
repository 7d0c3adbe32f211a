from __future__ import annotations

import pytest

from motexfer.errors import LinkError


class RecordingMote:
    def __init__(self, fail_on: str | None = None):
        self.written: list[str] = []
        self.fail_on = fail_on

    def write(self, command: str) -> None:
        if command == self.fail_on:
            raise LinkError(f"cannot write {command!r}")
        self.written.append(command)


@pytest.fixture
def mote():
    return RecordingMote()


@pytest.fixture
def make_mote():
    return RecordingMote
