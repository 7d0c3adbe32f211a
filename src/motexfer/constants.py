from __future__ import annotations

SENDFILE_COMMAND = "sendfile"
ACK_TOKEN = "."
DONE_TOKEN = "done"
READY_PAYLOAD = "ready"

LINE_ENCODING = "utf-8"

DEFAULT_TIMEOUT_MS = 5000
DEFAULT_CONNECT_TIMEOUT_MS = 2000
DEFAULT_BAUDRATE = 115200
SERIAL_POLL_MS = 100
