from __future__ import annotations

import argparse
import json
import logging
from typing import Union

from .constants import ACK_TOKEN, DEFAULT_BAUDRATE, DEFAULT_TIMEOUT_MS, DONE_TOKEN
from .driver import DriverConfig, TransferDriver, TransferResult
from .errors import TransferError
from .events import EventQueue
from .links import SerialLink, SocketLink
from .session import TransferSession, split_lines
from .sim import run_simulation

logger = logging.getLogger(__name__)


def _summary(role: str, r: TransferResult) -> dict:
    return {
        "role": role,
        "state": r.state.value,
        "lines": r.length,
        "sent": r.metrics.lines_sent,
        "bytes": r.metrics.bytes_sent,
        "seconds": r.metrics.duration_s,
        "malformed": r.metrics.malformed_acks,
        "error": str(r.error) if r.error else None,
    }


def _emit(payload: dict, as_json: bool) -> None:
    print(json.dumps(payload, indent=2) if as_json else payload)


def cmd_send(args: argparse.Namespace) -> int:
    events = EventQueue()
    try:
        session = TransferSession.from_file(args.file, args.sender_id, args.target, filename=args.filename)
    except (OSError, ValueError) as exc:
        logger.error("cannot load %s: %s", args.file, exc)
        return 1
    try:
        if args.serial_port:
            link: Union[SerialLink, SocketLink] = SerialLink.open(
                args.serial_port, args.sender_id, events, baudrate=args.baudrate
            )
        else:
            link = SocketLink.connect(args.host, args.port, args.sender_id, events)
    except TransferError as exc:
        logger.error("%s", exc)
        return 1

    config = DriverConfig(
        ack_token=args.ack_token,
        done_token=args.done_token,
        timeout_ms=args.timeout_ms,
        dedupe_progress=args.dedupe_progress,
    )
    with link:
        result = TransferDriver(session, link, config=config).run(events)

    _emit(_summary("sender", result), args.json)
    return 0 if result.ok else 1


def cmd_sim(args: argparse.Namespace) -> int:
    if args.file:
        try:
            with open(args.file, encoding="utf-8") as f:
                lines = split_lines(f.read())
        except OSError as exc:
            logger.error("cannot load %s: %s", args.file, exc)
            return 1
    else:
        lines = [f"line {i}" for i in range(args.lines)]

    sim = run_simulation(
        lines,
        drop_rate=args.drop_rate,
        delay_ms=args.delay_ms,
        done_after=args.done_after,
        timeout_ms=args.timeout_ms,
        dedupe_progress=args.dedupe_progress,
        seed=args.seed,
    )
    payload = {**_summary("sim", sim.result), "dropped": sim.dropped, "intact": sim.intact}
    _emit(payload, args.json)
    return 0 if sim.result.ok else 1


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="motexfer", description="Line-by-line file transfer driver for simulated motes.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS, help="per-acknowledgment bound, 0 waits forever")
        x.add_argument("--dedupe-progress", action="store_true", help="only log a percentage when it changes")
        x.add_argument("--json", action="store_true")

    send = sub.add_parser("send", help="drive a transfer through a connected mote")
    add_common(send)
    send.add_argument("--file", required=True)
    send.add_argument("--filename", default=None, help="name sent to the target (default: base name of --file)")
    send.add_argument("--sender-id", required=True)
    send.add_argument("--target", required=True)
    send.add_argument("--host", default="127.0.0.1")
    send.add_argument("--port", type=int, default=60001)
    send.add_argument("--serial-port", default=None, help="serial device or pyserial URL instead of a socket")
    send.add_argument("--baudrate", type=int, default=DEFAULT_BAUDRATE)
    send.add_argument("--ack-token", default=ACK_TOKEN)
    send.add_argument("--done-token", default=DONE_TOKEN)
    send.set_defaults(func=cmd_send)

    sim = sub.add_parser("sim", help="run a transfer against an in-process simulated mote")
    add_common(sim)
    src = sim.add_mutually_exclusive_group()
    src.add_argument("--file", default=None)
    src.add_argument("--lines", type=int, default=10)
    sim.add_argument("--drop-rate", type=float, default=0.0)
    sim.add_argument("--delay-ms", type=int, default=0)
    sim.add_argument("--done-after", type=int, default=None, help="mote claims completion after this many lines")
    sim.add_argument("--seed", type=int, default=None)
    sim.set_defaults(func=cmd_sim)

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
