from __future__ import annotations

import json
import socket

from motexfer.cli import main


def test_sim_json(capsys):
    assert main(["sim", "--lines", "3", "--json", "--timeout-ms", "2000"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["state"] == "complete"
    assert out["sent"] == 3
    assert out["intact"] is True


def test_sim_from_file(tmp_path, capsys):
    path = tmp_path / "f.txt"
    path.write_text("one\ntwo\n")
    assert main(["sim", "--file", str(path), "--json"]) == 0
    assert json.loads(capsys.readouterr().out)["lines"] == 2


def test_sim_premature_completion_exit_status(capsys):
    assert main(["sim", "--lines", "3", "--done-after", "1", "--json"]) == 1
    out = json.loads(capsys.readouterr().out)
    assert out["state"] == "failed"
    assert "reported done" in out["error"]


def test_send_unreachable(tmp_path):
    path = tmp_path / "f.txt"
    path.write_text("one\n")
    srv = socket.socket()
    srv.bind(("127.0.0.1", 0))
    port = srv.getsockname()[1]
    srv.close()
    rc = main(["send", "--file", str(path), "--sender-id", "1", "--target", "2", "--port", str(port)])
    assert rc == 1


def test_send_over_serial_loopback(tmp_path, capsys):
    # loop:// echoes our own commands back, which are never "." so the wait times out
    path = tmp_path / "f.txt"
    path.write_text("one\n")
    rc = main(
        [
            "send",
            "--file",
            str(path),
            "--sender-id",
            "1",
            "--target",
            "2",
            "--serial-port",
            "loop://",
            "--timeout-ms",
            "100",
            "--json",
        ]
    )
    assert rc == 1
    out = json.loads(capsys.readouterr().out)
    assert out["state"] == "failed"
    assert "readiness" in out["error"]


def test_send_missing_file(tmp_path, caplog):
    rc = main(["send", "--file", str(tmp_path / "missing.txt"), "--sender-id", "1", "--target", "2"])
    assert rc == 1
    assert [r.name for r in caplog.records if r.levelname == "ERROR"] == ["motexfer.cli"]


def test_send_target_with_whitespace(tmp_path):
    path = tmp_path / "f.txt"
    path.write_text("one\n")
    rc = main(["send", "--file", str(path), "--sender-id", "1", "--target", "a b"])
    assert rc == 1


def test_sim_missing_file(tmp_path):
    assert main(["sim", "--file", str(tmp_path / "missing.txt")]) == 1
