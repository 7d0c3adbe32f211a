from __future__ import annotations

import pytest

from motexfer.session import SessionState, TransferSession, progress_percent, split_lines


def test_from_file_strips_line_endings(tmp_path):
    path = tmp_path / "payload.txt"
    path.write_bytes(b"a\nb\r\nc\n")
    s = TransferSession.from_file(str(path), sender_id=3, target="node2")
    assert s.lines == ("a", "b", "c")
    assert s.filename == "payload.txt"
    assert s.cursor == 0
    assert s.state is SessionState.PENDING


def test_from_file_filename_override(tmp_path):
    path = tmp_path / "payload.txt"
    path.write_text("")
    s = TransferSession.from_file(str(path), sender_id=3, target="node2", filename="remote.bin")
    assert s.filename == "remote.bin"
    assert s.length == 0
    assert s.at_end


@pytest.mark.parametrize("target,filename", [("", "f"), ("node 2", "f"), ("node2", ""), ("node2", "my file")])
def test_rejects_tokens_that_break_the_command(target, filename):
    with pytest.raises(ValueError):
        TransferSession(sender_id=1, target=target, filename=filename, lines=["x"])


def test_cursor_bounds():
    with pytest.raises(ValueError):
        TransferSession(sender_id=1, target="t", filename="f", lines=["x"], cursor=2)


def test_advance_walks_lines_in_order():
    s = TransferSession(sender_id=1, target="t", filename="f", lines=["x", "y"])
    assert s.current_line() == "x"
    s.advance()
    assert s.current_line() == "y"
    assert s.progress == 50
    s.advance()
    assert s.at_end
    assert s.remaining == 0
    with pytest.raises(IndexError):
        s.current_line()
    with pytest.raises(IndexError):
        s.advance()


def test_progress_percent_truncates():
    assert progress_percent(1, 3) == 33
    assert progress_percent(2, 3) == 66
    assert progress_percent(3, 3) == 100
    assert progress_percent(0, 0) == 100


def test_terminal_states():
    assert {s for s in SessionState if s.terminal} == {
        SessionState.COMPLETE,
        SessionState.FAILED,
        SessionState.CANCELLED,
    }


def test_from_file_keeps_form_feeds_and_separators_inside_lines(tmp_path):
    path = tmp_path / "source.c"
    path.write_bytes(b"a\x0cb\nc\x1cd\n")
    s = TransferSession.from_file(str(path), sender_id=1, target="node2")
    assert s.lines == ("a\x0cb", "c\x1cd")


def test_split_lines_only_on_line_feeds():
    assert split_lines("x\r\ny z\n") == ["x", "y z"]
    assert split_lines("no newline") == ["no newline"]
    assert split_lines("blank\n\n") == ["blank", ""]
    assert split_lines("") == []


@pytest.mark.parametrize("line", ["a\nb", "a\rb", "trailing\n"])
def test_rejects_lines_with_embedded_breaks(line):
    with pytest.raises(ValueError):
        TransferSession(sender_id=1, target="t", filename="f", lines=["ok", line])
