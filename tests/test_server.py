"""Test class CalculatorServer."""
import json
from multiprocessing import Pipe, Process
from pathlib import Path

import pytest

from calculator_service.common.operations import CalculationRequest
from calculator_service.server.server import WORKER_FAILURE_MESSAGE, CalculatorServer


def exit_immediately() -> None:
    """Process target standing in for a worker that already finished."""


@pytest.fixture
def tmp_output_file(tmp_path: Path) -> Path:
    """Create a temporary output file path."""
    return tmp_path / "results.jsonl"


class FakeSocket:
    """Mock socket to simulate client-server communication."""

    def __init__(self, lines: list[str]):
        self.data = "\n".join(lines).encode()
        self.sent_data = b""
        self.offset = 0

    def recv(self, bufsize: int) -> bytes:
        if self.offset >= len(self.data):
            return b""
        chunk = self.data[self.offset : self.offset + bufsize]
        self.offset += bufsize
        return chunk

    def sendall(self, data: bytes) -> None:
        self.sent_data += data

    def close(self) -> None:
        pass


class BytesSocket(FakeSocket):
    """Mock socket delivering raw bytes, which need not be valid UTF-8."""

    def __init__(self, data: bytes):
        super().__init__([])
        self.data = data


class BrokenSocket(FakeSocket):
    """Mock socket whose peer is gone when the server replies."""

    def sendall(self, data: bytes) -> None:
        raise BrokenPipeError("peer closed")


def test_defaults_from_settings() -> None:
    """Host and port default to the configured values."""
    server = CalculatorServer()
    assert str(server.host) == "127.0.0.1"
    assert server.port == 9000
    assert server.max_workers >= 1
    assert server.max_connections == 1
    assert server.output_file is None


def test_invalid_port() -> None:
    """Ports outside the valid range are rejected."""
    with pytest.raises(ValueError):
        CalculatorServer(port=0)


def test_receive_data() -> None:
    """_receive_data returns stripped non-empty lines from socket."""
    fake_socket = FakeSocket(["2 + 3", "", "  4 * 5  ", "   "])
    server = CalculatorServer()
    assert server._receive_data(fake_socket) == ["2 + 3", "4 * 5"]


def test_receive_data_in_several_chunks() -> None:
    """Payloads larger than one recv buffer are reassembled."""
    lines = [f"{i} + {i}" for i in range(2000)]
    server = CalculatorServer()
    assert server._receive_data(FakeSocket(lines)) == lines


def test_spawn_worker_returns_process_and_pipe() -> None:
    """_spawn_worker returns a running Process and the parent end of its Pipe."""
    server = CalculatorServer()
    request = CalculationRequest(expression="1 + 1", line=1)
    proc, parent_pipe, spawned_request = server._spawn_worker(request)
    payload = parent_pipe.recv()
    proc.join()

    assert payload["result"] == 2.0
    assert spawned_request is request
    assert payload["line"] == 1
    parent_pipe.close()


def test_collect_finished_workers_writes_results(tmp_output_file: Path) -> None:
    """_collect_finished_workers turns payloads into JSON reply lines."""
    server = CalculatorServer()

    parent_conn, child_conn = Pipe()
    # simulate worker payload
    payload = {"line": 1, "expression": "2 + 3", "result": 5.0, "error": None, "error_kind": None}
    child_conn.send(payload)
    child_conn.close()

    proc = Process(target=exit_immediately)
    proc.start()
    proc.join()

    active_workers = [(proc, parent_conn, CalculationRequest(expression="2 + 3", line=1))]
    replies: list[str] = []

    with tmp_output_file.open("w") as f_out:
        server._collect_finished_workers(active_workers, replies, f_out)

    assert active_workers == []
    assert [json.loads(reply) for reply in replies] == [payload]
    assert json.loads(tmp_output_file.read_text()) == payload


def test_collect_worker_that_sent_nothing() -> None:
    """A worker that exits without a payload still gets an error reply for its line."""
    server = CalculatorServer()

    parent_conn, child_conn = Pipe()
    child_conn.close()

    proc = Process(target=exit_immediately)
    proc.start()
    proc.join()

    active_workers = [(proc, parent_conn, CalculationRequest(expression="6 / 3", line=4))]
    replies: list[str] = []
    server._collect_finished_workers(active_workers, replies)

    assert active_workers == []
    assert [json.loads(reply) for reply in replies] == [{
        "line": 4,
        "expression": "6 / 3",
        "result": None,
        "error": WORKER_FAILURE_MESSAGE,
        "error_kind": "worker_failure",
    }]


def test_handle_client(tmp_output_file: Path) -> None:
    """handle_client evaluates every line and replies with one JSON object each."""
    lines = ["2 + 3", "", "4 * 5", "5 / 0", "2 + )"]
    fake_socket = FakeSocket(lines)
    server = CalculatorServer(output_file=tmp_output_file, max_workers=2)

    replies = server.handle_client(fake_socket)

    payloads = sorted((json.loads(reply) for reply in replies), key=lambda p: p["line"])
    assert [p["line"] for p in payloads] == [1, 2, 3, 4]
    assert payloads[0]["result"] == 5.0
    assert payloads[1]["result"] == 20.0
    assert payloads[2]["error_kind"] == "division_by_zero"
    assert payloads[3]["error_kind"] == "mismatched_parentheses"

    sent = fake_socket.sent_data.decode().splitlines()
    assert sorted(sent) == sorted(replies)
    assert sorted(tmp_output_file.read_text().splitlines()) == sorted(replies)


def test_handle_client_empty_input() -> None:
    """A client sending nothing receives nothing."""
    fake_socket = FakeSocket([])
    server = CalculatorServer()
    assert server.handle_client(fake_socket) == []
    assert fake_socket.sent_data == b""


def test_handle_client_disconnected() -> None:
    """A client gone before the reply does not crash the server."""
    server = CalculatorServer(max_workers=1)
    replies = server.handle_client(BrokenSocket(["1 + 1"]))
    assert len(replies) == 1


def test_receive_data_replaces_invalid_utf8() -> None:
    """Bytes that are not UTF-8 are replaced instead of failing the connection."""
    server = CalculatorServer()
    assert server._receive_data(BytesSocket(b"1 + 1\n\xff\xfe\n")) == ["1 + 1", "\ufffd\ufffd"]


def test_handle_client_invalid_utf8() -> None:
    """A non-UTF-8 line comes back as an unexpected_character reply; the other lines still evaluate."""
    fake_socket = BytesSocket(b"1 + 1\n\xff\xfe\n2 * 3\n")
    server = CalculatorServer(max_workers=1)

    replies = server.handle_client(fake_socket)

    payloads = sorted((json.loads(reply) for reply in replies), key=lambda p: p["line"])
    assert [p["line"] for p in payloads] == [1, 2, 3]
    assert payloads[0]["result"] == 2.0
    assert payloads[1]["error_kind"] == "unexpected_character"
    assert payloads[1]["error"] == "Unexpected character '\ufffd'"
    assert payloads[2]["result"] == 6.0
    assert len(fake_socket.sent_data.decode().splitlines()) == 3
