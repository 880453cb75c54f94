"""TCP server that evaluates arithmetic expressions using worker processes."""
from multiprocessing import Pipe, Process, cpu_count
from multiprocessing.connection import Connection
from pathlib import Path
import json
import socket
from typing import Any, List, Optional, TextIO, Tuple

from pydantic import BaseModel, ConfigDict, Field, IPvAnyAddress

from calculator_service.common.config import settings
from calculator_service.common.errors import ErrorKind
from calculator_service.common.logger import logger
from calculator_service.common.operations import CalculationRequest, CalculationResult
from calculator_service.server.worker import WorkerProcess

# A running worker, the parent end of its pipe and the request it evaluates
ActiveWorker = Tuple[Process, Connection, CalculationRequest]

WORKER_FAILURE_MESSAGE = "The worker evaluating this expression exited without a result"


class CalculatorServer(BaseModel):
    """
    TCP socket server evaluating newline-separated expressions.

    Protocol:
        - The client sends expressions, one per line, then shuts down writing.
        - The server answers with one JSON object per non-empty line, in
          completion order: {"line", "expression", "result", "error", "error_kind"}.

    Features:
        - Spawns one worker process per expression, at most ``max_workers`` at a time.
        - Mirrors every reply line to ``output_file`` as soon as a worker finishes.
        - Ensures each worker is joined immediately after finishing.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    host: IPvAnyAddress = Field(default=settings.host, description="Server host address")
    port: int = Field(default=settings.port, ge=1, le=65535, description="Server TCP port")
    output_file: Optional[Path] = Field(default=None, description="Optional path mirroring every reply line")
    max_workers: int = Field(
        default_factory=lambda: settings.max_workers or cpu_count(),
        ge=1,
        description="Maximum number of simultaneous worker processes",
    )
    max_connections: Optional[int] = Field(
        default=1, ge=1, description="Number of clients to serve before stopping (None: forever)"
    )

    def _receive_data(self, conn: socket.socket) -> List[str]:
        """
        Receive all data from the client connection and return non-empty lines.

        :param socket.socket conn: Connected client socket

        :return: List of non-empty expression lines
        :rtype: List[str]
        """
        # Data may arrive in multiple packets; read until the client shuts down writing
        chunks: List[bytes] = []
        while True:
            chunk: bytes = conn.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
        # Undecodable bytes become U+FFFD and are rejected by the tokenizer
        lines: List[str] = b"".join(chunks).decode("utf-8", errors="replace").splitlines()
        return [line.strip() for line in lines if line.strip()]

    def _spawn_worker(self, request: CalculationRequest) -> ActiveWorker:
        """
        Spawn a WorkerProcess for the given request and return process, pipe and request.

        :param CalculationRequest request: Expression and its line number

        :return: Tuple of (Process, parent end of the pipe, request)
        :rtype: ActiveWorker
        """
        parent_conn, child_conn = Pipe()
        worker = WorkerProcess(conn=child_conn, request=request)
        process = Process(target=worker.run)
        process.start()
        # The child owns its end now
        child_conn.close()
        return process, parent_conn, request

    def _collect_finished_workers(
        self, active_workers: List[ActiveWorker], replies: List[str], f_out: Optional[TextIO] = None
    ) -> None:
        """
        Collect payloads from finished workers and append them as JSON reply lines.

        Finished workers are removed from ``active_workers``.

        :param List[ActiveWorker] active_workers: Running workers, updated in place
        :param List[str] replies: Reply lines collected so far, updated in place
        :param TextIO f_out: Optional open file mirroring the replies
        """
        # Iterate in reverse to safely remove finished workers while iterating
        for i in reversed(range(len(active_workers))):
            proc, pipe_conn, request = active_workers[i]
            if proc.is_alive() and not pipe_conn.poll():
                continue

            try:
                payload: dict[str, Any] = pipe_conn.recv()
            except EOFError:
                logger.error(f"👷💥 Worker {proc.pid} exited without a result on line {request.line}")
                payload = CalculationResult(
                    expression=request.expression,
                    line=request.line,
                    error=WORKER_FAILURE_MESSAGE,
                    error_kind=ErrorKind.WORKER_FAILURE,
                ).model_dump(mode="json")
            finally:
                pipe_conn.close()
                proc.join()
                active_workers.pop(i)

            reply: str = json.dumps(payload)
            replies.append(reply)
            if f_out is not None:
                f_out.write(reply + "\n")
                f_out.flush()

    def handle_client(self, conn: socket.socket) -> List[str]:
        """
        Evaluate every expression received on ``conn`` and send the replies back.

        :param socket.socket conn: Connected client socket

        :return: The JSON reply lines, in completion order
        :rtype: List[str]
        """
        data: List[str] = self._receive_data(conn)
        logger.info(f"📥 Received {len(data)} expression(s)")

        replies: List[str] = []
        active_workers: List[ActiveWorker] = []
        f_out: Optional[TextIO] = self.output_file.open("w", encoding="utf-8") if self.output_file else None
        try:
            for line_number, expr in enumerate(data, start=1):
                # Wait until a worker slot is available
                while len(active_workers) >= self.max_workers:
                    self._collect_finished_workers(active_workers, replies, f_out)
                active_workers.append(self._spawn_worker(CalculationRequest(expression=expr, line=line_number)))

            # Collect remaining active workers
            while active_workers:
                self._collect_finished_workers(active_workers, replies, f_out)
        finally:
            if f_out is not None:
                f_out.close()

        try:
            conn.sendall("".join(reply + "\n" for reply in replies).encode())
            logger.info("✉️ Results sent to client")
        except OSError as exc:
            logger.error(f"🔌❌ Client disconnected before receiving results: {exc}")

        return replies

    def start(self) -> None:
        """
        Start the TCP server and serve clients.

        Steps:
            1. Bind and listen on the specified host and port.
            2. Accept a client connection and evaluate its expressions.
            3. Repeat until ``max_connections`` clients were served (forever if None).

        :return: None
        """
        logger.info(f"🖥️ Starting server on {self.host}:{self.port}")

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((str(self.host), self.port))
            s.listen()
            logger.info("🖥️ Server listening")

            served: int = 0
            while self.max_connections is None or served < self.max_connections:
                conn, address = s.accept()
                logger.info(f"🔌 Client connected from {address[0]}:{address[1]}")
                with conn:
                    self.handle_client(conn)
                served += 1

        logger.info("🖥️ Server stopped")
