"""TCP client."""
from pathlib import Path
import socket
from typing import List

from pydantic import BaseModel, ConfigDict, Field, FilePath, IPvAnyAddress

from calculator_service.client.sources import ExpressionSource
from calculator_service.common.config import settings
from calculator_service.common.logger import logger
from calculator_service.common.operations import CalculationResult


class CalculatorClient(BaseModel):
    """
    TCP client sending arithmetic expressions to the server and receiving computed results.

    The TCP client:
    - sends raw expressions to the server over a TCP socket, one per line
    - receives one JSON reply per expression
    - parses the replies back into CalculationResult objects, ordered by line
    """

    # Immutable: the target server cannot change while a request is in flight
    model_config = ConfigDict(frozen=True)

    host: IPvAnyAddress = Field(default=settings.host, description="Server host address")
    port: int = Field(default=settings.port, ge=1, le=65535, description="Server TCP port")

    def _exchange(self, payload: bytes) -> bytes:
        """
        Send a payload, signal end of input and read the full reply.

        :param bytes payload: Newline-separated expressions

        :return: Raw reply bytes
        :rtype: bytes
        """
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.connect((str(self.host), self.port))
            s.sendall(payload)
            # No more data will be sent; the server starts evaluating
            s.shutdown(socket.SHUT_WR)

            chunks: List[bytes] = []
            while True:
                # An empty chunk means the server closed the connection
                chunk = s.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def send_expressions(self, expressions: List[str]) -> List[CalculationResult]:
        """
        Evaluate expressions remotely.

        Line numbers count non-empty expressions only, matching the server.

        :param List[str] expressions: Arithmetic expressions

        :return: One result per non-empty expression, ordered by line
        :rtype: List[CalculationResult]
        """
        reply: bytes = self._exchange("\n".join(expressions).encode())
        results = [
            CalculationResult.model_validate_json(line)
            for line in reply.decode().splitlines()
            if line.strip()
        ]
        logger.info(f"📨 Received {len(results)} result(s) from {self.host}:{self.port}")
        return sorted(results, key=lambda result: result.line)

    def send_file(self, input_file: FilePath, output_file: Path) -> List[CalculationResult]:
        """
        Send an expressions file (or archive) to the server and write the results to an output file.

        Each output line reads ``<expression> = <result>`` or ``<expression> -> ERROR: <error>``.

        :param FilePath input_file: Path to the input file or archive
        :param Path output_file: Path where results will be written

        :return: The results, ordered by line
        :rtype: List[CalculationResult]
        :raises ValueError: If the archive format is unsupported or contains no .txt file
        """
        expressions: List[str] = ExpressionSource(path=input_file).read_expressions()
        results: List[CalculationResult] = self.send_expressions(expressions)

        with output_file.open("w", encoding="utf-8") as f_out:
            for result in results:
                if result.ok:
                    f_out.write(f"{result.expression} = {result.result}\n")
                else:
                    f_out.write(f"{result.expression} -> ERROR: {result.error}\n")
        return results
