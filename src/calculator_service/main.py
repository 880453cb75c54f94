"""
Command-line entrypoint of the calculator service.

Commands:
- evaluate: evaluate one expression in-process and print the JSON response
- serve: run the TCP server until interrupted
- run: start a server process, send an expressions file through the client
  and write the results beside the input (used by CI and Docker)
"""

import argparse
import json
from multiprocessing import Process
from pathlib import Path
import sys
import time
from typing import List, Optional

from pydantic import BaseModel, Field, FilePath, IPvAnyAddress, ValidationError

from calculator_service.client.client import CalculatorClient
from calculator_service.common.config import settings
from calculator_service.common.logger import logger
from calculator_service.common.operations import CalculationResult
from calculator_service.server.server import CalculatorServer


class EvaluateArgs(BaseModel):
    """Validated arguments of the ``evaluate`` command."""

    expression: str


class ServeArgs(BaseModel):
    """Validated arguments of the ``serve`` command."""

    host: IPvAnyAddress = settings.host
    port: int = Field(default=settings.port, ge=1, le=65535)
    output: Optional[Path] = None


class RunArgs(BaseModel):
    """
    Validated arguments of the ``run`` command.

    Attributes
    ----------
    file_path : FilePath
        Path to the file containing arithmetic operations.
    """

    file_path: FilePath


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with its three sub-commands."""
    parser = argparse.ArgumentParser(prog="calculator", description="Arithmetic expression calculator")
    subparsers = parser.add_subparsers(dest="command", required=True)

    evaluate = subparsers.add_parser("evaluate", help="Evaluate one expression and print the JSON response")
    evaluate.add_argument("expression", help='Arithmetic expression, e.g. "2 + 3 * (4 - 1)"')

    serve = subparsers.add_parser("serve", help="Run the TCP server until interrupted")
    serve.add_argument("--host", default=settings.host, help="Address to bind to")
    serve.add_argument("--port", type=int, default=settings.port, help="TCP port to listen on")
    serve.add_argument("--output", default=None, help="Optional file mirroring every reply line")

    run = subparsers.add_parser("run", help="Evaluate a file end to end through a local server")
    run.add_argument("file_path", help="Path to the file (or archive) containing arithmetic operations")

    return parser


def build_output_path(input_path: Path) -> Path:
    """
    Construct the output file path based on the input file.

    - Preserves the original folder
    - Replaces dots in extensions with underscores
    - Appends '_results.txt' at the end

    Examples
    --------
    input: resources/operations_short.7z
    output: resources/operations_short_7z_results.txt

    :param input_path: Path to the input file
    :return: Path to the output file
    """
    stem = input_path.name[: len(input_path.name) - len("".join(input_path.suffixes))]
    suffix_safe = "".join(input_path.suffixes).replace(".", "_")
    return input_path.with_name(f"{stem}{suffix_safe}_results.txt")


def run_server(host: IPvAnyAddress, port: int) -> None:
    """Run a single-client server; target of the ``run`` command's server process."""
    CalculatorServer(host=host, port=port).start()


def evaluate_command(args: EvaluateArgs) -> int:
    result = CalculationResult.from_expression(args.expression)
    print(json.dumps(result.to_response()))
    return 0 if result.ok else 1


def serve_command(args: ServeArgs) -> int:
    server = CalculatorServer(host=args.host, port=args.port, output_file=args.output, max_connections=None)
    try:
        server.start()
    except KeyboardInterrupt:
        logger.info("🛑 Interrupted, shutting down")
    return 0


def run_command(args: RunArgs) -> int:
    input_path: Path = Path(args.file_path)
    output_path: Path = build_output_path(input_path)

    server_process = Process(target=run_server, args=(settings.host, settings.port))
    server_process.start()

    # Give the server time to start listening
    time.sleep(settings.startup_delay)

    try:
        client = CalculatorClient()
        results = client.send_file(input_path, output_path)
    finally:
        # Ensure the server is always stopped
        server_process.terminate()
        server_process.join()

    failures = sum(1 for result in results if not result.ok)
    logger.info(f"📝 Wrote {len(results)} result(s) to {output_path} ({failures} error(s))")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse and validate command-line arguments, then dispatch the command.

    :param argv: Arguments to parse instead of ``sys.argv[1:]``
    :return: Process exit status
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    options = {key: value for key, value in vars(args).items() if key != "command"}

    commands = {
        "evaluate": (EvaluateArgs, evaluate_command),
        "serve": (ServeArgs, serve_command),
        "run": (RunArgs, run_command),
    }
    model, command = commands[args.command]
    try:
        validated = model(**options)
    except ValidationError as exc:
        parser.error(str(exc))

    return command(validated)


if __name__ == "__main__":
    sys.exit(main())
