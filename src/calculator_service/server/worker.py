"""Worker process for evaluating arithmetic expressions."""
from multiprocessing.connection import Connection
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from calculator_service.common.logger import logger
from calculator_service.common.operations import CalculationRequest, CalculationResult


class WorkerProcess(BaseModel):
    """
    Worker process responsible for evaluating a single arithmetic expression.

    Lifecycle:
        - Spawned by the parent server process
        - Receives one CalculationRequest only
        - Sends a serialized CalculationResult through a Pipe
        - Terminates immediately after computation
    """

    # Immutable once spawned; arbitrary types for multiprocessing.Connection
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    conn: Connection = Field(..., description="Connection object for sending results back to server")
    request: CalculationRequest = Field(..., description="Single expression to evaluate, with its line number")

    @field_validator("request")
    def expression_must_not_be_empty(cls, v: CalculationRequest) -> CalculationRequest:
        """Ensure that the expression is not empty."""
        if not v.expression.strip():
            raise ValueError("Expression cannot be empty")
        return v

    def run(self) -> None:
        """
        Evaluate the request and send the outcome through the pipe.

        The payload is ``CalculationResult.model_dump(mode="json")``: a dict
        with line, expression, result, error and error_kind.

        :return: None
        """
        line, expression = self.request.line, self.request.expression
        logger.info(f"👷🏁 Worker started on line {line}: {expression}")

        outcome: Optional[CalculationResult] = None
        try:
            outcome = CalculationResult.from_request(self.request)
            if not outcome.ok:
                logger.error(
                    f"👷❌ Worker failed on line {line}: {outcome.error} "
                    f"({outcome.error_kind.value}) in {expression!r}"
                )
            self.conn.send(outcome.model_dump(mode="json"))
        finally:
            # Always close the connection
            self.conn.close()

        if outcome.ok:
            logger.info(f"👷✅ Worker finished on line {line}: {outcome.result}")
