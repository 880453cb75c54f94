"""Pydantic models for calculation requests and results."""
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from calculator_service.common.errors import CalculationError, ErrorKind
from calculator_service.common.parser import ExpressionParser


class CalculationRequest(BaseModel):
    """Represents a single arithmetic expression sent to the server."""

    expression: str = Field(..., description="Arithmetic expression as a string")
    line: int = Field(default=1, ge=1, description="Line number of the expression in its input")


class CalculationResult(BaseModel):
    """
    Outcome of evaluating one expression.

    Exactly one of ``result`` and ``error`` is set: a finite value on success,
    a human-readable message (with its ``error_kind``) on failure.
    """

    expression: str = Field(..., description="Original arithmetic expression")
    line: int = Field(default=1, ge=1, description="Line number of the expression in its input")
    result: Optional[float] = Field(default=None, description="Evaluated numeric result")
    error: Optional[str] = Field(default=None, description="Error message if evaluation failed")
    error_kind: Optional[ErrorKind] = Field(default=None, description="Category of the error")

    @model_validator(mode="after")
    def result_xor_error(self) -> "CalculationResult":
        """Ensure that a result carries either a value or an error, never both."""
        if (self.result is None) == (self.error is None):
            raise ValueError("Exactly one of 'result' and 'error' must be set")
        if self.error is not None and self.error_kind is None:
            raise ValueError("An error must carry its error_kind")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def from_expression(cls, expression: str, line: int = 1) -> "CalculationResult":
        """
        Evaluate an expression and wrap the outcome.

        Calculation errors become an error result; anything else propagates.

        :param str expression: Arithmetic expression string
        :param int line: Line number of the expression in its input

        :return: Evaluation outcome
        :rtype: CalculationResult
        """
        try:
            value: float = ExpressionParser.evaluate(expression)
        except CalculationError as exc:
            return cls(expression=expression, line=line, error=exc.message, error_kind=exc.kind)
        return cls(expression=expression, line=line, result=value)

    @classmethod
    def from_request(cls, request: CalculationRequest) -> "CalculationResult":
        return cls.from_expression(request.expression, line=request.line)

    def to_response(self) -> dict[str, Any]:
        """Render the public ``{result, error}`` response body."""
        return {"result": self.result, "error": self.error}
