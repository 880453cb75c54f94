"""Errors raised while evaluating an arithmetic expression."""
from enum import Enum


class ErrorKind(str, Enum):
    """Fixed taxonomy of calculation failures."""

    UNEXPECTED_CHARACTER = "unexpected_character"
    MISMATCHED_PARENTHESES = "mismatched_parentheses"
    INSUFFICIENT_OPERANDS = "insufficient_operands"
    DIVISION_BY_ZERO = "division_by_zero"
    UNEXPECTED_TOKEN = "unexpected_token"
    UNEVALUABLE_EXPRESSION = "unevaluable_expression"
    NON_FINITE_RESULT = "non_finite_result"
    # Transport only: the worker process died before replying
    WORKER_FAILURE = "worker_failure"


DIVISION_BY_ZERO_MESSAGE = "Division by zero is not possible"


class CalculationError(ValueError):
    """
    Base class for every calculation failure.

    Subclasses ``ValueError`` so callers that only care about "invalid
    expression" can keep catching that.
    """

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnexpectedCharacterError(CalculationError):
    """A character that is not a digit, '.', an operator, a parenthesis or whitespace."""

    kind = ErrorKind.UNEXPECTED_CHARACTER

    def __init__(self, character: str) -> None:
        super().__init__(f"Unexpected character '{character}'")
        self.character = character


class MismatchedParenthesesError(CalculationError):
    kind = ErrorKind.MISMATCHED_PARENTHESES

    def __init__(self) -> None:
        super().__init__("Mismatched parentheses")


class InsufficientOperandsError(CalculationError):
    kind = ErrorKind.INSUFFICIENT_OPERANDS

    def __init__(self) -> None:
        super().__init__("Insufficient values in expression")


class DivisionByZeroError(CalculationError):
    kind = ErrorKind.DIVISION_BY_ZERO

    def __init__(self) -> None:
        super().__init__(DIVISION_BY_ZERO_MESSAGE)


class UnexpectedTokenError(CalculationError):
    """A token that is neither a number nor an operator where one is required."""

    kind = ErrorKind.UNEXPECTED_TOKEN

    def __init__(self, token: str) -> None:
        super().__init__(f"Unexpected token '{token}'")
        self.token = token


class UnevaluableExpressionError(CalculationError):
    """The value stack did not end with exactly one value."""

    kind = ErrorKind.UNEVALUABLE_EXPRESSION

    def __init__(self) -> None:
        super().__init__("The expression could not be evaluated")


class NonFiniteResultError(CalculationError):
    """
    The arithmetic completed but produced infinity or NaN.

    Reported to users with the division-by-zero message, while ``kind`` keeps
    it distinguishable for programmatic callers.
    """

    kind = ErrorKind.NON_FINITE_RESULT

    def __init__(self, value: float) -> None:
        super().__init__(DIVISION_BY_ZERO_MESSAGE)
        self.value = value
