"""Lexical tokens of an arithmetic expression."""
from collections.abc import Callable as ABCCallable
from enum import Enum
import operator
from typing import Callable, Literal, Tuple

from pydantic import BaseModel, ConfigDict, Field

from calculator_service.common.errors import UnexpectedTokenError


# Type alias for operator functions (taking two floats, returning a float)
OperatorFn: ABCCallable[[float, float], float] = Callable[[float, float], float]


class OperatorSymbol(str, Enum):
    """Binary operators understood by the calculator."""

    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"

    @property
    def precedence(self) -> int:
        return OPERATORS[self][0]

    def apply(self, a: float, b: float) -> float:
        """Apply the operator to ``a`` and ``b`` (in that order)."""
        return OPERATORS[self][1](a, b)


# Mapping of operator symbols to (precedence, function)
OPERATORS: dict[OperatorSymbol, Tuple[int, OperatorFn]] = {
    OperatorSymbol.ADD: (1, operator.add),
    OperatorSymbol.SUBTRACT: (1, operator.sub),
    OperatorSymbol.MULTIPLY: (2, operator.mul),
    OperatorSymbol.DIVIDE: (2, operator.truediv),
}


class Token(BaseModel):
    """
    Base class of the closed token family.

    Tokens are immutable and compared by value, so two ``NumberToken(value=3)``
    instances are equal.
    """

    model_config = ConfigDict(frozen=True)

    @staticmethod
    def from_text(text: str) -> "Token":
        """
        Classify a piece of raw expression text.

        A float parse is tried first, so every numeric literal shape Python
        accepts becomes a ``NumberToken``; a lone "-" left over by the
        tokenizer falls through to the operator check.

        :param str text: Raw token text

        :return: The matching token
        :rtype: Token
        :raises UnexpectedTokenError: If the text is no number, operator or parenthesis
        """
        try:
            return NumberToken(value=float(text))
        except ValueError:
            pass

        if text in {symbol.value for symbol in OperatorSymbol}:
            return OperatorToken(symbol=OperatorSymbol(text))
        if text == "(":
            return LeftParenToken()
        if text == ")":
            return RightParenToken()
        raise UnexpectedTokenError(text)


class NumberToken(Token):
    kind: Literal["number"] = "number"
    value: float = Field(..., description="Numeric value of the literal")

    def __str__(self) -> str:
        return repr(self.value)


class OperatorToken(Token):
    kind: Literal["operator"] = "operator"
    symbol: OperatorSymbol = Field(..., description="Operator symbol")

    @property
    def precedence(self) -> int:
        return self.symbol.precedence

    def __str__(self) -> str:
        return self.symbol.value


class LeftParenToken(Token):
    kind: Literal["left_paren"] = "left_paren"

    def __str__(self) -> str:
        return "("


class RightParenToken(Token):
    kind: Literal["right_paren"] = "right_paren"

    def __str__(self) -> str:
        return ")"
