"""Parse and evaluate arithmetic expressions safely."""
import logging
import math
from typing import List

from calculator_service.common.errors import (
    DivisionByZeroError,
    InsufficientOperandsError,
    MismatchedParenthesesError,
    NonFiniteResultError,
    UnevaluableExpressionError,
    UnexpectedCharacterError,
    UnexpectedTokenError,
)
from calculator_service.common.logger import logger
from calculator_service.common.tokens import (
    LeftParenToken,
    NumberToken,
    OperatorSymbol,
    OperatorToken,
    RightParenToken,
    Token,
)


DIGITS = frozenset("0123456789")
NUMBER_CHARS = DIGITS | {"."}
SINGLE_CHAR_TOKENS = frozenset("+-*/()")


class ExpressionParser:
    """
    Parse and evaluate arithmetic expressions safely.

    Design constraints:
        - No eval(), no dynamic code execution
        - Each stage is a pure function of its input; nothing is cached

    Algorithm:
        1. Tokenize character by character, folding unary minus into literals
        2. Convert to Reverse Polish Notation (RPN) using Shunting-yard
        3. Evaluate RPN using a stack

    The Shunting-yard algorithm converts an infix expression into Reverse Polish Notation (RPN), allowing safe, stack-based evaluation without parentheses.
    It handles operator precedence by temporarily storing operators on a stack and outputting them in the correct order.

    Examples:
        - Infix expression (standard notation): 3 + 4 * (2 - 1)
        - Corresponding Reverse Polish Notation (RPN): 3 4 2 1 - * +

    """

    @staticmethod
    def _starts_negative_literal(tokens: List[Token]) -> bool:
        """
        Tell whether a '-' read now is a sign rather than a subtraction.

        :param List[Token] tokens: Tokens emitted so far

        :return: True at the start of the expression or after an operator or '('
        :rtype: bool
        """
        return not tokens or isinstance(tokens[-1], (OperatorToken, LeftParenToken))

    @staticmethod
    def tokenize(expr: str) -> List[Token]:
        """
        Split an arithmetic expression into tokens.

        Tokens need not be space-separated (e.g., "3+4*-2" works).

        :param str expr: Arithmetic expression as a string

        :return: List of tokens in infix order
        :rtype: List[Token]
        :raises UnexpectedCharacterError: On a character outside the expression alphabet
        :raises UnexpectedTokenError: On a malformed numeric literal such as "1.2.3"
        """
        tokens: List[Token] = []
        buffer: str = ""

        for char in expr:
            if char in NUMBER_CHARS:
                buffer += char
                continue

            # Any other character ends the pending literal
            if buffer:
                tokens.append(Token.from_text(buffer))
                buffer = ""

            if char == "-" and ExpressionParser._starts_negative_literal(tokens):
                buffer = char
            elif char in SINGLE_CHAR_TOKENS:
                tokens.append(Token.from_text(char))
            elif char.isspace():
                continue
            else:
                raise UnexpectedCharacterError(char)

        if buffer:
            tokens.append(Token.from_text(buffer))

        return tokens

    @staticmethod
    def to_rpn(tokens: List[Token]) -> List[Token]:
        """
        Convert a list of tokens into Reverse Polish Notation (RPN) using the Shunting-yard algorithm.

        :param List[Token] tokens: List of arithmetic tokens in infix order

        :return: List of tokens in RPN order
        :rtype: List[Token]
        :raises MismatchedParenthesesError: If a parenthesis has no partner
        """
        output: List[Token] = []
        # Holds operators and left parentheses only
        stack: List[Token] = []

        for token in tokens:
            if isinstance(token, NumberToken):
                # Numbers are added directly to the output
                output.append(token)
            elif isinstance(token, OperatorToken):
                # Pop operators with higher or equal precedence (left associativity)
                while (
                    stack
                    and isinstance(stack[-1], OperatorToken)
                    and stack[-1].precedence >= token.precedence
                ):
                    output.append(stack.pop())
                stack.append(token)
            elif isinstance(token, LeftParenToken):
                stack.append(token)
            elif isinstance(token, RightParenToken):
                while stack and not isinstance(stack[-1], LeftParenToken):
                    output.append(stack.pop())
                if not stack:
                    raise MismatchedParenthesesError()
                # Discard the matching '('
                stack.pop()

        # Append remaining operators, stack top first
        while stack:
            token = stack.pop()
            if isinstance(token, LeftParenToken):
                raise MismatchedParenthesesError()
            output.append(token)

        return output

    @staticmethod
    def evaluate_rpn(tokens: List[Token]) -> float:
        """
        Evaluate a token list in Reverse Polish Notation using a value stack.

        :param List[Token] tokens: Tokens in RPN order

        :return: Computed result as float
        :rtype: float
        :raises InsufficientOperandsError: If an operator finds fewer than two values
        :raises DivisionByZeroError: If a divisor is exactly zero
        :raises UnexpectedTokenError: If a parenthesis reaches the evaluator
        :raises UnevaluableExpressionError: If the stack does not end with one value
        """
        stack: List[float] = []

        for token in tokens:
            if isinstance(token, NumberToken):
                stack.append(token.value)
            elif isinstance(token, OperatorToken):
                # Operator requires two operands
                if len(stack) < 2:
                    raise InsufficientOperandsError()
                b: float = stack.pop()
                a: float = stack.pop()
                if token.symbol is OperatorSymbol.DIVIDE and b == 0.0:
                    raise DivisionByZeroError()
                stack.append(token.symbol.apply(a, b))
            else:
                raise UnexpectedTokenError(str(token))

        if len(stack) != 1:
            raise UnevaluableExpressionError()

        return stack[0]

    @staticmethod
    def evaluate(expr: str) -> float:
        """
        Evaluate an arithmetic expression safely.

        :param str expr: Arithmetic expression string

        :return: Computed result as a finite float
        :rtype: float
        :raises CalculationError: If the expression is invalid, malformed or overflows
        """
        tokens: List[Token] = ExpressionParser.tokenize(expr)
        rpn: List[Token] = ExpressionParser.to_rpn(tokens)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("RPN for %r: %s", expr, " ".join(str(token) for token in rpn))

        result: float = ExpressionParser.evaluate_rpn(rpn)
        if not math.isfinite(result):
            raise NonFiniteResultError(result)

        return result
