"""
Filter Expression Language
==========================

A small boolean expression language evaluated against a parameter mapping.
The grammar is a fixed contract; expressions written for one release must keep
their meaning in the next.

Operators, lowest precedence first:

    ?:                     ternary
    ||                     logical or
    &&                     logical and
    == != < <= > >= =~ !~ in   comparison
    + -                    additive (+ also concatenates strings)
    * / %                  multiplicative
    **                     power (right associative)
    ! -                    unary

Operands: numbers, 'single' or "double" quoted strings, true, false,
variables (identifiers or [bracketed names]) and parenthesised groups.
The right side of 'in' is a parenthesised list: weekday in ('Saturday', 'Sunday').

String literals shaped like ISO-8601 dates ('2013-04-09', '2013-04-09 10:30:00',
'2013-04-09T10:30:00+02:00') are converted to epoch seconds when the expression
is compiled, so they compare directly with the 'date' variable.

Author: Timeliner Development Team
Version: 1.0
"""

import logging
import math
import re
from typing import Any, FrozenSet, List, Mapping, Optional, Tuple

from timeliner.utils.error_handler import CompileError, EvalError
from timeliner.utils.time_utils import parse_date_literal

# Configure logger
logger = logging.getLogger(__name__)

TOKEN_NUMBER = 'number'
TOKEN_STRING = 'string'
TOKEN_IDENT = 'ident'
TOKEN_OP = 'op'
TOKEN_EOF = 'eof'

KEYWORDS = {'true', 'false', 'in'}

# Longest operators first so '**' wins over '*'
OPERATORS = (
    '**', '&&', '||', '==', '!=', '<=', '>=', '=~', '!~',
    '<', '>', '+', '-', '*', '/', '%', '!', '?', ':', '(', ')', ',',
)

COMPARISON_OPERATORS = {'==', '!=', '<', '<=', '>', '>=', '=~', '!~', 'in'}

NUMBER_PATTERN = re.compile(r'\d+(?:\.\d+)?(?:[eE][+-]?\d+)?')
IDENT_PATTERN = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')

STRING_ESCAPES = {
    '\\': '\\',
    "'": "'",
    '"': '"',
    'n': '\n',
    't': '\t',
}


class Token:
    """A lexical token and its offset in the source text."""

    __slots__ = ('kind', 'value', 'position')

    def __init__(self, kind: str, value: Any, position: int):
        self.kind = kind
        self.value = value
        self.position = position

    def is_op(self, *symbols: str) -> bool:
        return self.kind == TOKEN_OP and self.value in symbols

    def __repr__(self) -> str:
        return f"Token({self.kind}, {self.value!r}, {self.position})"


def tokenize(text: str) -> List[Token]:
    """
    Split an expression into tokens.

    Raises:
        CompileError: On characters that start no token or unterminated strings
    """
    tokens: List[Token] = []
    pos = 0
    length = len(text)

    while pos < length:
        char = text[pos]

        if char.isspace():
            pos += 1
            continue

        if char in ('"', "'"):
            value, pos_after = _read_string(text, pos)
            tokens.append(Token(TOKEN_STRING, value, pos))
            pos = pos_after
            continue

        if char == '[':
            end = text.find(']', pos + 1)
            if end < 0:
                raise CompileError("Unterminated variable name", text, pos)
            name = text[pos + 1:end].strip()
            if not name:
                raise CompileError("Empty variable name", text, pos)
            tokens.append(Token(TOKEN_IDENT, name, pos))
            pos = end + 1
            continue

        match = NUMBER_PATTERN.match(text, pos)
        if match:
            literal = match.group(0)
            if any(c in literal for c in '.eE'):
                number: Any = float(literal)
            else:
                number = int(literal)
            tokens.append(Token(TOKEN_NUMBER, number, pos))
            pos = match.end()
            continue

        match = IDENT_PATTERN.match(text, pos)
        if match:
            word = match.group(0)
            if word in KEYWORDS:
                tokens.append(Token(TOKEN_OP, word, pos))
            else:
                tokens.append(Token(TOKEN_IDENT, word, pos))
            pos = match.end()
            continue

        for symbol in OPERATORS:
            if text.startswith(symbol, pos):
                tokens.append(Token(TOKEN_OP, symbol, pos))
                pos += len(symbol)
                break
        else:
            raise CompileError(f"Unexpected character {char!r}", text, pos)

    tokens.append(Token(TOKEN_EOF, None, length))
    return tokens


def _read_string(text: str, start: int) -> Tuple[str, int]:
    quote = text[start]
    chars = []
    pos = start + 1
    while pos < len(text):
        char = text[pos]
        if char == quote:
            return ''.join(chars), pos + 1
        if char == '\\' and pos + 1 < len(text):
            following = text[pos + 1]
            if following in STRING_ESCAPES:
                chars.append(STRING_ESCAPES[following])
                pos += 2
                continue
        chars.append(char)
        pos += 1
    raise CompileError("Unterminated string literal", text, start)


# --- evaluation helpers ---------------------------------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return 'bool'
    if _is_number(value):
        return 'number'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, list):
        return 'list'
    return type(value).__name__


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def _require_bool(value: Any, operator: str) -> bool:
    if not isinstance(value, bool):
        raise EvalError(f"Operator '{operator}' expects a boolean, got {_type_name(value)}")
    return value


def _require_numbers(left: Any, right: Any, operator: str) -> None:
    if not (_is_number(left) and _is_number(right)):
        raise EvalError(
            f"Operator '{operator}' cannot be applied to "
            f"{_type_name(left)} and {_type_name(right)}"
        )


# --- syntax tree ------------------------------------------------------------

class Node:
    """Base class of the expression syntax tree."""

    def evaluate(self, params: Mapping[str, Any]) -> Any:
        raise NotImplementedError

    def variables(self) -> FrozenSet[str]:
        return frozenset()


class Literal(Node):
    def __init__(self, value: Any):
        self.value = value

    def evaluate(self, params):
        return self.value


class Variable(Node):
    def __init__(self, name: str):
        self.name = name

    def evaluate(self, params):
        try:
            return params[self.name]
        except KeyError:
            raise EvalError(f"No parameter '{self.name}' found") from None

    def variables(self):
        return frozenset((self.name,))


class ListNode(Node):
    def __init__(self, items: List[Node]):
        self.items = items

    def evaluate(self, params):
        return [item.evaluate(params) for item in self.items]

    def variables(self):
        return frozenset().union(*(item.variables() for item in self.items))


class UnaryOp(Node):
    def __init__(self, operator: str, operand: Node):
        self.operator = operator
        self.operand = operand

    def evaluate(self, params):
        value = self.operand.evaluate(params)
        if self.operator == '!':
            return not _require_bool(value, '!')
        if not _is_number(value):
            raise EvalError(f"Cannot negate {_type_name(value)}")
        return -value

    def variables(self):
        return self.operand.variables()


class LogicalOp(Node):
    """Short-circuit '&&' and '||'."""

    def __init__(self, operator: str, left: Node, right: Node):
        self.operator = operator
        self.left = left
        self.right = right

    def evaluate(self, params):
        left = _require_bool(self.left.evaluate(params), self.operator)
        if self.operator == '&&' and not left:
            return False
        if self.operator == '||' and left:
            return True
        return _require_bool(self.right.evaluate(params), self.operator)

    def variables(self):
        return self.left.variables() | self.right.variables()


class BinaryOp(Node):
    def __init__(self, operator: str, left: Node, right: Node):
        self.operator = operator
        self.left = left
        self.right = right

    def evaluate(self, params):
        left = self.left.evaluate(params)
        right = self.right.evaluate(params)
        op = self.operator

        if op == '==':
            return _equals(left, right)
        if op == '!=':
            return not _equals(left, right)

        if op in ('<', '<=', '>', '>='):
            if not ((_is_number(left) and _is_number(right)) or
                    (isinstance(left, str) and isinstance(right, str))):
                raise EvalError(
                    f"Cannot compare {_type_name(left)} and {_type_name(right)} with '{op}'"
                )
            if op == '<':
                return left < right
            if op == '<=':
                return left <= right
            if op == '>':
                return left > right
            return left >= right

        if op == 'in':
            return any(_equals(left, item) for item in right)

        if op == '+':
            if isinstance(left, str) or isinstance(right, str):
                return _to_text(left) + _to_text(right)
            _require_numbers(left, right, op)
            return left + right

        _require_numbers(left, right, op)
        if op == '-':
            return left - right
        if op == '*':
            return left * right
        if op == '/':
            if right == 0:
                raise EvalError("Division by zero")
            return left / right
        if op == '%':
            if right == 0:
                raise EvalError("Modulo by zero")
            return math.fmod(left, right)
        if op == '**':
            try:
                return left ** right
            except (OverflowError, ZeroDivisionError) as e:
                raise EvalError(f"Invalid power: {e}") from None

        raise EvalError(f"Unknown operator '{op}'")

    def variables(self):
        return self.left.variables() | self.right.variables()


class RegexMatch(Node):
    """'=~' and '!~'; a literal pattern is compiled once."""

    def __init__(self, negate: bool, left: Node, right: Node):
        self.negate = negate
        self.left = left
        self.right = right
        self._pattern = None
        if isinstance(right, Literal) and isinstance(right.value, str):
            self._pattern = re.compile(right.value)

    def evaluate(self, params):
        subject = self.left.evaluate(params)
        if not isinstance(subject, str):
            raise EvalError(f"Regex match expects a string, got {_type_name(subject)}")

        pattern = self._pattern
        if pattern is None:
            source = self.right.evaluate(params)
            if not isinstance(source, str):
                raise EvalError(f"Regex pattern must be a string, got {_type_name(source)}")
            try:
                pattern = re.compile(source)
            except re.error as e:
                raise EvalError(f"Invalid regex {source!r}: {e}") from None

        found = pattern.search(subject) is not None
        return not found if self.negate else found

    def variables(self):
        return self.left.variables() | self.right.variables()


class Ternary(Node):
    def __init__(self, condition: Node, if_true: Node, if_false: Node):
        self.condition = condition
        self.if_true = if_true
        self.if_false = if_false

    def evaluate(self, params):
        if _require_bool(self.condition.evaluate(params), '?'):
            return self.if_true.evaluate(params)
        return self.if_false.evaluate(params)

    def variables(self):
        return self.condition.variables() | self.if_true.variables() | self.if_false.variables()


# --- parser -----------------------------------------------------------------

class Parser:
    """Recursive descent parser producing a Node tree."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind != TOKEN_EOF:
            self.index += 1
        return token

    def expect(self, symbol: str) -> Token:
        if not self.current.is_op(symbol):
            self.error(f"Expected '{symbol}'")
        return self.advance()

    def error(self, message: str, token: Optional[Token] = None):
        token = token or self.current
        if token.kind == TOKEN_EOF:
            message = f"{message} but reached end of expression"
        else:
            message = f"{message} near {token.value!r}"
        raise CompileError(message, self.text, token.position)

    def parse(self) -> Node:
        if self.current.kind == TOKEN_EOF:
            raise CompileError("Empty expression", self.text, 0)
        node = self.parse_ternary()
        if self.current.kind != TOKEN_EOF:
            self.error("Unexpected token")
        return node

    def parse_ternary(self) -> Node:
        condition = self.parse_or()
        if self.current.is_op('?'):
            self.advance()
            if_true = self.parse_ternary()
            self.expect(':')
            if_false = self.parse_ternary()
            return Ternary(condition, if_true, if_false)
        return condition

    def parse_or(self) -> Node:
        node = self.parse_and()
        while self.current.is_op('||'):
            self.advance()
            node = LogicalOp('||', node, self.parse_and())
        return node

    def parse_and(self) -> Node:
        node = self.parse_comparison()
        while self.current.is_op('&&'):
            self.advance()
            node = LogicalOp('&&', node, self.parse_comparison())
        return node

    def parse_comparison(self) -> Node:
        node = self.parse_additive()
        while self.current.kind == TOKEN_OP and self.current.value in COMPARISON_OPERATORS:
            token = self.advance()
            op = token.value
            if op == 'in':
                node = BinaryOp('in', node, self.parse_list())
            elif op in ('=~', '!~'):
                right = self.parse_additive()
                try:
                    node = RegexMatch(op == '!~', node, right)
                except re.error as e:
                    raise CompileError(f"Invalid regex: {e}", self.text, token.position) from None
            else:
                node = BinaryOp(op, node, self.parse_additive())
        return node

    def parse_list(self) -> ListNode:
        self.expect('(')
        items = [self.parse_ternary()]
        while self.current.is_op(','):
            self.advance()
            items.append(self.parse_ternary())
        self.expect(')')
        return ListNode(items)

    def parse_additive(self) -> Node:
        node = self.parse_multiplicative()
        while self.current.is_op('+', '-'):
            op = self.advance().value
            node = BinaryOp(op, node, self.parse_multiplicative())
        return node

    def parse_multiplicative(self) -> Node:
        node = self.parse_power()
        while self.current.is_op('*', '/', '%'):
            op = self.advance().value
            node = BinaryOp(op, node, self.parse_power())
        return node

    def parse_power(self) -> Node:
        node = self.parse_unary()
        if self.current.is_op('**'):
            self.advance()
            return BinaryOp('**', node, self.parse_power())
        return node

    def parse_unary(self) -> Node:
        if self.current.is_op('!', '-'):
            op = self.advance().value
            return UnaryOp(op, self.parse_unary())
        return self.parse_primary()

    def parse_primary(self) -> Node:
        token = self.current

        if token.kind == TOKEN_NUMBER:
            self.advance()
            return Literal(token.value)

        if token.kind == TOKEN_STRING:
            self.advance()
            epoch = parse_date_literal(token.value)
            if epoch is not None:
                return Literal(epoch)
            return Literal(token.value)

        if token.kind == TOKEN_IDENT:
            self.advance()
            return Variable(token.value)

        if token.is_op('true', 'false'):
            self.advance()
            return Literal(token.value == 'true')

        if token.is_op('('):
            self.advance()
            node = self.parse_ternary()
            self.expect(')')
            return node

        self.error("Expected a value")


class Expression:
    """A compiled filter expression."""

    def __init__(self, text: str, root: Node):
        self.text = text
        self.root = root
        self.variables = root.variables()

    def evaluate(self, params: Mapping[str, Any]) -> Any:
        """
        Evaluate against a parameter mapping.

        Raises:
            EvalError: Unknown variable, type mismatch or arithmetic failure
        """
        try:
            return self.root.evaluate(params)
        except EvalError:
            raise
        except RecursionError:
            raise EvalError("Expression nested too deeply") from None
        except (TypeError, ValueError, OverflowError) as e:
            raise EvalError(str(e)) from e

    def __repr__(self) -> str:
        return f"Expression({self.text!r})"


def compile_expression(text: str) -> Expression:
    """
    Compile an expression string.

    Args:
        text: Expression source, e.g. "weekday == 'Monday' && hour < 8"

    Returns:
        Expression: Reusable compiled expression

    Raises:
        CompileError: If the expression is syntactically invalid
    """
    if not isinstance(text, str):
        raise CompileError(f"Expression must be a string, got {type(text).__name__}")
    try:
        root = Parser(text).parse()
        expression = Expression(text, root)
    except RecursionError:
        raise CompileError("Expression nested too deeply", text) from None
    logger.debug(f"Compiled filter {text!r} (variables: {sorted(expression.variables)})")
    return expression
