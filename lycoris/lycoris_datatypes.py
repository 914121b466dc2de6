"""
Defines the core data types for the Lycoris language runtime.

This module provides the value model the interpreter works with, the
token types produced by the tokenizer, the call scopes, and the error
hierarchy raised by every stage of the runtime.

Values are plain Python objects wherever possible:

  - Rational -> fractions.Fraction
  - Text     -> str (and Word, a str subclass)
  - Boolean  -> bool
  - Nil      -> None
  - Vector   -> Vector (immutable sequence defined here)
"""

import collections.abc
from enum import Enum
from fractions import Fraction
from typing import Any, Iterable, Optional

Nil = None


# =================================================================
# Errors
# =================================================================

class LycorisError(Exception):
    """Base class for every failure raised while tokenizing or running a program."""
    kind = "Error"

    def __init__(self, message: str, position: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.position = position

    def __str__(self) -> str:
        return self.message


class UnterminatedString(LycorisError):
    kind = "UnterminatedString"


class UnterminatedVector(LycorisError):
    kind = "UnterminatedVector"


class UnknownToken(LycorisError):
    kind = "UnknownToken"


class StackUnderflow(LycorisError):
    kind = "StackUnderflow"


class OperandTypeError(LycorisError, TypeError):
    kind = "TypeError"


class DivisionByZero(LycorisError, ZeroDivisionError):
    kind = "DivisionByZero"


class ExponentTooLarge(LycorisError, ValueError):
    kind = "ExponentTooLarge"


class ExponentOutOfRange(LycorisError, ValueError):
    kind = "ExponentOutOfRange"


class InvalidCount(LycorisError, ValueError):
    kind = "InvalidCount"


class IndexOutOfBounds(LycorisError, IndexError):
    kind = "IndexOutOfBounds"


class EmptyReduce(LycorisError):
    kind = "EmptyReduce"


class EmptyStack(LycorisError):
    kind = "EmptyStack"


class UnknownWord(LycorisError, KeyError):
    kind = "UnknownWord"

    # KeyError would otherwise repr() the message.
    def __str__(self) -> str:
        return self.message


class RecursionLimit(LycorisError, RecursionError):
    kind = "RecursionLimit"


class StateDeserializationFailure(LycorisError, ValueError):
    kind = "StateDeserializationFailure"


# =================================================================
# Values
# =================================================================

class Word(str):
    """A word name written bare inside a vector literal (`[dup add]`).

    It is an ordinary Text value in every respect (it compares equal to the
    plain string and prints the same way), but `def` uses the marker to
    compile it back into a call.
    """
    def __repr__(self) -> str:
        return f"Word<{str.__repr__(self)}>"


class Vector(collections.abc.Sequence):
    """An immutable, possibly nested, ordered sequence of values."""
    __slots__ = ("_items",)

    def __init__(self, items: Iterable[Any] = ()):
        self._items = tuple(items)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return Vector(self._items[index])
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def __add__(self, other: 'Vector') -> 'Vector':
        if not isinstance(other, Vector):
            return NotImplemented
        return Vector(self._items + other._items)

    @property
    def items(self) -> tuple:
        return self._items

    def __eq__(self, other):
        if not isinstance(other, Vector):
            return NotImplemented
        return values_equal(self, other)

    def __hash__(self):
        return hash(("vector", self._items))

    def __repr__(self) -> str:
        return f"Vector({list(self._items)!r})"


def is_rational(value: Any) -> bool:
    return isinstance(value, Fraction)


def is_integer(value: Any) -> bool:
    return isinstance(value, Fraction) and value.denominator == 1


def is_text(value: Any) -> bool:
    return isinstance(value, str)


def kind_of(value: Any) -> str:
    """Returns the Lycoris type name of a value, used in error messages."""
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, Fraction):
        return "rational"
    if isinstance(value, str):
        return "text"
    if isinstance(value, Vector):
        return "vector"
    return type(value).__name__


def values_equal(a: Any, b: Any) -> bool:
    """Type-strict structural equality (`1` is not `true`, Word equals Text)."""
    ka, kb = kind_of(a), kind_of(b)
    if ka != kb:
        return False
    if ka == "vector":
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    if ka == "text":
        return str(a) == str(b)
    return a == b


# =================================================================
# Tokens
# =================================================================

class Scope(Enum):
    """How a word is applied: to the stack, per element, as a fold, or to the whole stack."""
    LOCAL = ""
    MAP = "@"
    REDUCE = "*"
    GLOBAL = "#"

    @classmethod
    def from_prefix(cls, char: str) -> 'Scope':
        for scope in cls:
            if scope.value and scope.value == char:
                return scope
        return cls.LOCAL


class Literal:
    """A token that pushes a value."""
    def __init__(self, value: Any, position: Optional[int] = None):
        self.value = value
        self.position = position

    def __repr__(self) -> str:
        return f"Literal({self.value!r})"

    def __eq__(self, other):
        return isinstance(other, Literal) and values_equal(self.value, other.value)


class FunctionRef:
    """A token naming a word to invoke under a scope."""
    def __init__(self, name: str, scope: Scope = Scope.LOCAL, position: Optional[int] = None):
        self.name = str(name)
        self.scope = scope
        self.position = position

    def __repr__(self) -> str:
        return f"FunctionRef({self.scope.value}{self.name})"

    def __eq__(self, other):
        return isinstance(other, FunctionRef) and self.name == other.name and self.scope == other.scope

    def __hash__(self):
        return hash((self.name, self.scope))


def token_to_value(token: Any) -> Any:
    """Converts a token found inside a vector literal into the element it stores."""
    if isinstance(token, FunctionRef):
        # Scope prefixes are not kept inside vectors.
        return Word(token.name)
    return token.value
