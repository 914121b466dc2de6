"""
Exact rational numbers for Lycoris: literal parsing, arithmetic and display.

Every number is a `fractions.Fraction`, so arithmetic never rounds.
Decimal literals are the one deliberate exception: they are bounded to
DECIMAL_PLACES places on the way in (see `float_to_rational`).
"""
import math
import re
from fractions import Fraction
from typing import Optional, Tuple

from lycoris.lycoris_datatypes import (
    DivisionByZero, ExponentTooLarge, ExponentOutOfRange, OperandTypeError,
    is_rational, kind_of,
)

# Safety bound against unbounded bignum growth.
MAX_EXPONENT = 10000
DECIMAL_PLACES = 10

# integer | decimal | fraction, optionally followed by a signed exponent.
NUMBER_RE = re.compile(
    r"(?P<base>-?[0-9]+(?:\.(?P<frac>[0-9]+)|/(?P<den>[0-9]+))?)"
    r"(?:[eE](?P<exp>[-+]?[0-9]+))?"
)


def float_to_rational(f: float) -> Fraction:
    """Converts a float through its DECIMAL_PLACES fixed-point rendering.

    `0.1` becomes exactly 1/10; digits beyond the tenth place are lost.
    """
    if not math.isfinite(f):
        raise ExponentOutOfRange(f"Decimal literal is out of range (got {f})")
    text = format(f, f".{DECIMAL_PLACES}f")
    negative = text.startswith("-")
    if negative:
        text = text[1:]
    integer_part, _, decimal_part = text.partition(".")
    decimal_part = decimal_part.rstrip("0")
    if not decimal_part:
        value = Fraction(int(integer_part))
    else:
        denominator = 10 ** len(decimal_part)
        value = Fraction(int(integer_part) * denominator + int(decimal_part), denominator)
    return -value if negative else value


def _parse_base(base: str) -> Fraction:
    if "/" in base:
        num, den = base.split("/")
        if int(den) == 0:
            raise DivisionByZero(f"Fraction literal '{base}' has a zero denominator")
        return Fraction(int(num), int(den))
    if "." in base:
        return float_to_rational(float(base))
    return Fraction(int(base))


def match_number(text: str, pos: int = 0) -> Optional[Tuple[Fraction, int]]:
    """Matches a numeric literal at `pos`; returns (value, length consumed) or None."""
    m = NUMBER_RE.match(text, pos)
    if m is None:
        return None
    value = _parse_base(m.group("base"))
    exp = m.group("exp")
    if exp is not None:
        e = int(exp)
        if abs(e) > MAX_EXPONENT:
            raise ExponentOutOfRange(
                f"Exponent {e} in literal is out of range (max {MAX_EXPONENT})", pos
            )
        value = value * Fraction(10) ** e
    return value, m.end() - pos


def parse_number(text: str) -> Fraction:
    """Parses a complete numeric literal. Raises ValueError if `text` is not one."""
    found = match_number(text)
    if found is None or found[1] != len(text):
        raise ValueError(f"Invalid number literal: {text!r}")
    return found[0]


def format_rational(value: Fraction) -> str:
    if value.denominator == 1:
        return str(value.numerator)
    return f"{value.numerator}/{value.denominator}"


# --- Arithmetic ---

def _require(name: str, a, b):
    if not (is_rational(a) and is_rational(b)):
        raise OperandTypeError(
            f"{name} requires two numbers, got {kind_of(a)} and {kind_of(b)}"
        )


def add(a: Fraction, b: Fraction) -> Fraction:
    _require("add", a, b)
    return a + b


def sub(a: Fraction, b: Fraction) -> Fraction:
    _require("sub", a, b)
    return a - b


def mul(a: Fraction, b: Fraction) -> Fraction:
    _require("mul", a, b)
    return a * b


def div(a: Fraction, b: Fraction) -> Fraction:
    _require("div", a, b)
    if b == 0:
        raise DivisionByZero("Division by zero")
    return a / b


def pow(base: Fraction, exponent: Fraction) -> Fraction:
    _require("pow", base, exponent)
    if exponent.denominator != 1:
        raise OperandTypeError("pow requires integer exponent")
    e = exponent.numerator
    if abs(e) > MAX_EXPONENT:
        raise ExponentTooLarge(f"Exponent too large (max {MAX_EXPONENT})")
    if e < 0:
        if base == 0:
            raise DivisionByZero("Division by zero: 0 raised to a negative power")
        base, e = 1 / base, -e
    return base ** e


ARITHMETIC = {
    "add": add,
    "sub": sub,
    "mul": mul,
    "div": div,
    "pow": pow,
}
