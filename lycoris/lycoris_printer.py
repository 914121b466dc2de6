"""
A printer for Lycoris values, producing their canonical display strings.
"""
from fractions import Fraction

from lycoris.lycoris_datatypes import Vector, Word, Literal, FunctionRef
from lycoris.lycoris_numbers import format_rational


class Printer:
    """Formats Lycoris values into their canonical display strings."""

    def __init__(self, quote_char="'"):
        self._quote = quote_char
        self._handlers = self._create_handlers()

    def pformat(self, obj):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        # Subclasses of the value types fall back to their base handler
        if isinstance(obj, Fraction): return self._pformat_rational
        if isinstance(obj, str): return self._pformat_str
        if isinstance(obj, Vector): return self._pformat_vector
        return lambda o: repr(o)

    def _create_handlers(self):
        return {
            Fraction: self._pformat_rational,
            str: self._pformat_str,
            Word: self._pformat_str,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            Vector: self._pformat_vector,
            Literal: self._pformat_literal,
            FunctionRef: self._pformat_function_ref,
        }

    def _pformat_rational(self, obj):
        return format_rational(obj)

    def _pformat_str(self, obj):
        # No escaping. Source literals cannot hold the quote character, but
        # text restored from saved state may, and is printed as-is.
        return f"{self._quote}{obj}{self._quote}"

    def _pformat_bool(self, obj):
        return 'true' if obj else 'false'

    def _pformat_none(self, obj):
        return 'nil'

    def _pformat_vector(self, obj):
        return "[" + " ".join(self.pformat(item) for item in obj) + "]"

    # Tokens print as source, used for word listings and traces
    def _pformat_literal(self, obj):
        return self.pformat(obj.value)

    def _pformat_function_ref(self, obj):
        return f"{obj.scope.value}{obj.name}"

    def pformat_tokens(self, tokens):
        return " ".join(self.pformat(t) for t in tokens)


_default = Printer()


def display(value) -> str:
    """Canonical display string of a value."""
    return _default.pformat(value)
