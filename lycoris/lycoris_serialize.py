from __future__ import annotations

import json
from fractions import Fraction
from typing import Any, Optional
import collections.abc

import yaml

from lycoris.lycoris_datatypes import (
    Vector, Word, Literal, FunctionRef, Scope, StateDeserializationFailure,
)
from lycoris.lycoris_numbers import format_rational, parse_number

STATE_VERSION = 1


# --------------------------
# Helpers
# --------------------------

def _norm_text(data: bytes | bytearray | str, *, encoding: Optional[str] = None) -> str:
    if isinstance(data, (bytes, bytearray)):
        return data.decode(encoding or 'utf-8', errors='replace')
    if isinstance(data, str):
        return data
    return str(data)


def detect_format(data_hint: Optional[str] = None) -> Optional[str]:
    """
    Returns 'json' or 'yaml' by sniffing the text; JSON documents start with
    '{' or '['. Anything else is treated as YAML, which is a superset.
    """
    if data_hint is None:
        return None
    s = data_hint.lstrip()
    if s.startswith('{') or s.startswith('['):
        return 'json'
    return 'yaml'


# --------------------------
# Values
# --------------------------

def encode_value(value: Any) -> Any:
    """Convert a Lycoris value into JSON/YAML-safe builtins."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, Fraction):
        return {"rational": format_rational(value)}
    if isinstance(value, Word):
        return {"word": str(value)}
    if isinstance(value, str):
        return str(value)
    if isinstance(value, Vector):
        return [encode_value(v) for v in value]
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def decode_value(data: Any) -> Any:
    """Inverse of encode_value. Raises StateDeserializationFailure on bad input."""
    if data is None or isinstance(data, bool):
        return data
    if isinstance(data, str):
        return data
    if isinstance(data, list):
        return Vector(decode_value(v) for v in data)
    if isinstance(data, collections.abc.Mapping) and len(data) == 1:
        if "rational" in data:
            try:
                return parse_number(str(data["rational"]))
            except (ValueError, ZeroDivisionError) as e:
                raise StateDeserializationFailure(f"Invalid rational {data['rational']!r}") from e
        if "word" in data and isinstance(data["word"], str):
            return Word(data["word"])
    raise StateDeserializationFailure(f"Cannot decode value {data!r}")


def encode_tokens(tokens) -> list:
    out = []
    for token in tokens:
        if isinstance(token, FunctionRef):
            out.append({"call": token.name, "scope": token.scope.value})
        else:
            out.append({"push": encode_value(token.value)})
    return out


def decode_tokens(data: Any) -> list:
    if not isinstance(data, list):
        raise StateDeserializationFailure("Word body must be a list of tokens")
    tokens = []
    for item in data:
        if isinstance(item, collections.abc.Mapping) and "call" in item:
            try:
                scope = Scope(item.get("scope", ""))
            except ValueError as e:
                raise StateDeserializationFailure(f"Unknown scope {item.get('scope')!r}") from e
            tokens.append(FunctionRef(str(item["call"]), scope))
        elif isinstance(item, collections.abc.Mapping) and "push" in item:
            tokens.append(Literal(decode_value(item["push"])))
        else:
            raise StateDeserializationFailure(f"Cannot decode token {item!r}")
    return tokens


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str,
                *,
                fmt: Optional[str] = None) -> Any:
    """
    Convert text (or bytes) in 'json' or 'yaml' into native Python structures.
    If fmt is None, the format is sniffed from the text.
    """
    text = _norm_text(data)
    f = (fmt or detect_format(text) or '').lower()
    try:
        if f == 'json':
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                # Declared JSON but actually YAML-like
                return yaml.safe_load(text)
        if f == 'yaml':
            return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise StateDeserializationFailure(f"Failed to parse state: {e}") from e
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def serialize(value: Any,
              *,
              fmt: str,
              pretty: bool = True) -> str:
    """
    Convert native Python builtins into text.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    if f == 'json':
        return json.dumps(value, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(value, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def dump_state(interpreter, *, fmt: str = 'json') -> str:
    """Serialize the user dictionary and operand stack of an interpreter."""
    state = {
        "version": STATE_VERSION,
        "words": {name: encode_tokens(tokens) for name, tokens in sorted(interpreter.dictionary.items())},
        "stack": [encode_value(v) for v in interpreter.stack],
    }
    return serialize(state, fmt=fmt)


def load_state(interpreter, text: str, *, fmt: Optional[str] = None) -> None:
    """Replace the dictionary and stack of `interpreter` with a saved state.

    The interpreter is only modified once the whole state has decoded.
    """
    try:
        state = deserialize(text, fmt=fmt)
    except ValueError as e:
        if isinstance(e, StateDeserializationFailure):
            raise
        raise StateDeserializationFailure(f"Failed to parse state: {e}") from e
    if not isinstance(state, collections.abc.Mapping):
        raise StateDeserializationFailure("Failed to parse state: expected a mapping")
    words = state.get("words") or {}
    stack = state.get("stack") or []
    if not isinstance(words, collections.abc.Mapping) or not isinstance(stack, list):
        raise StateDeserializationFailure("Failed to parse state: bad 'words' or 'stack'")
    dictionary = {str(name): decode_tokens(body) for name, body in words.items()}
    values = [decode_value(v) for v in stack]
    interpreter.dictionary.clear()
    interpreter.dictionary.update(dictionary)
    interpreter.stack[:] = values


__all__ = [
    "deserialize",
    "serialize",
    "detect_format",
    "encode_value",
    "decode_value",
    "dump_state",
    "load_state",
]
