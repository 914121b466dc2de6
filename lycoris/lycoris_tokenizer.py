"""
Turns Lycoris source text into a stream of tokens.

Lycoris has no word delimiters beyond what the vocabulary implies: `2 3add`
and `2 3 add` tokenize the same, because words are found by longest-prefix
matching against the builtin trie and then the user dictionary.

The tokenizer is a generator and looks at the user dictionary lazily, one
token at a time. When the interpreter consumes tokens as they are produced,
a word defined earlier in a program is already known when the scan reaches
its later uses.
"""
from typing import Callable, Iterable, Iterator, List, Optional, Union

from lycoris.lycoris_datatypes import (
    Literal, FunctionRef, Scope, Vector, LycorisError,
    UnterminatedString, UnterminatedVector, UnknownToken, token_to_value,
)
from lycoris.lycoris_numbers import match_number
from lycoris.lycoris_trie import TrieDict, builtin_trie

Token = Union[Literal, FunctionRef]

RESERVED = (
    ("true", True),
    ("false", False),
    ("nil", None),
)

SCOPE_PREFIXES = "@*#"


class Tokenizer:
    """Scans source text left to right into Literal and FunctionRef tokens.

    `user_words` is called for the current user word names whenever a user
    word has to be matched, so definitions made while tokens are being
    consumed are visible to the rest of the scan.
    """

    def __init__(self, builtins: Optional[TrieDict] = None,
                 user_words: Optional[Callable[[], Iterable[str]]] = None):
        self.builtins = builtins if builtins is not None else builtin_trie()
        self.user_words = user_words or (lambda: ())

    def tokenize(self, text: str) -> List[Token]:
        return list(self.tokens(text))

    def tokens(self, text: str) -> Iterator[Token]:
        yield from self._scan(text, 0)

    # --- word matching ---

    def _match_user_word(self, text: str, pos: int) -> Optional[str]:
        best = None
        # Sorted so the scan order does not depend on definition order.
        for word in sorted(self.user_words()):
            if word and text.startswith(word, pos) and (best is None or len(word) > len(best)):
                best = word
        return best

    def _match_word(self, text: str, pos: int) -> Optional[str]:
        return self.builtins.longest_match(text, pos) or self._match_user_word(text, pos)

    # --- scanning ---

    def _scan(self, text: str, pos: int) -> Iterator[Token]:
        n = len(text)
        while pos < n:
            ch = text[pos]

            if ch.isspace():
                pos += 1
                continue

            if ch == "#":
                name = self._match_word(text, pos + 1)
                if name is None:
                    end = text.find("\n", pos)
                    pos = n if end < 0 else end + 1
                    continue
                yield FunctionRef(name, Scope.GLOBAL, pos)
                pos += 1 + len(name)
                continue

            if ch == "'":
                end = text.find("'", pos + 1)
                if end < 0:
                    raise UnterminatedString(f"Unterminated string starting at position {pos}", pos)
                yield Literal(text[pos + 1:end], pos)
                pos = end + 1
                continue

            if ch == "[":
                close = self._find_close(text, pos)
                yield Literal(self._vector(text, pos, close), pos)
                pos = close + 1
                continue

            if ch in "@*":
                name = self._match_word(text, pos + 1)
                if name is None:
                    raise UnknownToken(f"Scope prefix '{ch}' must be followed by a word at position {pos}", pos)
                yield FunctionRef(name, Scope.from_prefix(ch), pos)
                pos += 1 + len(name)
                continue

            try:
                number = match_number(text, pos)
            except LycorisError as e:
                if e.position is None:
                    e.position = pos
                raise
            if number is not None:
                value, length = number
                yield Literal(value, pos)
                pos += length
                continue

            reserved = self._match_reserved(text, pos)
            if reserved is not None:
                word, value = reserved
                yield Literal(value, pos)
                pos += len(word)
                continue

            name = self._match_word(text, pos)
            if name is not None:
                yield FunctionRef(name, Scope.LOCAL, pos)
                pos += len(name)
                continue

            raise UnknownToken(f"Unknown token at position {pos}", pos)

    def _match_reserved(self, text: str, pos: int):
        for word, value in RESERVED:
            if text.startswith(word, pos):
                return word, value
        return None

    def _find_close(self, text: str, start: int) -> int:
        """Index of the `]` matching the `[` at `start`; quoted text is skipped."""
        depth = 0
        pos = start
        while pos < len(text):
            ch = text[pos]
            if ch == "'":
                end = text.find("'", pos + 1)
                if end < 0:
                    raise UnterminatedString(f"Unterminated string starting at position {pos}", pos)
                pos = end + 1
                continue
            if ch == "[":
                depth += 1
            elif ch == "]":
                depth -= 1
                if depth == 0:
                    return pos
            pos += 1
        raise UnterminatedVector(f"Unterminated vector starting at position {start}", start)

    def _vector(self, text: str, open_pos: int, close_pos: int) -> Vector:
        # Truncating at the close bracket keeps positions absolute.
        inner = self._scan(text[:close_pos], open_pos + 1)
        return Vector(token_to_value(token) for token in inner)
