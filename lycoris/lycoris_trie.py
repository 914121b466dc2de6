"""
A prefix tree over the builtin word names, used for longest-prefix lookup.

Nodes live in a flat arena and refer to their children by index, so the
whole tree is three parallel lists rather than nested dicts of dicts.
"""
from typing import Dict, Iterable, List, Optional

BUILTIN_WORDS = (
    "add", "sub", "mul", "div", "pow",
    "dup", "drop", "swap", "over", "rot",
    "vec", "unpack", "nth", "slice", "concat", "length",
    "run", "step", "quote",
    "def", "undef", "words",
    "print", "clear",
    "eq", "lt", "gt", "le", "ge",
)


class TrieDict:
    """Longest-prefix matcher over a fixed vocabulary."""

    ROOT = 0

    def __init__(self, words: Iterable[str] = ()):
        self._children: List[Dict[str, int]] = [{}]
        self._terminal: List[bool] = [False]
        for word in words:
            self.insert(word)

    def _new_node(self) -> int:
        self._children.append({})
        self._terminal.append(False)
        return len(self._children) - 1

    def insert(self, word: str) -> None:
        if not word:
            raise ValueError("Cannot register an empty word")
        node = self.ROOT
        for ch in word:
            nxt = self._children[node].get(ch)
            if nxt is None:
                nxt = self._new_node()
                self._children[node][ch] = nxt
            node = nxt
        self._terminal[node] = True

    def longest_match(self, text: str, start: int = 0) -> Optional[str]:
        """Returns the longest registered word that `text[start:]` begins with."""
        node = self.ROOT
        longest_end = None
        pos = start
        while pos < len(text):
            nxt = self._children[node].get(text[pos])
            if nxt is None:
                break
            node = nxt
            pos += 1
            if self._terminal[node]:
                longest_end = pos
        if longest_end is None:
            return None
        return text[start:longest_end]

    def __contains__(self, word: str) -> bool:
        node = self.ROOT
        for ch in word:
            node = self._children[node].get(ch)
            if node is None:
                return False
        return self._terminal[node]

    def words(self) -> List[str]:
        """All registered words, in lexicographic order."""
        out: List[str] = []

        def walk(node: int, prefix: str):
            if self._terminal[node]:
                out.append(prefix)
            for ch in sorted(self._children[node]):
                walk(self._children[node][ch], prefix + ch)

        walk(self.ROOT, "")
        return out

    def __len__(self) -> int:
        return sum(self._terminal)


def builtin_trie() -> TrieDict:
    return TrieDict(BUILTIN_WORDS)
