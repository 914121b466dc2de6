"""
The core Lycoris interpreter: a stack machine with user-defined words and
four call scopes.

All words read and write the same operand stack. A scope prefix changes
how a word is applied:

    add     Local   apply to the top of the stack
    @add    Map     apply to every element of a vector, collecting results
    *add    Reduce  fold a vector with the word
    #add    Global  fold the whole stack with the word
"""
import inspect
import os
import sys
from fractions import Fraction
from typing import Any, Dict, List, Optional

from lycoris.lycoris_datatypes import (
    Literal, FunctionRef, Scope, Vector, Word,
    LycorisError, StackUnderflow, OperandTypeError, InvalidCount, IndexOutOfBounds,
    EmptyReduce, EmptyStack, UnknownWord, RecursionLimit,
    is_integer, is_rational, is_text, kind_of, values_equal,
)
from lycoris import lycoris_numbers as numbers
from lycoris.lycoris_printer import display
from lycoris.lycoris_tokenizer import Tokenizer
from lycoris.lycoris_trie import TrieDict, builtin_trie

DEFAULT_MAX_DEPTH = 100


def _default_max_depth() -> int:
    raw = os.environ.get("LYCORIS_MAX_DEPTH")
    if raw:
        try:
            return max(1, int(raw))
        except ValueError:
            pass
    return DEFAULT_MAX_DEPTH


class CoreWords:
    """Python implementations of the builtin words.

    Each `_name` method implements the builtin `name`. Methods validate
    arity and operand kinds before touching the stack, so a failing word
    leaves the stack as it found it.
    """

    def __init__(self, interpreter: 'Interpreter'):
        self.interp = interpreter

    # --- Arithmetic ---
    def _add(self): self._binary_number("add")
    def _sub(self): self._binary_number("sub")
    def _mul(self): self._binary_number("mul")
    def _div(self): self._binary_number("div")
    def _pow(self): self._binary_number("pow")

    def _binary_number(self, name):
        a, b = self.interp.peek(name, 2)
        self.interp.replace(2, numbers.ARITHMETIC[name](a, b))

    # --- Stack shuffling ---
    def _dup(self):
        a, = self.interp.peek("dup", 1)
        self.interp.push(a)

    def _drop(self):
        self.interp.peek("drop", 1)
        self.interp.stack.pop()

    def _swap(self):
        a, b = self.interp.peek("swap", 2)
        self.interp.replace(2, b, a)

    def _over(self):
        a, b = self.interp.peek("over", 2)
        self.interp.push(a)

    def _rot(self):
        a, b, c = self.interp.peek("rot", 3)
        self.interp.replace(3, b, c, a)

    # --- Vectors ---
    def _vec(self):
        n, = self.interp.peek("vec", 1)
        if not is_rational(n):
            raise OperandTypeError(f"vec requires a count, got {kind_of(n)}")
        if n.denominator != 1 or n < 0:
            raise InvalidCount(f"vec requires a non-negative integer count, got {display(n)}")
        count = n.numerator
        if len(self.interp.stack) < count + 1:
            raise StackUnderflow(
                f"vec needs {count} value(s) below the count, stack has {len(self.interp.stack) - 1}"
            )
        items = self.interp.stack[len(self.interp.stack) - 1 - count:-1]
        self.interp.replace(count + 1, Vector(items))

    def _unpack(self):
        v, = self.interp.peek("unpack", 1)
        self._require_vector("unpack", v)
        self.interp.replace(1, *v)

    def _nth(self):
        v, index = self.interp.peek("nth", 2)
        self._require_vector("nth", v)
        if not is_integer(index):
            raise OperandTypeError(f"nth requires an integer index, got {kind_of(index)} {display(index)}")
        i = index.numerator
        resolved = len(v) + i if i < 0 else i
        if not 0 <= resolved < len(v):
            raise IndexOutOfBounds(f"Index {i} out of bounds for vector of length {len(v)}")
        self.interp.replace(2, v[resolved])

    def _slice(self):
        v, start, end = self.interp.peek("slice", 3)
        self._require_vector("slice", v)
        if not (is_integer(start) and is_integer(end)):
            raise OperandTypeError(
                f"slice requires integer bounds, got {kind_of(start)} and {kind_of(end)}"
            )
        self.interp.replace(3, v[start.numerator:end.numerator])

    def _concat(self):
        a, b = self.interp.peek("concat", 2)
        if not (isinstance(a, Vector) and isinstance(b, Vector)):
            raise OperandTypeError(f"concat requires two vectors, got {kind_of(a)} and {kind_of(b)}")
        self.interp.replace(2, a + b)

    def _length(self):
        v, = self.interp.peek("length", 1)
        self._require_vector("length", v)
        self.interp.replace(1, Fraction(len(v)))

    def _require_vector(self, name, v):
        if not isinstance(v, Vector):
            raise OperandTypeError(f"{name} requires vector, got {kind_of(v)}")

    # --- Quotations ---
    def _run(self):
        v, = self.interp.peek("run", 1)
        self._require_vector("run", v)
        self.interp.stack.pop()
        for element in v:
            self.interp.run_element(element)

    def _step(self):
        v, = self.interp.peek("step", 1)
        self._require_vector("step", v)
        self.interp.stack.pop()
        if not v:
            return
        self.interp.run_element(v[0])
        self.interp.push(v[1:])

    def _quote(self):
        a, = self.interp.peek("quote", 1)
        self.interp.replace(1, Vector([a]))

    # --- Dictionary ---
    def _def(self):
        below, top = self.interp.peek("def", 2)
        # Either `body name def` or `name body def`.
        name, body = (top, below) if is_text(top) else (below, top)
        if not is_text(name) or not name:
            raise OperandTypeError(f"def requires a text name, got {kind_of(name)}")
        if not isinstance(body, Vector):
            raise OperandTypeError(f"def requires a vector body, got {kind_of(body)}")
        self.interp.stack[-2:] = []
        self.interp.define(str(name), body)

    def _undef(self):
        name, = self.interp.peek("undef", 1)
        if not is_text(name):
            raise OperandTypeError(f"undef requires a text name, got {kind_of(name)}")
        if str(name) not in self.interp.dictionary:
            raise UnknownWord(f"Unknown word: {name}")
        self.interp.stack.pop()
        del self.interp.dictionary[str(name)]

    def _words(self):
        self.interp.push(Vector(sorted(self.interp.dictionary)))

    # --- I/O ---
    def _print(self):
        a, = self.interp.peek("print", 1)
        self.interp.stack.pop()
        self.interp.emit(display(a))

    def _clear(self):
        self.interp.clear_output()

    # --- Comparison ---
    def _eq(self):
        a, b = self.interp.peek("eq", 2)
        self.interp.replace(2, values_equal(a, b))

    def _lt(self): self._compare("lt", lambda a, b: a < b)
    def _gt(self): self._compare("gt", lambda a, b: a > b)
    def _le(self): self._compare("le", lambda a, b: a <= b)
    def _ge(self): self._compare("ge", lambda a, b: a >= b)

    def _compare(self, name, op):
        a, b = self.interp.peek(name, 2)
        if is_rational(a) and is_rational(b):
            result = op(a, b)
        elif is_text(a) and is_text(b):
            result = op(str(a), str(b))
        else:
            raise OperandTypeError(
                f"{name} requires two numbers or two texts, got {kind_of(a)} and {kind_of(b)}"
            )
        self.interp.replace(2, result)


class Interpreter:
    """The Lycoris execution engine.

    Stack, user dictionary and output log persist across `execute` calls.
    A failing call is not rolled back: effects of the tokens before the
    failing one remain.
    """

    def __init__(self, max_depth: Optional[int] = None, builtins: Optional[TrieDict] = None):
        self.stack: List[Any] = []
        self.dictionary: Dict[str, List[Any]] = {}
        self.output_log: List[str] = []
        self.side_effects: List[Dict] = []
        self.call_stack: List[Dict] = []
        self.current_token = None
        self.max_depth = max_depth if max_depth is not None else _default_max_depth()
        self.debug = bool(os.environ.get("LYCORIS_DEBUG"))

        self.builtins = builtins if builtins is not None else builtin_trie()
        self.tokenizer = Tokenizer(self.builtins, lambda: self.dictionary.keys())

        # Bind every registered builtin to its CoreWords method
        core = CoreWords(self)
        self.core: Dict[str, Any] = {}
        for name, member in inspect.getmembers(core, inspect.ismethod):
            word = name[1:]
            if name.startswith('_') and not name.startswith('__') and word in self.builtins:
                self.core[word] = member

        self._scope_handlers = {
            Scope.LOCAL: self._execute_local,
            Scope.MAP: self._execute_map,
            Scope.REDUCE: self._execute_reduce,
            Scope.GLOBAL: self._execute_global,
        }

    # --- Public surface ---

    def execute(self, program: str) -> str:
        """Tokenizes and runs `program`; returns the whole output log."""
        self.call_stack.clear()
        self.side_effects.clear()
        try:
            for token in self.tokenizer.tokens(program):
                self.current_token = token
                self.execute_token(token)
        except RecursionError as e:
            if isinstance(e, LycorisError):
                raise
            raise RecursionLimit("Host recursion limit reached while running words") from e
        return self.output()

    def stack_snapshot(self) -> List[str]:
        """Display strings of the stack, bottom first (last is the top)."""
        return [display(v) for v in self.stack]

    def output(self) -> str:
        return "\n".join(self.output_log)

    def clear_output(self):
        self.output_log.clear()

    def stack_depth(self) -> int:
        return len(self.stack)

    def user_words(self) -> List[str]:
        return sorted(self.dictionary)

    def reset(self):
        """Drops stack, dictionary, output and recorded side effects."""
        self.stack.clear()
        self.dictionary.clear()
        self.output_log.clear()
        self.side_effects.clear()
        self.call_stack.clear()

    # --- Stack primitives used by the builtins ---

    def push(self, value: Any):
        self.stack.append(value)

    def peek(self, name: str, n: int) -> List[Any]:
        """Returns the top `n` values (deepest first) without popping them."""
        if len(self.stack) < n:
            raise StackUnderflow(f"{name} needs {n} value(s), stack has {len(self.stack)}")
        return self.stack[len(self.stack) - n:]

    def pop(self, name: str = "pop") -> Any:
        if not self.stack:
            raise StackUnderflow(f"{name} needs 1 value(s), stack has 0")
        return self.stack.pop()

    def replace(self, n: int, *values: Any):
        """Replaces the top `n` values with `values`."""
        if n:
            del self.stack[-n:]
        self.stack.extend(values)

    def emit(self, message: str):
        self.output_log.append(message)
        self.side_effects.append({'topics': ['stdout'], 'message': message})

    # --- Dictionary ---

    def define(self, name: str, body: Vector):
        """Compiles `body` into the token sequence run by word `name`.

        Bare words in the body become calls; everything else is pushed. A
        body without any bare word is a constant that pushes the body itself.
        """
        if any(isinstance(element, Word) for element in body):
            tokens = [
                FunctionRef(element) if isinstance(element, Word) else Literal(element)
                for element in body
            ]
        else:
            tokens = [Literal(body)]
        self.dictionary[name] = tokens
        self._dbg("def", name, tokens)

    # --- Execution ---

    def execute_token(self, token):
        if self.debug:
            self._dbg("token", token, "stack:", self.stack_snapshot())
        if isinstance(token, Literal):
            self.push(token.value)
        elif isinstance(token, FunctionRef):
            self.execute_function(token.name, token.scope)
        else:
            raise TypeError(f"Not a token: {token!r}")

    def execute_function(self, name: str, scope: Scope = Scope.LOCAL):
        self._scope_handlers[scope](name)

    def run_element(self, element: Any):
        """Runs one element of a quotation: text is called, anything else pushed."""
        if is_text(element):
            self.execute_function(str(element), Scope.LOCAL)
        else:
            self.push(element)

    def _execute_local(self, name: str):
        builtin = self.core.get(name)
        if builtin is not None:
            builtin()
            return
        tokens = self.dictionary.get(name)
        if tokens is None:
            raise UnknownWord(f"Unknown word: {name}")
        if len(self.call_stack) >= self.max_depth:
            raise RecursionLimit(f"Maximum word depth {self.max_depth} exceeded in '{name}'")
        self._push_frame(name, Scope.LOCAL)
        for token in list(tokens):
            self.execute_token(token)
        self._pop_frame()

    def _execute_map(self, name: str):
        v, = self.peek("@" + name, 1)
        if not isinstance(v, Vector):
            raise OperandTypeError(f"@ requires vector, got {kind_of(v)}")
        self.stack.pop()
        self._push_frame(name, Scope.MAP)
        results = []
        for element in v:
            self.push(element)
            self._execute_local(name)
            results.append(self.pop("@" + name))
        self._pop_frame()
        self.push(Vector(results))

    def _execute_reduce(self, name: str):
        v, = self.peek("*" + name, 1)
        if not isinstance(v, Vector):
            raise OperandTypeError(f"* requires vector, got {kind_of(v)}")
        if not v:
            raise EmptyReduce("Cannot reduce empty vector")
        self.stack.pop()
        self._push_frame(name, Scope.REDUCE)
        accumulator = v[0]
        for element in v[1:]:
            self.push(accumulator)
            self.push(element)
            self._execute_local(name)
            accumulator = self.pop("*" + name)
        self._pop_frame()
        self.push(accumulator)

    def _execute_global(self, name: str):
        if not self.stack:
            raise EmptyStack("Stack is empty")
        everything = Vector(self.stack)
        self.stack.clear()
        self.push(everything)
        self._execute_reduce(name)

    # --- Frames and tracing ---

    def _push_frame(self, name: str, scope: Scope):
        token = self.current_token
        self.call_stack.append({
            'name': name,
            'scope': scope,
            'position': getattr(token, 'position', None),
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    def _dbg(self, *parts):
        if self.debug:
            try:
                print("[DBG]", *parts, file=sys.stderr)
            except Exception:
                pass
