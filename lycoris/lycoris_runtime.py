"""
The host boundary of the Lycoris runtime: runs scripts against a persistent
interpreter and reports structured results instead of raising.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from lycoris.lycoris_datatypes import LycorisError
from lycoris.lycoris_interpreter import Interpreter
from lycoris.lycoris_printer import Printer
from lycoris import lycoris_serialize

Token = Dict[str, Any]


@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    side_effects: List[Dict] = field(default_factory=list)
    stack: List[str] = field(default_factory=list)

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")

        # Add a location prefix when we have a token; avoid duplicating the same prefix
        if self.error_token and 'line' in self.error_token:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            if not msg.startswith("Error on line "):
                col_info = f", col {col}" if col is not None else ""
                return f"Error on line {line}{col_info}: {msg}"
        return msg


class ScriptRunner:
    """Tokenizes and executes Lycoris code against one long-lived interpreter."""

    def __init__(self, interpreter: Optional[Interpreter] = None, max_depth: Optional[int] = None):
        self.interpreter = interpreter if interpreter is not None else Interpreter(max_depth=max_depth)
        self.printer = Printer()
        self._current_script_source = ""

    # --- error formatting ---

    def _line_col(self, source: str, position: int) -> tuple[int, int]:
        line = source.count("\n", 0, position) + 1
        line_start = source.rfind("\n", 0, position) + 1
        return line, position - line_start + 1

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            ln = str(i).rjust(width)
            content = lines[i - 1]
            out.append(f"{prefix} {ln} | {content}")
            if i == line and col is not None:
                caret = " " * max(col - 1, 0)
                out.append(f"  {' ' * width} | {caret}^")
        return "\n".join(out)

    def _format_stacktrace(self) -> str:
        stack = self.interpreter.call_stack
        if not stack:
            return ""
        frames = [f"({frame['scope'].value}{frame['name']})" for frame in stack]
        return "Lycoris stacktrace: " + " ".join(frames)

    def _error_position(self, e: Exception) -> Optional[int]:
        position = getattr(e, 'position', None)
        if position is None:
            token = self.interpreter.current_token
            position = getattr(token, 'position', None)
        return position

    def _format_runtime_error(self, e: Exception, source: str) -> tuple[str, Optional[Token]]:
        match e:
            case LycorisError():
                msg = f"{e.kind}: {e}"
            case _:
                msg = f"InternalError: {e}"

        token = None
        position = self._error_position(e)
        if position is not None and 0 <= position <= len(source):
            line, col = self._line_col(source, position)
            token = {'line': line, 'col': col, 'position': position}
            msg = f"{msg}\n(line {line}, col {col})\n{self._source_context(source, line, col)}"

        st = self._format_stacktrace()
        if st:
            msg += "\n" + st
        return msg, token

    # --- execution ---

    def handle_script(self, source_code: str) -> ExecutionResult:
        """The main entry point to execute a script."""
        interp = self.interpreter
        interp.current_token = None
        self._current_script_source = source_code
        try:
            output = interp.execute(source_code)
        except Exception as e:
            err_msg, err_token = self._format_runtime_error(e, source_code)
            interp.side_effects.append({'topics': ['stderr'], 'message': err_msg})
            return ExecutionResult(
                status='error',
                error_message=err_msg,
                error_token=err_token,
                side_effects=list(interp.side_effects),
                stack=interp.stack_snapshot(),
            )
        return ExecutionResult(
            status='success',
            value=output,
            side_effects=list(interp.side_effects),
            stack=interp.stack_snapshot(),
        )

    # --- state and introspection ---

    def word_listing(self) -> List[tuple]:
        """Rows of (name, description, kind): builtins first, then user words."""
        rows = [(name, "[built-in]", "builtin") for name in self.interpreter.builtins.words()]
        for name in self.interpreter.user_words():
            body = self.printer.pformat_tokens(self.interpreter.dictionary[name])
            rows.append((name, body, "custom"))
        return rows

    def save_state(self, fmt: str = 'json') -> str:
        return lycoris_serialize.dump_state(self.interpreter, fmt=fmt)

    def load_state(self, text: str, fmt: Optional[str] = None) -> None:
        lycoris_serialize.load_state(self.interpreter, text, fmt=fmt)

    def get_state(self) -> Dict[str, Any]:
        return {
            'stack': self.interpreter.stack_snapshot(),
            'words': {name: body for name, body, kind in self.word_listing() if kind == 'custom'},
            'output': self.interpreter.output(),
            'state': self.save_state(),
        }
