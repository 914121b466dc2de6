"""Lycoris: a small concatenative language with exact rational arithmetic."""
from lycoris.lycoris_interpreter import Interpreter
from lycoris.lycoris_runtime import ScriptRunner, ExecutionResult

__all__ = ["Interpreter", "ScriptRunner", "ExecutionResult"]
