## cmdsplice — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import sys
import logging
from typing import Any, Callable
from collections import OrderedDict
from dataclasses import dataclass, field

from .types import Program, Location
from .errors import SpliceDispatchError, SpliceArityError, SpliceIncompleteParse, SpliceRecursionError, SpliceSyntaxError
from .scope import Scope
from .lists import join_list
from .parser import parse
from .library import Library
from .builtins import load_builtins_library
from .diagnostics import Diagnostics
from .interpreter import interpret


log = logging.getLogger("cmdsplice.runtime")

# Upper bound of Python frames used by one level of nesting, from `evaluate` back into `evaluate`.
FRAMES_PER_LEVEL = 12


@dataclass(frozen=True)
class EngineConfig:
    max_depth: int = 1000
    warn_uninitialized: bool = False
    parse_cache_size: int = 256


@dataclass
class Frame:
    """Execution context handed to commands: where to read and write variables, where
    to report problems, and where `return()` leaves its values."""
    scope: Scope
    diagnostics: Diagnostics
    runtime: "Runtime"
    function: str | None = None
    location: Location | None = None
    result: list[str] = field(default_factory=list)
    returned: bool = False


@dataclass
class ScriptFunction:
    name: str
    params: list[str]
    body: list[Program]

    def call(self, frame: Frame, args: list[str]) -> list[str]:
        if len(args) < len(self.params):
            raise SpliceArityError(f"Function `{self.name}` expects at least {len(self.params)} argument(s), got {len(args)}.",
                                   splice_name=self.name)
        scope = frame.scope.child()
        scope.set('ARGC', str(len(args)))
        scope.set('ARGV', join_list(args))
        scope.set('ARGN', join_list(args[len(self.params):]))
        for i, arg in enumerate(args):
            scope.set(f'ARGV{i}', arg)
        for param, arg in zip(self.params, args):
            scope.set(param, arg)

        callee = Frame(scope, frame.diagnostics, frame.runtime, function=self.name)
        frame.runtime.execute(self.body, frame=callee)
        return callee.result


def _block_end(programs: list[Program], start: int) -> int | None:
    """Index of the `endfunction()` closing the `function()` at `start`, if any."""
    nesting = 0
    for end in range(start, len(programs)):
        match programs[end].name.lower():
            case 'function':
                nesting += 1
            case 'endfunction':
                nesting -= 1
                if nesting == 0: return end
    return None


def check_blocks(programs: list[Program]) -> None:
    """Reject a `function()` without matching `endfunction()` before anything runs."""
    i = 0
    while i < len(programs):
        if programs[i].name.lower() == 'function':
            if (end := _block_end(programs, i)) is None:
                loc = programs[i].location
                raise SpliceIncompleteParse("`function()` without matching `endfunction()`.", filename=loc.filename,
                                            line=loc.line, column=loc.column, token=programs[i].name)
            i = end
        i += 1


class Runtime:
    """Minimal runtime facade focused on embedding and extension.  It is the command
    dispatcher seen by the evaluator, and tracks how deeply evaluations are nested."""

    def __init__(self, library: Library | None = None, config: EngineConfig | None = None,
                 scope: Scope | None = None, diagnostics: Diagnostics | None = None):
        self.library = library or load_builtins_library()
        self.config = config or EngineConfig()
        self.scope = scope if scope is not None else Scope()
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.verbosity: int = 0
        self.stats: dict | None = None
        self.depth = 0
        self._frames: list[Frame] = []
        self._programs: OrderedDict[tuple[str | None, str | bytes], list[Program]] = OrderedDict()

    def _top_frame(self) -> Frame:
        return Frame(self.scope, self.diagnostics, self)

    # Parsing ─────────────────────────────────────────────────────────────────────────────────
    def parse(self, source: str | bytes, filename: str | None = None) -> list[Program]:
        """Instruction streams only depend on the text, so the most recent ones are kept."""
        key = (filename, source)
        if (programs := self._programs.get(key)) is not None:
            self._programs.move_to_end(key)
            return programs

        programs = parse(source, filename=filename)
        check_blocks(programs)
        self._programs[key] = programs
        if len(self._programs) > self.config.parse_cache_size:
            self._programs.popitem(last=False)
        return programs

    # Execution ───────────────────────────────────────────────────────────────────────────────
    def run(self, source: str | bytes, filename: str | None = None,
            verbosity: int = 0, stats: dict | None = None) -> list[str]:
        programs = self.parse(source, filename)
        previous = self.verbosity, self.stats
        if self.depth == 0 or stats is not None:
            self.verbosity, self.stats = verbosity, stats
        try:
            return self.execute(programs, frame=self._top_frame())
        finally:
            self.verbosity, self.stats = previous

    def expand(self, source: str | bytes, filename: str | None = None) -> list[str]:
        """Resolve the arguments of a single invocation without dispatching it."""
        programs = self.parse(source, filename)
        if len(programs) != 1:
            raise SpliceSyntaxError(f"Expected exactly one command invocation, found {len(programs)}.",
                                    filename=filename, line=1, column=1, token='')
        return self.evaluate(programs[0], expand_only=True)

    def execute(self, programs: list[Program], frame: Frame | None = None) -> list[str]:
        """Evaluate invocations in order, collecting `function()` blocks as they appear,
        until the end or until `return()` is called.  Returns the last results."""
        frame = frame or self._top_frame()
        out, i = [], 0
        while i < len(programs) and not frame.returned:
            program = programs[i]
            if program.name.lower() == 'function':
                i = self._define_function(programs, i, frame)
                out = []
                continue
            frame.location = program.location
            out = self.evaluate(program, frame)
            i += 1
        return out

    def evaluate(self, program: Program, frame: Frame | None = None, expand_only: bool = False) -> list[str]:
        frame = frame or (self._frames[-1] if self._frames else self._top_frame())
        if self.depth >= self.config.max_depth:
            raise SpliceRecursionError(f"Maximum nesting depth of {self.config.max_depth} exceeded in `{program.name}`.",
                                       depth=self.depth, splice_name=program.name, splice_location=program.location)

        # The outermost evaluation makes room on the Python stack for every allowed level.
        limit = sys.getrecursionlimit() if self.depth == 0 else None
        if limit is not None:
            sys.setrecursionlimit(limit + self.config.max_depth * FRAMES_PER_LEVEL)

        self.depth += 1
        self._frames.append(frame)
        try:
            return interpret(program, frame.scope, self, diagnostics=self.diagnostics,
                             warn_undefined=self.config.warn_uninitialized, expand_only=expand_only,
                             verbosity=self.verbosity, stats=self.stats)
        except RecursionError as exc:
            if isinstance(exc, SpliceRecursionError): raise
            raise SpliceRecursionError(f"Call stack exhausted at nesting depth {self.depth} in `{program.name}`.",
                                       depth=self.depth, splice_name=program.name, splice_location=program.location) from None
        finally:
            self._frames.pop()
            self.depth -= 1
            if limit is not None:
                sys.setrecursionlimit(limit)

    def invoke(self, name: str, args: list[str]) -> list[str]:
        """Dispatcher entry point: run a command with already-resolved arguments."""
        command = self.library.get_command(name)
        frame = self._frames[-1] if self._frames else self._top_frame()
        return command(frame, list(args))

    def _define_function(self, programs: list[Program], start: int, frame: Frame) -> int:
        header = programs[start]
        if (end := _block_end(programs, start)) is None:
            check_blocks(programs[start:])

        args = self.evaluate(header, frame, expand_only=True)
        if not args:
            raise SpliceDispatchError("`function()` requires a name.", splice_name='function', splice_location=header.location)
        name, *params = args
        self.define_function(name, params, programs[start+1:end])
        return end + 1

    # Registration ────────────────────────────────────────────────────────────────────────────
    def register_command(self, name: str, func: Callable[..., Any]) -> None:
        self.library.add_command(name, func)

    def define_function(self, name: str, params: list[str], body: list[Program] | str) -> None:
        if isinstance(body, str):
            body = self.parse(body, filename=f'<function:{name}>')
        log.debug("define function %s(%s) with %d command(s)", name, ' '.join(params), len(body))
        self.library.add_command(name, ScriptFunction(name, list(params), list(body)).call)

    # Introspection ───────────────────────────────────────────────────────────────────────────
    def get_command(self, name: str) -> Callable[..., list[str]]:
        return self.library.get_command(name)

    def get_signature(self, name: str) -> dict:
        return self.library.get_command(name).__splice_meta__

    def list_commands(self) -> dict[str, dict]:
        return {n: fn.__splice_meta__ for n, fn in self.library.commands.items()}

    def set_variable(self, name: str, value: str | list[str]) -> None:
        self.scope.set(name, value if isinstance(value, str) else join_list(value))

    def get_variable(self, name: str) -> str | None:
        return self.scope.lookup(name)
