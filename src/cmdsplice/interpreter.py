## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import logging
from typing import Protocol

from .types import Instruction, Program
from .errors import SpliceDispatchError
from .lists import expand_list, flatten
from .diagnostics import Diagnostics, Severity
from .formatting import show_program_and_stacks


log = logging.getLogger("cmdsplice.interpreter")


class Dispatcher(Protocol):
    def invoke(self, name: str, args: list[str]) -> list[str]: ...

class VariableScope(Protocol):
    def lookup(self, name: str) -> str | None: ...
    def lookup_env(self, name: str) -> str | None: ...
    def lookup_cache(self, name: str) -> str | None: ...


def _pop_operands(values: list[str], counts: list[int], n: int) -> list[list[str]]:
    """Remove the results of the top `n` sub-expressions, returned oldest first."""
    assert len(counts) >= n, f"Count stack holds {len(counts)} entries, {n} needed."
    sizes = counts[len(counts)-n:]
    del counts[len(counts)-n:]

    total = sum(sizes)
    assert len(values) >= total, f"Value stack holds {len(values)} entries, {total} needed."
    flat = values[len(values)-total:]
    del values[len(values)-total:]

    operands, i = [], 0
    for size in sizes:
        operands.append(flat[i:i+size])
        i += size
    return operands

def _concat(operands: list[list[str]]) -> str:
    return ''.join(flatten(op) for op in operands)


def _lookup(scope: VariableScope, namespace: str, name: str) -> str | None:
    match namespace:
        case 'ENV':
            return scope.lookup_env(name)
        case 'CACHE':
            return scope.lookup_cache(name)
    return scope.lookup(name)


def _dispatch(ins: Instruction, args: list[str], dispatcher: Dispatcher, diagnostics: Diagnostics | None) -> list[str]:
    log.debug("dispatch %s(%s)", ins.name, ' '.join(args))
    try:
        results = dispatcher.invoke(ins.name, args)
    except SpliceDispatchError as exc:
        if exc.splice_location is None: exc.splice_location = ins.location
        if exc.splice_name is None: exc.splice_name = ins.name
        if exc.fatal: raise
        if diagnostics is not None:
            diagnostics.emit(ins.location, str(exc), Severity.WARNING)
        else:
            log.warning("%s: %s", ins.location, exc)
        return []

    results = list(results)
    assert all(isinstance(r, str) for r in results), f"Command `{ins.name}` returned non-string results."
    return results


def interpret(program: Program | list, scope: VariableScope, dispatcher: Dispatcher, *,
              diagnostics: Diagnostics | None = None, warn_undefined: bool = False,
              expand_only: bool = False, verbosity: int = 0, stats: dict | None = None) -> list[str]:
    """Execute a post-order instruction stream with a value stack and a count stack.

    Every completed sub-expression pushes one entry on the count stack, saying how many
    values it left on the value stack.  This lets the number of arguments a reference
    expands to flow upward through nested invocations at run time.

    Returns the results of the outermost invocation, or with `expand_only` its resolved
    argument list without dispatching it.
    """
    instructions = program.instructions if isinstance(program, Program) else program
    values: list[str] = []
    counts: list[int] = []

    step = 0
    for step, ins in enumerate(instructions):
        if verbosity == 2 or (verbosity == 1 and ins.op in (Instruction.CALL, Instruction.CMD_REF)):
            print(f"\033[90m{step:>3} :\033[0m  ", end='')
            show_program_and_stacks(instructions[step:], values, counts)

        try:
            match ins.op:
                case Instruction.LITERAL:
                    values.append(ins.arg)
                    counts.append(1)

                case Instruction.VAR_REF:
                    name = _concat(_pop_operands(values, counts, ins.arg))
                    if (value := _lookup(scope, ins.name, name)) is None:
                        if warn_undefined and diagnostics is not None:
                            diagnostics.emit(ins.location, f"Variable `{name}` is not defined, expanded to empty string.")
                        value = ''
                    values.append(value)
                    counts.append(1)

                case Instruction.QUOTED_ARG:
                    values.append(_concat(_pop_operands(values, counts, ins.arg)))
                    counts.append(1)

                case Instruction.UNQUOTED_ARG:
                    operands = _pop_operands(values, counts, ins.arg)
                    if ins.expand == 'list':
                        [[value]] = operands
                        items = expand_list(value)
                    elif ins.expand == 'values':
                        [items] = operands
                    else:
                        items = [_concat(operands)]
                    values.extend(items)
                    counts.append(len(items))

                case Instruction.CMD_REF | Instruction.CALL:
                    args = [v for operand in _pop_operands(values, counts, ins.arg) for v in operand]
                    if expand_only and ins.op == Instruction.CALL:
                        assert step == len(instructions) - 1, "Outermost invocation must end the program."
                        return args
                    results = _dispatch(ins, args, dispatcher, diagnostics)
                    if stats is not None:
                        stats['calls'] = stats.get('calls', 0) + 1
                    values.extend(results)
                    counts.append(len(results))

                case _:
                    raise NotImplementedError(f"Unknown instruction {ins!r}.")
        except Exception as exc:
            if getattr(exc, 'splice_location', None) is None:
                exc.splice_location, exc.splice_name = ins.location, ins.name
            raise

    assert sum(counts) == len(values), "Count stack and value stack disagree."
    if verbosity > 0:
        print(f"\033[90m{step+1:>3} :\033[0m  ", end='')
        show_program_and_stacks([], values, counts)
    if stats is not None:
        stats['steps'] = stats.get('steps', 0) + len(instructions)
    return values
