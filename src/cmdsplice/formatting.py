## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import re
import sys

from .types import Program
from .diagnostics import Diagnostic, Severity


def write_without_ansi(write_fn):
    """Wrapper function that strips ANSI codes before calling the original writer."""
    ansi_re = re.compile(r'\033\[[0-9;]*m')
    return lambda text: write_fn(ansi_re.sub('', text))


def format_value(value: str, abbreviate: bool = False) -> str:
    if abbreviate and len(value) > 24:
        return f'≪string:{len(value)}≫'
    return '"' + value.replace('\\', '\\\\').replace('"', '\\"').replace('\n', '\\n') + '"'

def format_values(values: list[str]) -> str:
    return '[' + ' '.join(format_value(v) for v in values) + ']'


def show_stacks(values: list[str], counts: list[int], width=72, end='\n', file=None):
    if not counts:
        stack_str = '∅'
    else:
        # Group values by the sub-expression that produced them, as recorded by `counts`.
        groups, i = [], len(values)
        for size in reversed(counts):
            groups.append('{' + ' '.join(format_value(v, abbreviate=True) for v in values[i-size:i]) + '}')
            i -= size
        stack_str = ' '.join(reversed(groups))

    if width is not None and len(stack_str) > width:
        stack_str = '… ' + stack_str[-width+2:]
    print(f"{stack_str:>{width}}" if width else stack_str, end=end, file=file)

def show_program_and_stacks(instructions, values, counts, width=72, file=None):
    prog_str = ' '.join(repr(ins) for ins in instructions) if instructions else '∅'
    if len(prog_str) > width:
        prog_str = prog_str[:+width-2] + ' …'
    show_stacks(values, counts, end='', file=file)
    print(f" \033[36m <=> \033[0m {prog_str:<{width}}", file=file)


def format_program(program: Program) -> str:
    loc = program.location
    lines = [f"\033[97m{program.name}\033[0m \033[90m({loc.line}:{loc.column})\033[0m" if loc else program.name]
    for i, ins in enumerate(program.instructions):
        lines.append(f"\033[90m{i:>4} :\033[0m  {ins!r}")
    return '\n'.join(lines)


def format_diagnostic(diag: Diagnostic) -> str:
    color = '\033[30;41m' if diag.severity is Severity.ERROR else '\033[30;43m'
    where = f" \033[97m{diag.location}\033[0m" if diag.location else ""
    return f"{color} {diag.severity.value.upper()}. \033[0m{where} {diag.message}"

def print_diagnostic(diag: Diagnostic, file=None) -> None:
    print(format_diagnostic(diag), file=file or sys.stderr)
