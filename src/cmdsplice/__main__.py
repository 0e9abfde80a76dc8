## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# cmdsplice — Command-reference expansion for a CMake-like scripting language.
#

import re
import sys
import time
import logging
import traceback
from pathlib import Path
from dataclasses import dataclass

import click

from .errors import SpliceError, SpliceSyntaxError, SpliceIncompleteParse, SpliceDispatchError, SpliceRecursionError
from .parser import format_parse_error_context
from .formatting import write_without_ansi, format_values, format_program, print_diagnostic
from .diagnostics import Diagnostics
from .runtime import Runtime, EngineConfig


@dataclass(frozen=True)
class RunnerConfig:
    verbose: int
    ignore: bool
    stats: bool
    plain: bool
    max_depth: int
    warn_uninitialized: bool
    defines: tuple[tuple[str, str], ...] = ()


@dataclass
class ExecutionItem:
    source: str
    filename: str


class SpliceRunner:
    def __init__(self, config: RunnerConfig):
        self.verbose = config.verbose
        self.ignore = config.ignore
        self.stats_enabled = config.stats
        self.plain = config.plain

        if self.plain:
            writer = write_without_ansi(sys.stdout.write)
            sys.stdout.write, sys.stderr.write = writer, writer

        logging.basicConfig(level=logging.DEBUG if self.verbose else logging.WARNING, format="%(name)s: %(message)s")
        # Diagnostics are printed by the runner itself.
        logging.getLogger("cmdsplice.diagnostics").propagate = False

        engine = EngineConfig(max_depth=config.max_depth, warn_uninitialized=config.warn_uninitialized)
        self.runtime = Runtime(config=engine, diagnostics=Diagnostics(sink=print_diagnostic))
        for name, value in config.defines:
            self.runtime.set_variable(name, value)

        self.total_stats = {'steps': 0, 'calls': 0, 'start': time.time()} if self.stats_enabled else None
        self.failure = False
        self.executed_items = 0

    def _maybe_fatal_error(self, message: str, detail: str, exc_type: str = None, context: str = '', is_repl: bool = False) -> None:
        header = detail if not exc_type else f"{detail} (Exception: \033[33m{exc_type}\033[0m)"
        print(f'\033[30;43m {message} \033[0m {header}\n{context}', file=sys.stderr)
        if is_repl: return
        self.failure = True
        if not self.ignore: sys.exit(1)

    def _location_context(self, exc: SpliceError, filename: str, source: str) -> str:
        loc = exc.splice_location
        if loc is None or (loc.filename or filename) != filename:
            return f"\n\033[90m  at {loc}\033[0m\n" if loc else ''
        return format_parse_error_context(filename, loc.line, loc.column, exc.splice_name, source=source)

    def _handle_exception(self, exc, filename: str, source: str, is_repl: bool = False) -> bool:
        if isinstance(exc, SpliceSyntaxError):
            if is_repl and isinstance(exc, SpliceIncompleteParse): return True
            context = format_parse_error_context(filename, exc.line, exc.column, exc.token, source=source)
            context += f"\n\033[90m{str(exc).replace(chr(10), ' ').replace(chr(9), ' ')}\033[0m\n"
            self._maybe_fatal_error("SYNTAX ERROR.", f"Parsing `\033[97m{filename}\033[0m` caused a problem!", type(exc).__name__, context, is_repl)
        elif isinstance(exc, SpliceRecursionError):
            detail = f"Expanding `\033[1;97m{exc.splice_name}\033[0m` nested {exc.depth} levels deep."
            context = self._location_context(exc, filename, source) + f"\n\033[90m{exc}\033[0m\n"
            self._maybe_fatal_error("RECURSION ERROR.", detail, type(exc).__name__, context, is_repl)
        elif isinstance(exc, SpliceDispatchError):
            detail = f"Command `\033[1;97m{exc.splice_name}\033[0m` from `\033[97m{filename}\033[0m` failed: {exc}"
            context = self._location_context(exc, filename, source)
            self._maybe_fatal_error("COMMAND ERROR.", detail, type(exc).__name__, context, is_repl)
        elif isinstance(exc, Exception):
            name = getattr(exc, 'splice_name', None)
            detail = f"Command \033[1;97m`{name}`\033[0m caused an error in interpret!"
            tb_lines = traceback.format_exception(exc, chain=False)
            traceback_text = ''.join([line for line in tb_lines if "<frozen" not in line]).rstrip() + '\n'
            context = self._location_context(exc, filename, source) + '\n' + traceback_text
            self._maybe_fatal_error("RUNTIME ERROR.", detail, type(exc).__name__, context, is_repl)
        return False

    def execute_items(self, items: list[ExecutionItem]) -> None:
        for item in items:
            self._execute_script(item.source, item.filename)

    def _execute_script(self, source: str, filename: str, is_repl: bool = False, print_result: bool = False) -> None:
        try:
            result = self.runtime.run(source, filename=filename, verbosity=self.verbose, stats=self.total_stats)
            if print_result and result:
                print("\033[90m>>>\033[0m", format_values(result))
        except Exception as exc:
            self._handle_exception(exc, filename, source, is_repl=is_repl)
        else:
            self.executed_items += 1

    def dump(self, source: str, filename: str) -> None:
        try:
            programs = self.runtime.parse(source, filename=filename)
        except SpliceSyntaxError as exc:
            self._handle_exception(exc, filename, source)
            return
        for program in programs:
            print(format_program(program))
        self.executed_items += 1

    def repl(self) -> None:
        if sys.platform != "win32": import readline

        print('cmdsplice - Command expansion REPL; type Ctrl+C to exit.')
        source = ""

        while True:
            try:
                prompt = "\033[36m<<< \033[0m" if not source.strip() else "\033[36m... \033[0m"
                line = input(prompt)
                if len(line.strip()) == 0: continue
                if line.strip() in ('quit', 'exit'): break
                source += line + "\n"

                try:
                    result = self.runtime.run(source, filename='<REPL>', verbosity=self.verbose, stats=self.total_stats)
                    if result: print("\033[90m>>>\033[0m", format_values(result))
                    source = ""
                except Exception as exc:
                    if not self._handle_exception(exc, '<REPL>', source, is_repl=True):
                        source = ""

            except (KeyboardInterrupt, EOFError):
                print(""); break

    def finalize(self) -> int:
        if self.total_stats and self.executed_items > 0:
            elapsed_time = time.time() - self.total_stats['start']
            print(f"\n\033[97m\033[48;5;30m STATISTICS. \033[0m")
            print(f"step\t\033[97m{self.total_stats['steps']:,}\033[0m")
            print(f"call\t\033[97m{self.total_stats['calls']:,}\033[0m")
            print(f"time\t\033[97m{elapsed_time:.3f}s\033[0m")
        if self.runtime.diagnostics.errors:
            self.failure = True
        return 1 if self.failure else 0


def _parse_dev_tokens(tokens: list[str]) -> list[tuple[str, Path | str | None]]:
    actions: list[tuple[str, Path | str | None]] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token == '--':
            index += 1
            continue
        if token in ('-c', '--command'):
            index += 1
            if index >= len(tokens):
                raise click.BadParameter("Missing inline code after -c/--command option.")
            actions.append(('command', tokens[index]))
            index += 1
            continue
        if token.startswith('-c=') or token.startswith('--command='):
            _, value = token.split('=', 1)
            if value == '':
                raise click.BadParameter("Empty code supplied to command option.")
            actions.append(('command', value))
            index += 1
            continue
        if token in ('-r', '--repl'):
            actions.append(('repl', None))
            index += 1
            continue
        if token.startswith('-'):
            raise click.BadParameter(f"Unknown option `{token}`.")
        path = Path(token)
        if not path.is_file():
            raise click.BadParameter(f"File `{token}` not found.")
        actions.append(('file', path))
        index += 1
    return actions


def _parse_defines(ctx: click.Context, param: click.Parameter, values: tuple[str, ...]) -> tuple[tuple[str, str], ...]:
    defines = []
    for value in values:
        name, sep, text = value.partition('=')
        if not sep or not name:
            raise click.BadParameter(f"Expected NAME=VALUE, got `{value}`.")
        defines.append((name, text))
    return tuple(defines)


@click.group(invoke_without_command=True, context_settings={'ignore_unknown_options': True, 'allow_extra_args': True})
@click.option('--verbose', '-v', default=0, count=True, help='Trace evaluation steps and enable debug logging.')
@click.option('--ignore', '-i', is_flag=True, help='Ignore errors and continue executing.')
@click.option('--stats', is_flag=True, help='Display execution statistics (e.g., number of steps).')
@click.option('--plain', '-p', is_flag=True, help='Strip ANSI color codes and redirect stderr to stdout.')
@click.option('--max-depth', type=click.IntRange(min=1), default=1000, show_default=True, envvar='CMDSPLICE_MAX_DEPTH',
              help='Maximum nesting depth of command expansions.')
@click.option('--warn-uninitialized', is_flag=True, help='Warn when an undefined variable is referenced.')
@click.option('--define', '-D', 'defines', multiple=True, metavar='NAME=VALUE', callback=_parse_defines,
              help='Set a variable before running.')
@click.pass_context
def cli(ctx: click.Context, verbose: int, ignore: bool, stats: bool, plain: bool,
        max_depth: int, warn_uninitialized: bool, defines: tuple[tuple[str, str], ...]) -> None:
    ctx.ensure_object(dict)
    ctx.obj['config'] = RunnerConfig(verbose=verbose, ignore=ignore, stats=stats, plain=plain, max_depth=max_depth,
                                     warn_uninitialized=warn_uninitialized, defines=defines)

    # When invoked via module entry (python -m cmdsplice), we route in main().
    return


@cli.command('run-file')
@click.argument('script', type=click.File('r', encoding='utf-8'))
@click.pass_context
def run_file(ctx: click.Context, script) -> None:
    runner = SpliceRunner(ctx.obj['config'])
    runner.execute_items((ExecutionItem(script.read(), script.name or '<STDIN>'),))
    ctx.exit(runner.finalize())


@cli.command('run-dev', context_settings={'ignore_unknown_options': True, 'allow_extra_args': True})
@click.argument('tokens', nargs=-1)
@click.pass_context
def run_dev(ctx: click.Context, tokens: tuple[str, ...]) -> None:
    runner = SpliceRunner(ctx.obj['config'])
    actions = _parse_dev_tokens(list(tokens))

    command_index = 1
    for action, payload in actions:
        if action == 'file':
            runner.execute_items((ExecutionItem(payload.read_text(encoding='utf-8'), str(payload)),))
        elif action == 'command':
            runner._execute_script(payload.rstrip() + '\n', f'<INPUT_{command_index}>', is_repl=False, print_result=True)
            command_index += 1
        elif action == 'repl':
            runner.repl()
        else:
            raise NotImplementedError

    if not actions:
        runner.repl()
    ctx.exit(runner.finalize())


@cli.command('run-repl')
@click.pass_context
def run_repl(ctx: click.Context) -> None:
    runner = SpliceRunner(ctx.obj['config'])
    runner.repl()
    ctx.exit(runner.finalize())


@cli.command('dump')
@click.argument('script', type=click.File('r', encoding='utf-8'))
@click.pass_context
def dump(ctx: click.Context, script) -> None:
    runner = SpliceRunner(ctx.obj['config'])
    runner.dump(script.read(), script.name or '<STDIN>')
    ctx.exit(runner.finalize())


GLOBAL_FLAGS = ('--ignore', '--stats', '--plain', '--warn-uninitialized', '-i', '-p')
GLOBAL_OPTIONS = ('--max-depth', '--define', '-D')


def _split_global_options(args: list[str]) -> tuple[list[str], list[str]]:
    g, r, i = [], [], 0
    while i < len(args):
        t = args[i]
        if t in GLOBAL_FLAGS or t == '--verbose' or re.fullmatch(r'-v+', t):
            g.append(t)
        elif t in GLOBAL_OPTIONS and i + 1 < len(args):
            g.extend(args[i:i+2]); i += 1
        elif t.startswith(('--max-depth=', '--define=')) or (t.startswith('-D') and len(t) > 2):
            g.append(t)
        else:
            r.append(t)
        i += 1
    return g, r


def main(argv: list[str] | None = None) -> None:
    a = list(sys.argv[1:] if argv is None else argv)
    g, r = _split_global_options(a)
    pos = [t for t in r if not t.startswith('-')]
    has_dev_opt = any(t in ('-c', '-r', '--repl') or t.startswith('--command') for t in r)

    if len(r) == 0:
        # No args: if stdin has data, treat as file '-', else REPL
        cmd, tail = ('run-file', ['-']) if not sys.stdin.isatty() else ('run-repl', [])
    elif r[0] in cli.commands:
        cmd, tail = r[0], r[1:]
    elif r == ['-'] or (len(r) >= 2 and r[0] == '-f' and r[1] == '-'):
        cmd, tail = 'run-file', ['-']
    elif r == ['--repl']:
        cmd, tail = 'run-repl', []
    elif len(pos) == 1 and len(r) == 1 and not has_dev_opt and Path(pos[0]).is_file():
        cmd, tail = 'run-file', [pos[0]]
    else:
        cmd, tail = 'run-dev', r

    cli.main(args=[*g, cmd, *tail], prog_name='cmdsplice')


if __name__ == "__main__":
    main()
