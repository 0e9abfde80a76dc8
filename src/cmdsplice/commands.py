## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import re
import sys
import logging

from .errors import SpliceArityError, SpliceDispatchError
from .lists import join_list
from .diagnostics import Severity


log = logging.getLogger("cmdsplice.commands")

ENV_NAME_RE = re.compile(r'ENV\{(.*)\}')

MESSAGE_MODES = frozenset({'FATAL_ERROR', 'SEND_ERROR', 'WARNING', 'AUTHOR_WARNING', 'DEPRECATION',
                           'NOTICE', 'STATUS', 'VERBOSE', 'DEBUG', 'TRACE'})


def _require(name: str, args: list[str], count: int) -> None:
    if len(args) < count:
        raise SpliceArityError(f"Command `{name}` expects at least {count} argument(s), got {len(args)}.", splice_name=name)


## VARIABLES
def cmd_set(frame, args: list[str]) -> None:
    """set(<var> <value>... [PARENT_SCOPE]), set(<var> <value> CACHE <type> <doc> [FORCE]) or set(ENV{<var>} <value>)"""
    _require('set', args, 1)
    name, values = args[0], args[1:]

    if (m := ENV_NAME_RE.fullmatch(name)):
        if values: frame.scope.set_env(m.group(1), values[0])
        else: frame.scope.unset_env(m.group(1))
        return

    if 'CACHE' in values:
        i = values.index('CACHE')
        frame.scope.set_cache(name, join_list(values[:i]), force=(values[-1] == 'FORCE'))
        return

    target = frame.scope
    if values and values[-1] == 'PARENT_SCOPE':
        values, target = values[:-1], frame.scope.parent
        if target is None:
            frame.diagnostics.emit(frame.location, f"Cannot set `{name}` with PARENT_SCOPE from the top-level scope.")
            return

    if values: target.set(name, join_list(values))
    else: target.unset(name)

def cmd_unset(frame, args: list[str]) -> None:
    """unset(<var> [CACHE | PARENT_SCOPE]) or unset(ENV{<var>})"""
    _require('unset', args, 1)
    name, options = args[0], args[1:]

    if (m := ENV_NAME_RE.fullmatch(name)):
        frame.scope.unset_env(m.group(1))
    elif 'CACHE' in options:
        frame.scope.unset_cache(name)
    elif 'PARENT_SCOPE' in options:
        if frame.scope.parent is not None:
            frame.scope.parent.unset(name)
    else:
        frame.scope.unset(name)


## OUTPUT
def cmd_message(frame, args: list[str]) -> None:
    """message([<mode>] <text>...) with the text arguments concatenated."""
    if args and args[0] in MESSAGE_MODES:
        mode, text = args[0], ''.join(args[1:])
    else:
        mode, text = 'NOTICE', ''.join(args)

    match mode:
        case 'FATAL_ERROR':
            raise SpliceDispatchError(text, fatal=True, splice_name='message')
        case 'SEND_ERROR':
            frame.diagnostics.emit(frame.location, text, Severity.ERROR)
        case 'WARNING' | 'AUTHOR_WARNING' | 'DEPRECATION':
            frame.diagnostics.emit(frame.location, text, Severity.WARNING)
        case 'STATUS':
            print(f"-- {text}")
        case 'VERBOSE' | 'DEBUG' | 'TRACE':
            log.debug("%s", text)
        case _:
            print(text, file=sys.stderr)


## CONTROL
def cmd_return(frame, args: list[str]) -> None:
    """return(<value>...) ends the current function, which then yields these values."""
    frame.result = list(args)
    frame.returned = True

def cmd_function(frame, args: list[str]) -> None:
    raise SpliceDispatchError("`function()` is only valid as a top-level command, not inside a reference.", splice_name='function')

def cmd_endfunction(frame, args: list[str]) -> None:
    raise SpliceDispatchError("`endfunction()` without matching `function()`.", splice_name='endfunction')
