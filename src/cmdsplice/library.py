## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import inspect
from typing import Any, Callable
from dataclasses import dataclass, field

from .errors import SpliceNameError, SpliceArityError, SpliceDispatchError


@dataclass
class Library:
    """Command table behind the dispatcher.  Names are case-insensitive."""
    commands: dict[str, Callable[..., list[str]]]
    aliases: dict[str, str] = field(default_factory=dict)

    # Registration helpers
    def add_command(self, name: str, fn: Callable[..., Any]) -> None:
        wrapper, meta = _make_wrapper(fn, name)
        wrapper.__splice_meta__ = meta
        self.commands[name.lower()] = wrapper

    def remove_command(self, name: str) -> None:
        self.commands.pop(name.lower(), None)

    def ensure_consistent(self) -> None:
        for _, fn in list(self.commands.items()):
            assert hasattr(fn, '__splice_meta__')

    def has_command(self, name: str) -> bool:
        key = name.lower()
        return self.aliases.get(key, key) in self.commands

    def get_command(self, name: str, *, location=None) -> Callable[..., list[str]]:
        key = name.lower()
        if (command := self.commands.get(self.aliases.get(key, key))) is not None:
            return command
        raise SpliceNameError(f"Unknown command `{name}`.", splice_name=name, splice_location=location)


def get_command_name(py_name: str) -> str:
    """Map a Python function name like `cmd_set` to the command name it implements."""
    if not py_name.startswith("cmd_"):
        raise SpliceDispatchError(f"Command function `{py_name}` requires prefix `cmd_` by convention.", splice_name=py_name)
    return py_name[4:]


def _to_results(value: Any) -> list[str]:
    if value is None: return []
    if isinstance(value, str): return [value]
    if isinstance(value, (list, tuple)):
        return [v if isinstance(v, str) else str(v) for v in value]
    return [str(value)]


def get_command_signature(*, fn: Callable, name: str = None) -> dict:
    """Inspect a Python callable to decide how the dispatcher passes arguments to it.

    Calling conventions:
        frame: first parameter named `frame`, called as fn(frame, args) with the list.
        plain: called as fn(*args); `arity` is -1 with varargs, otherwise the number of
               positional parameters, of which `required` have no default.
    """
    sig = inspect.signature(fn)
    params = list(sig.parameters.values())
    pass_frame = len(params) > 0 and params[0].name == 'frame'

    rest = params[1:] if pass_frame else params
    positional = [p for p in rest if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)]
    has_varargs = any(p.kind == inspect.Parameter.VAR_POSITIONAL for p in rest)

    return {
        'name': name or getattr(fn, '__name__', '<unnamed>'),
        'frame': pass_frame,
        'arity': -1 if (has_varargs or pass_frame) else len(positional),
        'required': len([p for p in positional if p.default is inspect.Parameter.empty]) if not pass_frame else 0,
        'doc': inspect.getdoc(fn) or '',
    }


def _make_wrapper(fn: Callable[..., Any], name: str):
    meta = get_command_signature(fn=fn, name=name)

    if meta['frame']:
        def w_frame(frame, args: list[str]) -> list[str]:
            return _to_results(fn(frame, args))
        return w_frame, meta

    arity, required = meta['arity'], meta['required']
    def w_plain(frame, args: list[str]) -> list[str]:
        if len(args) < required or (arity >= 0 and len(args) > arity):
            expected = f"{required}" if required == arity else (f"at least {required}" if arity < 0 else f"{required} to {arity}")
            raise SpliceArityError(f"Command `{name}` expects {expected} argument(s), got {len(args)}.", splice_name=name)
        return _to_results(fn(*args))
    return w_plain, meta
