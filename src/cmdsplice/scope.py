## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import os
from collections import ChainMap
from typing import MutableMapping


class Scope:
    """Variable bindings for one frame of execution.

    Reads fall through to enclosing frames, writes stay local.  The cache and the
    environment are shared by every frame created with `child()`.
    """

    def __init__(self, variables: dict | None = None, *, parent: "Scope | None" = None,
                 cache: dict | None = None, environ: MutableMapping[str, str] | None = None):
        self.variables = variables if isinstance(variables, ChainMap) else ChainMap(dict(variables or {}))
        self.parent = parent
        self.cache: dict[str, str] = {} if cache is None else cache
        self.environ = os.environ if environ is None else environ

    def child(self) -> "Scope":
        return Scope(self.variables.new_child(), parent=self, cache=self.cache, environ=self.environ)

    # Lookups ─────────────────────────────────────────────────────────────────────────────────
    def lookup(self, name: str) -> str | None:
        if name in self.variables:
            return self.variables[name]
        return self.cache.get(name)

    def lookup_env(self, name: str) -> str | None:
        return self.environ.get(name)

    def lookup_cache(self, name: str) -> str | None:
        return self.cache.get(name)

    # Mutation, only ever called by dispatched commands ───────────────────────────────────────
    def set(self, name: str, value: str) -> None:
        self.variables[name] = value

    def unset(self, name: str) -> None:
        self.variables.maps[0].pop(name, None)

    def set_cache(self, name: str, value: str, force: bool = False) -> None:
        if force or name not in self.cache:
            self.cache[name] = value

    def unset_cache(self, name: str) -> None:
        self.cache.pop(name, None)

    def set_env(self, name: str, value: str) -> None:
        self.environ[name] = value

    def unset_env(self, name: str) -> None:
        self.environ.pop(name, None)
