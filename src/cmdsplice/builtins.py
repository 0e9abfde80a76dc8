## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from . import commands
from .library import Library, get_command_name


def load_builtins_library():
    aliases = {}
    lib = Library(commands={}, aliases=aliases)

    # Commands (wrapped via Library helper)
    for k in dir(commands):
        if not k.startswith('cmd_'): continue
        lib.add_command(get_command_name(k), getattr(commands, k))

    lib.ensure_consistent()
    return lib
