## cmdsplice — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from .types import Instruction, Program, Location
from .errors import *
from .runtime import Runtime, EngineConfig, Frame

_RUNTIME = Runtime()

def __getattr__(name):
    return getattr(_RUNTIME, name)
