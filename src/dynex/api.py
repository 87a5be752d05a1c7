## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from .diagnostics import CompilationOptions, Ok, Failed
from .scripting import CancellationToken, RunState
from .errors import *
from .runtime import Engine

_ENGINE = Engine()

def __getattr__(name):
    return getattr(_ENGINE, name)
