## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import re

from .operators import op_to_string


def write_without_ansi(write_fn):
    """Wrapper function that strips ANSI codes before calling the original writer."""
    ansi_re = re.compile(r'\033\[[0-9;]*m')
    return lambda text: write_fn(ansi_re.sub('', text))


def format_value(value) -> str:
    if isinstance(value, str): return '"' + value.replace('"', '\\"') + '"'
    if value is None: return 'null'
    if isinstance(value, bool): return str(value).lower()
    return op_to_string(value)


def format_diagnostic(diag, source: str | None = None) -> str:
    color = '\033[31m' if diag.is_error() else '\033[33m'
    where = f"\033[90m{diag.filename or '<source>'}:{diag.line}:{diag.column}\033[0m " if diag.line is not None else ''
    text = f"{where}{color}{diag.id}\033[0m {diag.message}"
    if source is not None and diag.line is not None:
        lines = source.splitlines()
        if 0 < diag.line <= len(lines):
            text += f"\n\033[90m{diag.line:>5} |\033[0m {lines[diag.line - 1]}"
            if diag.column:
                text += f"\n\033[90m      |\033[0m {' ' * (diag.column - 1)}{color}^\033[0m"
    return text


def format_timings(timings, label_width: int = 12) -> str:
    names = {'compile': 'Compile', 'first_run': 'First run', 'second_run': 'Second run',
             'emit': 'Emit', 'load': 'Load', 'invoke': 'Invoke'}
    return '\n'.join(f"{names.get(k, k) + ':':<{label_width}}\033[97m{v:8.2f} ms\033[0m" for k, v in timings.items())
