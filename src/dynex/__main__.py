## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# dynex — Dynamic code execution through an interpreted script path and a compiled module path.
#

import os
import sys
import traceback
from dataclasses import dataclass

import click

from .errors import (DynexError, ParseError, CompileError, GlobalsMismatchError, EmitFailure, LoadError,
                     ReferenceLoadError, ResolutionError, InvocationError, ScriptRuntimeError,
                     ExecutionCancelled, VariableNotFoundError)
from .diagnostics import CompilationOptions
from .loader import resolve_reference_paths
from .parser import format_parse_error_context
from .scripting import CancellationToken
from .formatting import write_without_ansi, format_value, format_diagnostic, format_timings

from . import api


@dataclass
class Globals:
    MaxValue: int


@dataclass(frozen=True)
class RunnerConfig:
    verbose: int
    plain: bool
    ignore: bool
    warnaserror: bool
    background: bool
    references: tuple[str, ...] = ()


@dataclass
class SourceItem:
    source: str
    filename: str


class DynexRunner:
    def __init__(self, config: RunnerConfig):
        self.verbose = config.verbose
        self.ignore = config.ignore
        self.background = config.background
        self.options = CompilationOptions(warnings_as_errors=config.warnaserror)

        if config.plain:
            writer = write_without_ansi(sys.stdout.write)
            sys.stdout.write, sys.stderr.write = writer, writer

        self.engine = api._ENGINE
        self.failure = False
        for path in (*resolve_reference_paths(os.environ.get('DYNEX_PATH')), *config.references):
            self.engine.add_reference(path)
        if os.environ.get('DYNEX_DEBUG'):
            for path in self.engine.references:
                print(f"\033[90mReference: {path}\033[0m", file=sys.stderr)

    def _maybe_fatal_error(self, message: str, detail: str, exc_type: str = None, context: str = '') -> None:
        header = detail if not exc_type else f"{detail} (Exception: \033[33m{exc_type}\033[0m)"
        print(f'\033[30;43m {message} \033[0m {header}\n{context}', file=sys.stderr)
        self.failure = True
        if not self.ignore: sys.exit(1)

    def _diagnostics_context(self, diagnostics, source: str) -> str:
        return '\n'.join(format_diagnostic(d, source) for d in diagnostics) + '\n'

    def _handle_exception(self, exc: Exception, item: SourceItem) -> None:
        name = f"`\033[97m{item.filename}\033[0m`"
        if isinstance(exc, ParseError):
            context = format_parse_error_context(item.filename, exc.line, exc.column, exc.token, source=item.source)
            context += f"\n\033[90m{exc.diagnostics[0].render() if exc.diagnostics else exc}\033[0m\n"
            self._maybe_fatal_error("SYNTAX ERROR.", f"Parsing {name} caused a problem!", type(exc).__name__, context)
        elif isinstance(exc, GlobalsMismatchError):
            self._maybe_fatal_error("GLOBALS MISMATCH.", str(exc), type(exc).__name__)
        elif isinstance(exc, EmitFailure):
            self._maybe_fatal_error("EMIT FAILED.", f"Module {name} has errors:", type(exc).__name__,
                                    self._diagnostics_context(exc.diagnostics, item.source) + f"\n{exc}\n")
        elif isinstance(exc, CompileError):
            self._maybe_fatal_error("COMPILE ERROR.", f"Script {name} has errors:", type(exc).__name__,
                                    self._diagnostics_context(exc.diagnostics, item.source) + f"\n{exc}\n")
        elif isinstance(exc, (LoadError, ReferenceLoadError)):
            context = f"\033[90m{exc.__cause__}\033[0m\n" if exc.__cause__ is not None else ''
            self._maybe_fatal_error("LOAD ERROR.", str(exc), type(exc).__name__, context)
        elif isinstance(exc, (ResolutionError, VariableNotFoundError)):
            self._maybe_fatal_error("RESOLUTION ERROR.", str(exc), type(exc).__name__)
        elif isinstance(exc, ExecutionCancelled):
            self._maybe_fatal_error("CANCELLED.", f"Running {name} was cancelled before it completed.")
        elif isinstance(exc, (ScriptRuntimeError, InvocationError)):
            cause = exc.__cause__ if exc.__cause__ is not None else exc
            tb_lines = traceback.format_exception(cause, chain=False)
            traceback_text = ''.join(line for line in tb_lines if "src/dynex/" not in line and "<frozen" not in line)
            self._maybe_fatal_error("RUNTIME ERROR.", str(exc), type(exc).__name__, traceback_text)
        else:
            raise exc

    def _prepare(self, strategy, item: SourceItem):
        if self.background:
            return self.engine.dispatch(strategy.prepare, item.source, item.filename).result()
        return strategy.prepare(item.source, item.filename)

    def _report(self, title: str, strategy, value) -> None:
        print(f"\033[97m\033[48;5;30m {title} \033[0m")
        print(format_timings(strategy.timings))
        print(f"Prediction: \033[1;97m{format_value(value)}\033[0m")

    def run_script(self, item: SourceItem, max_value: int, result_name: str, timeout: float | None = None) -> None:
        strategy = self.engine.script_strategy(Globals, result_name, options=self.options)
        try:
            artifact = self._prepare(strategy, item)
            for d in artifact.script.diagnostics:
                print(format_diagnostic(d, item.source), file=sys.stderr)
            cancel = CancellationToken.after(timeout) if timeout else None
            value = strategy.execute(artifact, Globals(max_value), cancel=cancel)
        except DynexError as exc:
            self._handle_exception(exc, item)
            return
        self._report("SCRIPT.", strategy, value)

    def run_module(self, item: SourceItem, max_value: int, type_name: str, member_name: str) -> None:
        strategy = self.engine.module_strategy(type_name, member_name, options=self.options)
        try:
            artifact = self._prepare(strategy, item)
            for d in artifact.emitted.diagnostics:
                print(format_diagnostic(d, item.source), file=sys.stderr)
            if self.verbose:
                print(f"\033[90m{artifact.emitted.python_source}\033[0m")
            value = strategy.execute(artifact, Globals(max_value))
        except DynexError as exc:
            self._handle_exception(exc, item)
            return
        self._report("MODULE.", strategy, value)

    def finalize(self) -> int:
        self.engine.close()
        return 1 if self.failure else 0


def _read(file) -> SourceItem:
    return SourceItem(file.read(), file.name or '<STDIN>')


@click.group()
@click.option('--verbose', '-v', default=0, count=True, help='Print the Python source emitted for modules.')
@click.option('--ignore', '-i', is_flag=True, help='Keep going after errors instead of exiting.')
@click.option('--plain', '-p', is_flag=True, help='Strip ANSI color codes and redirect stderr to stdout.')
@click.option('--warnaserror', '-W', is_flag=True, help='Treat every warning as an error.')
@click.option('--background', '-b', is_flag=True, help='Compile, emit and load on a worker thread.')
@click.option('--reference', '-r', 'references', multiple=True, type=click.Path(dir_okay=False),
              help='Additional reference library file; also read from DYNEX_PATH.')
@click.pass_context
def cli(ctx: click.Context, verbose: int, ignore: bool, plain: bool, warnaserror: bool, background: bool,
        references: tuple[str, ...]) -> None:
    ctx.ensure_object(dict)
    ctx.obj['config'] = RunnerConfig(verbose=verbose, plain=plain, ignore=ignore, warnaserror=warnaserror,
                                     background=background, references=references)


@cli.command('run-script')
@click.argument('script', type=click.File('r', encoding='utf-8'))
@click.option('--max-value', '-n', type=int, default=100, show_default=True, help='Value of the `MaxValue` global.')
@click.option('--result', 'result_name', default='prediction', show_default=True, help='Variable to report.')
@click.option('--timeout', type=float, default=None, help='Cancel the run after this many seconds.')
@click.pass_context
def run_script(ctx: click.Context, script, max_value: int, result_name: str, timeout: float | None) -> None:
    runner = DynexRunner(ctx.obj['config'])
    runner.run_script(_read(script), max_value, result_name, timeout)
    ctx.exit(runner.finalize())


@cli.command('run-module')
@click.argument('module', type=click.File('r', encoding='utf-8'))
@click.option('--type', 'type_name', required=True, help='Name of the class declaring the method.')
@click.option('--member', 'member_name', default='Predict', show_default=True, help='Static method to invoke.')
@click.option('--max-value', '-n', type=int, default=100, show_default=True, help='Argument passed to the method.')
@click.pass_context
def run_module(ctx: click.Context, module, type_name: str, member_name: str, max_value: int) -> None:
    runner = DynexRunner(ctx.obj['config'])
    runner.run_module(_read(module), max_value, type_name, member_name)
    ctx.exit(runner.finalize())


@cli.command('demo')
@click.argument('script', type=click.File('r', encoding='utf-8'))
@click.argument('module', type=click.File('r', encoding='utf-8'))
@click.option('--max-value', '-n', type=int, default=100, show_default=True)
@click.option('--type', 'type_name', default='Model2', show_default=True)
@click.option('--member', 'member_name', default='Predict', show_default=True)
@click.pass_context
def demo(ctx: click.Context, script, module, max_value: int, type_name: str, member_name: str) -> None:
    runner = DynexRunner(ctx.obj['config'])
    runner.run_script(_read(script), max_value, 'prediction')
    runner.run_module(_read(module), max_value, type_name, member_name)
    ctx.exit(runner.finalize())


def main(argv: list[str] | None = None) -> None:
    cli.main(args=argv, prog_name='dynex')


if __name__ == "__main__":
    main()
