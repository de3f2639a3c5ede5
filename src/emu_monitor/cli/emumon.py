"""
emumon - Emulator Monitor Command-Line Interface
=================================================

This module implements the command-line interface for the monitor. It
builds a register file and physical memory from the options, then either
evaluates one expression or runs an interactive session over them.

Usage Examples
--------------
Evaluate an expression:
    $ emumon eval "2 + 3 * 4"

With register values:
    $ emumon eval -r sp=0x80001000 -r a0=7 '$sp + $a0 * 4'

Dereference into a memory image:
    $ emumon eval -m image.bin '*0x80000000'

Interactive session:
    $ emumon repl -m image.bin
    (emu) w *0x80000010
    Watchpoint 0: *0x80000010
    (emu) info w

Environment variables EMU_MONITOR_* override the defaults (see
emu_monitor.config.MonitorConfig.from_env).
"""

from pathlib import Path
from typing import Optional
import logging

import click

from emu_monitor import __version__
from emu_monitor.cli.errors import handle_cli_exception
from emu_monitor.config import MonitorConfig
from emu_monitor.expr.evaluator import ExpressionEvaluator
from emu_monitor.machine import Memory, RegisterFile
from emu_monitor.session import MonitorSession

logger = logging.getLogger(__name__)


# =============================================================================
# CLI Context and Utilities
# =============================================================================

class Context:
    """
    Shared context for CLI commands.

    Stores common options like verbosity and the active configuration.
    """

    def __init__(self) -> None:
        self.verbose: bool = False
        self.config: MonitorConfig = MonitorConfig.from_env()

    def setup_logging(self) -> None:
        """Configure logging based on verbosity."""
        level = logging.DEBUG if self.verbose else logging.WARNING
        logging.basicConfig(
            level=level,
            format="%(levelname)s: %(message)s" if self.verbose else "%(message)s",
        )
        # basicConfig is a no-op once the root logger has handlers
        logging.getLogger("emu_monitor").setLevel(level)


pass_context = click.make_pass_decorator(Context, ensure=True)


def parse_register_assignment(text: str) -> tuple[str, int]:
    """
    Parse a NAME=VALUE register option.

    VALUE may be decimal or 0x hex.

    Raises:
        click.BadParameter: If the option is malformed
    """
    if "=" not in text:
        raise click.BadParameter(f"expected NAME=VALUE, got '{text}'")
    name, value_str = text.split("=", 1)
    try:
        value = int(value_str.strip(), 0)
    except ValueError:
        raise click.BadParameter(f"invalid value in -r {text}")
    return name.strip().lstrip("$"), value


def build_machine(
    config: MonitorConfig,
    register_values: tuple[str, ...],
    image: Optional[Path],
    base: Optional[int],
) -> tuple[RegisterFile, Memory]:
    """Create the register file and memory described by the options."""
    if base is not None:
        config.memory_base = base
    config.validate()

    registers = RegisterFile(word_bits=config.word_bits)
    for assignment in register_values:
        name, value = parse_register_assignment(assignment)
        try:
            registers[name] = value
        except KeyError:
            raise click.BadParameter(f"unknown register '{name}'")

    memory = Memory(config.memory_base, config.memory_size)
    if image is not None:
        size = memory.load_file(image)
        logger.debug("loaded %d bytes from %s at 0x%08x", size, image, memory.base)

    return registers, memory


def _parse_int_option(ctx, param, value: Optional[str]) -> Optional[int]:
    """Accept decimal or 0x hex integers."""
    if value is None:
        return None
    try:
        return int(value, 0)
    except ValueError:
        raise click.BadParameter(f"invalid integer '{value}'")


def machine_options(func):
    """Options shared by eval and repl."""
    func = click.option(
        "--base",
        default=None,
        callback=_parse_int_option,
        help="Physical address of the first memory byte (default: 0x80000000)",
    )(func)
    func = click.option(
        "-m", "--memory",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="Raw binary image loaded at the memory base",
    )(func)
    func = click.option(
        "-r", "--register",
        multiple=True,
        help="Set a register (format: NAME=VALUE, can be repeated)",
    )(func)
    return func


# =============================================================================
# CLI Definition
# =============================================================================

@click.group()
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output (debug logging of tokens and watchpoints)",
)
@click.version_option(version=__version__, prog_name="emumon")
@pass_context
def main(ctx: Context, verbose: bool) -> None:
    """
    Inspect emulator state with expressions and watchpoints.

    \b
    Expression syntax:
        42, 0x2a          decimal and hex literals
        $pc, $a0          registers
        *addr             word at addr
        + - * /           arithmetic (unsigned, wrapping)
        == != &&          comparisons and logical and (1 or 0)
    """
    ctx.verbose = verbose
    ctx.setup_logging()


@main.command("eval")
@click.argument("expression")
@machine_options
@pass_context
def eval_command(
    ctx: Context,
    expression: str,
    register: tuple[str, ...],
    memory: Optional[Path],
    base: Optional[int],
) -> None:
    """
    Evaluate EXPRESSION and print its value.

    \b
    Examples:
        emumon eval "(2+3)*4"                # 20
        emumon eval -r a0=5 '$a0 == 5'       # 1
    """
    try:
        registers, mem = build_machine(ctx.config, register, memory, base)
        evaluator = ExpressionEvaluator.from_config(ctx.config, registers, mem)
        value = evaluator.evaluate_text(expression)
    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)

    hex_digits = (ctx.config.word_bits + 3) // 4
    click.echo(f"{value} (0x{value:0{hex_digits}x})")


@main.command("repl")
@machine_options
@pass_context
def repl_command(
    ctx: Context,
    register: tuple[str, ...],
    memory: Optional[Path],
    base: Optional[int],
) -> None:
    """
    Run an interactive monitor session.

    Commands are read from standard input until EOF or 'q'. Type 'help'
    for the command list.
    """
    try:
        registers, mem = build_machine(ctx.config, register, memory, base)
        session = MonitorSession.from_config(ctx.config, registers, mem)
    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)

    stdin = click.get_text_stream("stdin")
    while True:
        click.echo(session.prompt, nl=False)
        line = stdin.readline()
        if not line:
            click.echo()
            break
        if not session.execute(line):
            break


if __name__ == "__main__":
    main()
