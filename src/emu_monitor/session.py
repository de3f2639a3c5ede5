"""
Monitor Session
===============

The command table of the interactive monitor, bound to one evaluator, one
watchpoint pool and (optionally) a machine to step.

Commands
--------
| Command   | Description                                         |
|-----------|-----------------------------------------------------|
| help [C]  | Display information about all supported commands    |
| c         | Continue execution until a watchpoint changes       |
| si [N]    | Step N instructions (default 1)                     |
| q         | Exit the monitor                                    |
| p EXPR    | Evaluate expression                                 |
| w EXPR    | Set watchpoint                                      |
| d N       | Delete watchpoint N                                 |
| info r/w  | Print registers or watchpoints                      |

Each input line is split at the first space: the first word selects the
command and the rest of the line is passed to the handler unparsed.

Execution Hook
--------------
After every instruction the session calls after_step(), which refreshes
all watchpoints and reports changes:

    Hardware watchpoint 0: $a0

    Old value = 0
    New value = 42

Example:
    >>> session = MonitorSession.from_config(MonitorConfig(), regs, memory)
    >>> session.execute("p 1 + 2")
    1 + 2 = 3 (0x00000003)
    True
"""

from dataclasses import dataclass
from typing import Callable, Optional, Protocol
import logging

import click

from emu_monitor.config import MonitorConfig
from emu_monitor.errors import MonitorError
from emu_monitor.expr.evaluator import ExpressionEvaluator, MemorySource
from emu_monitor.machine import RegisterFile
from emu_monitor.watchpoints import WatchpointPool, WatchReason

logger = logging.getLogger(__name__)


class Stepper(Protocol):
    """Machine the session can single-step."""

    def step(self) -> bool:
        """Execute one instruction. Returns False once the machine halted."""
        ...


@dataclass(frozen=True)
class Command:
    """One entry of the command table."""
    name: str
    description: str
    handler: Callable[["MonitorSession", Optional[str]], Optional[bool]]


_COMMANDS: dict[str, Command] = {}


def command(name: str, description: str):
    """Register a session method in the command table."""
    def decorator(func):
        _COMMANDS[name] = Command(name, description, func)
        return func
    return decorator


def _strip_quotes(text: str, trailing_alone: bool = False) -> str:
    """
    Remove surrounding double quotes: p "1 + 2".

    A trailing quote is dropped only after a leading one, unless
    trailing_alone is set ('p' drops it either way, 'w' does not).
    """
    leading = text.startswith('"')
    if leading:
        text = text[1:]
    if (leading or trailing_alone) and text.endswith('"'):
        text = text[:-1]
    return text


def _parse_number(text: str) -> Optional[int]:
    """Parse a decimal (leading zeros allowed) or 0x hex number."""
    try:
        if text[:2].lower() == "0x":
            return int(text, 16)
        return int(text, 10)
    except ValueError:
        return None


class MonitorSession:
    """
    Interactive monitor state and command dispatch.

    Attributes:
        evaluator: Expression evaluator bound to the machine state
        pool: Watchpoint pool owned by this session
        registers: Register file shown by 'info r' (optional)
        stepper: Machine driven by 'c' and 'si' (optional)
    """

    def __init__(
        self,
        evaluator: ExpressionEvaluator,
        pool: WatchpointPool,
        registers: Optional[RegisterFile] = None,
        stepper: Optional[Stepper] = None,
        echo: Callable[[str], None] = click.echo,
        config: Optional[MonitorConfig] = None,
    ):
        self.evaluator = evaluator
        self.pool = pool
        self.registers = registers
        self.stepper = stepper
        self.config = config or MonitorConfig()
        self._echo = echo
        self._hex_digits = (evaluator.word_bits + 3) // 4

    @classmethod
    def from_config(
        cls,
        config: MonitorConfig,
        registers: RegisterFile,
        memory: MemorySource,
        stepper: Optional[Stepper] = None,
        echo: Callable[[str], None] = click.echo,
    ) -> "MonitorSession":
        """Build evaluator and pool from a configuration."""
        config.validate()
        evaluator = ExpressionEvaluator.from_config(config, registers, memory)
        pool = WatchpointPool.from_config(config)
        return cls(evaluator, pool, registers, stepper, echo, config)

    @property
    def prompt(self) -> str:
        return self.config.prompt

    @staticmethod
    def commands() -> list[Command]:
        """Command table in registration order."""
        return list(_COMMANDS.values())

    # =========================================================================
    # Dispatch
    # =========================================================================

    def execute(self, line: str) -> bool:
        """
        Run one command line.

        Monitor errors from the handler are printed and the session
        continues.

        Returns:
            False if the session should end ('q'), True otherwise
        """
        line = line.strip()
        if not line:
            return True

        name, _, rest = line.partition(" ")
        args = rest.strip() or None

        cmd = _COMMANDS.get(name)
        if cmd is None:
            self._echo(f"Unknown command '{name}'")
            return True

        try:
            result = cmd.handler(self, args)
        except MonitorError as e:
            self._echo(str(e))
            return True

        return result is not False

    def after_step(self) -> bool:
        """
        Refresh watchpoints after an instruction.

        Changed values and evaluation failures are printed.

        Returns:
            True if any watchpoint changed and execution should stop
        """
        stop = False
        for event in self.pool.refresh(self.evaluator):
            if event.reason == WatchReason.CHANGED:
                self._echo(f"\nHardware watchpoint {event.id}: {event.expression}\n")
                self._echo(f"Old value = {event.old_value}")
                self._echo(f"New value = {event.new_value}")
                stop = True
            else:
                self._echo(str(event))
        return stop

    def _format_value(self, value: int) -> str:
        return f"{value} (0x{value:0{self._hex_digits}x})"

    def _run(self, limit: Optional[int]) -> None:
        """Step until halt, a watchpoint change, or limit instructions."""
        if self.stepper is None:
            self._echo("No machine attached.")
            return

        steps = 0
        while limit is None or steps < limit:
            if not self.stepper.step():
                self._echo("Machine halted.")
                return
            steps += 1
            if self.after_step():
                return

    # =========================================================================
    # Commands
    # =========================================================================

    @command("help", "Display information about all supported commands")
    def cmd_help(self, args: Optional[str]) -> None:
        if args is None:
            for cmd in _COMMANDS.values():
                self._echo(f"{cmd.name} - {cmd.description}")
            return

        name = args.split()[0]
        cmd = _COMMANDS.get(name)
        if cmd is None:
            self._echo(f"Unknown command '{name}'")
        else:
            self._echo(f"{cmd.name} - {cmd.description}")

    @command("c", "Continue the execution of the program")
    def cmd_c(self, args: Optional[str]) -> None:
        self._run(None)

    @command("si", "Step N instructions (default 1)")
    def cmd_si(self, args: Optional[str]) -> None:
        count = 1
        if args is not None:
            count = _parse_number(args)
            if count is None or count <= 0:
                self._echo("Usage: si [N]")
                return
        self._run(count)

    @command("q", "Exit the monitor")
    def cmd_q(self, args: Optional[str]) -> bool:
        return False

    @command("p", "Evaluate expression")
    def cmd_p(self, args: Optional[str]) -> None:
        if args is None:
            self._echo("Usage: p EXPRESSION")
            return

        text = _strip_quotes(args, trailing_alone=True)
        value = self.evaluator.evaluate_text(text)
        self._echo(f"{text} = {self._format_value(value)}")

    @command("w", "Set watchpoint")
    def cmd_w(self, args: Optional[str]) -> None:
        if args is None:
            self._echo("Usage: w EXPRESSION")
            return

        wp = self.pool.watch(_strip_quotes(args), self.evaluator)
        logger.info("watchpoint %d set on %r = %d", wp.id, wp.expression, wp.value)
        self._echo(f"Watchpoint {wp.id}: {wp.expression}")

    @command("d", "Delete watchpoint")
    def cmd_d(self, args: Optional[str]) -> None:
        number = _parse_number(args) if args is not None else None
        if number is None:
            self._echo("Usage: d NUM")
            return

        if self.pool.delete(number):
            logger.info("watchpoint %d deleted", number)
            self._echo(f"Deleted watchpoint {number}")
        else:
            self._echo(f"No watchpoint number {number}.")

    @command("info", "Print program info (info r - registers, info w - watchpoints)")
    def cmd_info(self, args: Optional[str]) -> None:
        if args is None:
            self._echo("Usage: info r - registers, info w - watchpoints")
            return

        match args.split()[0]:
            case "r":
                self._info_registers()
            case "w":
                self._info_watchpoints()
            case other:
                self._echo(f"Unknown info command: {other}")

    def _info_registers(self) -> None:
        if self.registers is None:
            self._echo("No registers available.")
            return
        for name, value in self.registers.dump():
            self._echo(f"{name:<8}0x{value:0{self._hex_digits}x}    {value}")

    def _info_watchpoints(self) -> None:
        if len(self.pool) == 0:
            self._echo("No watchpoints.")
            return

        self._echo("Num     Type           Disp Enb What")
        for wp in self.pool.list_active():
            enabled = "y" if wp.enabled else "n"
            self._echo(
                f"{wp.id:<8}watchpoint     keep {enabled}   "
                f"{wp.expression} = {self._format_value(wp.value)}"
            )
