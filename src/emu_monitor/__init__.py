"""
emu-monitor - Expression Evaluator and Watchpoints for CPU Emulators
===================================================================

This package provides the inspection side of an emulator monitor: an
expression evaluator over literals, registers and simulated memory, and a
fixed-size watchpoint pool that reports when a watched expression changes
value between instructions.

Main Components
---------------
- **expr**: tokenizer and recursive-descent evaluator
    "$sp + 4", "*0x80000000 == 0x13", "($a0 != 0) && ($a1 != 0)"

- **watchpoints**: fixed-capacity watchpoint pool
    Allocation, deletion, listing and change detection

- **machine**: register file and flat memory for standalone use

- **session**: monitor command table (p, w, d, info, c, si, help, q)

Quick Start
-----------
Evaluate an expression:
    >>> from emu_monitor import ExpressionEvaluator, RegisterFile, Memory
    >>> regs = RegisterFile()
    >>> evaluator = ExpressionEvaluator(regs, Memory())
    >>> evaluator.evaluate_text("(2+3)*4")
    20

Watch an expression:
    >>> from emu_monitor import WatchpointPool
    >>> pool = WatchpointPool()
    >>> wp = pool.watch("$a0", evaluator)
    >>> regs["a0"] = 7
    >>> [str(e) for e in pool.refresh(evaluator)]
    ['Watchpoint 0: $a0 changed from 0 to 7']

Or use the command-line tool:
    $ emumon eval "0x10 + 1"
    $ emumon repl -m image.bin
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from emu_monitor.config import MonitorConfig
from emu_monitor.errors import (
    MonitorError,
    RuleTableError,
    LexError,
    EvalError,
    ExpressionSyntaxError,
    DivisionByZeroError,
    UnknownRegisterError,
    MemoryFaultError,
    WatchpointError,
    WatchpointPoolFullError,
    StaleWatchpointError,
    ExpressionTooLongError,
)
from emu_monitor.expr import (
    Token,
    TokenType,
    tokenize,
    resolve_dereferences,
    ExpressionEvaluator,
)
from emu_monitor.machine import RegisterFile, Memory, RISCV32_REGISTERS
from emu_monitor.watchpoints import (
    WatchpointPool,
    Watchpoint,
    WatchpointHandle,
    WatchEvent,
    WatchReason,
)
from emu_monitor.session import MonitorSession

__all__ = [
    "__version__",
    "MonitorConfig",
    "MonitorError",
    "RuleTableError",
    "LexError",
    "EvalError",
    "ExpressionSyntaxError",
    "DivisionByZeroError",
    "UnknownRegisterError",
    "MemoryFaultError",
    "WatchpointError",
    "WatchpointPoolFullError",
    "StaleWatchpointError",
    "ExpressionTooLongError",
    "Token",
    "TokenType",
    "tokenize",
    "resolve_dereferences",
    "ExpressionEvaluator",
    "RegisterFile",
    "Memory",
    "RISCV32_REGISTERS",
    "WatchpointPool",
    "Watchpoint",
    "WatchpointHandle",
    "WatchEvent",
    "WatchReason",
    "MonitorSession",
]
