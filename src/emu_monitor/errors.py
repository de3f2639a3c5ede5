"""
Monitor Error Hierarchy
=======================

This module defines the exception hierarchy for the emulator monitor.
All exceptions inherit from MonitorError, allowing callers to catch every
monitor-related failure with a single except clause.

Exception Hierarchy
-------------------
MonitorError (base)
├── RuleTableError - malformed static token rule (fatal at import)
├── LexError - text that cannot be tokenized
├── EvalError (evaluation failures)
│   ├── ExpressionSyntaxError - malformed expression
│   ├── DivisionByZeroError - divisor evaluated to zero
│   ├── UnknownRegisterError - register name not in the register file
│   └── MemoryFaultError - read outside simulated memory
└── WatchpointError (watchpoint pool)
    ├── WatchpointPoolFullError - no free slot left
    ├── StaleWatchpointError - handle refers to a released slot
    └── ExpressionTooLongError - expression text exceeds the slot size

Design Philosophy
-----------------
Expression errors capture the offset in the expression text where the
problem was detected. When the source text is known, the message shows the
text with a caret under the offending position:

    error: expected value, got '-'
        -5
        ^
    hint: unary minus is not supported
"""

from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class MonitorError(Exception):
    """
    Base exception for all monitor errors.

    Attributes:
        message: The error description
        position: 0-based offset into the expression text (optional)
        source: The expression text the error refers to (optional)
        hint: A suggestion for fixing the error (optional)
    """

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        source: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        self.message = message
        self.position = position
        self.source = source
        self.hint = hint
        super().__init__(self._format_message())

    def with_source(self, source: str) -> "MonitorError":
        """Attach the expression text and rebuild the message."""
        self.source = source
        self.args = (self._format_message(),)
        return self

    def _format_message(self) -> str:
        """
        Format the error message with source context and hint.

        Example output:
            error: unknown register 'pcc'
                $pcc + 4
                ^
            hint: did you mean 'pc'?
        """
        parts = [f"error: {self.message}"]

        # Source context with caret pointer
        if self.source is not None and self.position is not None:
            parts.append(f"    {self.source}")
            parts.append(" " * (4 + self.position) + "^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


# =============================================================================
# Tokenizer Exceptions
# =============================================================================

class RuleTableError(MonitorError):
    """
    A static token rule has a malformed pattern.

    The rule table is compiled once at import time. A bad pattern is a
    programming error, so this is raised from module import and is not
    meant to be caught by the session.
    """

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        super().__init__(f"regex compilation failed: {reason}", hint=pattern)


class LexError(MonitorError):
    """
    Text that cannot be tokenized.

    Raised when:
    - No rule matches at the current position
    - A lexeme is longer than the token buffer allows
    - The expression produces more tokens than the token budget
    """
    pass


# =============================================================================
# Evaluation Exceptions
# =============================================================================

class EvalError(MonitorError):
    """Base exception for expression evaluation failures."""
    pass


class ExpressionSyntaxError(EvalError):
    """
    Malformed expression.

    Examples:
        - Unterminated parenthesis: (1 + 2
        - Stray closing parenthesis: 2+3)
        - Missing operand: 1 +
        - Unary minus, which the grammar does not have: -5
    """
    pass


class DivisionByZeroError(EvalError):
    """Divisor of '/' evaluated to zero."""

    def __init__(self, position: Optional[int] = None, source: Optional[str] = None):
        super().__init__("division by zero", position=position, source=source)


class UnknownRegisterError(EvalError):
    """
    Reference to a register the register file does not have.

    Similar register names are offered as a hint to catch typos.
    """

    def __init__(
        self,
        name: str,
        position: Optional[int] = None,
        source: Optional[str] = None,
        similar_names: Optional[list[str]] = None,
    ):
        self.name = name
        self.similar_names = similar_names or []

        hint = None
        if self.similar_names:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_names[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"unknown register '{name}'",
            position=position,
            source=source,
            hint=hint,
        )


class MemoryFaultError(EvalError):
    """
    Read or write outside simulated memory.

    Raised by the memory collaborator, never by the evaluator itself;
    the evaluator lets it propagate.
    """

    def __init__(self, address: int, width: int = 1):
        self.address = address
        self.width = width
        super().__init__(
            f"address 0x{address:08x} ({width} byte{'s' if width != 1 else ''}) "
            f"is outside physical memory"
        )


# =============================================================================
# Watchpoint Exceptions
# =============================================================================

class WatchpointError(MonitorError):
    """Base exception for watchpoint pool errors."""
    pass


class WatchpointPoolFullError(WatchpointError):
    """Every watchpoint slot is in use."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        super().__init__(
            "no free watchpoints available",
            hint=f"delete one of the {capacity} active watchpoints with 'd N'",
        )


class StaleWatchpointError(WatchpointError):
    """
    Handle refers to a slot that has been released.

    Releasing a slot bumps its generation, so a second release through
    the same handle is detected here instead of corrupting the free list.
    """

    def __init__(self, index: int, generation: int):
        self.index = index
        self.generation = generation
        super().__init__(
            f"watchpoint handle {index}#{generation} is no longer valid"
        )


class ExpressionTooLongError(WatchpointError):
    """Watchpoint expression does not fit in a slot."""

    def __init__(self, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(
            f"expression is {length} characters, watchpoints hold at most {limit}"
        )
