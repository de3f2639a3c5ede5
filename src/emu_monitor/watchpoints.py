"""
Watchpoint Pool
===============

Fixed-capacity storage for expression watchpoints.

A watchpoint is an expression plus the value it had the last time it was
evaluated. After every instruction the monitor re-evaluates each active
watchpoint and stops execution when a value changed.

Pool Layout
-----------
The pool owns one backing array of slots and two disjoint views over it:

- free list: slots available for allocation, used as a stack
- active list: slots in use, most recently allocated first

A fresh pool hands out slot 0, then 1, and so on; a released slot goes back
on top of the free stack and is the next one handed out. Allocation never
grows the pool: when every slot is active, allocate() returns None.

Handles
-------
allocate() returns a WatchpointHandle holding the slot index and the slot's
generation. release() bumps the generation, so any later use of the old
handle raises StaleWatchpointError rather than linking the slot into the
free list twice.

Example usage:

    >>> pool = WatchpointPool(capacity=32)
    >>> wp = pool.watch("$a0 == 3", evaluator)
    >>> wp.id
    0
    >>> for event in pool.refresh(evaluator):
    ...     print(event)
    Watchpoint 0: $a0 == 3 changed from 0 to 1
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional, TYPE_CHECKING
import logging

from emu_monitor.errors import (
    EvalError,
    ExpressionTooLongError,
    LexError,
    MonitorError,
    StaleWatchpointError,
    WatchpointPoolFullError,
)

if TYPE_CHECKING:
    from emu_monitor.expr.evaluator import ExpressionEvaluator

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 32
DEFAULT_MAX_EXPRESSION = 127


class WatchReason(Enum):
    """Why refresh() reported a watchpoint."""
    CHANGED = auto()   # Value differs from the stored one
    ERROR = auto()     # Expression could not be evaluated


@dataclass
class WatchEvent:
    """
    Result of re-evaluating one watchpoint.

    Attributes:
        reason: What happened
        id: Watchpoint number
        expression: Watchpoint expression text
        old_value: Stored value before the refresh
        new_value: Newly evaluated value (CHANGED only)
        error: The evaluation error (ERROR only)
    """
    reason: WatchReason
    id: int
    expression: str
    old_value: int
    new_value: Optional[int] = None
    error: Optional[MonitorError] = None

    def __str__(self) -> str:
        """Return human-readable description."""
        match self.reason:
            case WatchReason.CHANGED:
                return (
                    f"Watchpoint {self.id}: {self.expression} changed "
                    f"from {self.old_value} to {self.new_value}"
                )
            case WatchReason.ERROR:
                message = self.error.message if self.error else "evaluation failed"
                return f"Watchpoint {self.id}: {self.expression}: {message}"
            case _:
                return "Unknown"


@dataclass(frozen=True)
class WatchpointHandle:
    """Reference to an allocated slot, valid until the slot is released."""
    index: int
    generation: int


@dataclass(frozen=True)
class Watchpoint:
    """
    Read-only view of a watchpoint.

    Attributes:
        id: Watchpoint number (the slot index)
        expression: Expression text
        value: Last observed value
        enabled: True while the watchpoint is active
    """
    id: int
    expression: str
    value: int
    enabled: bool


@dataclass
class _Slot:
    index: int
    expression: str = ""
    value: int = 0
    enabled: bool = False
    generation: int = 0


class WatchpointPool:
    """
    Fixed array of watchpoint slots with free and active lists.

    Not thread-safe; drive it from the thread running the monitor.

    Example:
        >>> pool = WatchpointPool(capacity=2)
        >>> a = pool.allocate()
        >>> b = pool.allocate()
        >>> pool.allocate() is None
        True
        >>> pool.release(a)
        >>> pool.allocate().index
        0
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        max_expression: int = DEFAULT_MAX_EXPRESSION,
    ):
        self._capacity = capacity
        self.max_expression = max_expression
        self._slots: list[_Slot] = [_Slot(i) for i in range(capacity)]

        # Free stack: the top (end of list) is the free-list head
        self._free: list[int] = list(reversed(range(capacity)))

        # Active list: index 0 is the head (most recently allocated)
        self._active: list[int] = []

    @classmethod
    def from_config(cls, config) -> "WatchpointPool":
        """Create a pool sized by a MonitorConfig."""
        return cls(config.watchpoint_capacity, config.max_expression)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def capacity(self) -> int:
        """Total number of slots."""
        return self._capacity

    @property
    def active_count(self) -> int:
        """Number of watchpoints in use."""
        return len(self._active)

    @property
    def free_count(self) -> int:
        """Number of slots available for allocation."""
        return len(self._free)

    def __len__(self) -> int:
        return len(self._active)

    # =========================================================================
    # Slot Management
    # =========================================================================

    def allocate(self) -> Optional[WatchpointHandle]:
        """
        Take the slot at the head of the free list.

        The slot is linked at the head of the active list, enabled, and its
        expression and value are cleared.

        Returns:
            Handle to the slot, or None if every slot is in use
        """
        if not self._free:
            logger.debug("no free watchpoints available")
            return None

        index = self._free.pop()
        slot = self._slots[index]
        slot.expression = ""
        slot.value = 0
        slot.enabled = True
        self._active.insert(0, index)

        logger.debug("allocated watchpoint slot %d", index)
        return WatchpointHandle(index, slot.generation)

    def release(self, handle: WatchpointHandle) -> None:
        """
        Return a slot to the free list.

        The slot is unlinked from the active list, disabled, and pushed on
        the head of the free list.

        Raises:
            StaleWatchpointError: If the handle was already released
        """
        slot = self._slot(handle)
        self._active.remove(slot.index)
        slot.enabled = False
        slot.generation += 1
        self._free.append(slot.index)
        logger.debug("released watchpoint slot %d", slot.index)

    def _slot(self, handle: WatchpointHandle) -> _Slot:
        """Look up the slot behind a handle, rejecting stale handles."""
        if not 0 <= handle.index < self._capacity:
            raise StaleWatchpointError(handle.index, handle.generation)
        slot = self._slots[handle.index]
        if not slot.enabled or slot.generation != handle.generation:
            raise StaleWatchpointError(handle.index, handle.generation)
        return slot

    def _handle(self, index: int) -> WatchpointHandle:
        return WatchpointHandle(index, self._slots[index].generation)

    @staticmethod
    def _view(slot: _Slot) -> Watchpoint:
        return Watchpoint(slot.index, slot.expression, slot.value, slot.enabled)

    # =========================================================================
    # Queries
    # =========================================================================

    def list_active(self) -> Iterator[Watchpoint]:
        """
        Iterate over active watchpoints, most recently created first.

        Each call returns a new iterator over the active list as it stands
        when the call is made.
        """
        for index in list(self._active):
            yield self._view(self._slots[index])

    def __iter__(self) -> Iterator[Watchpoint]:
        return self.list_active()

    def find(self, id: int) -> Optional[WatchpointHandle]:
        """
        Find an active watchpoint by number.

        Returns:
            Handle to the watchpoint, or None if no active watchpoint has
            that number
        """
        for index in self._active:
            if index == id:
                return self._handle(index)
        return None

    def get(self, handle: WatchpointHandle) -> Watchpoint:
        """
        Get a read-only view of a watchpoint.

        Raises:
            StaleWatchpointError: If the handle was released
        """
        return self._view(self._slot(handle))

    # =========================================================================
    # Updates
    # =========================================================================

    def set_expression(self, handle: WatchpointHandle, expression: str) -> None:
        """
        Store the expression text of a watchpoint.

        Raises:
            ExpressionTooLongError: If the text exceeds max_expression
            StaleWatchpointError: If the handle was released
        """
        if len(expression) > self.max_expression:
            raise ExpressionTooLongError(len(expression), self.max_expression)
        self._slot(handle).expression = expression

    def set_value(self, handle: WatchpointHandle, value: int) -> None:
        """Store the last observed value of a watchpoint."""
        self._slot(handle).value = value

    def watch(self, expression: str, evaluator: "ExpressionEvaluator") -> Watchpoint:
        """
        Create a watchpoint and compute its initial value.

        Args:
            expression: Expression text
            evaluator: Evaluator used for the initial value

        Returns:
            View of the new watchpoint

        Raises:
            ExpressionTooLongError: If the text exceeds max_expression
            WatchpointPoolFullError: If every slot is in use
            LexError, EvalError: If the expression cannot be evaluated; the
                slot is released again
        """
        if len(expression) > self.max_expression:
            raise ExpressionTooLongError(len(expression), self.max_expression)

        handle = self.allocate()
        if handle is None:
            raise WatchpointPoolFullError(self._capacity)

        slot = self._slot(handle)
        slot.expression = expression
        try:
            slot.value = evaluator.evaluate_text(expression)
        except (LexError, EvalError):
            self.release(handle)
            raise

        return self._view(slot)

    def delete(self, id: int) -> bool:
        """
        Release the watchpoint with the given number.

        Returns:
            True if a watchpoint was deleted, False if none had that number
        """
        handle = self.find(id)
        if handle is None:
            return False
        self.release(handle)
        return True

    def clear(self) -> None:
        """Release every active watchpoint."""
        for index in list(self._active):
            self.release(self._handle(index))

    # =========================================================================
    # Change Detection (called after each step)
    # =========================================================================

    def refresh(self, evaluator: "ExpressionEvaluator") -> list[WatchEvent]:
        """
        Re-evaluate every active watchpoint.

        A watchpoint whose value changed is updated and reported as
        CHANGED. A watchpoint whose expression fails keeps its stored value
        and is reported as ERROR. Unchanged watchpoints are not reported.

        Args:
            evaluator: Evaluator bound to the current machine state

        Returns:
            Events in active-list order
        """
        events: list[WatchEvent] = []

        for index in list(self._active):
            slot = self._slots[index]
            try:
                value = evaluator.evaluate_text(slot.expression)
            except (LexError, EvalError) as e:
                events.append(WatchEvent(
                    WatchReason.ERROR,
                    slot.index,
                    slot.expression,
                    slot.value,
                    error=e,
                ))
                continue

            if value != slot.value:
                events.append(WatchEvent(
                    WatchReason.CHANGED,
                    slot.index,
                    slot.expression,
                    slot.value,
                    new_value=value,
                ))
                slot.value = value

        return events
