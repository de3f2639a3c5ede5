"""
Machine Collaborators
=====================

Register file and physical memory used by the expression evaluator when the
monitor runs without a full emulator behind it ('emumon eval', 'emumon
repl', and the tests). An emulator can supply its own objects instead; the
evaluator only needs read_register() and read_memory().

Memory Map:
    base .. base+size-1   Physical memory (little-endian)
    anything else         MemoryFaultError

Registers:
    The default register set is the RV32 integer file under its ABI names
    plus the program counter:
    zero ra sp gp tp t0-t2 s0 s1 a0-a7 s2-s11 t3-t6 pc
"""

from pathlib import Path
from typing import Iterable, Optional

from emu_monitor.errors import MemoryFaultError


RISCV32_REGISTERS: tuple[str, ...] = (
    "zero", "ra", "sp", "gp", "tp", "t0", "t1", "t2",
    "s0", "s1", "a0", "a1", "a2", "a3", "a4", "a5",
    "a6", "a7", "s2", "s3", "s4", "s5", "s6", "s7",
    "s8", "s9", "s10", "s11", "t3", "t4", "t5", "t6",
    "pc",
)


class RegisterFile:
    """
    Named machine registers.

    Values are stored masked to the word width. Lookup is by exact name
    first, then case-insensitively, so $PC and $pc both work.

    Example:
        >>> regs = RegisterFile()
        >>> regs["a0"] = 42
        >>> regs.read_register("A0")
        42
        >>> regs.read_register("x99") is None
        True
    """

    def __init__(self, names: Iterable[str] = RISCV32_REGISTERS, word_bits: int = 32):
        self._mask = (1 << word_bits) - 1
        self._values: dict[str, int] = {name: 0 for name in names}
        self._folded = {name.lower(): name for name in self._values}

    @property
    def names(self) -> list[str]:
        """Register names in declaration order."""
        return list(self._values)

    def _canonical(self, name: str) -> Optional[str]:
        if name in self._values:
            return name
        return self._folded.get(name.lower())

    def read_register(self, name: str) -> Optional[int]:
        """
        Read a register.

        Returns:
            Register value, or None if there is no such register
        """
        canonical = self._canonical(name)
        if canonical is None:
            return None
        return self._values[canonical]

    def write_register(self, name: str, value: int) -> None:
        """
        Write a register.

        Raises:
            KeyError: If there is no such register
        """
        canonical = self._canonical(name)
        if canonical is None:
            raise KeyError(f"unknown register '{name}'")
        self._values[canonical] = value & self._mask

    def __getitem__(self, name: str) -> int:
        value = self.read_register(name)
        if value is None:
            raise KeyError(f"unknown register '{name}'")
        return value

    def __setitem__(self, name: str, value: int) -> None:
        self.write_register(name, value)

    def __contains__(self, name: str) -> bool:
        return self._canonical(name) is not None

    def dump(self) -> list[tuple[str, int]]:
        """Return (name, value) rows in declaration order for 'info r'."""
        return list(self._values.items())


class Memory:
    """
    Flat physical memory.

    Multi-byte accesses are little-endian. The whole access must lie inside
    [base, base + size); a partial overlap is a fault.

    Attributes:
        base: Physical address of the first byte
        size: Number of bytes
    """

    def __init__(self, base: int = 0x80000000, size: int = 0x10000):
        self.base = base
        self.size = size
        self._data = bytearray(size)

    def _offset(self, address: int, width: int) -> int:
        offset = address - self.base
        if width <= 0 or offset < 0 or offset + width > self.size:
            raise MemoryFaultError(address, width)
        return offset

    def contains(self, address: int, width: int = 1) -> bool:
        """Check whether an access would be inside memory."""
        offset = address - self.base
        return width > 0 and 0 <= offset and offset + width <= self.size

    def read_memory(self, address: int, width: int) -> int:
        """
        Read a little-endian value.

        Args:
            address: Physical address of the lowest byte
            width: Number of bytes (1, 2, 4 or 8)

        Raises:
            MemoryFaultError: If any byte is outside memory
        """
        offset = self._offset(address, width)
        return int.from_bytes(self._data[offset:offset + width], "little")

    def write_memory(self, address: int, width: int, value: int) -> None:
        """
        Write a little-endian value, truncated to width bytes.

        Raises:
            MemoryFaultError: If any byte is outside memory
        """
        offset = self._offset(address, width)
        value &= (1 << (8 * width)) - 1
        self._data[offset:offset + width] = value.to_bytes(width, "little")

    def load(self, data: bytes, address: Optional[int] = None) -> None:
        """
        Copy an image into memory.

        Args:
            data: Bytes to copy
            address: Destination (default: base)

        Raises:
            MemoryFaultError: If the image does not fit
        """
        if address is None:
            address = self.base
        if not data:
            return
        offset = self._offset(address, len(data))
        self._data[offset:offset + len(data)] = data

    def load_file(self, path: Path, address: Optional[int] = None) -> int:
        """
        Load a raw binary image from disk.

        Returns:
            Number of bytes loaded
        """
        data = Path(path).read_bytes()
        self.load(data, address)
        return len(data)
