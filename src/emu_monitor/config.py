"""
Monitor Configuration
=====================

Sizes and defaults for the expression evaluator, the watchpoint pool and
the standalone machine collaborators. Configuration can come from:
- Default values (defined here)
- Environment variables (MonitorConfig.from_env)
- Explicit keyword arguments

The defaults reproduce the classic monitor: 32-bit machine words, a
1024-token expression budget, 31-character lexemes, 32 watchpoints of up
to 127 characters each, and physical memory starting at 0x80000000.
"""

from dataclasses import dataclass
import os


@dataclass
class MonitorConfig:
    """
    Configuration for a monitor session.

    Attributes:
        word_bits: Width of a machine word; all arithmetic wraps at this width
        max_tokens: Maximum tokens in one expression (EOF not counted)
        max_lexeme: Maximum characters in one token
        deref_width: Bytes read by a '*' dereference
        watchpoint_capacity: Number of watchpoint slots
        max_expression: Maximum characters in a watchpoint expression
        memory_base: Physical address of the first byte of memory
        memory_size: Bytes of simulated memory
        prompt: Prompt shown by the interactive session
    """

    # ═══════════════════════════════════════════════════════════════════════════
    # EXPRESSION LIMITS
    # ═══════════════════════════════════════════════════════════════════════════

    word_bits: int = 32
    max_tokens: int = 1024
    max_lexeme: int = 31
    deref_width: int = 4

    # ═══════════════════════════════════════════════════════════════════════════
    # WATCHPOINTS
    # ═══════════════════════════════════════════════════════════════════════════

    watchpoint_capacity: int = 32
    max_expression: int = 127

    # ═══════════════════════════════════════════════════════════════════════════
    # MACHINE
    # ═══════════════════════════════════════════════════════════════════════════

    memory_base: int = 0x80000000
    memory_size: int = 0x10000
    prompt: str = "(emu) "

    # ═══════════════════════════════════════════════════════════════════════════
    # FACTORY METHODS
    # ═══════════════════════════════════════════════════════════════════════════

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        """
        Create MonitorConfig from environment variables.

        Environment variables (all optional):
            EMU_MONITOR_WORD_BITS: Machine word width (e.g. 32, 64)
            EMU_MONITOR_MAX_TOKENS: Token budget per expression
            EMU_MONITOR_WATCHPOINTS: Watchpoint pool capacity
            EMU_MONITOR_MEMORY_BASE: Memory base address (decimal or 0x hex)
            EMU_MONITOR_MEMORY_SIZE: Memory size in bytes (decimal or 0x hex)
            EMU_MONITOR_PROMPT: Session prompt

        Returns:
            MonitorConfig with values from environment variables
        """
        config = cls()

        integer_settings = {
            "EMU_MONITOR_WORD_BITS": "word_bits",
            "EMU_MONITOR_MAX_TOKENS": "max_tokens",
            "EMU_MONITOR_WATCHPOINTS": "watchpoint_capacity",
            "EMU_MONITOR_MEMORY_BASE": "memory_base",
            "EMU_MONITOR_MEMORY_SIZE": "memory_size",
        }
        for variable, attribute in integer_settings.items():
            if raw := os.environ.get(variable):
                try:
                    setattr(config, attribute, int(raw, 0))
                except ValueError:
                    pass  # Ignore invalid values

        if prompt := os.environ.get("EMU_MONITOR_PROMPT"):
            config.prompt = prompt

        return config

    # ═══════════════════════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════════════════════

    @property
    def word_mask(self) -> int:
        """Bit mask selecting one machine word."""
        return (1 << self.word_bits) - 1

    def validate(self) -> None:
        """
        Check the configuration for impossible values.

        Raises:
            ValueError: If a size is not positive or a dereference is wider
                than a machine word
        """
        for name in (
            "word_bits", "max_tokens", "max_lexeme", "deref_width",
            "watchpoint_capacity", "max_expression", "memory_size",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.deref_width * 8 > self.word_bits:
            raise ValueError(
                f"deref_width of {self.deref_width} bytes does not fit "
                f"in a {self.word_bits}-bit word"
            )
        if self.memory_base < 0:
            raise ValueError(f"memory_base must not be negative, got {self.memory_base}")
