"""
Monitor Expression Evaluator
============================

This module evaluates monitor expressions over immediate values, CPU
registers and simulated memory. It is what the 'p' command prints and what
every watchpoint re-evaluates after each instruction.

Supported Operations
--------------------
**Arithmetic:** + - * / (unsigned, wrapping at the machine word)

**Comparison:** == != (yield 1 or 0)

**Logic:** && (yields 1 or 0, both sides always evaluated)

**Dereference:** *addr (reads one word from memory)

**Operands:** decimal and 0x hex literals, $register, (grouped expression)

There is no unary minus: "-5" is a syntax error. Parentheses nest at most
MAX_NESTING (100) levels deep; deeper input is a syntax error.

Expression Grammar
------------------
Lowest to highest precedence; every level is left-associative:

    expression := logic_and ( ('+' | '-') logic_and )*
    logic_and  := equality ( '&&' equality )*
    equality   := term ( ('==' | '!=') term )*
    term       := factor ( ('*' | '/') factor )*
    factor     := NUMBER | HEX | REGISTER | '(' expression ')' | DEREF factor

Note that '+' binds looser than '==', so "1 + 1 == 2" is "1 + (1 == 2)".

Example Usage
-------------
>>> from emu_monitor.expr import ExpressionEvaluator
>>> from emu_monitor.machine import RegisterFile, Memory
>>> regs = RegisterFile()
>>> regs["sp"] = 0x80000100
>>> evaluator = ExpressionEvaluator(regs, Memory(0x80000000, 0x1000))
>>> evaluator.evaluate_text("$sp + 8")
2147483912
>>> evaluator.expr("5/0")
(False, 0)
"""

from typing import Optional, Protocol
import logging

from emu_monitor.errors import (
    EvalError,
    ExpressionSyntaxError,
    DivisionByZeroError,
    LexError,
    UnknownRegisterError,
)
from emu_monitor.expr.lexer import Token, TokenType, tokenize, MAX_TOKENS, MAX_LEXEME

logger = logging.getLogger(__name__)

# Deepest parenthesis nesting the parser accepts
MAX_NESTING = 100


# =============================================================================
# Collaborator Protocols
# =============================================================================

class RegisterSource(Protocol):
    """Register file consulted for $name operands."""

    def read_register(self, name: str) -> Optional[int]:
        """Return the register value, or None if there is no such register."""
        ...


class MemorySource(Protocol):
    """Memory consulted for '*' dereferences."""

    def read_memory(self, address: int, width: int) -> int:
        """
        Read a little-endian value of width bytes.

        Raises:
            MemoryFaultError: If the address is not backed by memory
        """
        ...


# =============================================================================
# Expression Evaluator
# =============================================================================

class ExpressionEvaluator:
    """
    Evaluates monitor expressions.

    The evaluator holds the register and memory collaborators and the word
    geometry. Token position state lives in a _Parser created for each
    call, so evaluate() may be called again while another evaluation is in
    progress (for example from a memory hook).

    Attributes:
        registers: Register collaborator
        memory: Memory collaborator
        word_bits: Machine word width
        deref_width: Bytes read by a dereference
    """

    def __init__(
        self,
        registers: RegisterSource,
        memory: MemorySource,
        word_bits: int = 32,
        deref_width: int = 4,
        max_tokens: int = MAX_TOKENS,
        max_lexeme: int = MAX_LEXEME,
    ):
        self.registers = registers
        self.memory = memory
        self.word_bits = word_bits
        self.deref_width = deref_width
        self.max_tokens = max_tokens
        self.max_lexeme = max_lexeme
        self._mask = (1 << word_bits) - 1

    @classmethod
    def from_config(cls, config, registers: RegisterSource, memory: MemorySource) -> "ExpressionEvaluator":
        """Create an evaluator sized by a MonitorConfig."""
        return cls(
            registers,
            memory,
            word_bits=config.word_bits,
            deref_width=config.deref_width,
            max_tokens=config.max_tokens,
            max_lexeme=config.max_lexeme,
        )

    @property
    def word_mask(self) -> int:
        return self._mask

    # =========================================================================
    # Main Evaluation Interface
    # =========================================================================

    def evaluate(self, tokens: list[Token]) -> int:
        """
        Evaluate a resolved token list.

        Args:
            tokens: Tokens from tokenize(); a trailing EOF is optional

        Returns:
            The unsigned result, masked to the machine word

        Raises:
            ExpressionSyntaxError: If the tokens do not form an expression
            DivisionByZeroError: If a divisor evaluates to zero
            UnknownRegisterError: If a register is not in the register file
            MemoryFaultError: If a dereference reads outside memory
        """
        parser = _Parser(self, tokens)
        result = parser.parse_expression()

        # Check for unconsumed tokens
        tok = parser.current()
        if tok.type != TokenType.EOF:
            raise ExpressionSyntaxError(
                f"unexpected token '{tok.lexeme}' in expression",
                position=tok.position,
            )

        return result

    def evaluate_text(self, text: str) -> int:
        """
        Tokenize and evaluate expression text.

        Errors raised from here carry the text, so str(error) shows a
        caret under the failing position.

        Raises:
            LexError: If the text cannot be tokenized
            EvalError: If evaluation fails
        """
        try:
            tokens = tokenize(text, self.max_tokens, self.max_lexeme)
            return self.evaluate(tokens)
        except (LexError, EvalError) as e:
            if e.source is None and e.position is not None:
                e.with_source(text)
            raise

    def expr(self, text: str) -> tuple[bool, int]:
        """
        Evaluate text, reporting failure as a flag.

        Returns:
            (True, value) on success, (False, 0) on any lexing or
            evaluation error
        """
        try:
            return True, self.evaluate_text(text)
        except (LexError, EvalError) as e:
            logger.debug("evaluation of %r failed: %s", text, e.message)
            return False, 0

    # =========================================================================
    # Operand Resolution
    # =========================================================================

    def read_register(self, token: Token) -> int:
        """
        Resolve a $name token through the register collaborator.

        Raises:
            UnknownRegisterError: If the register file has no such register
        """
        name = token.lexeme[1:]
        value = self.registers.read_register(name)
        if value is None:
            raise UnknownRegisterError(
                name,
                position=token.position,
                similar_names=self._find_similar_names(name),
            )
        return value & self._mask

    def dereference(self, address: int) -> int:
        """Read one deref_width value at address."""
        return self.memory.read_memory(address, self.deref_width) & self._mask

    def _find_similar_names(self, name: str) -> list[str]:
        """
        Find register names close to name for error hints.

        Uses simple edit distance heuristic.
        """
        names = getattr(self.registers, "names", None) or []
        name_lower = name.lower()
        similar = []

        for candidate in names:
            candidate_lower = candidate.lower()
            if (
                candidate_lower == name_lower or
                abs(len(candidate) - len(name)) <= 1 and
                _edit_distance(name_lower, candidate_lower) <= 1
            ):
                similar.append(candidate)

        return similar[:3]


# =============================================================================
# Recursive Descent Parser with Evaluation
# =============================================================================
# The parser evaluates while parsing; each parse method returns the masked
# integer result directly. One instance serves one evaluate() call.
# =============================================================================

class _Parser:
    """Cursor over one token list, bound to an evaluator."""

    def __init__(self, evaluator: ExpressionEvaluator, tokens: list[Token]):
        self._evaluator = evaluator
        self._mask = evaluator.word_mask
        self._tokens = tokens
        self._pos = 0
        self._depth = 0

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def current(self) -> Token:
        """Get current token."""
        if self._pos >= len(self._tokens):
            # Return a synthetic EOF token
            last = self._tokens[-1] if self._tokens else None
            end = last.position + len(last.lexeme) if last else 0
            return Token(TokenType.EOF, "", end)
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self.current()
        self._pos += 1
        return token

    def _match(self, *types: TokenType) -> Optional[Token]:
        """Match and consume token if it's one of the given types."""
        if self.current().type in types:
            return self._advance()
        return None

    def _expect(self, token_type: TokenType, message: str) -> Token:
        """Expect a specific token type, raising error if not found."""
        if self.current().type != token_type:
            raise ExpressionSyntaxError(message, position=self.current().position)
        return self._advance()

    # =========================================================================
    # Grammar Levels
    # =========================================================================

    def parse_expression(self) -> int:
        """Parse addition and subtraction (lowest precedence)."""
        left = self._parse_logic_and()

        while True:
            if self._match(TokenType.PLUS):
                right = self._parse_logic_and()
                left = (left + right) & self._mask
            elif self._match(TokenType.MINUS):
                right = self._parse_logic_and()
                left = (left - right) & self._mask
            else:
                break

        return left

    def _parse_logic_and(self) -> int:
        """Parse logical AND. Both operands are always evaluated."""
        left = self._parse_equality()

        while self._match(TokenType.AND):
            right = self._parse_equality()
            left = 1 if left and right else 0

        return left

    def _parse_equality(self) -> int:
        """Parse == and !=."""
        left = self._parse_term()

        while True:
            if self._match(TokenType.EQ):
                right = self._parse_term()
                left = 1 if left == right else 0
            elif self._match(TokenType.NE):
                right = self._parse_term()
                left = 1 if left != right else 0
            else:
                break

        return left

    def _parse_term(self) -> int:
        """Parse multiplication and division."""
        left = self._parse_factor()

        while True:
            if self._match(TokenType.STAR):
                right = self._parse_factor()
                left = (left * right) & self._mask
            elif tok := self._match(TokenType.SLASH):
                right = self._parse_factor()
                if right == 0:
                    raise DivisionByZeroError(position=tok.position)
                left = left // right
            else:
                break

        return left

    def _parse_factor(self) -> int:
        """Parse literals, registers, groups and dereferences."""
        tok = self.current()

        if tok.type == TokenType.NUMBER:
            self._advance()
            return int(tok.lexeme, 10) & self._mask

        if tok.type == TokenType.HEX:
            self._advance()
            return int(tok.lexeme[2:], 16) & self._mask

        if tok.type == TokenType.REGISTER:
            self._advance()
            return self._evaluator.read_register(tok)

        if tok.type == TokenType.LPAREN:
            if self._depth >= MAX_NESTING:
                raise ExpressionSyntaxError(
                    "expression nested too deeply",
                    position=tok.position,
                    hint=f"at most {MAX_NESTING} levels of parentheses are supported",
                )
            self._advance()
            self._depth += 1
            result = self.parse_expression()
            self._expect(TokenType.RPAREN, "expected ')' to close expression")
            self._depth -= 1
            return result

        if tok.type == TokenType.DEREF:
            # A chain of prefix stars applies innermost first: **p is *(*p)
            count = 0
            while self._match(TokenType.DEREF):
                count += 1
            address = self._parse_factor()
            for _ in range(count):
                address = self._evaluator.dereference(address)
            return address

        hint = None
        if tok.type == TokenType.MINUS:
            hint = "unary minus is not supported"
        raise ExpressionSyntaxError(
            f"expected value, got '{tok.lexeme or 'end of expression'}'",
            position=tok.position,
            hint=hint,
        )


# =============================================================================
# Helpers
# =============================================================================

def _edit_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein edit distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    distances = range(len(s2) + 1)
    for i, c1 in enumerate(s1):
        new_distances = [i + 1]
        for j, c2 in enumerate(s2):
            if c1 == c2:
                new_distances.append(distances[j])
            else:
                new_distances.append(1 + min((
                    distances[j],
                    distances[j + 1],
                    new_distances[-1]
                )))
        distances = new_distances

    return distances[-1]
