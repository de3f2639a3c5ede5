# =============================================================================
# test_expressions.py - Expression Evaluator Unit Tests
# =============================================================================
# Tests for the monitor expression evaluator.
#
# Test coverage includes:
#   - Simple values and arithmetic
#   - Operator precedence and left associativity
#   - Comparison and logical AND results re-entering arithmetic
#   - Register references and memory dereference
#   - Word-size wrapping
#   - Syntax, division, register and memory errors
#   - The flag-style expr() entry point
# =============================================================================

import logging

import pytest
from emu_monitor.expr.evaluator import ExpressionEvaluator, MAX_NESTING
from emu_monitor.expr.lexer import tokenize
from emu_monitor.machine import Memory, RegisterFile
from emu_monitor.errors import (
    DivisionByZeroError,
    ExpressionSyntaxError,
    LexError,
    MemoryFaultError,
    UnknownRegisterError,
)


BASE = 0x80000000


# =============================================================================
# Helper Functions
# =============================================================================

def make_evaluator(registers: dict = None, word_bits: int = 32) -> ExpressionEvaluator:
    """
    Helper to build an evaluator over a small machine.

    Memory is 4 KB at 0x80000000 with the words 0x11223344 at the base,
    0x80000000 (a pointer back to the base) at base + 8, and 0x80000010 (a
    pointer to itself) at base + 16.
    """
    regs = RegisterFile(word_bits=word_bits)
    for name, value in (registers or {}).items():
        regs[name] = value

    memory = Memory(BASE, 0x1000)
    memory.write_memory(BASE, 4, 0x11223344)
    memory.write_memory(BASE + 8, 4, BASE)
    memory.write_memory(BASE + 16, 4, BASE + 16)

    return ExpressionEvaluator(regs, memory, word_bits=word_bits)


def evaluate(expr_str: str, registers: dict = None) -> int:
    """Evaluate an expression string against the helper machine."""
    return make_evaluator(registers).evaluate_text(expr_str)


# =============================================================================
# Simple Value Tests
# =============================================================================

class TestSimpleValues:
    """Test evaluation of simple values."""

    def test_decimal_number(self):
        assert evaluate("42") == 42

    def test_hex_number(self):
        assert evaluate("0x10") == 16
        assert evaluate("0xff") == 255

    def test_zero(self):
        assert evaluate("0") == 0

    def test_leading_zeros_are_decimal(self):
        """Leading zeros do not make a literal octal."""
        assert evaluate("010") == 10

    def test_parenthesized(self):
        assert evaluate("((7))") == 7


# =============================================================================
# Arithmetic Operation Tests
# =============================================================================

class TestArithmetic:
    """Test arithmetic operations."""

    def test_addition(self):
        assert evaluate("1+2") == 3

    def test_subtraction(self):
        assert evaluate("10-3") == 7

    def test_multiplication(self):
        assert evaluate("3*4") == 12

    def test_division_truncates(self):
        assert evaluate("10/3") == 3
        assert evaluate("7/7") == 1
        assert evaluate("1/2") == 0

    def test_subtraction_wraps(self):
        """5-10 wraps to a 32-bit unsigned value."""
        assert evaluate("5-10") == 0xFFFFFFFB

    def test_multiplication_wraps(self):
        assert evaluate("0x10000*0x10000") == 0

    def test_addition_wraps(self):
        assert evaluate("0xffffffff+2") == 1

    def test_literal_wraps(self):
        """Literals wider than a word are truncated."""
        assert evaluate("0x100000001") == 1

    def test_division_is_unsigned(self):
        """Wrapped values divide as unsigned."""
        assert evaluate("(0-2)/2") == 0x7FFFFFFF

    def test_64_bit_words(self):
        evaluator = make_evaluator(word_bits=64)
        assert evaluator.evaluate_text("0x10000*0x10000") == 0x100000000
        assert evaluator.evaluate_text("0-1") == 0xFFFFFFFFFFFFFFFF


# =============================================================================
# Precedence Tests
# =============================================================================

class TestPrecedence:
    """Test operator precedence and associativity."""

    def test_multiplication_before_addition(self):
        assert evaluate("2+3*4") == 14

    def test_parentheses_override(self):
        assert evaluate("(2+3)*4") == 20

    def test_left_associative_subtraction(self):
        assert evaluate("10-3-2") == 5

    def test_left_associative_division(self):
        assert evaluate("100/10/5") == 2

    def test_mixed_term(self):
        assert evaluate("8/2*3") == 12

    def test_equality_binds_tighter_than_addition(self):
        """'1 + 1 == 2' is '1 + (1 == 2)'."""
        assert evaluate("1 + 1 == 2") == 1

    def test_and_binds_tighter_than_addition(self):
        """'1 + 2 && 3' is '1 + (2 && 3)'."""
        assert evaluate("1 + 2 && 3") == 2

    def test_equality_binds_tighter_than_and(self):
        assert evaluate("1==1 && 2==2") == 1
        assert evaluate("1==1 && 2==3") == 0


# =============================================================================
# Comparison and Logic Tests
# =============================================================================

class TestComparison:
    """Test ==, != and &&."""

    def test_equal(self):
        assert evaluate("1==1") == 1
        assert evaluate("1==2") == 0

    def test_not_equal(self):
        assert evaluate("1!=2") == 1
        assert evaluate("2!=2") == 0

    def test_and(self):
        assert evaluate("3 && 4") == 1
        assert evaluate("0 && 4") == 0
        assert evaluate("4 && 0") == 0

    def test_result_reenters_arithmetic(self):
        assert evaluate("(1==1)+1") == 2
        assert evaluate("1 + (2 == 2)") == 2

    def test_chained_equality_is_left_associative(self):
        """'2==2==1' is '(2==2)==1'."""
        assert evaluate("2==2==1") == 1

    def test_and_evaluates_both_sides(self):
        """The right operand of && is evaluated even when the left is 0."""
        with pytest.raises(DivisionByZeroError):
            evaluate("0 && 1/0")
        with pytest.raises(UnknownRegisterError):
            evaluate("0 && $nosuch")


# =============================================================================
# Register Tests
# =============================================================================

class TestRegisters:
    """Test register references."""

    def test_register_value(self):
        assert evaluate("$a0", {"a0": 42}) == 42

    def test_register_arithmetic(self):
        assert evaluate("$sp + 8", {"sp": 0x80000100}) == 0x80000108

    def test_pc(self):
        assert evaluate("$pc == 0x80000000", {"pc": BASE}) == 1

    def test_case_insensitive(self):
        assert evaluate("$A0", {"a0": 5}) == 5

    def test_unknown_register(self):
        with pytest.raises(UnknownRegisterError) as exc_info:
            evaluate("1 + $foo")
        assert exc_info.value.name == "foo"
        assert exc_info.value.position == 4

    def test_unknown_register_hint(self):
        """Close register names are suggested."""
        with pytest.raises(UnknownRegisterError) as exc_info:
            evaluate("$pcc")
        assert "pc" in exc_info.value.similar_names
        assert "did you mean" in str(exc_info.value)


# =============================================================================
# Dereference Tests
# =============================================================================

class TestDereference:
    """Test '*' as memory dereference."""

    def test_deref_reads_word(self):
        assert evaluate("*0x80000000") == 0x11223344

    def test_deref_little_endian(self):
        """An unaligned read sees the bytes in little-endian order."""
        assert evaluate("*0x80000001") == 0x00112233

    def test_deref_through_register(self):
        assert evaluate("*$sp", {"sp": BASE}) == 0x11223344

    def test_deref_binds_tighter_than_addition(self):
        """'*0x80000000 + 1' reads then adds."""
        assert evaluate("*0x80000000 + 1") == 0x11223345

    def test_deref_of_group(self):
        assert evaluate("*(0x80000000 + 8)") == BASE

    def test_double_deref(self):
        """'**addr' follows a pointer."""
        assert evaluate("**0x80000008") == 0x11223344

    def test_multiply_then_deref(self):
        assert evaluate("2 * *0x80000008") == 0

    def test_deref_after_comparison(self):
        assert evaluate("1 == *0x80000000") == 0

    def test_deref_at_zero_faults(self):
        """'*0' is a dereference of address 0, which is outside memory."""
        with pytest.raises(MemoryFaultError) as exc_info:
            evaluate("*0")
        assert exc_info.value.address == 0

    def test_deref_past_end_faults(self):
        with pytest.raises(MemoryFaultError):
            evaluate("*0x80000ffe")

    def test_deref_needs_operand(self):
        with pytest.raises(ExpressionSyntaxError):
            evaluate("*")


# =============================================================================
# Error Tests
# =============================================================================

class TestErrors:
    """Test evaluation errors."""

    def test_division_by_zero(self):
        with pytest.raises(DivisionByZeroError):
            evaluate("5/0")

    def test_division_by_zero_expression(self):
        with pytest.raises(DivisionByZeroError) as exc_info:
            evaluate("5/(2-2)")
        assert exc_info.value.position == 1

    def test_trailing_rparen(self):
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            evaluate("2+3)")
        assert exc_info.value.position == 3

    def test_unterminated_paren(self):
        with pytest.raises(ExpressionSyntaxError, match="expected '\\)'"):
            evaluate("(2+3")

    def test_empty_expression(self):
        with pytest.raises(ExpressionSyntaxError):
            evaluate("")

    def test_missing_operand(self):
        with pytest.raises(ExpressionSyntaxError):
            evaluate("1 +")

    def test_no_unary_minus(self):
        """'-5' is a syntax error, not a negative literal."""
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            evaluate("-5")
        assert exc_info.value.position == 0
        assert "unary minus" in exc_info.value.hint

    def test_adjacent_values(self):
        with pytest.raises(ExpressionSyntaxError):
            evaluate("1 2")

    def test_error_message_shows_source(self):
        """Errors from evaluate_text carry the text and a caret."""
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            evaluate("2+3)")
        lines = str(exc_info.value).splitlines()
        assert lines[1] == "    2+3)"
        assert lines[2] == "       ^"

    def test_lex_error_propagates(self):
        with pytest.raises(LexError):
            evaluate("1 % 2")


# =============================================================================
# Nesting Tests
# =============================================================================

class TestNesting:
    """Test deeply nested groups and long dereference chains."""

    def test_nesting_limit_accepted(self):
        text = "(" * MAX_NESTING + "1" + ")" * MAX_NESTING
        assert evaluate(text) == 1

    def test_nesting_past_limit(self):
        """One level past the limit is a syntax error at the extra '('."""
        depth = MAX_NESTING + 1
        with pytest.raises(ExpressionSyntaxError, match="nested too deeply") as exc_info:
            evaluate("(" * depth + "1" + ")" * depth)
        assert exc_info.value.position == MAX_NESTING

    def test_deep_nesting_within_token_budget(self):
        """250 levels fit the token budget and fail cleanly."""
        text = "(" * 250 + "1" + ")" * 250
        assert make_evaluator().expr(text) == (False, 0)

    def test_depth_restored_after_group(self):
        """Sibling groups do not add up toward the limit."""
        text = "+".join(["(((1)))"] * 50)
        assert evaluate(text) == 50

    def test_long_dereference_chain(self):
        """A thousand stars follow a self-referencing pointer."""
        assert evaluate("*" * 1000 + "0x80000010") == BASE + 16

    def test_dereference_chain_inside_group(self):
        assert evaluate("1 + (***0x80000010)") == BASE + 17


# =============================================================================
# Entry Point Tests
# =============================================================================

class TestEntryPoints:
    """Test evaluate() on tokens and the flag-style expr()."""

    def test_evaluate_tokens(self):
        evaluator = make_evaluator()
        assert evaluator.evaluate(tokenize("6*7")) == 42

    def test_evaluate_without_eof(self):
        """A token list without EOF is accepted."""
        evaluator = make_evaluator()
        tokens = tokenize("6*7")[:-1]
        assert evaluator.evaluate(tokens) == 42

    def test_expr_success(self):
        assert make_evaluator().expr("2+2") == (True, 4)

    @pytest.mark.parametrize("text", ["5/0", "2+3)", "$nosuch", "*0", "1 @ 2", "-5"])
    def test_expr_failure(self, text):
        assert make_evaluator().expr(text) == (False, 0)

    def test_repeatable(self):
        """Evaluating unchanged state twice gives the same result."""
        evaluator = make_evaluator({"a0": 3})
        first = evaluator.evaluate_text("*0x80000000 + $a0 * 2")
        second = evaluator.evaluate_text("*0x80000000 + $a0 * 2")
        assert first == second == 0x11223344 + 6

    def test_reentrant(self):
        """An evaluation started from inside another one does not disturb it."""
        regs = RegisterFile()
        regs["a0"] = 5

        class NestedMemory:
            evaluator = None

            def read_memory(self, address, width):
                return self.evaluator.evaluate_text("$a0 * 10") + address

        memory = NestedMemory()
        evaluator = ExpressionEvaluator(regs, memory)
        memory.evaluator = evaluator
        assert evaluator.evaluate_text("1 + *2 + 3") == 1 + 52 + 3

    def test_failure_is_logged(self, caplog):
        caplog.set_level(logging.DEBUG, logger="emu_monitor.expr.evaluator")
        make_evaluator().expr("5/0")
        assert "evaluation of '5/0' failed: division by zero" in caplog.messages
