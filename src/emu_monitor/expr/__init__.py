"""
Monitor Expressions
===================

Tokenizer and evaluator for the expressions accepted by the 'p' and 'w'
monitor commands.

- `lexer.py`: rule table, tokenize(), resolve_dereferences()
- `evaluator.py`: ExpressionEvaluator and the collaborator protocols
"""

from emu_monitor.expr.lexer import (
    Token,
    TokenType,
    Rule,
    RULES,
    MAX_TOKENS,
    MAX_LEXEME,
    compile_rules,
    tokenize,
    resolve_dereferences,
)
from emu_monitor.expr.evaluator import (
    ExpressionEvaluator,
    MAX_NESTING,
    RegisterSource,
    MemorySource,
)

__all__ = [
    "Token",
    "TokenType",
    "Rule",
    "RULES",
    "MAX_TOKENS",
    "MAX_LEXEME",
    "compile_rules",
    "tokenize",
    "resolve_dereferences",
    "ExpressionEvaluator",
    "MAX_NESTING",
    "RegisterSource",
    "MemorySource",
]
