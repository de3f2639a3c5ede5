"""
Monitor Expression Lexer
========================

This module converts monitor expression text into a list of tokens that
the evaluator can process.

Token Types
-----------
- NUMBER: Decimal integer (42)
- HEX: Hexadecimal integer with 0x prefix (0x80000000)
- REGISTER: Register reference with $ sigil ($pc, $a0)
- Operators: +, -, *, /, ==, !=, &&
- Delimiters: (, )
- DEREF: '*' used as a prefix (load word from memory)
- EOF: End of input

Rule Table
----------
Tokens are recognised by an ordered table of regular expressions. At each
position the rules are tried in order and the first one matching at exactly
that position wins, so the order carries the precedence between patterns
that share a prefix:

| Order | Pattern              | Reason                                  |
|-------|----------------------|-----------------------------------------|
| hex   | 0[xX][0-9a-fA-F]+    | before decimal, "0x10" is not "0" "x10" |
| dec   | [0-9]+               | before register                         |
| ==    | ==                   | before any one-character operator       |
| !=    | !=                   |                                         |
| &&    | &&                   |                                         |

Dereference
-----------
'*' is both multiplication and the prefix dereference operator. The lexer
emits STAR for both; resolve_dereferences() then looks one token to the left
and turns a STAR with no value before it into DEREF.

Example
-------
>>> from emu_monitor.expr.lexer import tokenize
>>> for token in tokenize("*$sp + 0x10"):
...     print(token)
Token(DEREF, '*', 0)
Token(REGISTER, '$sp', 1)
Token(PLUS, '+', 5)
Token(HEX, '0x10', 7)
Token(EOF, 11)
"""

from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import Optional
import logging
import re

from emu_monitor.errors import LexError, RuleTableError

logger = logging.getLogger(__name__)

# Default token budget and lexeme length
MAX_TOKENS = 1024
MAX_LEXEME = 31


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Token types for monitor expressions."""

    # Structural
    EOF = auto()         # End of input

    # Values
    NUMBER = auto()      # Decimal literal
    HEX = auto()         # 0x-prefixed literal
    REGISTER = auto()    # $name

    # Arithmetic operators
    PLUS = auto()        # +
    MINUS = auto()       # -
    STAR = auto()        # * (multiply)
    SLASH = auto()       # /

    # Comparison and logic
    EQ = auto()          # ==
    NE = auto()          # !=
    AND = auto()         # &&

    # Delimiters
    LPAREN = auto()      # (
    RPAREN = auto()      # )

    # Prefix operators (assigned by resolve_dereferences)
    DEREF = auto()       # * (load from memory)


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single token from an expression.

    Attributes:
        type: The TokenType classification
        lexeme: The matched text, verbatim
        position: 0-based offset of the first character in the source
    """
    type: TokenType
    lexeme: str
    position: int

    def __repr__(self) -> str:
        if self.lexeme:
            return f"Token({self.type.name}, {self.lexeme!r}, {self.position})"
        return f"Token({self.type.name}, {self.position})"


# =============================================================================
# Rule Table
# =============================================================================

@dataclass(frozen=True)
class Rule:
    """
    One tokenizer rule.

    Attributes:
        pattern: Regular expression, matched anchored at the scan position
        type: Token type to emit, or None to discard the match (whitespace)
    """
    pattern: str
    type: Optional[TokenType]


RULES: tuple[Rule, ...] = (
    Rule(r"\s+", None),                      # spaces
    Rule(r"0[xX][0-9a-fA-F]+", TokenType.HEX),
    Rule(r"[0-9]+", TokenType.NUMBER),
    Rule(r"\$[A-Za-z0-9]+", TokenType.REGISTER),
    Rule(r"==", TokenType.EQ),
    Rule(r"!=", TokenType.NE),
    Rule(r"&&", TokenType.AND),
    Rule(r"\+", TokenType.PLUS),
    Rule(r"-", TokenType.MINUS),
    Rule(r"\*", TokenType.STAR),
    Rule(r"/", TokenType.SLASH),
    Rule(r"\(", TokenType.LPAREN),
    Rule(r"\)", TokenType.RPAREN),
)


def compile_rules(rules: tuple[Rule, ...]) -> list[tuple[re.Pattern, Rule]]:
    """
    Compile a rule table.

    Rules are used for every expression, so they are compiled once.

    Raises:
        RuleTableError: If any pattern is not a valid regular expression
    """
    compiled = []
    for rule in rules:
        try:
            compiled.append((re.compile(rule.pattern), rule))
        except re.error as e:
            raise RuleTableError(rule.pattern, str(e)) from e
    return compiled


_COMPILED_RULES = compile_rules(RULES)


# =============================================================================
# Tokenizer
# =============================================================================

def tokenize(
    text: str,
    max_tokens: int = MAX_TOKENS,
    max_lexeme: int = MAX_LEXEME,
    resolve: bool = True,
) -> list[Token]:
    """
    Split expression text into tokens.

    Args:
        text: The expression text
        max_tokens: Token budget, not counting the trailing EOF token
        max_lexeme: Longest lexeme accepted
        resolve: Run resolve_dereferences() on the result

    Returns:
        Tokens in source order, ending with an EOF token

    Raises:
        LexError: If no rule matches, a lexeme is too long, or the token
            budget is exceeded
    """
    tokens: list[Token] = []
    position = 0

    while position < len(text):
        for index, (regex, rule) in enumerate(_COMPILED_RULES):
            match = regex.match(text, position)
            if match is None or match.end() == position:
                continue

            lexeme = match.group()
            logger.debug(
                "match rules[%d] = %r at position %d with len %d: %s",
                index, rule.pattern, position, len(lexeme), lexeme,
            )

            if rule.type is not None:
                if len(lexeme) > max_lexeme:
                    raise LexError(
                        f"token '{lexeme[:8]}...' is longer than {max_lexeme} characters",
                        position=position,
                        source=text,
                    )
                if len(tokens) >= max_tokens:
                    raise LexError(
                        f"expression has more than {max_tokens} tokens",
                        position=position,
                        source=text,
                    )
                tokens.append(Token(rule.type, lexeme, position))

            position = match.end()
            break
        else:
            raise LexError(
                f"no match at position {position}",
                position=position,
                source=text,
            )

    tokens.append(Token(TokenType.EOF, "", len(text)))

    if resolve:
        tokens = resolve_dereferences(tokens)
    return tokens


# =============================================================================
# Dereference Resolution
# =============================================================================

# A '*' following one of these cannot be multiplication
_PREFIX_CONTEXT = frozenset({
    TokenType.PLUS,
    TokenType.MINUS,
    TokenType.STAR,
    TokenType.SLASH,
    TokenType.DEREF,
    TokenType.LPAREN,
    TokenType.EQ,
    TokenType.NE,
    TokenType.AND,
})


def resolve_dereferences(tokens: list[Token]) -> list[Token]:
    """
    Reclassify prefix '*' tokens as DEREF.

    A STAR is a dereference when it is the first token or the token to its
    left is an operator or an opening parenthesis. Tokens are scanned left
    to right, so in "**p" the second star sees an already resolved DEREF.

    Args:
        tokens: Tokens from tokenize(resolve=False)

    Returns:
        A new token list; the input is not modified
    """
    resolved: list[Token] = []
    for token in tokens:
        if token.type == TokenType.STAR and (
            not resolved or resolved[-1].type in _PREFIX_CONTEXT
        ):
            token = replace(token, type=TokenType.DEREF)
        resolved.append(token)
    return resolved
