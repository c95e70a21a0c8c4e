"""
Tokenizer (lexer) for the expression language.

Converts expression strings into a stream of tokens for the parser.

Identifiers are greedy: a run continues until a structural character
(``. ( ) [ ] ,`` or whitespace) or a lambda arrow ``->``, so host
addressing syntax such as ``p@player-1|x`` reaches variable resolution
untouched.
Bracket suffixes are captured as raw text because their grammar depends
on the type they are applied to.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import TokenizerError
from .limits import (
    ExpressionLimits,
    check_bracket_length,
    check_expression_length,
    check_string_length,
)


class TokenType(Enum):
    """Token types produced by the tokenizer."""

    # Literals
    STRING = "STRING"
    NUMBER = "NUMBER"
    TRUE = "TRUE"
    FALSE = "FALSE"
    NULL = "NULL"

    # Identifiers and keywords
    IDENTIFIER = "IDENTIFIER"
    NEW = "NEW"

    # Delimiters
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    BRACKET = "BRACKET"
    RBRACKET = "RBRACKET"
    DOT = "DOT"
    COMMA = "COMMA"
    ARROW = "ARROW"

    # Special
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    """A token produced by the tokenizer."""

    type: TokenType
    value: str
    position: int
    literal: Any = None


# Keywords recognized by the tokenizer
KEYWORDS: Dict[str, TokenType] = {
    "new": TokenType.NEW,
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "null": TokenType.NULL,
}

KEYWORD_LITERALS: Dict[TokenType, Any] = {
    TokenType.TRUE: True,
    TokenType.FALSE: False,
    TokenType.NULL: None,
}

_SINGLE_CHAR_TOKENS: Dict[str, TokenType] = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "]": TokenType.RBRACKET,
    ".": TokenType.DOT,
    ",": TokenType.COMMA,
}

_STRUCTURAL = frozenset(".()[],")


def _is_digit(ch: str) -> bool:
    """Checks if a character is a digit."""
    return "0" <= ch <= "9"


def _is_whitespace(ch: str) -> bool:
    """Checks if a character is whitespace."""
    return ch.isspace()


def _is_identifier_part(ch: str) -> bool:
    """Checks if a character can continue an identifier run."""
    return not (ch in _STRUCTURAL or _is_whitespace(ch))


class Tokenizer:
    """Tokenizer for expression strings."""

    def __init__(self, source: str, limits: Optional[ExpressionLimits] = None):
        self._source = source
        self._limits = limits
        self._position = 0
        self._tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        """Tokenizes the source expression and returns all tokens."""
        check_expression_length(self._source, self._limits)

        while not self._is_at_end():
            self._scan_token()

        self._tokens.append(Token(TokenType.EOF, "", self._position))
        return self._tokens

    def _is_at_end(self) -> bool:
        return self._position >= len(self._source)

    def _peek(self) -> str:
        if self._is_at_end():
            return "\0"
        return self._source[self._position]

    def _peek_next(self) -> str:
        if self._position + 1 >= len(self._source):
            return "\0"
        return self._source[self._position + 1]

    def _advance(self) -> str:
        ch = self._source[self._position]
        self._position += 1
        return ch

    def _add_token(
        self, token_type: TokenType, value: str, position: int, literal: Any = None
    ) -> None:
        self._tokens.append(Token(token_type, value, position, literal))

    def _scan_token(self) -> None:
        start = self._position
        ch = self._advance()

        if _is_whitespace(ch):
            return

        single = _SINGLE_CHAR_TOKENS.get(ch)
        if single is not None:
            self._add_token(single, ch, start)
            return

        if ch == "-" and self._peek() == ">":
            self._advance()
            self._add_token(TokenType.ARROW, "->", start)
            return

        if ch == "[":
            self._scan_bracket(start)
            return

        if ch == '"':
            self._scan_string(start)
            return

        if _is_digit(ch) or (ch == "-" and _is_digit(self._peek())):
            self._scan_number(start)
            return

        self._scan_identifier(start)

    def _scan_string(self, start: int) -> None:
        chars: List[str] = []

        while not self._is_at_end() and self._peek() != '"':
            ch = self._advance()
            if ch == "\\" and self._peek() in ('"', "\\"):
                chars.append(self._advance())
            else:
                chars.append(ch)

        if self._is_at_end():
            raise TokenizerError("Unterminated string literal", start, self._source)

        self._advance()  # closing quote
        value = "".join(chars)
        check_string_length(value, self._limits)
        self._add_token(
            TokenType.STRING, self._source[start : self._position], start, value
        )

    def _scan_number(self, start: int) -> None:
        while _is_digit(self._peek()):
            self._advance()

        is_float = False
        if self._peek() == "." and _is_digit(self._peek_next()):
            is_float = True
            self._advance()
            while _is_digit(self._peek()):
                self._advance()

        text = self._source[start : self._position]
        literal = float(text) if is_float else int(text)
        self._add_token(TokenType.NUMBER, text, start, literal)

    def _scan_identifier(self, start: int) -> None:
        while not self._is_at_end() and _is_identifier_part(self._peek()):
            if self._peek() == "-" and self._peek_next() == ">":
                break
            self._advance()

        text = self._source[start : self._position]
        keyword = KEYWORDS.get(text)
        if keyword is not None:
            self._add_token(keyword, text, start, KEYWORD_LITERALS.get(keyword))
            return

        self._add_token(TokenType.IDENTIFIER, text, start, text)

    def _scan_bracket(self, start: int) -> None:
        depth = 1
        quote: Optional[str] = None

        while not self._is_at_end():
            ch = self._advance()

            if quote is not None:
                if ch == "\\" and not self._is_at_end():
                    self._advance()
                elif ch == quote:
                    quote = None
                continue

            if ch in ('"', "'"):
                quote = ch
            elif ch == "[":
                depth += 1
            elif ch == "]":
                depth -= 1
                if depth == 0:
                    raw = self._source[start + 1 : self._position - 1].strip()
                    check_bracket_length(raw, self._limits)
                    self._add_token(
                        TokenType.BRACKET,
                        self._source[start : self._position],
                        start,
                        raw,
                    )
                    return

        raise TokenizerError("Unterminated '[' in expression", start, self._source)


def tokenize(source: str, limits: Optional[ExpressionLimits] = None) -> List[Token]:
    """
    Tokenizes an expression string.

    Args:
        source: The expression string to tokenize
        limits: Optional expression limits

    Returns:
        List of tokens, terminated by an EOF token

    Raises:
        TokenizerError: If tokenization fails
        LimitExceededError: If the expression exceeds a limit
    """
    tokenizer = Tokenizer(source, limits)
    return tokenizer.tokenize()
