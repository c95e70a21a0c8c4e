"""
Parser for the expression language.

Parses a stream of tokens into an Abstract Syntax Tree (AST).
Uses recursive descent over three levels:

1. Lambda: ``x -> body`` or ``(a, b) -> body``, detected by lookahead
2. Postfix: ``.name``, ``.name(args)`` and ``[raw]`` suffixes, left-associative
3. Primary: literals, ``new Type(args)``, identifiers, parentheses

Grammar::

    expr    := lambda | postfix
    lambda  := (IDENT | '(' (IDENT (',' IDENT)*)? ')') '->' expr
    postfix := primary ( '.' IDENT ('(' args ')')? | BRACKET )*
    primary := LITERAL | 'new' IDENT ('.' IDENT)* '(' args ')' | IDENT | '(' expr ')'
    args    := (expr (',' expr)*)?
"""

from typing import List

from .ast import (
    AstNode,
    BracketInitNode,
    FieldAccessNode,
    LambdaNode,
    LiteralNode,
    MethodCallNode,
    NewNode,
    VariableNode,
    calculate_ast_depth,
    count_ast_nodes,
)
from .errors import ParseError
from .limits import (
    DEFAULT_EXPRESSION_LIMITS,
    ExpressionLimits,
    check_ast_depth,
    check_ast_node_count,
    check_call_arg_count,
)
from .tokenizer import Token, TokenType, tokenize

_LITERAL_TOKENS = (
    TokenType.STRING,
    TokenType.NUMBER,
    TokenType.TRUE,
    TokenType.FALSE,
    TokenType.NULL,
)

# Keywords are accepted as member names after '.', e.g. ``builder.new()``.
_NAME_TOKENS = (
    TokenType.IDENTIFIER,
    TokenType.NEW,
    TokenType.TRUE,
    TokenType.FALSE,
    TokenType.NULL,
)


class Parser:
    """Parser for expression strings."""

    def __init__(
        self,
        tokens: List[Token],
        source: str,
        limits: ExpressionLimits = DEFAULT_EXPRESSION_LIMITS,
    ):
        self._tokens = tokens
        self._source = source
        self._limits = limits
        self._current = 0

    def parse(self) -> AstNode:
        """Parses the token stream into an AST."""
        ast = self._parse_expression()

        if not self._is_at_end():
            token = self._peek()
            raise self._error(f"Unexpected token: {token.value or token.type.value}", token)

        # Validate AST limits
        node_count = count_ast_nodes(ast)
        check_ast_node_count(node_count, self._limits)

        depth = calculate_ast_depth(ast)
        check_ast_depth(depth, self._limits)

        return ast

    # ============================================================
    # Token Helpers
    # ============================================================

    def _is_at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self) -> Token:
        return self._tokens[self._current]

    def _previous(self) -> Token:
        return self._tokens[self._current - 1]

    def _advance(self) -> Token:
        if not self._is_at_end():
            self._current += 1
        return self._previous()

    def _check(self, token_type: TokenType) -> bool:
        if self._is_at_end():
            return False
        return self._peek().type == token_type

    def _match(self, *types: TokenType) -> bool:
        for token_type in types:
            if self._check(token_type):
                self._advance()
                return True
        return False

    def _consume(self, token_type: TokenType, message: str) -> Token:
        if self._check(token_type):
            return self._advance()
        raise self._error(message, self._peek())

    def _consume_name(self, message: str) -> Token:
        if self._match(*_NAME_TOKENS):
            return self._previous()
        raise self._error(message, self._peek())

    def _error(self, message: str, token: Token) -> ParseError:
        return ParseError(message, token.position, self._source, token)

    # ============================================================
    # Expression Parsing
    # ============================================================

    def _parse_expression(self) -> AstNode:
        if self._is_lambda_start():
            return self._parse_lambda()
        return self._parse_postfix()

    def _is_lambda_start(self) -> bool:
        """Looks ahead for a parameter list followed by '->' without consuming."""
        save = self._current
        try:
            if self._match(TokenType.IDENTIFIER):
                return self._check(TokenType.ARROW)
            if not self._match(TokenType.LPAREN):
                return False
            if not self._check(TokenType.RPAREN):
                self._consume_parameter()
                while self._match(TokenType.COMMA):
                    self._consume_parameter()
            return self._match(TokenType.RPAREN) and self._check(TokenType.ARROW)
        except ParseError:
            return False
        finally:
            self._current = save

    def _consume_parameter(self) -> Token:
        return self._consume(TokenType.IDENTIFIER, "Expected lambda parameter name")

    def _parse_lambda(self) -> AstNode:
        position = self._peek().position
        params: List[str] = []

        if self._match(TokenType.IDENTIFIER):
            params.append(self._previous().value)
        else:
            self._consume(TokenType.LPAREN, "Expected '(' before lambda parameters")
            if not self._check(TokenType.RPAREN):
                params.append(self._consume_parameter().value)
                while self._match(TokenType.COMMA):
                    params.append(self._consume_parameter().value)
            self._consume(TokenType.RPAREN, "Expected ')' after lambda parameters")

        if len(set(params)) != len(params):
            raise self._error("Duplicate lambda parameter name", self._previous())

        self._consume(TokenType.ARROW, "Expected '->' after lambda parameters")
        body = self._parse_expression()
        return LambdaNode(position=position, params=tuple(params), body=body)

    def _parse_postfix(self) -> AstNode:
        """Parses postfix chains: target.field, target.method(args), target[raw]."""
        node = self._parse_primary()

        while True:
            if self._match(TokenType.DOT):
                position = self._previous().position
                name_token = self._consume_name("Expected member name after '.'")

                if self._match(TokenType.LPAREN):
                    args = self._parse_argument_list()
                    node = MethodCallNode(
                        position=position,
                        target=node,
                        name=name_token.value,
                        args=tuple(args),
                    )
                else:
                    node = FieldAccessNode(
                        position=position,
                        target=node,
                        name=name_token.value,
                    )
            elif self._match(TokenType.BRACKET):
                bracket = self._previous()
                node = BracketInitNode(
                    position=bracket.position,
                    target=node,
                    raw_text=bracket.literal,
                )
            else:
                break

        return node

    def _parse_argument_list(self) -> List[AstNode]:
        """Parses call argument list (already consumed opening paren)."""
        args: List[AstNode] = []

        if not self._check(TokenType.RPAREN):
            args.append(self._parse_expression())
            while self._match(TokenType.COMMA):
                args.append(self._parse_expression())

        self._consume(TokenType.RPAREN, "Expected ')' after arguments")
        check_call_arg_count(len(args), self._limits)
        return args

    def _parse_new(self, position: int) -> AstNode:
        """Parses ``new pkg.Type(args)`` (keyword already consumed)."""
        parts = [self._consume(TokenType.IDENTIFIER, "Expected type name after 'new'").value]
        while self._match(TokenType.DOT):
            parts.append(self._consume_name("Expected type name after '.'").value)

        self._consume(TokenType.LPAREN, "Expected '(' after type name")
        args = self._parse_argument_list()
        return NewNode(position=position, type_name=".".join(parts), args=tuple(args))

    def _parse_primary(self) -> AstNode:
        """Parses primary expressions: literals, constructors, identifiers, parentheses."""
        token = self._peek()
        position = token.position

        if self._match(*_LITERAL_TOKENS):
            return LiteralNode(position=position, value=self._previous().literal)

        if self._match(TokenType.NEW):
            return self._parse_new(position)

        if self._match(TokenType.IDENTIFIER):
            return VariableNode(position=position, name=self._previous().value)

        # Parenthesized expression
        if self._match(TokenType.LPAREN):
            expr = self._parse_expression()
            self._consume(TokenType.RPAREN, "Expected ')' after expression")
            return expr

        raise self._error(
            f"Unexpected token: {token.value or token.type.value}", token
        )


def parse(
    source: str, limits: ExpressionLimits = DEFAULT_EXPRESSION_LIMITS
) -> AstNode:
    """
    Parses an expression string into an AST.

    Args:
        source: The expression string to parse
        limits: Optional expression limits

    Returns:
        The parsed AST

    Raises:
        TokenizerError: If tokenization fails
        ParseError: If parsing fails
        LimitExceededError: If the expression exceeds a limit
    """
    tokens = tokenize(source, limits)
    parser = Parser(tokens, source, limits)
    return parser.parse()
