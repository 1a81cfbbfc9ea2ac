"""
Facet Lexer
===========
Tokenizes interface fragment source into a stream of typed tokens.
Handles keywords, identifiers, string literals, multiplicity qualifiers
and punctuation. Newlines are significant; `#` starts a comment.
"""
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator


class TokenType(Enum):
    """All token types in the fragment language."""
    # Block keywords
    KW_INTERFACE  = auto()
    KW_EXTENDS    = auto()
    KW_END        = auto()
    KW_GENESIS    = auto()
    KW_TRANSITION = auto()
    KW_ERROR      = auto()
    KW_RETRACTS   = auto()

    # Slot kinds
    KW_GLOBAL     = auto()
    KW_OWNED      = auto()
    KW_PUBLIC     = auto()
    KW_META       = auto()

    # Rule clauses
    KW_READS      = auto()
    KW_WRITES     = auto()
    KW_ASSIGNS    = auto()
    KW_INPUTS     = auto()
    KW_ERRORS     = auto()

    # Modifiers
    KW_REQUIRED   = auto()
    KW_ABSTRACT   = auto()
    KW_DEFAULT    = auto()
    KW_FINAL      = auto()

    # Punctuation
    QUESTION    = auto()   # ?
    PLUS        = auto()   # +
    STAR        = auto()   # *
    COMMA       = auto()   # ,
    COLON       = auto()   # :
    DOT         = auto()   # .
    LBRACKET    = auto()   # [
    RBRACKET    = auto()   # ]

    # Literals
    STRING      = auto()   # "..."
    NUMBER      = auto()   # 42
    IDENTIFIER  = auto()

    # Special
    NEWLINE     = auto()
    EOF         = auto()
    COMMENT     = auto()   # # ...
    UNKNOWN     = auto()


@dataclass
class Token:
    """A single token from fragment source."""
    type: TokenType
    value: str
    line: int
    col: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, L{self.line}:{self.col})"


SINGLE_CHAR_TOKENS = {
    "?": TokenType.QUESTION,
    "+": TokenType.PLUS,
    "*": TokenType.STAR,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
    ".": TokenType.DOT,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
}

KEYWORDS = {
    "interface": TokenType.KW_INTERFACE,
    "extends": TokenType.KW_EXTENDS,
    "end": TokenType.KW_END,
    "genesis": TokenType.KW_GENESIS,
    "transition": TokenType.KW_TRANSITION,
    "error": TokenType.KW_ERROR,
    "retracts": TokenType.KW_RETRACTS,
    "global": TokenType.KW_GLOBAL,
    "owned": TokenType.KW_OWNED,
    "public": TokenType.KW_PUBLIC,
    "meta": TokenType.KW_META,
    "reads": TokenType.KW_READS,
    "writes": TokenType.KW_WRITES,
    "assigns": TokenType.KW_ASSIGNS,
    "inputs": TokenType.KW_INPUTS,
    "errors": TokenType.KW_ERRORS,
    "required": TokenType.KW_REQUIRED,
    "abstract": TokenType.KW_ABSTRACT,
    "default": TokenType.KW_DEFAULT,
    "final": TokenType.KW_FINAL,
}


class Lexer:
    """
    Tokenizes fragment source.

    Usage:
        lexer = Lexer(source_code)
        tokens = lexer.tokenize()
    """

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.col = 1

    def _current(self) -> str | None:
        if self.pos >= len(self.source):
            return None
        return self.source[self.pos]

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    def _skip_whitespace(self):
        """Skip spaces and tabs, but NOT newlines."""
        while self.pos < len(self.source) and self.source[self.pos] in (" ", "\t", "\r"):
            self._advance()

    def _read_string(self) -> Token:
        """Read a double-quoted string literal."""
        start_line, start_col = self.line, self.col
        self._advance()  # consume opening "
        chars = []
        while self.pos < len(self.source):
            ch = self._advance()
            if ch == "\n":
                break
            if ch == '"':
                return Token(TokenType.STRING, "".join(chars), start_line, start_col)
            if ch == "\\" and self.pos < len(self.source):
                next_ch = self._advance()
                escape_map = {"n": "\n", "t": "\t", "\\": "\\", '"': '"'}
                chars.append(escape_map.get(next_ch, next_ch))
            else:
                chars.append(ch)
        raise SyntaxError(f"Unterminated string at line {start_line}, col {start_col}")

    def _read_number(self) -> Token:
        start_line, start_col = self.line, self.col
        chars = []
        while self._current() is not None and self._current().isdigit():
            chars.append(self._advance())
        return Token(TokenType.NUMBER, "".join(chars), start_line, start_col)

    def _read_identifier(self) -> Token:
        """Read an identifier or keyword."""
        start_line, start_col = self.line, self.col
        chars = []
        while self.pos < len(self.source):
            ch = self._current()
            if ch is not None and (ch.isalnum() or ch == "_"):
                chars.append(self._advance())
            else:
                break
        word = "".join(chars)
        token_type = KEYWORDS.get(word, TokenType.IDENTIFIER)
        return Token(token_type, word, start_line, start_col)

    def _read_comment(self) -> Token:
        """Read a line comment starting with #."""
        start_line, start_col = self.line, self.col
        chars = []
        self._advance()  # consume #
        while self.pos < len(self.source) and self._current() != "\n":
            chars.append(self._advance())
        return Token(TokenType.COMMENT, "".join(chars).strip(), start_line, start_col)

    def tokenize(self) -> list[Token]:
        """Tokenize the entire source into a list of tokens."""
        tokens = [t for t in self._iter_tokens() if t.type != TokenType.COMMENT]
        tokens.append(Token(TokenType.EOF, "", self.line, self.col))
        return tokens

    def _iter_tokens(self) -> Iterator[Token]:
        """Generate tokens one at a time."""
        while self.pos < len(self.source):
            self._skip_whitespace()

            if self.pos >= len(self.source):
                break

            ch = self._current()

            if ch == "\n":
                yield Token(TokenType.NEWLINE, "\\n", self.line, self.col)
                self._advance()
                continue

            if ch == "#":
                yield self._read_comment()
                continue

            if ch == '"':
                yield self._read_string()
                continue

            if ch.isdigit():
                yield self._read_number()
                continue

            if ch in SINGLE_CHAR_TOKENS:
                yield Token(SINGLE_CHAR_TOKENS[ch], ch, self.line, self.col)
                self._advance()
                continue

            if ch.isalpha() or ch == "_":
                yield self._read_identifier()
                continue

            # Reported by the parser with its position
            yield Token(TokenType.UNKNOWN, ch, self.line, self.col)
            self._advance()
