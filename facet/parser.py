"""
Facet Parser
============
Recursive-descent parser that builds Fragment records from the token
stream produced by the Lexer.

Supports:
  - interface blocks with extends lists
  - slot declarations with multiplicity qualifiers (?, +, *, [l..u])
  - error catalog entries and retractions
  - genesis and transition blocks with modifiers and body clauses
  - Error accumulation (collects all parse errors, reports at end)
"""
from dataclasses import dataclass

from .lexer import Lexer, Token, TokenType
from .model import GENESIS, ErrorDef, Fragment, Modifier, OperationRule, SlotDecl, SlotKind, SlotUsage
from .multiplicity import Multiplicity


@dataclass
class ParseError:
    """A single parse error with location."""
    message: str
    line: int
    col: int


SLOT_KINDS = {
    TokenType.KW_GLOBAL: SlotKind.GLOBAL,
    TokenType.KW_OWNED: SlotKind.OWNED,
    TokenType.KW_PUBLIC: SlotKind.PUBLIC,
    TokenType.KW_META: SlotKind.META,
}

MODIFIERS = {
    TokenType.KW_REQUIRED: Modifier.REQUIRED,
    TokenType.KW_ABSTRACT: Modifier.ABSTRACT,
    TokenType.KW_DEFAULT: Modifier.DEFAULT,
    TokenType.KW_FINAL: Modifier.FINAL,
}

QUALIFIERS = {
    TokenType.QUESTION: "?",
    TokenType.PLUS: "+",
    TokenType.STAR: "*",
}

CLAUSES = {
    TokenType.KW_READS: "reads",
    TokenType.KW_WRITES: "writes",
    TokenType.KW_ASSIGNS: "assigns",
    TokenType.KW_INPUTS: "inputs",
    TokenType.KW_ERRORS: "errors",
}

# Tokens that open a new block; seeing one inside a body means an `end` is missing
BLOCK_STARTS = (TokenType.KW_INTERFACE, TokenType.KW_GENESIS, TokenType.KW_TRANSITION)


class Parser:
    """
    Recursive-descent parser for fragment source.

    Usage:
        parser = Parser(tokens)
        fragments = parser.parse()

    Features:
        - Error accumulation: collects all parse errors, reports at end
        - Model-level problems (duplicate slots, reserved names) are reported
          as parse errors at the offending block
    """

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0
        self.errors: list[ParseError] = []

    def _current(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._current().type in types

    def _expect(self, token_type: TokenType, what: str = "") -> Token:
        token = self._current()
        if token.type != token_type:
            self._fail(
                f"Expected {what or token_type.name}, got {token.type.name} ({token.value!r})"
            )
        return self._advance()

    def _skip_newlines(self):
        while self._current().type == TokenType.NEWLINE:
            self._advance()

    def _record_error(self, message: str, token: Token | None = None):
        """Record a parse error with location, continue parsing."""
        token = token or self._current()
        self.errors.append(ParseError(message, token.line, token.col))

    def _fail(self, message: str):
        self._record_error(message)
        raise SyntaxError(message)

    def _synchronize(self):
        """Skip the rest of the current line."""
        while not self._check(TokenType.NEWLINE, TokenType.EOF):
            self._advance()

    def _end_of_line(self):
        if not self._check(TokenType.NEWLINE, TokenType.EOF):
            token = self._current()
            self._fail(f"Unexpected {token.type.name} ({token.value!r}) at end of line")

    # ─────────────────────────────────────────────────────────
    #  Top-Level Parsing
    # ─────────────────────────────────────────────────────────

    def parse(self) -> list[Fragment]:
        """Parse the token stream into fragments, in source order."""
        fragments: list[Fragment] = []
        self._skip_newlines()

        while not self._check(TokenType.EOF):
            if self._check(TokenType.KW_INTERFACE):
                fragment = self._parse_interface()
                if fragment is not None:
                    fragments.append(fragment)
            else:
                token = self._current()
                self._record_error(f"Expected 'interface', got {token.type.name} ({token.value!r})")
                self._advance()
                self._synchronize()
            self._skip_newlines()

        if self.errors:
            msgs = [f"  L{e.line}:{e.col} — {e.message}" for e in self.errors]
            raise SyntaxError(
                f"{len(self.errors)} parse error(s):\n" + "\n".join(msgs)
            )

        return fragments

    # ─────────────────────────────────────────────────────────
    #  Interface Blocks
    # ─────────────────────────────────────────────────────────

    def _parse_interface(self) -> Fragment | None:
        """Parse: interface Name [extends A, B] ... end"""
        start = self._advance()  # consume 'interface'
        try:
            name = self._expect(TokenType.IDENTIFIER, "interface name").value
            extends: list[str] = []
            if self._check(TokenType.KW_EXTENDS):
                self._advance()
                extends = self._parse_name_list()
            self._end_of_line()
        except SyntaxError:
            self._synchronize()
            name, extends = None, []

        body = {"slots": [], "errors": [], "genesis": [], "transitions": [], "retracts": []}
        self._parse_interface_body(body)

        if name is None:
            return None
        if len(body["genesis"]) > 1:
            self._record_error(f"Interface '{name}' declares genesis more than once", start)
            return None
        try:
            return Fragment(
                name=name,
                extends=tuple(extends),
                slots=tuple(body["slots"]),
                errors=tuple(body["errors"]),
                genesis=body["genesis"][0] if body["genesis"] else None,
                transitions=tuple(body["transitions"]),
                retracts=tuple(body["retracts"]),
                line=start.line,
                col=start.col,
            )
        except ValueError as exc:
            self._record_error(str(exc), start)
            return None

    def _parse_interface_body(self, body: dict):
        self._skip_newlines()
        while not self._check(TokenType.KW_END, TokenType.EOF):
            token = self._current()
            if token.type == TokenType.KW_INTERFACE:
                self._record_error("Missing 'end' before next interface")
                return
            try:
                if token.type in SLOT_KINDS:
                    body["slots"].append(self._parse_slot())
                elif token.type == TokenType.KW_ERROR:
                    body["errors"].append(self._parse_error_decl())
                elif token.type == TokenType.KW_RETRACTS:
                    self._advance()
                    body["retracts"].extend(self._parse_name_list())
                    self._end_of_line()
                elif token.type == TokenType.KW_GENESIS:
                    rule = self._parse_rule()
                    if rule is not None:
                        body["genesis"].append(rule)
                elif token.type == TokenType.KW_TRANSITION:
                    rule = self._parse_rule()
                    if rule is not None:
                        body["transitions"].append(rule)
                else:
                    self._fail(f"Unexpected {token.type.name} ({token.value!r}) in interface body")
            except SyntaxError:
                self._synchronize()
            self._skip_newlines()

        if self._check(TokenType.EOF):
            self._record_error("Missing 'end' of interface")
        else:
            self._advance()  # consume 'end'

    def _parse_slot(self) -> SlotDecl:
        """Parse: kind name[q]: Lib.Type"""
        start = self._advance()
        kind = SLOT_KINDS[start.type]
        name = self._expect(TokenType.IDENTIFIER, "slot name").value
        multiplicity = self._parse_qualifier()
        self._expect(TokenType.COLON, "':'")
        value_type = self._parse_type_ref()
        self._end_of_line()
        return self._build(
            SlotDecl, name=name, kind=kind, value_type=value_type,
            multiplicity=multiplicity, line=start.line, col=start.col,
        )

    def _parse_error_decl(self) -> ErrorDef:
        """Parse: error name "message" """
        start = self._advance()
        name = self._expect(TokenType.IDENTIFIER, "error name").value
        message = self._expect(TokenType.STRING, "error message").value
        self._end_of_line()
        return self._build(ErrorDef, name=name, message=message, line=start.line, col=start.col)

    def _build(self, cls, **fields):
        try:
            return cls(**fields)
        except ValueError as exc:
            self._fail(str(exc))

    # ─────────────────────────────────────────────────────────
    #  Rule Blocks
    # ─────────────────────────────────────────────────────────

    def _parse_rule(self) -> OperationRule | None:
        """Parse: genesis [mods] ... end  |  transition name [mods] ... end"""
        start = self._advance()
        if start.type == TokenType.KW_GENESIS:
            name = GENESIS
        else:
            name = self._expect(TokenType.IDENTIFIER, "transition name").value
        modifiers = self._parse_modifiers()
        if name == GENESIS and Modifier.DEFAULT in modifiers:
            self._record_error("Genesis cannot be the default operation", start)
        self._end_of_line()

        clauses: dict[str, list] = {clause: [] for clause in CLAUSES.values()}
        self._skip_newlines()
        while not self._check(TokenType.KW_END, TokenType.EOF):
            token = self._current()
            if token.type in BLOCK_STARTS:
                self._record_error(f"Missing 'end' of '{name}'")
                return None
            try:
                self._parse_clause(clauses)
            except SyntaxError:
                self._synchronize()
            self._skip_newlines()

        if self._check(TokenType.EOF):
            self._record_error(f"Missing 'end' of '{name}'")
            return None
        self._advance()  # consume 'end'
        self._end_of_line()

        try:
            return OperationRule(
                name=name,
                modifiers=modifiers,
                reads=self._unique(clauses["reads"], "reads", name, start),
                writes=clauses["writes"],
                assigns=clauses["assigns"],
                inputs=clauses["inputs"],
                errors=self._unique(clauses["errors"], "errors", name, start),
                line=start.line,
                col=start.col,
            )
        except ValueError as exc:
            self._record_error(str(exc), start)
            return None

    def _unique(self, names: list[str], clause: str, rule: str, start: Token) -> frozenset[str]:
        seen = set()
        for name in names:
            if name in seen:
                self._record_error(f"'{name}' listed twice in {clause} of '{rule}'", start)
            seen.add(name)
        return frozenset(names)

    def _parse_modifiers(self) -> frozenset[Modifier]:
        modifiers: set[Modifier] = set()
        while self._current().type in MODIFIERS:
            token = self._advance()
            modifier = MODIFIERS[token.type]
            if modifier in modifiers:
                self._record_error(f"Duplicate modifier '{token.value}'", token)
            modifiers.add(modifier)
        return frozenset(modifiers)

    def _parse_clause(self, clauses: dict[str, list]):
        token = self._current()
        if token.type not in CLAUSES:
            self._fail(f"Expected a rule clause, got {token.type.name} ({token.value!r})")
        self._advance()
        clause = CLAUSES[token.type]
        if clause in ("reads", "errors"):
            clauses[clause].extend(self._parse_name_list())
        else:
            clauses[clause].extend(self._parse_usage_list(allow_default=clause == "assigns"))
        self._end_of_line()

    def _parse_usage_list(self, allow_default: bool) -> list[SlotUsage]:
        """Parse: name[q] [default], ..."""
        usages = []
        while True:
            name = self._expect(TokenType.IDENTIFIER, "slot name").value
            multiplicity = self._parse_qualifier()
            default = False
            if self._check(TokenType.KW_DEFAULT):
                if not allow_default:
                    self._fail("'default' is only allowed on assigns")
                self._advance()
                default = True
            usages.append(SlotUsage(name, multiplicity, default=default))
            if not self._check(TokenType.COMMA):
                return usages
            self._advance()

    # ─────────────────────────────────────────────────────────
    #  Small pieces
    # ─────────────────────────────────────────────────────────

    def _parse_name_list(self) -> list[str]:
        """Parse a comma-separated list of identifiers on one line."""
        names = [self._expect(TokenType.IDENTIFIER, "name").value]
        while self._check(TokenType.COMMA):
            self._advance()
            names.append(self._expect(TokenType.IDENTIFIER, "name").value)
        return names

    def _parse_qualifier(self) -> Multiplicity:
        """Parse an optional ?, +, * or [lower..upper] suffix."""
        token = self._current()
        if token.type in QUALIFIERS:
            self._advance()
            return Multiplicity.from_qualifier(QUALIFIERS[token.type])
        if token.type != TokenType.LBRACKET:
            return Multiplicity.from_qualifier("")

        self._advance()
        lower = int(self._expect(TokenType.NUMBER, "lower bound").value)
        self._expect(TokenType.DOT, "'..'")
        self._expect(TokenType.DOT, "'..'")
        if self._check(TokenType.STAR):
            self._advance()
            upper = None
        else:
            upper = int(self._expect(TokenType.NUMBER, "upper bound or '*'").value)
        self._expect(TokenType.RBRACKET, "']'")
        try:
            return Multiplicity(lower, upper)
        except ValueError as exc:
            self._fail(str(exc))

    def _parse_type_ref(self) -> str:
        """Parse: Lib.Type (dotted path)."""
        parts = [self._expect(TokenType.IDENTIFIER, "value type").value]
        while self._check(TokenType.DOT):
            self._advance()
            parts.append(self._expect(TokenType.IDENTIFIER, "value type").value)
        return ".".join(parts)


def parse_fragments(source: str) -> list[Fragment]:
    """Tokenize and parse `source`. Raises SyntaxError listing every problem."""
    tokens = Lexer(source).tokenize()
    return Parser(tokens).parse()


def parse_fragment(source: str) -> Fragment:
    """Parse source holding exactly one interface block."""
    fragments = parse_fragments(source)
    if len(fragments) != 1:
        raise SyntaxError(f"Expected exactly one interface, found {len(fragments)}")
    return fragments[0]
