"""
Facet Test Suite — Lexer and Parser
===================================
Tests for tokenizing and parsing interface fragment source.

Usage:
    python -m pytest tests/test_parser.py -v
"""
import sys
import os
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from facet.lexer import Lexer, TokenType
from facet.model import GENESIS, Modifier, SlotKind
from facet.multiplicity import ANY_COUNT, ONE, ONE_OR_MORE, OPTIONAL, Multiplicity
from facet.parser import parse_fragment, parse_fragments


ASSET = """
# A small fungible asset
interface Asset extends Named, Supply
    global issuedSupply: RGBContract.Amount
    owned assetOwner*: RGBContract.Amount
    public burnRight?: RGBContract.Rights
    meta burnMeta: RGBContract.BurnMeta
    error nonEqualAmounts "the sum of spent assets doesn't equal the \\"outputs\\""
    retracts rename, replace
    genesis abstract
        writes issuedSupply
        assigns assetOwner+
    end
    transition transfer required default
        inputs assetOwner+
        assigns assetOwner+ default, burnRight?
        errors nonEqualAmounts
    end
    transition burn final
        reads burnMeta
        inputs burnRight
    end
end
"""


# ─────────────────────────────────────────────
#  Lexer Tests
# ─────────────────────────────────────────────

class TestLexer(unittest.TestCase):

    def test_keywords(self):
        tokens = Lexer("interface extends end genesis transition").tokenize()
        self.assertEqual(
            [t.type for t in tokens[:-1]],
            [TokenType.KW_INTERFACE, TokenType.KW_EXTENDS, TokenType.KW_END,
             TokenType.KW_GENESIS, TokenType.KW_TRANSITION],
        )

    def test_identifier(self):
        tokens = Lexer("assetOwner").tokenize()
        self.assertEqual(tokens[0].type, TokenType.IDENTIFIER)
        self.assertEqual(tokens[0].value, "assetOwner")

    def test_qualifiers(self):
        tokens = Lexer("a? b+ c*").tokenize()
        types = [t.type for t in tokens if t.type != TokenType.IDENTIFIER]
        self.assertEqual(
            types, [TokenType.QUESTION, TokenType.PLUS, TokenType.STAR, TokenType.EOF]
        )

    def test_string_escapes(self):
        tokens = Lexer(r'"say \"hi\"\n"').tokenize()
        self.assertEqual(tokens[0].type, TokenType.STRING)
        self.assertEqual(tokens[0].value, 'say "hi"\n')

    def test_comment_dropped(self):
        tokens = Lexer("# nothing here\nend").tokenize()
        self.assertEqual(tokens[0].type, TokenType.NEWLINE)
        self.assertEqual(tokens[1].type, TokenType.KW_END)

    def test_positions(self):
        tokens = Lexer("interface\n  Asset").tokenize()
        asset = tokens[2]
        self.assertEqual((asset.line, asset.col), (2, 3))

    def test_unknown_character(self):
        tokens = Lexer("a ! b").tokenize()
        self.assertEqual(tokens[1].type, TokenType.UNKNOWN)

    def test_unterminated_string(self):
        with self.assertRaises(SyntaxError):
            Lexer('"open').tokenize()

    def test_always_ends_with_eof(self):
        self.assertEqual(Lexer("").tokenize()[-1].type, TokenType.EOF)


# ─────────────────────────────────────────────
#  Parser Tests
# ─────────────────────────────────────────────

class TestParser(unittest.TestCase):

    def setUp(self):
        self.fragment = parse_fragment(ASSET)

    def test_header(self):
        self.assertEqual(self.fragment.name, "Asset")
        self.assertEqual(self.fragment.extends, ("Named", "Supply"))
        self.assertEqual(self.fragment.line, 3)

    def test_slots(self):
        slots = {(s.kind, s.name): s for s in self.fragment.slots}
        supply = slots[(SlotKind.GLOBAL, "issuedSupply")]
        self.assertEqual(supply.value_type, "RGBContract.Amount")
        self.assertEqual(supply.multiplicity, ONE)
        self.assertEqual(slots[(SlotKind.OWNED, "assetOwner")].multiplicity, ANY_COUNT)
        self.assertEqual(slots[(SlotKind.PUBLIC, "burnRight")].multiplicity, OPTIONAL)
        self.assertIn((SlotKind.META, "burnMeta"), slots)

    def test_origin_stamped(self):
        for slot in self.fragment.slots:
            self.assertEqual(slot.origin, "Asset")
        self.assertEqual(self.fragment.genesis.origin, "Asset")

    def test_error_message_escapes(self):
        error = self.fragment.errors[0]
        self.assertEqual(error.name, "nonEqualAmounts")
        self.assertEqual(error.message, 'the sum of spent assets doesn\'t equal the "outputs"')

    def test_retracts(self):
        self.assertEqual(self.fragment.retracts, ("rename", "replace"))

    def test_genesis(self):
        genesis = self.fragment.genesis
        self.assertEqual(genesis.name, GENESIS)
        self.assertEqual(genesis.modifiers, frozenset({Modifier.ABSTRACT}))
        self.assertEqual([u.name for u in genesis.writes], ["issuedSupply"])
        self.assertEqual(genesis.assigns[0].multiplicity, ONE_OR_MORE)

    def test_transition_modifiers(self):
        transfer = self.fragment.transition("transfer")
        self.assertTrue(transfer.is_required)
        self.assertTrue(transfer.is_default_operation)
        self.assertFalse(transfer.is_final)
        self.assertTrue(self.fragment.transition("burn").is_final)

    def test_default_assignment(self):
        transfer = self.fragment.transition("transfer")
        self.assertEqual(transfer.default_assignments, ("assetOwner",))
        self.assertEqual(transfer.errors, frozenset({"nonEqualAmounts"}))

    def test_reads(self):
        self.assertEqual(self.fragment.transition("burn").reads, frozenset({"burnMeta"}))

    def test_explicit_interval(self):
        fragment = parse_fragment("interface A\n    global items[2..5]: T.Item\n    global more[3..*]: T.Item\nend\n")
        slots = {s.name: s for s in fragment.slots}
        self.assertEqual(slots["items"].multiplicity, Multiplicity(2, 5))
        self.assertEqual(slots["more"].multiplicity, Multiplicity(3, None))

    def test_several_interfaces(self):
        fragments = parse_fragments("interface A\nend\n\ninterface B extends A\nend\n")
        self.assertEqual([f.name for f in fragments], ["A", "B"])
        self.assertIsNone(fragments[0].genesis)

    def test_parse_fragment_requires_one(self):
        with self.assertRaises(SyntaxError):
            parse_fragment("interface A\nend\ninterface B\nend\n")


class TestParserErrors(unittest.TestCase):

    def test_errors_accumulate(self):
        source = "interface A\n    global x:\n    owned y!: T.V\nend\n"
        with self.assertRaises(SyntaxError) as ctx:
            parse_fragments(source)
        self.assertIn("2 parse error(s)", str(ctx.exception))
        self.assertIn("L2:", str(ctx.exception))
        self.assertIn("L3:", str(ctx.exception))

    def test_missing_end(self):
        with self.assertRaises(SyntaxError) as ctx:
            parse_fragments("interface A\n    global x: T.V\n")
        self.assertIn("Missing 'end'", str(ctx.exception))

    def test_missing_rule_end(self):
        source = "interface A\n    transition t\n        reads m\ninterface B\nend\n"
        with self.assertRaises(SyntaxError) as ctx:
            parse_fragments(source)
        self.assertIn("Missing 'end' of 't'", str(ctx.exception))

    def test_duplicate_slot(self):
        source = "interface A\n    global x: T.V\n    global x?: T.V\nend\n"
        with self.assertRaises(SyntaxError) as ctx:
            parse_fragments(source)
        self.assertIn("twice", str(ctx.exception))

    def test_same_name_different_kind_allowed(self):
        fragment = parse_fragment("interface A\n    global x: T.V\n    owned x: T.V\nend\n")
        self.assertEqual(len(fragment.slots), 2)

    def test_default_only_on_assigns(self):
        source = "interface A\n    transition t\n        inputs x default\n    end\nend\n"
        with self.assertRaises(SyntaxError) as ctx:
            parse_fragments(source)
        self.assertIn("only allowed on assigns", str(ctx.exception))

    def test_duplicate_usage(self):
        source = "interface A\n    transition t\n        assigns x, x?\n    end\nend\n"
        with self.assertRaises(SyntaxError):
            parse_fragments(source)

    def test_second_genesis(self):
        source = "interface A\n    genesis\n    end\n    genesis\n    end\nend\n"
        with self.assertRaises(SyntaxError) as ctx:
            parse_fragments(source)
        self.assertIn("genesis more than once", str(ctx.exception))

    def test_genesis_not_default(self):
        with self.assertRaises(SyntaxError):
            parse_fragments("interface A\n    genesis default\n    end\nend\n")

    def test_retracting_genesis(self):
        with self.assertRaises(SyntaxError):
            parse_fragments("interface A\n    retracts genesis\nend\n")

    def test_stray_top_level(self):
        with self.assertRaises(SyntaxError) as ctx:
            parse_fragments("global x: T.V\n")
        self.assertIn("Expected 'interface'", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
