"""
Facet Test Suite — Canonicalizer & Identifier Committer
=======================================================
Tests for canonical bytes, digest primitives, mnemonic words and the
identifier string format.

Usage:
    python -m pytest tests/test_canonical.py -v
"""
import sys
import os
import hashlib
import json
import re
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mnemonic import Mnemonic

from facet.canonical import (
    DEFAULT_TAG, Bip39Mnemonic, DigestPrimitive, Identifier, IdentifierCommitter,
    MnemonicEncoder, Sha256, TaggedSha256, canonical_form, canonicalize,
    commit_identifier, get_digest, identify, list_digests, register_digest,
)
from facet.parser import parse_fragment, parse_fragments
from facet.render import render_fragment, render_resolved
from facet.resolver import CompositionResolver
from facet.store import FragmentStore

IDENTIFIER_PATTERN = re.compile(r"^facet:if:1:[a-z2-7]+#[a-z]+-[a-z]+-[a-z]+$")

TOKEN = """
interface Base
    global supply: T.Amount
    owned owner*: T.Amount
    error overflow "too many"
    genesis
        writes supply
        assigns owner+
    end
end

interface Extra
    meta memo?: T.Memo
    public right*: T.Right
end

interface Token extends Base, Extra
    transition transfer default
        reads memo
        inputs owner+
        assigns owner+ default, right*
        errors overflow
    end
end
"""


def resolve(source: str, name: str):
    return CompositionResolver(FragmentStore(parse_fragments(source))).resolve(name)


# ─────────────────────────────────────────────
#  Canonical bytes
# ─────────────────────────────────────────────

class TestCanonicalize(unittest.TestCase):

    def test_deterministic(self):
        self.assertEqual(canonicalize(resolve(TOKEN, "Token")), canonicalize(resolve(TOKEN, "Token")))

    def test_ascii_json(self):
        data = canonicalize(resolve(TOKEN, "Token"))
        self.assertIsInstance(data, bytes)
        decoded = json.loads(data.decode("ascii"))
        self.assertEqual(decoded["name"], "Token")
        self.assertNotIn(b" ", data.replace(b"too many", b""))

    def test_non_ascii_message_escaped(self):
        resolved = resolve('interface A\n    error e "naïve"\nend\n', "A")
        self.assertIn(b"\\u00ef", canonicalize(resolved))

    def test_insertion_order_irrelevant(self):
        fragments = parse_fragments(TOKEN)
        forward = CompositionResolver(FragmentStore(fragments)).resolve("Token")
        backward = CompositionResolver(FragmentStore(reversed(fragments))).resolve("Token")
        self.assertEqual(canonicalize(forward), canonicalize(backward))

    def test_declaration_order_irrelevant(self):
        shuffled = """
interface Token
    error overflow "too many"
    owned owner*: T.Amount
    public right*: T.Right
    global supply: T.Amount
    meta memo?: T.Memo
    transition transfer default
        errors overflow
        assigns right*, owner+ default
        inputs owner+
        reads memo
    end
    genesis
        assigns owner+
        writes supply
    end
end
"""
        self.assertEqual(
            canonicalize(resolve(TOKEN, "Token")), canonicalize(resolve(shuffled, "Token"))
        )

    def test_provenance_excluded(self):
        form = canonical_form(resolve(TOKEN, "Token"))
        text = json.dumps(form)
        self.assertNotIn("origin", text)
        self.assertNotIn("lineage", text)
        self.assertNotIn("Extra", text)

    def test_content_changes_bytes(self):
        narrowed = TOKEN.replace("public right*: T.Right", "public right?: T.Right").replace(
            "right*\n", "right?\n"
        )
        self.assertNotEqual(
            canonicalize(resolve(TOKEN, "Token")), canonicalize(resolve(narrowed, "Token"))
        )

    def test_usage_default_only_when_set(self):
        transfer = canonical_form(resolve(TOKEN, "Token"))["transitions"][0]
        owner, right = transfer["assigns"]
        self.assertTrue(owner["default"])
        self.assertNotIn("default", right)
        self.assertEqual(right["multiplicity"], [0, None])


# ─────────────────────────────────────────────
#  Digests and mnemonics
# ─────────────────────────────────────────────

class TestDigest(unittest.TestCase):

    def test_tagged_sha256(self):
        tag = hashlib.sha256(DEFAULT_TAG.encode()).digest()
        expected = hashlib.sha256(tag + tag + b"payload").digest()
        self.assertEqual(TaggedSha256().digest(b"payload"), expected)

    def test_tag_separates_domains(self):
        self.assertNotEqual(TaggedSha256("a").digest(b"x"), TaggedSha256("b").digest(b"x"))

    def test_plain_sha256(self):
        self.assertEqual(Sha256().digest(b"x"), hashlib.sha256(b"x").digest())

    def test_registry(self):
        self.assertIn("tagged-sha256", list_digests())
        self.assertIsInstance(get_digest("SHA256"), Sha256)
        with self.assertRaises(ValueError):
            get_digest("md5")

    def test_register_custom(self):
        class Reversed(DigestPrimitive):
            name = "reversed-sha256"

            def __init__(self, tag=""):
                pass

            def digest(self, data):
                return hashlib.sha256(data).digest()[::-1]

        register_digest(Reversed.name, Reversed)
        self.assertIsInstance(get_digest("reversed-sha256"), Reversed)


class TestMnemonic(unittest.TestCase):

    def test_three_bip39_words(self):
        words = Bip39Mnemonic().encode(b"\x00" * 32)
        self.assertEqual(len(words), 3)
        wordlist = set(Mnemonic("english").wordlist)
        for word in words:
            self.assertIn(word, wordlist)

    def test_word_selection(self):
        digest = bytes(range(32))
        bits = int.from_bytes(hashlib.sha256(digest).digest()[:5], "big")
        wordlist = Mnemonic("english").wordlist
        expected = tuple(wordlist[(bits >> s) & 0x7FF] for s in (29, 18, 7))
        self.assertEqual(Bip39Mnemonic().encode(digest), expected)


# ─────────────────────────────────────────────
#  Identifier
# ─────────────────────────────────────────────

class TestIdentifier(unittest.TestCase):

    def setUp(self):
        self.resolved = resolve(TOKEN, "Token")
        self.ident = identify(self.resolved)

    def test_format(self):
        self.assertRegex(str(self.ident), IDENTIFIER_PATTERN)
        self.assertEqual(len(self.ident.token), 52)
        self.assertEqual(len(self.ident.words), 3)

    def test_stable(self):
        self.assertEqual(identify(resolve(TOKEN, "Token")), self.ident)

    def test_commit_matches_identify(self):
        self.assertEqual(commit_identifier(canonicalize(self.resolved)), self.ident)

    def test_parse_round_trip(self):
        parsed = Identifier.parse(str(self.ident))
        self.assertEqual(parsed, self.ident)
        self.assertEqual(parsed.digest, TaggedSha256().digest(canonicalize(self.resolved)))

    def test_parse_malformed(self):
        for text in ("", "facet:if:1:abc", "facet:if:x:abc#one-two-three", "FACET:if:1:ab#a-b-c"):
            with self.assertRaises(ValueError):
                Identifier.parse(text)

    def test_matches(self):
        committer = IdentifierCommitter()
        data = canonicalize(self.resolved)
        self.assertTrue(committer.matches(str(self.ident), data))
        self.assertFalse(committer.matches(self.ident, data + b" "))

    def test_scheme_and_version(self):
        committer = IdentifierCommitter(scheme="acme:iface", version=7)
        ident = committer.commit(b"{}")
        self.assertTrue(str(ident).startswith("acme:iface:7:"))
        self.assertEqual(Identifier.parse(str(ident)), ident)

    def test_unparseable_scheme_rejected(self):
        with self.assertRaises(ValueError):
            IdentifierCommitter(scheme="Acme")

    def test_other_digest_other_identifier(self):
        committer = IdentifierCommitter(digest=Sha256())
        self.assertNotEqual(committer.commit(canonicalize(self.resolved)), self.ident)

    def test_encoder_word_count_enforced(self):
        class TwoWords(MnemonicEncoder):
            def encode(self, digest):
                return ("alpha", "beta")

        with self.assertRaises(ValueError):
            IdentifierCommitter(mnemonic=TwoWords()).commit(b"x")


# ─────────────────────────────────────────────
#  Rendering
# ─────────────────────────────────────────────

class TestRender(unittest.TestCase):

    def test_fragment_round_trip(self):
        fragment = parse_fragment(
            "interface A extends B\n"
            "    global items[2..5]: T.Item\n"
            "    owned x+: T.V\n"
            "    error e \"say \\\"hi\\\"\"\n"
            "    retracts old\n"
            "    transition t required default\n"
            "        assigns x+ default\n"
            "        errors e\n"
            "    end\n"
            "end\n"
        )
        self.assertEqual(parse_fragment(render_fragment(fragment)), fragment)

    def test_resolved_reparses_to_same_identifier(self):
        flattened = parse_fragment(render_resolved(self.resolved()))
        self.assertEqual(flattened.extends, ())
        store = FragmentStore([flattened])
        again = CompositionResolver(store).resolve("Token")
        self.assertEqual(identify(again), identify(self.resolved()))

    @staticmethod
    def resolved():
        return resolve(TOKEN, "Token")


if __name__ == "__main__":
    unittest.main()
