"""
Facet Test Suite — Example Interfaces
=====================================
Compiles the interface sources under examples/ end to end.

Usage:
    python -m pytest tests/test_examples.py -v
"""
import sys
import os
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from facet.engine import InterfaceEngine
from facet.errors import ErrorMessageConflict
from facet.model import SlotKind
from facet.multiplicity import ONE_OR_MORE

EXAMPLES = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "examples")


def load(name: str, include_standard: bool = False) -> InterfaceEngine:
    with open(os.path.join(EXAMPLES, name), encoding="utf-8") as f:
        return InterfaceEngine.from_source(f.read(), include_standard=include_standard)


class TestScenarios(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.engine = load("scenarios.iface")
        cls.report = cls.engine.compile_all()

    def test_all_clean(self):
        self.assertEqual(self.report.failures, {})
        self.assertTrue(self.report.ok, self.report.summary())

    def test_narrowing(self):
        resolved = self.report.compiled["NarrowAsset"].resolved
        self.assertEqual(resolved.slot(SlotKind.OWNED, "assetOwner").multiplicity, ONE_OR_MORE)

    def test_inherited_requirement(self):
        burn = self.report.compiled["BurnDescendant"].resolved.transitions["burn"]
        self.assertTrue(burn.is_required)
        self.assertEqual(burn.origin, "Burnable")

    def test_diamond(self):
        resolved = self.report.compiled["Exchange"].resolved
        self.assertEqual(resolved.lineage, ("Exchange", "Trading", "Settling", "Ledger"))
        self.assertEqual(sorted(resolved.transitions), ["settle", "trade"])
        self.assertTrue(resolved.transitions["trade"].is_final)


class TestWallet(unittest.TestCase):

    def test_wallet_on_standard_library(self):
        engine = load("wallet.iface", include_standard=True)
        compiled = engine.compile("WalletToken")
        self.assertTrue(compiled.valid, [str(v) for v in compiled.violations])
        transfer = compiled.resolved.transitions["transfer"]
        self.assertIn("memo", transfer.reads)
        self.assertFalse(transfer.is_abstract)
        self.assertIn("rename", compiled.resolved.transitions)


class TestDiagnostics(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.report = load("diagnostics.iface").compile_all()

    def test_sloppy_reports_everything(self):
        violations = self.report.compiled["Sloppy"].violations
        self.assertEqual(len(violations), 7)
        self.assertEqual(
            {v.kind.value for v in violations},
            {"UncoveredRequiredSlot", "UnknownErrorReference", "MultiplicityViolation",
             "MissingDefault", "UnknownSlotReference", "AmbiguousDefaultOperation"},
        )

    def test_conflict_fails_alone(self):
        self.assertEqual(list(self.report.failures), ["Conflicted"])
        self.assertIsInstance(self.report.failures["Conflicted"], ErrorMessageConflict)
        self.assertTrue(self.report.compiled["LeftCatalog"].valid)


if __name__ == "__main__":
    unittest.main()
