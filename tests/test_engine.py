"""
Facet Test Suite — Engine & Configuration
=========================================
Tests for the parse → resolve → validate → identify pipeline and the
settings that drive it.

Usage:
    python -m pytest tests/test_engine.py -v
"""
import sys
import os
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from facet.canonical import identify
from facet.config import EngineConfig
from facet.engine import InterfaceEngine
from facet.errors import (
    ErrorMessageConflict, FinalOverrideViolation, StrictValidationError, UnknownFragment,
)

SOURCE = """
interface Base
    owned owner*: T.Amount
    genesis
        assigns owner+
    end
    transition transfer default final
        inputs owner+
        assigns owner+
    end
end

interface Good extends Base
    owned owner+: T.Amount
end

interface Noisy extends Base
    transition audit
        reads missing
    end
end

interface Broken extends Base
    transition transfer
    end
end
"""


# ─────────────────────────────────────────────
#  Pipeline
# ─────────────────────────────────────────────

class TestEngine(unittest.TestCase):

    def setUp(self):
        self.engine = InterfaceEngine.from_source(SOURCE)

    def test_load_returns_names(self):
        engine = InterfaceEngine()
        self.assertEqual(engine.load("interface A\nend\ninterface B\nend\n"), ["A", "B"])
        self.assertIn("B", engine.store)

    def test_compile_valid(self):
        compiled = self.engine.compile("Good")
        self.assertTrue(compiled.valid)
        self.assertEqual(compiled.resolved.lineage, ("Good", "Base"))
        self.assertEqual(compiled.identifier, identify(compiled.resolved))
        self.assertEqual(compiled.canonical, self.engine.canonicalize("Good"))

    def test_compile_with_violations(self):
        compiled = self.engine.compile("Noisy")
        self.assertFalse(compiled.valid)
        self.assertEqual([v.subject for v in compiled.violations], ["missing"])

    def test_steps_accept_names_or_results(self):
        resolved = self.engine.resolve("Noisy")
        self.assertEqual(self.engine.validate("Noisy"), self.engine.validate(resolved))
        self.assertEqual(self.engine.identify("Noisy"), self.engine.identify(resolved))

    def test_merge_error_propagates(self):
        with self.assertRaises(FinalOverrideViolation):
            self.engine.compile("Broken")

    def test_unknown_name(self):
        with self.assertRaises(UnknownFragment):
            self.engine.compile("Nope")

    def test_strict(self):
        engine = InterfaceEngine.from_source(SOURCE, config=EngineConfig(strict=True))
        with self.assertRaises(StrictValidationError) as ctx:
            engine.compile("Noisy")
        self.assertEqual(ctx.exception.interface, "Noisy")
        self.assertEqual(len(ctx.exception.violations), 1)
        self.assertTrue(engine.compile("Good").valid)

    def test_with_standard(self):
        engine = InterfaceEngine.from_source(
            "interface MyToken extends RGB20Fixed\nend\n", include_standard=True,
        )
        self.assertTrue(engine.compile("MyToken").valid)

    def test_digest_config_changes_identifier(self):
        plain = InterfaceEngine.from_source(SOURCE, config=EngineConfig(digest="sha256"))
        self.assertNotEqual(plain.identify("Good"), self.engine.identify("Good"))
        self.assertEqual(len(plain.identify("Good").words), 3)

    def test_scheme_config(self):
        engine = InterfaceEngine.from_source(
            SOURCE, config=EngineConfig(identifier_scheme="acme", identifier_version=2),
        )
        self.assertTrue(str(engine.identify("Good")).startswith("acme:2:"))


class TestBatch(unittest.TestCase):

    def test_failures_collected(self):
        engine = InterfaceEngine.from_source(SOURCE)
        report = engine.compile_all()
        self.assertEqual(sorted(report.compiled), ["Base", "Good", "Noisy"])
        self.assertIsInstance(report.failures["Broken"], FinalOverrideViolation)
        self.assertFalse(report.ok)
        self.assertEqual(report.violation_count, 1)
        self.assertIn("1 failed", report.summary())

    def test_strict_failures_collected(self):
        engine = InterfaceEngine.from_source(SOURCE, config=EngineConfig(strict=True))
        report = engine.compile_all(["Good", "Noisy"])
        self.assertEqual(list(report.compiled), ["Good"])
        self.assertIsInstance(report.failures["Noisy"], StrictValidationError)

    def test_workers_give_same_results(self):
        serial = InterfaceEngine.from_source(SOURCE).compile_all()
        threaded = InterfaceEngine.from_source(SOURCE, config=EngineConfig(workers=4)).compile_all()
        self.assertEqual(
            {n: c.identifier for n, c in serial.compiled.items()},
            {n: c.identifier for n, c in threaded.compiled.items()},
        )
        self.assertEqual(set(serial.failures), set(threaded.failures))

    def test_failure_logged(self):
        engine = InterfaceEngine.from_source(
            "interface L\n    error e \"a\"\nend\n"
            "interface R\n    error e \"b\"\nend\n"
            "interface J extends L, R\nend\n"
        )
        with self.assertLogs("facet.engine", level="WARNING"):
            report = engine.compile_all(["J"])
        self.assertIsInstance(report.failures["J"], ErrorMessageConflict)


# ─────────────────────────────────────────────
#  Configuration
# ─────────────────────────────────────────────

class TestConfig(unittest.TestCase):

    def test_defaults(self):
        config = EngineConfig()
        self.assertEqual(config.digest, "tagged-sha256")
        self.assertFalse(config.strict)
        self.assertEqual(config.workers, 1)

    def test_invalid_values(self):
        with self.assertRaises(ValueError):
            EngineConfig(workers=0)
        with self.assertRaises(ValueError):
            EngineConfig(digest="md5")
        with self.assertRaises(ValueError):
            EngineConfig(log_level="CHATTY")

    def test_scheme_must_parse_back(self):
        for scheme in ("Facet", "facet if", "9facet", ""):
            with self.assertRaises(ValueError):
                EngineConfig(identifier_scheme=scheme)
        with self.assertRaises(ValueError):
            EngineConfig.from_env({"FACET_IDENTIFIER_SCHEME": "ACME"})
        self.assertEqual(EngineConfig(identifier_scheme="acme:if.v2").identifier_scheme, "acme:if.v2")

    def test_from_dict(self):
        config = EngineConfig.from_dict({"strict": "yes", "workers": "3"})
        self.assertTrue(config.strict)
        self.assertEqual(config.workers, 3)

    def test_from_dict_rejects_unknown(self):
        with self.assertRaises(ValueError):
            EngineConfig.from_dict({"colour": "blue"})

    def test_from_dict_bad_values(self):
        with self.assertRaises(ValueError):
            EngineConfig.from_dict({"strict": "maybe"})
        with self.assertRaises(ValueError):
            EngineConfig.from_dict({"workers": "many"})

    def test_from_env(self):
        env = {"FACET_STRICT": "1", "FACET_DIGEST": "sha256", "OTHER": "x"}
        config = EngineConfig.from_env(env)
        self.assertTrue(config.strict)
        self.assertEqual(config.digest, "sha256")

    def test_overrides_win_over_env(self):
        config = EngineConfig.from_env({"FACET_WORKERS": "2"}, workers=5, strict=None)
        self.assertEqual(config.workers, 5)
        self.assertFalse(config.strict)

    def test_with_overrides_and_to_dict(self):
        config = EngineConfig().with_overrides(log_level="debug", workers=None)
        self.assertEqual(config.to_dict()["log_level"], "debug")
        self.assertEqual(config.level, 10)


if __name__ == "__main__":
    unittest.main()
