"""
Facet Engine
============
Orchestrates the pipeline for named interfaces:

    parse → store → resolve → validate → canonicalize → identify

Resolutions of different names only read the store, so a batch is run
on a thread pool when more than one worker is configured. A merge error
fails only the interface it belongs to.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable

from .canonical import Bip39Mnemonic, Identifier, IdentifierCommitter, canonicalize, get_digest
from .config import EngineConfig
from .errors import FacetError, MergeError, StrictValidationError
from .model import ResolvedInterface
from .parser import parse_fragments
from .resolver import CompositionResolver
from .standard import standard_store
from .store import FragmentStore
from .validator import ConsistencyValidator, Violation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledInterface:
    """A resolved interface with its violations and identifier."""
    name: str
    resolved: ResolvedInterface
    violations: tuple[Violation, ...]
    canonical: bytes
    identifier: Identifier

    @property
    def valid(self) -> bool:
        return not self.violations


@dataclass
class CompilationReport:
    """Outcome of compiling several interfaces."""
    compiled: dict[str, CompiledInterface] = field(default_factory=dict)
    failures: dict[str, FacetError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures and all(c.valid for c in self.compiled.values())

    @property
    def violation_count(self) -> int:
        return sum(len(c.violations) for c in self.compiled.values())

    def summary(self) -> str:
        return (
            f"{len(self.compiled)} compiled, {len(self.failures)} failed, "
            f"{self.violation_count} violation(s)"
        )


class InterfaceEngine:
    """
    Resolves, validates and identifies interfaces held in a FragmentStore.

    Usage:
        engine = InterfaceEngine.from_source(text, include_standard=True)
        compiled = engine.compile("RGB20Fixed")
        print(compiled.identifier)
    """

    def __init__(self, store: FragmentStore | None = None, config: EngineConfig | None = None):
        self.store = store if store is not None else FragmentStore()
        self.config = config or EngineConfig()
        self.resolver = CompositionResolver(self.store)
        self.committer = IdentifierCommitter(
            digest=get_digest(self.config.digest, self.config.digest_tag),
            mnemonic=Bip39Mnemonic(),
            scheme=self.config.identifier_scheme,
            version=self.config.identifier_version,
        )

    @classmethod
    def from_source(cls, text: str, include_standard: bool = False,
                    config: EngineConfig | None = None) -> InterfaceEngine:
        """Engine over the fragments in `text`, optionally on top of the standard library."""
        store = standard_store() if include_standard else FragmentStore()
        engine = cls(store, config)
        engine.load(text)
        return engine

    def load(self, text: str) -> list[str]:
        """Parse `text` and insert its fragments. Returns their names."""
        fragments = parse_fragments(text)
        self.store.extend(fragments)
        return [f.name for f in fragments]

    # ─────────────────────────────────────────────────────────
    #  Single-interface steps
    # ─────────────────────────────────────────────────────────

    def _resolved(self, target: ResolvedInterface | str) -> ResolvedInterface:
        if isinstance(target, ResolvedInterface):
            return target
        return self.resolve(target)

    def resolve(self, name: str) -> ResolvedInterface:
        return self.resolver.resolve(name)

    def validate(self, target: ResolvedInterface | str) -> list[Violation]:
        return ConsistencyValidator().validate(self._resolved(target))

    def canonicalize(self, target: ResolvedInterface | str) -> bytes:
        return canonicalize(self._resolved(target))

    def identify(self, target: ResolvedInterface | str) -> Identifier:
        return self.committer.commit(self.canonicalize(target))

    def compile(self, name: str) -> CompiledInterface:
        """Run the whole pipeline for one name.

        Raises:
            StructuralError / MergeError: resolution failed.
            StrictValidationError: strict mode and violations were found.
        """
        resolved = self.resolve(name)
        violations = tuple(self.validate(resolved))
        if violations and self.config.strict:
            raise StrictValidationError(name, list(violations))
        canonical = canonicalize(resolved)
        identifier = self.committer.commit(canonical)
        logger.info("Compiled %s → %s (%d violation(s))", name, identifier, len(violations))
        return CompiledInterface(name, resolved, violations, canonical, identifier)

    # ─────────────────────────────────────────────────────────
    #  Batches
    # ─────────────────────────────────────────────────────────

    def _compile_one(self, name: str) -> CompiledInterface | FacetError:
        try:
            return self.compile(name)
        except (MergeError, StrictValidationError) as exc:
            logger.warning("Compilation of %s failed: %s", name, exc)
            return exc

    def compile_all(self, names: Iterable[str] | None = None) -> CompilationReport:
        """Compile every named interface (default: the whole store).

        Merge errors and strict-mode failures are collected per name;
        structural errors are raised since the store itself is malformed.
        """
        names = list(names) if names is not None else self.store.names()
        if self.config.workers > 1 and len(names) > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
                results = list(pool.map(self._compile_one, names))
        else:
            results = [self._compile_one(name) for name in names]

        report = CompilationReport()
        for name, result in zip(names, results):
            if isinstance(result, FacetError):
                report.failures[name] = result
            else:
                report.compiled[name] = result
        logger.info("Compiled %d interface(s): %s", len(names), report.summary())
        return report
