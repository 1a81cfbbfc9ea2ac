"""
Facet Composition Resolver
==========================
Merges a fragment and its ancestor closure into one ResolvedInterface.

The linearized closure is walked farthest → nearest. For every fragment a
*view* is built: the parallel merge of its parents' views, with the
fragment's own declarations applied on top. The requested fragment's view
is the result.

Merging rules:
  1. Entries equal in content collapse into one.
  2. An entry all of whose declarers are ancestors of another candidate's
     declarers is dominated (the other candidate already incorporates it).
  3. Remaining slot candidates must agree on the value type; their
     multiplicities are joined.
  4. Remaining rule candidates merge entry-wise; a final rule never merges
     with a differing one.
  5. A re-declaration must narrow (slots) and may not touch a final rule.

All steps are commutative, so the extends declaration order changes the
lineage but never the resolved content.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from functools import reduce

from .errors import (
    ErrorMessageConflict,
    FinalOverrideViolation,
    IncompatibleOverride,
    MissingRequiredOperation,
)
from .model import (
    GENESIS,
    ErrorDef,
    Fragment,
    Modifier,
    OperationRule,
    ResolvedInterface,
    SlotDecl,
    SlotKind,
    SlotUsage,
)
from .multiplicity import contains, join
from .store import FragmentStore

logger = logging.getLogger(__name__)

USAGE_CLAUSES = ("writes", "assigns", "inputs")


# ─────────────────────────────────────────────────────────────
#  Working structures
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class _Entry:
    """A merged value plus the fragments whose declarations it embodies."""
    value: object
    sources: frozenset[str]


@dataclass
class _Op:
    """An operation rule under construction."""
    name: str
    modifiers: frozenset[Modifier]
    reads: frozenset[str]
    errors: frozenset[str]
    usages: dict[tuple[str, str], _Entry]
    sources: frozenset[str]
    provenance: frozenset[str]
    line: int = 0
    col: int = 0

    def content(self) -> tuple:
        return (
            self.modifiers, self.reads, self.errors,
            tuple(sorted((k, e.value) for k, e in self.usages.items())),
        )

    @property
    def is_final(self) -> bool:
        return Modifier.FINAL in self.modifiers

    @property
    def is_required(self) -> bool:
        return Modifier.REQUIRED in self.modifiers


@dataclass
class _View:
    slots: dict[tuple[SlotKind, str], _Entry] = field(default_factory=dict)
    errors: dict[str, ErrorDef] = field(default_factory=dict)
    ops: dict[str, _Op] = field(default_factory=dict)


class _Context:
    """Per-call state: the interface being resolved and closure ancestry."""

    def __init__(self, interface: str, lineage: tuple[str, ...],
                 ancestry: dict[str, frozenset[str]]):
        self.interface = interface
        self.lineage = lineage
        self.ancestry = ancestry
        self._rank = {name: i for i, name in enumerate(lineage)}

    def maximal(self, sources) -> frozenset[str]:
        """Drop sources that are ancestors of other sources."""
        sources = frozenset(sources)
        return frozenset(
            s for s in sources
            if not any(s in self.ancestry[t] for t in sources if t != s)
        )

    def cover(self, sources: frozenset[str]) -> set[str]:
        covered = set(sources)
        for s in sources:
            covered |= self.ancestry[s]
        return covered

    def nearest(self, sources) -> str:
        return min(sources, key=lambda s: self._rank.get(s, len(self._rank)))

    def ordered(self, sources) -> tuple[str, ...]:
        return tuple(sorted(sources, key=lambda s: self._rank.get(s, len(self._rank))))


# ─────────────────────────────────────────────────────────────
#  Resolver
# ─────────────────────────────────────────────────────────────

class CompositionResolver:
    """
    Resolves composite interfaces from a FragmentStore.

    Usage:
        resolver = CompositionResolver(store)
        resolved = resolver.resolve("RGB20Fixed")

    Resolution is pure: the store is only read, and every call returns a
    fresh ResolvedInterface.
    """

    def __init__(self, store: FragmentStore):
        self.store = store

    def resolve(self, name: str) -> ResolvedInterface:
        lineage = self.store.linearize(name)
        ctx = _Context(name, lineage, self.store.ancestry(name))

        views: dict[str, _View] = {}
        for fragment_name in reversed(lineage):
            fragment = self.store.get(fragment_name)
            inherited = self._merge_parents(
                [views[parent] for parent in fragment.extends], fragment, ctx,
            )
            views[fragment_name] = self._apply(inherited, fragment, ctx)
            logger.debug("Merged view of %s for %s", fragment_name, name)

        view = views[name]
        self._check_required(view, ctx)
        resolved = self._build(view, ctx)
        logger.info(
            "Resolved %s from %d fragment(s): %d transition(s), %d error(s)",
            name, len(lineage), len(resolved.transitions), len(resolved.errors),
        )
        return resolved

    # ─────────────────────────────────────────────────────────
    #  Dominance
    # ─────────────────────────────────────────────────────────

    def _prune(self, entries: list, ctx: _Context, same=None) -> list:
        """Collapse equal entries, then drop dominated ones.

        Works on _Entry and _Op alike; `same` compares two candidates.
        """
        same = same or (lambda a, b: a.value == b.value)
        merged: list = []
        for entry in entries:
            for i, existing in enumerate(merged):
                if same(existing, entry):
                    merged[i] = self._with_sources(
                        existing, ctx.maximal(existing.sources | entry.sources)
                    )
                    break
            else:
                merged.append(entry)

        survivors = [
            a for a in merged
            if not any(
                b is not a and a.sources <= ctx.cover(b.sources) and a.sources != b.sources
                for b in merged
            )
        ]
        return survivors or merged

    @staticmethod
    def _with_sources(item, sources: frozenset[str]):
        if isinstance(item, _Op):
            return replace(item, sources=sources, provenance=item.provenance | sources)
        return _Entry(item.value, sources)

    # ─────────────────────────────────────────────────────────
    #  Parallel merge of parent views
    # ─────────────────────────────────────────────────────────

    def _merge_parents(self, parents: list[_View], fragment: Fragment, ctx: _Context) -> _View:
        view = _View()
        if not parents:
            return view
        if len(parents) == 1:
            only = parents[0]
            return _View(dict(only.slots), dict(only.errors), dict(only.ops))

        for key in sorted({k for p in parents for k in p.slots}, key=lambda k: (k[0].value, k[1])):
            candidates = [p.slots[key] for p in parents if key in p.slots]
            view.slots[key] = self._merge_slot(candidates, fragment, ctx)

        for name in sorted({n for p in parents for n in p.errors}):
            declared = [p.errors[name] for p in parents if name in p.errors]
            view.errors[name] = self._merge_error(declared, fragment, ctx)

        for name in sorted({n for p in parents for n in p.ops}):
            candidates = [p.ops[name] for p in parents if name in p.ops]
            view.ops[name] = self._merge_ops(candidates, fragment, ctx)

        return view

    def _merge_slot(self, candidates: list[_Entry], fragment: Fragment, ctx: _Context) -> _Entry:
        survivors = self._prune(candidates, ctx)
        if len(survivors) == 1:
            return survivors[0]

        slots: list[SlotDecl] = sorted((e.value for e in survivors), key=SlotDecl.describe)
        first = slots[0]
        for other in slots[1:]:
            if other.value_type != first.value_type:
                raise IncompatibleOverride(
                    first.name, first.kind.value, first.describe(), other.describe(),
                    interface=ctx.interface, fragment=fragment.name,
                )
        sources = ctx.maximal(frozenset().union(*(e.sources for e in survivors)))
        multiplicity = reduce(join, (s.multiplicity for s in slots))
        merged = replace(first, multiplicity=multiplicity, origin=ctx.nearest(sources))
        return _Entry(merged, sources)

    def _merge_error(self, declared: list[ErrorDef], fragment: Fragment, ctx: _Context) -> ErrorDef:
        messages = {e.origin: e.message for e in declared}
        if len(set(messages.values())) > 1:
            raise ErrorMessageConflict(
                declared[0].name, messages,
                interface=ctx.interface, fragment=fragment.name,
            )
        return min(declared, key=lambda e: e.origin)

    def _merge_ops(self, candidates: list[_Op], fragment: Fragment, ctx: _Context) -> _Op:
        survivors = self._prune(candidates, ctx, same=lambda a, b: a.content() == b.content())
        if len(survivors) == 1:
            return survivors[0]

        for candidate in survivors:
            if candidate.is_final:
                other = next(c for c in survivors if c is not candidate)
                raise FinalOverrideViolation(
                    candidate.name, ctx.nearest(candidate.sources),
                    interface=ctx.interface, fragment=ctx.nearest(other.sources),
                )

        usages: dict[tuple[str, str], _Entry] = {}
        for key in sorted({k for c in survivors for k in c.usages}):
            entries = self._prune([c.usages[key] for c in survivors if key in c.usages], ctx)
            if len(entries) == 1:
                usages[key] = entries[0]
                continue
            values: list[SlotUsage] = [e.value for e in entries]
            sources = ctx.maximal(frozenset().union(*(e.sources for e in entries)))
            usages[key] = _Entry(
                SlotUsage(
                    key[1],
                    reduce(join, (u.multiplicity for u in values)),
                    default=any(u.default for u in values),
                    origin=ctx.nearest(sources),
                ),
                sources,
            )

        modifiers = set()
        if any(c.is_required for c in survivors):
            modifiers.add(Modifier.REQUIRED)
        if any(Modifier.DEFAULT in c.modifiers for c in survivors):
            modifiers.add(Modifier.DEFAULT)
        if all(Modifier.ABSTRACT in c.modifiers for c in survivors):
            modifiers.add(Modifier.ABSTRACT)

        sources = ctx.maximal(frozenset().union(*(c.sources for c in survivors)))
        nearest = min(survivors, key=lambda c: ctx.ordered(c.sources))
        return _Op(
            name=survivors[0].name,
            modifiers=frozenset(modifiers),
            reads=frozenset().union(*(c.reads for c in survivors)),
            errors=frozenset().union(*(c.errors for c in survivors)),
            usages=usages,
            sources=sources,
            provenance=frozenset().union(*(c.provenance for c in survivors)),
            line=nearest.line,
            col=nearest.col,
        )

    # ─────────────────────────────────────────────────────────
    #  Own declarations
    # ─────────────────────────────────────────────────────────

    def _apply(self, view: _View, fragment: Fragment, ctx: _Context) -> _View:
        own = frozenset({fragment.name})

        for error in fragment.errors:
            inherited = view.errors.get(error.name)
            if inherited is not None and inherited.message != error.message:
                raise ErrorMessageConflict(
                    error.name,
                    {inherited.origin: inherited.message, fragment.name: error.message},
                    interface=ctx.interface, fragment=fragment.name,
                )
            view.errors[error.name] = error

        for slot in fragment.slots:
            key = (slot.kind, slot.name)
            inherited = view.slots.get(key)
            if inherited is not None:
                old: SlotDecl = inherited.value
                if old.value_type != slot.value_type or not contains(old.multiplicity, slot.multiplicity):
                    raise IncompatibleOverride(
                        slot.name, slot.kind.value, old.describe(), slot.describe(),
                        interface=ctx.interface, fragment=fragment.name,
                    )
            view.slots[key] = _Entry(slot, own)

        for rule in fragment.operations():
            inherited = view.ops.get(rule.name)
            if inherited is None:
                view.ops[rule.name] = self._declare(rule, own)
            else:
                view.ops[rule.name] = self._override(inherited, rule, own, ctx)

        for name in fragment.retracts:
            inherited = view.ops.get(name)
            if inherited is None:
                logger.warning(
                    "%s retracts '%s' which it does not inherit", fragment.name, name,
                )
                continue
            if inherited.is_final:
                raise FinalOverrideViolation(
                    name, ctx.nearest(inherited.sources),
                    interface=ctx.interface, fragment=fragment.name,
                )
            del view.ops[name]
            logger.debug("%s retracted operation %s", fragment.name, name)

        return view

    @staticmethod
    def _declare(rule: OperationRule, own: frozenset[str]) -> _Op:
        return _Op(
            name=rule.name,
            modifiers=rule.modifiers,
            reads=rule.reads,
            errors=rule.errors,
            usages={(clause, u.name): _Entry(u, own) for clause, u in rule.usages()},
            sources=own,
            provenance=own,
            line=rule.line,
            col=rule.col,
        )

    def _override(self, inherited: _Op, rule: OperationRule,
                  own: frozenset[str], ctx: _Context) -> _Op:
        fragment = next(iter(own))
        if inherited.is_final:
            raise FinalOverrideViolation(
                rule.name, ctx.nearest(inherited.sources),
                interface=ctx.interface, fragment=fragment,
            )

        usages = dict(inherited.usages)
        if rule.default_assignments:
            for key, entry in list(usages.items()):
                if key[0] == "assigns" and entry.value.default:
                    usages[key] = _Entry(replace(entry.value, default=False, origin=fragment), own)
        for clause, usage in rule.usages():
            usages[(clause, usage.name)] = _Entry(usage, own)

        modifiers = set(rule.modifiers)
        if inherited.is_required:
            modifiers.add(Modifier.REQUIRED)

        return _Op(
            name=rule.name,
            modifiers=frozenset(modifiers),
            reads=inherited.reads | rule.reads,
            errors=inherited.errors | rule.errors,
            usages=usages,
            sources=own,
            provenance=inherited.provenance | own,
            line=rule.line,
            col=rule.col,
        )

    # ─────────────────────────────────────────────────────────
    #  Final checks and assembly
    # ─────────────────────────────────────────────────────────

    def _check_required(self, view: _View, ctx: _Context):
        for fragment_name in reversed(ctx.lineage):
            fragment = self.store.get(fragment_name)
            for rule in fragment.transitions:
                if rule.is_required and rule.name not in view.ops:
                    raise MissingRequiredOperation(
                        rule.name, fragment_name,
                        interface=ctx.interface, fragment=ctx.interface,
                    )

    def _build(self, view: _View, ctx: _Context) -> ResolvedInterface:
        slots: dict[SlotKind, dict[str, SlotDecl]] = {kind: {} for kind in SlotKind}
        for (kind, name), entry in view.slots.items():
            slots[kind][name] = replace(entry.value, origin=ctx.nearest(entry.sources))

        operations = {name: self._finish(op, ctx) for name, op in view.ops.items()}
        genesis = operations.pop(GENESIS, None)
        if genesis is None:
            genesis = OperationRule(GENESIS, modifiers={Modifier.ABSTRACT})

        return ResolvedInterface(
            name=ctx.interface,
            slots=slots,
            errors=dict(view.errors),
            genesis=genesis,
            transitions=operations,
            lineage=ctx.lineage,
            ancestry=ctx.ancestry,
            generation=self.store.generation,
        )

    @staticmethod
    def _finish(op: _Op, ctx: _Context) -> OperationRule:
        clauses: dict[str, list[SlotUsage]] = {clause: [] for clause in USAGE_CLAUSES}
        for (clause, _), entry in op.usages.items():
            clauses[clause].append(replace(entry.value, origin=ctx.nearest(entry.sources)))
        return OperationRule(
            name=op.name,
            modifiers=op.modifiers,
            reads=op.reads,
            writes=tuple(clauses["writes"]),
            assigns=tuple(clauses["assigns"]),
            inputs=tuple(clauses["inputs"]),
            errors=op.errors,
            origin=ctx.nearest(op.sources),
            provenance=ctx.ordered(op.provenance),
            line=op.line,
            col=op.col,
        )
