"""
Facet Data Model
================
Records handed to the engine by the fragment parser, and the resolved
interface it produces.

    SlotDecl          — a typed, multiplicity-qualified state field
    ErrorDef          — a named error with its message text
    SlotUsage         — (slot, multiplicity-used) pair inside a rule
    OperationRule     — genesis or a named transition
    Fragment          — one independently authored unit with its extends set
    ResolvedInterface — the merged, immutable result for one fragment

Source positions and provenance fields are excluded from equality: two
records compare equal when their semantic content is equal.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping

from .multiplicity import ONE, Multiplicity

GENESIS = "genesis"


class SlotKind(Enum):
    """The four kinds of state slots an interface may declare."""
    GLOBAL = "global"
    OWNED = "owned"
    PUBLIC = "public"
    META = "meta"


# Slot kinds an operation can assign or take as inputs, in lookup order
ASSIGNABLE_KINDS = (SlotKind.OWNED, SlotKind.PUBLIC)


class Modifier(Enum):
    """Inheritance-time discipline of an operation rule."""
    REQUIRED = "required"
    ABSTRACT = "abstract"
    DEFAULT = "default"
    FINAL = "final"


def _check_name(name: str, what: str):
    if not name or not isinstance(name, str):
        raise ValueError(f"{what} name must be a non-empty string, got {name!r}")


# ─────────────────────────────────────────────────────────────
#  Declarations
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SlotDecl:
    """A state slot declaration."""
    name: str
    kind: SlotKind
    value_type: str
    multiplicity: Multiplicity = ONE
    origin: str = field(default="", compare=False)
    line: int = field(default=0, compare=False)
    col: int = field(default=0, compare=False)

    def __post_init__(self):
        _check_name(self.name, "Slot")
        _check_name(self.value_type, f"Value type of slot '{self.name}'")

    def describe(self) -> str:
        """Type and multiplicity, e.g. `RGBContract.Amount oneOrMore`."""
        return f"{self.value_type} {self.multiplicity}"


@dataclass(frozen=True)
class ErrorDef:
    """An entry of the error catalog. Identity is by name."""
    name: str
    message: str
    origin: str = field(default="", compare=False)
    line: int = field(default=0, compare=False)
    col: int = field(default=0, compare=False)

    def __post_init__(self):
        _check_name(self.name, "Error")


@dataclass(frozen=True)
class SlotUsage:
    """A slot touched by an operation, with the count it touches it with.

    `default` marks the assignment used when a caller does not name one.
    """
    name: str
    multiplicity: Multiplicity = ONE
    default: bool = False
    origin: str = field(default="", compare=False)

    def __post_init__(self):
        _check_name(self.name, "Slot usage")


def _usages(values, clause: str, rule: str) -> tuple[SlotUsage, ...]:
    usages = tuple(sorted(values, key=lambda u: u.name))
    seen: set[str] = set()
    for usage in usages:
        if usage.name in seen:
            raise ValueError(f"Slot '{usage.name}' listed twice in {clause} of '{rule}'")
        seen.add(usage.name)
    return usages


@dataclass(frozen=True)
class OperationRule:
    """The genesis rule or a named transition.

    Usage tuples are kept sorted by slot name so equality does not depend on
    declaration order.
    """
    name: str
    modifiers: frozenset[Modifier] = frozenset()
    reads: frozenset[str] = frozenset()
    writes: tuple[SlotUsage, ...] = ()
    assigns: tuple[SlotUsage, ...] = ()
    inputs: tuple[SlotUsage, ...] = ()
    errors: frozenset[str] = frozenset()
    origin: str = field(default="", compare=False)
    provenance: tuple[str, ...] = field(default=(), compare=False)
    line: int = field(default=0, compare=False)
    col: int = field(default=0, compare=False)

    def __post_init__(self):
        _check_name(self.name, "Operation")
        object.__setattr__(self, "modifiers", frozenset(self.modifiers))
        object.__setattr__(self, "reads", frozenset(self.reads))
        object.__setattr__(self, "errors", frozenset(self.errors))
        object.__setattr__(self, "provenance", tuple(self.provenance))
        for clause in ("writes", "assigns", "inputs"):
            object.__setattr__(self, clause, _usages(getattr(self, clause), clause, self.name))

    @property
    def is_genesis(self) -> bool:
        return self.name == GENESIS

    @property
    def is_required(self) -> bool:
        return Modifier.REQUIRED in self.modifiers

    @property
    def is_abstract(self) -> bool:
        return Modifier.ABSTRACT in self.modifiers

    @property
    def is_final(self) -> bool:
        return Modifier.FINAL in self.modifiers

    @property
    def is_default_operation(self) -> bool:
        return Modifier.DEFAULT in self.modifiers

    @property
    def default_assignments(self) -> tuple[str, ...]:
        return tuple(u.name for u in self.assigns if u.default)

    def usages(self) -> Iterator[tuple[str, SlotUsage]]:
        """Yield (clause, usage) for every writes/assigns/inputs entry."""
        for clause in ("writes", "assigns", "inputs"):
            for usage in getattr(self, clause):
                yield clause, usage

    def stamped(self, origin: str) -> OperationRule:
        """Copy of this rule declared by `origin`, usages included."""
        def stamp(usages):
            return tuple(replace(u, origin=origin) for u in usages)
        return replace(
            self,
            writes=stamp(self.writes),
            assigns=stamp(self.assigns),
            inputs=stamp(self.inputs),
            origin=origin,
            provenance=(origin,),
        )


# ─────────────────────────────────────────────────────────────
#  Fragment
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Fragment:
    """A named unit of interface declarations.

    Every declaration is stamped with the fragment name as its origin.
    """
    name: str
    extends: tuple[str, ...] = ()
    slots: tuple[SlotDecl, ...] = ()
    errors: tuple[ErrorDef, ...] = ()
    genesis: OperationRule | None = None
    transitions: tuple[OperationRule, ...] = ()
    retracts: tuple[str, ...] = ()
    line: int = field(default=0, compare=False)
    col: int = field(default=0, compare=False)

    def __post_init__(self):
        _check_name(self.name, "Fragment")
        extends = tuple(self.extends)
        if len(set(extends)) != len(extends):
            raise ValueError(f"Fragment '{self.name}' lists a parent more than once")
        object.__setattr__(self, "extends", extends)
        object.__setattr__(self, "retracts", tuple(self.retracts))
        if GENESIS in self.retracts:
            raise ValueError(f"Fragment '{self.name}' cannot retract the genesis rule")

        seen_slots: set[tuple[SlotKind, str]] = set()
        for slot in self.slots:
            key = (slot.kind, slot.name)
            if key in seen_slots:
                raise ValueError(
                    f"Fragment '{self.name}' declares {slot.kind.value} slot '{slot.name}' twice"
                )
            seen_slots.add(key)
        object.__setattr__(
            self, "slots", tuple(replace(s, origin=self.name) for s in self.slots)
        )

        error_names = [e.name for e in self.errors]
        if len(set(error_names)) != len(error_names):
            raise ValueError(f"Fragment '{self.name}' declares an error twice")
        object.__setattr__(
            self, "errors", tuple(replace(e, origin=self.name) for e in self.errors)
        )

        if self.genesis is not None:
            if not self.genesis.is_genesis:
                raise ValueError(
                    f"Genesis rule of '{self.name}' must be named '{GENESIS}'"
                )
            object.__setattr__(self, "genesis", self.genesis.stamped(self.name))

        names = [t.name for t in self.transitions]
        if GENESIS in names:
            raise ValueError(f"Fragment '{self.name}' uses reserved transition name '{GENESIS}'")
        if len(set(names)) != len(names):
            raise ValueError(f"Fragment '{self.name}' declares a transition twice")
        object.__setattr__(
            self, "transitions", tuple(t.stamped(self.name) for t in self.transitions)
        )

    def transition(self, name: str) -> OperationRule | None:
        for rule in self.transitions:
            if rule.name == name:
                return rule
        return None

    def operations(self) -> list[OperationRule]:
        """Genesis (if declared) followed by the transitions."""
        ops = [self.genesis] if self.genesis is not None else []
        return ops + list(self.transitions)


# ─────────────────────────────────────────────────────────────
#  Resolved interface
# ─────────────────────────────────────────────────────────────

def _frozen(mapping: Mapping) -> MappingProxyType:
    return MappingProxyType({k: mapping[k] for k in sorted(mapping)})


@dataclass(frozen=True)
class ResolvedInterface:
    """The merged result of one fragment and its whole ancestor closure.

    Tables are read-only mappings sorted by name. `lineage` is the
    nearest-first linearization and `ancestry` maps every fragment of the
    closure to its own ancestors; both describe how the result was obtained
    and are not part of its content.
    """
    name: str
    slots: Mapping[SlotKind, Mapping[str, SlotDecl]]
    errors: Mapping[str, ErrorDef]
    genesis: OperationRule
    transitions: Mapping[str, OperationRule]
    lineage: tuple[str, ...] = field(default=(), compare=False)
    ancestry: Mapping[str, frozenset[str]] = field(default_factory=dict, compare=False)
    generation: int = field(default=0, compare=False)

    def __post_init__(self):
        tables = {kind: _frozen(self.slots.get(kind, {})) for kind in SlotKind}
        object.__setattr__(self, "slots", MappingProxyType(tables))
        object.__setattr__(self, "errors", _frozen(self.errors))
        object.__setattr__(self, "transitions", _frozen(self.transitions))
        object.__setattr__(self, "lineage", tuple(self.lineage))
        object.__setattr__(self, "ancestry", MappingProxyType(dict(self.ancestry)))

    def slots_of(self, kind: SlotKind) -> Mapping[str, SlotDecl]:
        return self.slots[kind]

    def slot(self, kind: SlotKind, name: str) -> SlotDecl | None:
        return self.slots[kind].get(name)

    def assignable_slot(self, name: str) -> SlotDecl | None:
        """Owned slot of that name, else public slot, else None."""
        for kind in ASSIGNABLE_KINDS:
            slot = self.slots[kind].get(name)
            if slot is not None:
                return slot
        return None

    def all_slots(self) -> list[SlotDecl]:
        return [slot for kind in SlotKind for slot in self.slots[kind].values()]

    def operation(self, name: str) -> OperationRule | None:
        if name == GENESIS:
            return self.genesis
        return self.transitions.get(name)

    def operations(self) -> list[OperationRule]:
        return [self.genesis] + list(self.transitions.values())

    def abstract_operations(self) -> tuple[str, ...]:
        """Operations still abstract after resolution; concretization is left downstream."""
        return tuple(op.name for op in self.operations() if op.is_abstract)

    def required_slots(self) -> list[SlotDecl]:
        """Slots that genesis must cover (lower bound >= 1)."""
        return [slot for slot in self.all_slots() if slot.multiplicity.is_required]

    @property
    def default_operation(self) -> str | None:
        for rule in self.transitions.values():
            if rule.is_default_operation:
                return rule.name
        return None
