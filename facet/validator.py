"""
Facet Consistency Validator
===========================
Semantic checks over a ResolvedInterface. Runs after resolution and
reports every problem it finds instead of stopping at the first one.

Checks:
  1. Slot references — every usage names a slot of the matching kind
  2. Multiplicity — assign and input counts fit inside the declared interval
  3. Default assignment — rules with several assign targets mark exactly one
  4. Genesis coverage — genesis writes, assigns or reads every required slot
  5. Error references — every raised error exists in the catalog
  6. Final discipline — no final rule was specialized by a descendant
  7. Default operation — at most one transition is the default
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .errors import MultiplicityViolation
from .model import GENESIS, OperationRule, ResolvedInterface, SlotDecl, SlotKind
from .multiplicity import tighten

logger = logging.getLogger(__name__)


class ViolationKind(Enum):
    """Machine-readable tag of a violation."""
    UNKNOWN_SLOT_REFERENCE = "UnknownSlotReference"
    MULTIPLICITY_VIOLATION = "MultiplicityViolation"
    AMBIGUOUS_DEFAULT = "AmbiguousDefault"
    MISSING_DEFAULT = "MissingDefault"
    UNCOVERED_REQUIRED_SLOT = "UncoveredRequiredSlot"
    UNKNOWN_ERROR_REFERENCE = "UnknownErrorReference"
    FINAL_OVERRIDE = "FinalOverrideViolation"
    AMBIGUOUS_DEFAULT_OPERATION = "AmbiguousDefaultOperation"


@dataclass(frozen=True)
class Violation:
    """A single consistency violation.

    `operation` and `subject` name the offending rule and the slot or error
    it concerns; either may be empty when the check is interface-wide.
    """
    kind: ViolationKind
    interface: str
    message: str
    operation: str = ""
    subject: str = ""
    line: int = 0
    col: int = 0

    def __str__(self) -> str:
        where = f"L{self.line}:{self.col} " if self.line else ""
        return f"  ✘ {where}[{self.kind.value}] {self.message}"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "interface": self.interface,
            "operation": self.operation,
            "subject": self.subject,
            "message": self.message,
        }


class ConsistencyValidator:
    """
    Semantic analysis for resolved interfaces.

    Usage:
        validator = ConsistencyValidator()
        violations = validator.validate(resolved)
        for v in violations:
            print(v)
    """

    def __init__(self):
        self.violations: list[Violation] = []
        self._interface: ResolvedInterface | None = None

    def validate(self, resolved: ResolvedInterface) -> list[Violation]:
        """Run every check. Returns the complete list of violations."""
        self.violations = []
        self._interface = resolved

        self._check_slot_references(resolved)
        self._check_multiplicities(resolved)
        self._check_default_assignments(resolved)
        self._check_genesis_coverage(resolved)
        self._check_error_references(resolved)
        self._check_final_discipline(resolved)
        self._check_default_operation(resolved)

        if self.violations:
            logger.debug("%s: %d violation(s)", resolved.name, len(self.violations))
        return sorted(
            self.violations,
            key=lambda v: (v.operation != GENESIS, v.operation, v.kind.value, v.subject),
        )

    def _add(self, kind: ViolationKind, message: str, rule: OperationRule | None = None,
             subject: str = ""):
        self.violations.append(Violation(
            kind=kind,
            interface=self._interface.name,
            message=message,
            operation=rule.name if rule is not None else "",
            subject=subject,
            line=rule.line if rule is not None else 0,
            col=rule.col if rule is not None else 0,
        ))

    @staticmethod
    def _target(resolved: ResolvedInterface, clause: str, name: str) -> SlotDecl | None:
        """The slot a usage in `clause` refers to."""
        if clause == "writes":
            return resolved.slot(SlotKind.GLOBAL, name)
        return resolved.assignable_slot(name)

    # ─────────────────────────────────────────────────────────
    #  Check 1: Slot references
    # ─────────────────────────────────────────────────────────

    def _check_slot_references(self, resolved: ResolvedInterface):
        for rule in resolved.operations():
            for name in sorted(rule.reads):
                if resolved.slot(SlotKind.META, name) is None:
                    self._add(
                        ViolationKind.UNKNOWN_SLOT_REFERENCE,
                        f"'{rule.name}' reads unknown meta slot '{name}'",
                        rule, name,
                    )
            for clause, usage in rule.usages():
                if self._target(resolved, clause, usage.name) is None:
                    expected = "global" if clause == "writes" else "owned or public"
                    self._add(
                        ViolationKind.UNKNOWN_SLOT_REFERENCE,
                        f"'{rule.name}' {clause} unknown {expected} slot '{usage.name}'",
                        rule, usage.name,
                    )

    # ─────────────────────────────────────────────────────────
    #  Check 2: Multiplicity
    # ─────────────────────────────────────────────────────────

    def _check_multiplicities(self, resolved: ResolvedInterface):
        for rule in resolved.operations():
            for clause, usage in rule.usages():
                if clause == "writes":
                    continue
                slot = self._target(resolved, clause, usage.name)
                if slot is None:
                    continue
                try:
                    tighten(slot.multiplicity, usage.multiplicity, slot=usage.name)
                except MultiplicityViolation as exc:
                    self._add(
                        ViolationKind.MULTIPLICITY_VIOLATION,
                        f"'{rule.name}' {clause} {exc}",
                        rule, usage.name,
                    )

    # ─────────────────────────────────────────────────────────
    #  Check 3: Default assignment
    # ─────────────────────────────────────────────────────────

    def _check_default_assignments(self, resolved: ResolvedInterface):
        """Transitions only; genesis is not checked."""
        for rule in resolved.transitions.values():
            if len(rule.assigns) < 2:
                continue
            defaults = rule.default_assignments
            if not defaults:
                self._add(
                    ViolationKind.MISSING_DEFAULT,
                    f"'{rule.name}' assigns {len(rule.assigns)} slots but marks none as default",
                    rule,
                )
            elif len(defaults) > 1:
                self._add(
                    ViolationKind.AMBIGUOUS_DEFAULT,
                    f"'{rule.name}' marks {len(defaults)} default assignments: "
                    + ", ".join(defaults),
                    rule, defaults[0],
                )

    # ─────────────────────────────────────────────────────────
    #  Check 4: Genesis coverage
    # ─────────────────────────────────────────────────────────

    def _check_genesis_coverage(self, resolved: ResolvedInterface):
        genesis = resolved.genesis
        # Covering clause per slot kind: globals are written, metadata is read
        covering = {
            SlotKind.GLOBAL: ("write", {u.name for u in genesis.writes}),
            SlotKind.META: ("read", set(genesis.reads)),
        }
        assigned = ("assign", {u.name for u in genesis.assigns})
        for slot in resolved.required_slots():
            verb, covered = covering.get(slot.kind, assigned)
            if slot.name not in covered:
                self._add(
                    ViolationKind.UNCOVERED_REQUIRED_SLOT,
                    f"{slot.kind.value} slot '{slot.name}' is {slot.multiplicity} "
                    f"but genesis does not {verb} it",
                    genesis, slot.name,
                )

    # ─────────────────────────────────────────────────────────
    #  Check 5: Error references
    # ─────────────────────────────────────────────────────────

    def _check_error_references(self, resolved: ResolvedInterface):
        for rule in resolved.operations():
            for name in sorted(rule.errors - resolved.errors.keys()):
                self._add(
                    ViolationKind.UNKNOWN_ERROR_REFERENCE,
                    f"'{rule.name}' raises unknown error '{name}'",
                    rule, name,
                )

    # ─────────────────────────────────────────────────────────
    #  Check 6: Final discipline
    # ─────────────────────────────────────────────────────────

    def _check_final_discipline(self, resolved: ResolvedInterface):
        for rule in resolved.operations():
            if not rule.is_final or not rule.origin:
                continue
            for contributor in rule.provenance:
                if rule.origin in resolved.ancestry.get(contributor, ()):
                    self._add(
                        ViolationKind.FINAL_OVERRIDE,
                        f"final operation '{rule.name}' from '{rule.origin}' "
                        f"was specialized by '{contributor}'",
                        rule, contributor,
                    )

    # ─────────────────────────────────────────────────────────
    #  Check 7: Default operation
    # ─────────────────────────────────────────────────────────

    def _check_default_operation(self, resolved: ResolvedInterface):
        defaults = [r for r in resolved.transitions.values() if r.is_default_operation]
        if len(defaults) > 1:
            self._add(
                ViolationKind.AMBIGUOUS_DEFAULT_OPERATION,
                "several default transitions: " + ", ".join(r.name for r in defaults),
                subject=defaults[0].name,
            )


def validate(resolved: ResolvedInterface) -> list[Violation]:
    """Validate with a fresh ConsistencyValidator."""
    return ConsistencyValidator().validate(resolved)

