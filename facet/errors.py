"""
Facet Errors
============
Exception taxonomy for the interface composition engine.

    StructuralError   — malformed fragment graph; aborts store construction
    MergeError        — conflicting declarations; aborts one resolution
    MultiplicityViolation — usage count outside a slot's declared interval

Semantic problems found after resolution are not exceptions: the validator
reports them as Violation records (see facet.validator).
"""
from __future__ import annotations

from typing import Any


class FacetError(Exception):
    """Base class for every error raised by the engine."""


# ─────────────────────────────────────────────────────────────
#  Structural errors (Fragment Store)
# ─────────────────────────────────────────────────────────────

class StructuralError(FacetError):
    """The fragment graph itself is malformed."""


class DuplicateFragment(StructuralError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Fragment '{name}' is already defined")


class CyclicInheritance(StructuralError):
    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        super().__init__("Cyclic inheritance: " + " → ".join(self.cycle))


class UnknownParent(StructuralError):
    def __init__(self, name: str, missing: str):
        self.name = name
        self.missing = missing
        super().__init__(f"Fragment '{name}' extends unknown fragment '{missing}'")


class UnknownFragment(StructuralError):
    """Lookup of a fragment name that was never inserted."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown fragment '{name}'")


# ─────────────────────────────────────────────────────────────
#  Merge errors (Composition Resolver)
# ─────────────────────────────────────────────────────────────

class MergeError(FacetError):
    """Resolution of one composite interface failed.

    `interface` is the composite being resolved; `fragment` is the fragment
    whose declarations could not be merged.
    """

    kind = "MergeError"

    def __init__(self, message: str, interface: str = "", fragment: str = ""):
        self.interface = interface
        self.fragment = fragment
        prefix = f"[{interface}] " if interface else ""
        super().__init__(prefix + message)

    def details(self) -> dict[str, Any]:
        """Machine-readable fields of the error."""
        return {"kind": self.kind, "interface": self.interface, "fragment": self.fragment}


class IncompatibleOverride(MergeError):
    kind = "IncompatibleOverride"

    def __init__(self, slot: str, kind: str, from_: str, to: str,
                 interface: str = "", fragment: str = ""):
        self.slot = slot
        self.slot_kind = kind
        self.from_ = from_
        self.to = to
        super().__init__(
            f"{kind} slot '{slot}' cannot change from {from_} to {to}"
            + (f" in '{fragment}'" if fragment else ""),
            interface, fragment,
        )

    def details(self) -> dict[str, Any]:
        data = super().details()
        data.update(slot=self.slot, slot_kind=self.slot_kind, from_=self.from_, to=self.to)
        return data


class FinalOverrideViolation(MergeError):
    kind = "FinalOverrideViolation"

    def __init__(self, operation: str, final_origin: str,
                 interface: str = "", fragment: str = ""):
        self.operation = operation
        self.final_origin = final_origin
        super().__init__(
            f"operation '{operation}' is final in '{final_origin}' "
            f"and cannot be changed by '{fragment}'",
            interface, fragment,
        )

    def details(self) -> dict[str, Any]:
        data = super().details()
        data.update(operation=self.operation, final_origin=self.final_origin)
        return data


class MissingRequiredOperation(MergeError):
    kind = "MissingRequiredOperation"

    def __init__(self, operation: str, required_by: str,
                 interface: str = "", fragment: str = ""):
        self.operation = operation
        self.required_by = required_by
        super().__init__(
            f"operation '{operation}' is required by '{required_by}' "
            f"but absent after merge",
            interface, fragment,
        )

    def details(self) -> dict[str, Any]:
        data = super().details()
        data.update(operation=self.operation, required_by=self.required_by)
        return data


class ErrorMessageConflict(MergeError):
    kind = "ErrorMessageConflict"

    def __init__(self, error: str, messages: dict[str, str],
                 interface: str = "", fragment: str = ""):
        self.error = error
        self.messages = dict(messages)
        listing = "; ".join(f"{frag}: {msg!r}" for frag, msg in sorted(self.messages.items()))
        super().__init__(
            f"error '{error}' is declared with different messages ({listing})",
            interface, fragment,
        )

    def details(self) -> dict[str, Any]:
        data = super().details()
        data.update(error=self.error, messages=dict(self.messages))
        return data


# ─────────────────────────────────────────────────────────────
#  Multiplicity
# ─────────────────────────────────────────────────────────────

class MultiplicityViolation(FacetError):
    def __init__(self, slot: str, declared: Any, used: Any):
        self.slot = slot
        self.declared = declared
        self.used = used
        super().__init__(
            f"slot '{slot}' is used {used} times but declared as {declared}"
        )


# ─────────────────────────────────────────────────────────────
#  Engine
# ─────────────────────────────────────────────────────────────

class StrictValidationError(FacetError):
    """Raised in strict mode when a resolved interface has violations."""

    def __init__(self, interface: str, violations: list):
        self.interface = interface
        self.violations = list(violations)
        super().__init__(
            f"Interface '{interface}' has {len(self.violations)} violation(s)"
        )


class UnknownStandard(FacetError):
    """A standard family name that is not shipped with the library."""

    def __init__(self, name: str, known: list[str]):
        self.name = name
        self.known = list(known)
        super().__init__(f"Unknown interface standard '{name}'. Known: {', '.join(self.known)}")
