"""
Facet Multiplicity Algebra
==========================
Closed occurrence-count intervals [lower, upper] with upper possibly
unbounded, ordered by inclusion:

    A ⊑ B  ⟺  [A.lower, A.upper] ⊆ [B.lower, B.upper]

Named intervals and their source qualifiers:

    ONE          [1, 1]   (no qualifier)
    OPTIONAL     [0, 1]   ?
    ONE_OR_MORE  [1, ∞]   +
    ANY_COUNT    [0, ∞]   *       (top element)
"""
from __future__ import annotations

from dataclasses import dataclass

from .errors import MultiplicityViolation


@dataclass(frozen=True, order=False)
class Multiplicity:
    """An occurrence-count interval. `upper=None` means unbounded."""
    lower: int = 1
    upper: int | None = 1

    def __post_init__(self):
        if self.lower < 0:
            raise ValueError(f"Multiplicity lower bound must be >= 0, got {self.lower}")
        if self.upper is not None and self.upper < self.lower:
            raise ValueError(
                f"Multiplicity upper bound {self.upper} is below lower bound {self.lower}"
            )

    # ─────────────────────────────────────────────────────────
    #  Properties
    # ─────────────────────────────────────────────────────────

    @property
    def is_required(self) -> bool:
        """At least one occurrence must exist."""
        return self.lower >= 1

    @property
    def qualifier(self) -> str | None:
        """Source qualifier for named intervals, None for any other interval."""
        return _QUALIFIERS.get((self.lower, self.upper))

    def within(self, other: Multiplicity) -> bool:
        """self ⊑ other."""
        return contains(other, self)

    def __str__(self) -> str:
        name = _NAMES.get((self.lower, self.upper))
        if name:
            return name
        upper = "∞" if self.upper is None else str(self.upper)
        return f"[{self.lower}..{upper}]"

    @classmethod
    def from_qualifier(cls, qualifier: str | None) -> Multiplicity:
        """Parse '', '?', '+' or '*' into the matching named interval."""
        key = qualifier or ""
        if key not in _BY_QUALIFIER:
            raise ValueError(f"Unknown multiplicity qualifier: {qualifier!r}")
        return _BY_QUALIFIER[key]

    def to_list(self) -> list:
        """[lower, upper] with None for an unbounded upper end."""
        return [self.lower, self.upper]


ONE = Multiplicity(1, 1)
OPTIONAL = Multiplicity(0, 1)
ONE_OR_MORE = Multiplicity(1, None)
ANY_COUNT = Multiplicity(0, None)

_BY_QUALIFIER: dict[str, Multiplicity] = {
    "": ONE,
    "?": OPTIONAL,
    "+": ONE_OR_MORE,
    "*": ANY_COUNT,
}
_QUALIFIERS = {(m.lower, m.upper): q for q, m in _BY_QUALIFIER.items()}
_NAMES = {
    (1, 1): "one",
    (0, 1): "optional",
    (1, None): "oneOrMore",
    (0, None): "anyCount",
}


# ─────────────────────────────────────────────────────────────
#  Operations
# ─────────────────────────────────────────────────────────────

def contains(outer: Multiplicity, inner: Multiplicity) -> bool:
    """True when `inner` ⊆ `outer`."""
    if inner.lower < outer.lower:
        return False
    if outer.upper is None:
        return True
    if inner.upper is None:
        return False
    return inner.upper <= outer.upper


def join(a: Multiplicity, b: Multiplicity) -> Multiplicity:
    """Smallest interval containing both `a` and `b`."""
    lower = min(a.lower, b.lower)
    if a.upper is None or b.upper is None:
        upper = None
    else:
        upper = max(a.upper, b.upper)
    return Multiplicity(lower, upper)


def meet(a: Multiplicity, b: Multiplicity) -> Multiplicity | None:
    """Largest interval contained in both, or None if they are disjoint."""
    lower = max(a.lower, b.lower)
    if a.upper is None:
        upper = b.upper
    elif b.upper is None:
        upper = a.upper
    else:
        upper = min(a.upper, b.upper)
    if upper is not None and upper < lower:
        return None
    return Multiplicity(lower, upper)


def tighten(declared: Multiplicity, used: Multiplicity, slot: str = "") -> Multiplicity:
    """Check that an operation's usage fits the slot's declared interval.

    Returns `used` unchanged; raises MultiplicityViolation otherwise.
    """
    if not contains(declared, used):
        raise MultiplicityViolation(slot, declared, used)
    return used
