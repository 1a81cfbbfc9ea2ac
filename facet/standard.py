"""
Facet Standard Library
======================
Interface fragments shipped with the package and the feature descriptors
that compose them into named standards.

    RGB20 — fungible assets     (FungibleFeatures)
    RGB21 — non-fungible tokens (NftFeatures)
    RGB25 — collectibles        (CollectibleFeatures)

A composite is an interface with no declarations of its own that extends
the fragments its features select. The fragments meet at their common
bases, so every composite is a diamond.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from importlib.resources import files
from itertools import product

from .errors import UnknownStandard
from .model import Fragment
from .parser import parse_fragments
from .store import FragmentStore

logger = logging.getLogger(__name__)

SOURCES = ("fungible.iface", "nft.iface", "collectible.iface")


class IfaceStandard(Enum):
    RGB20 = "rgb20"
    RGB21 = "rgb21"
    RGB25 = "rgb25"

    @classmethod
    def parse(cls, text: str) -> IfaceStandard:
        """Case-insensitive lookup, e.g. `IfaceStandard.parse("RGB20")`."""
        key = text.strip().lower()
        for standard in cls:
            if standard.value == key:
                return standard
        raise UnknownStandard(text, [s.value for s in cls])

    @property
    def prefix(self) -> str:
        return self.value.upper()


# ─────────────────────────────────────────────────────────────
#  Feature descriptors
# ─────────────────────────────────────────────────────────────

class Inflation(Enum):
    FIXED = "fixed"
    BURNABLE = "burnable"
    INFLATABLE = "inflatable"
    INFLATABLE_BURNABLE = "inflatableBurnable"
    REPLACEABLE = "replaceable"

    @property
    def is_inflatable(self) -> bool:
        return self in (Inflation.INFLATABLE, Inflation.INFLATABLE_BURNABLE, Inflation.REPLACEABLE)

    @property
    def is_burnable(self) -> bool:
        return self in (Inflation.BURNABLE, Inflation.INFLATABLE_BURNABLE)

    @property
    def title(self) -> str:
        return self.value[0].upper() + self.value[1:]


@dataclass(frozen=True)
class FungibleFeatures:
    """RGB20 feature set. Reserves need an inflatable supply."""
    renaming: bool = False
    inflation: Inflation = Inflation.FIXED
    reserves: bool = False

    standard = IfaceStandard.RGB20

    def __post_init__(self):
        if self.reserves and not self.inflation.is_inflatable:
            raise ValueError(
                f"Reserves require an inflatable supply, not '{self.inflation.value}'"
            )

    @property
    def name(self) -> str:
        parts = [self.standard.prefix]
        if self.renaming:
            parts.append("Renamable")
        if self.reserves:
            parts.append("Reservable")
        parts.append(self.inflation.title)
        return "".join(parts)

    def parents(self) -> tuple[str, ...]:
        parents = ["NamedAsset", "FungibleAsset"]
        if self.renaming:
            parents.append("RenameableAsset")
        if self.inflation is Inflation.FIXED:
            parents.append("FixedAsset")
        if self.inflation.is_inflatable:
            parents.append("ReservableAsset" if self.reserves else "InflatableAsset")
        if self.inflation.is_burnable:
            parents.append("BurnableAsset")
        if self.inflation is Inflation.REPLACEABLE:
            parents.append("ReplaceableAsset")
        return tuple(parents)

    @classmethod
    def enumerate(cls) -> list[FungibleFeatures]:
        variants = []
        for renaming, inflation, reserves in product((False, True), Inflation, (False, True)):
            if reserves and not inflation.is_inflatable:
                continue
            variants.append(cls(renaming, inflation, reserves))
        return variants


class Issues(Enum):
    UNIQUE = "unique"
    LIMITED = "limited"
    MULTI_ISSUE = "multiIssue"

    @property
    def title(self) -> str:
        return self.value[0].upper() + self.value[1:]


@dataclass(frozen=True)
class NftFeatures:
    """RGB21 feature set."""
    engraving: bool = False
    issues: Issues = Issues.UNIQUE

    standard = IfaceStandard.RGB21

    @property
    def name(self) -> str:
        engraving = "Engravable" if self.engraving else ""
        return f"{self.standard.prefix}{engraving}{self.issues.title}"

    def parents(self) -> tuple[str, ...]:
        parents = ["NamedAsset", "NonFungibleToken"]
        if self.engraving:
            parents.append("EngravableNft")
        parents.append({
            Issues.UNIQUE: "UniqueNft",
            Issues.LIMITED: "LimitedNft",
            Issues.MULTI_ISSUE: "IssuableNft",
        }[self.issues])
        return tuple(parents)

    @classmethod
    def enumerate(cls) -> list[NftFeatures]:
        return [cls(engraving, issues) for engraving, issues in product((False, True), Issues)]


@dataclass(frozen=True)
class CollectibleFeatures:
    """RGB25 feature set."""
    burnable: bool = False

    standard = IfaceStandard.RGB25

    @property
    def name(self) -> str:
        return self.standard.prefix + ("Burnable" if self.burnable else "")

    def parents(self) -> tuple[str, ...]:
        parents = ["NamedContract", "FungibleAsset", "FixedAsset"]
        if self.burnable:
            parents.append("BurnableAsset")
        return tuple(parents)

    @classmethod
    def enumerate(cls) -> list[CollectibleFeatures]:
        return [cls(False), cls(True)]


FEATURES = {
    IfaceStandard.RGB20: FungibleFeatures,
    IfaceStandard.RGB21: NftFeatures,
    IfaceStandard.RGB25: CollectibleFeatures,
}


def composite(features) -> Fragment:
    """The composite fragment selected by a feature descriptor."""
    return Fragment(name=features.name, extends=features.parents())


# ─────────────────────────────────────────────────────────────
#  Loading
# ─────────────────────────────────────────────────────────────

@lru_cache(maxsize=None)
def standard_fragments() -> tuple[Fragment, ...]:
    """Base fragments parsed from the packaged interface sources."""
    package = files("facet") / "interfaces"
    fragments: list[Fragment] = []
    for source in SOURCES:
        fragments.extend(parse_fragments((package / source).read_text(encoding="utf-8")))
    logger.debug("Loaded %d standard fragment(s)", len(fragments))
    return tuple(fragments)


def standard_composites(standard: IfaceStandard | str | None = None) -> list[Fragment]:
    """Composites of one standard, or of all of them."""
    if isinstance(standard, str):
        standard = IfaceStandard.parse(standard)
    standards = [standard] if standard is not None else list(IfaceStandard)
    return [
        composite(features)
        for std in standards
        for features in FEATURES[std].enumerate()
    ]


def standard_store(include_composites: bool = True) -> FragmentStore:
    """A fresh store holding the standard library."""
    store = FragmentStore(standard_fragments())
    if include_composites:
        store.extend(standard_composites())
    return store
