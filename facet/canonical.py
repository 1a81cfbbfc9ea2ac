"""
Facet Canonicalizer & Identifier Committer
==========================================
Order-independent byte encoding of a resolved interface, and the stable
identifier derived from it.

    canonicalize(resolved)      → compact sorted-key JSON bytes
    commit_identifier(data)     → Identifier
    identify(resolved)          → Identifier

Identifier format:

    {scheme}:{version}:{digest in lowercase base32}#{word}-{word}-{word}

The digest primitive and the mnemonic encoder are pluggable collaborators.
Built-in digests are registered by name, like providers in a registry.
"""
from __future__ import annotations

import base64
import hashlib
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Type

from mnemonic import Mnemonic

from .model import OperationRule, ResolvedInterface, SlotKind, SlotUsage

logger = logging.getLogger(__name__)

CANONICAL_FORMAT = 1
DEFAULT_SCHEME = "facet:if"
DEFAULT_VERSION = 1
DEFAULT_TAG = "urn:facet:interface:v1"
MNEMONIC_WORDS = 3


# ─────────────────────────────────────────────────────────────
#  Canonical form
# ─────────────────────────────────────────────────────────────

def _usage(usage: SlotUsage) -> dict:
    data = {"name": usage.name, "multiplicity": usage.multiplicity.to_list()}
    if usage.default:
        data["default"] = True
    return data


def _rule(rule: OperationRule) -> dict:
    return {
        "name": rule.name,
        "modifiers": sorted(m.value for m in rule.modifiers),
        "reads": sorted(rule.reads),
        "writes": [_usage(u) for u in rule.writes],
        "assigns": [_usage(u) for u in rule.assigns],
        "inputs": [_usage(u) for u in rule.inputs],
        "errors": sorted(rule.errors),
    }


def canonical_form(resolved: ResolvedInterface) -> dict:
    """Plain-data form of the semantic content of `resolved`.

    Lineage, origins, provenance and source positions are not included.
    """
    return {
        "format": CANONICAL_FORMAT,
        "name": resolved.name,
        "slots": {
            kind.value: [
                {
                    "name": slot.name,
                    "type": slot.value_type,
                    "multiplicity": slot.multiplicity.to_list(),
                }
                for slot in resolved.slots_of(kind).values()
            ]
            for kind in SlotKind
        },
        "errors": [
            {"name": e.name, "message": e.message} for e in resolved.errors.values()
        ],
        "genesis": _rule(resolved.genesis),
        "transitions": [_rule(r) for r in resolved.transitions.values()],
    }


def canonicalize(resolved: ResolvedInterface) -> bytes:
    """Canonical bytes of `resolved`: compact, key-sorted, ASCII-only JSON."""
    text = json.dumps(
        canonical_form(resolved),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    )
    return text.encode("ascii")


# ─────────────────────────────────────────────────────────────
#  Digest primitives
# ─────────────────────────────────────────────────────────────

class DigestPrimitive(ABC):
    """Abstract digest function over canonical bytes."""

    name: str = ""

    @abstractmethod
    def digest(self, data: bytes) -> bytes:
        ...


class TaggedSha256(DigestPrimitive):
    """SHA-256 with a domain-separation tag: H(H(tag) ‖ H(tag) ‖ data)."""

    name = "tagged-sha256"

    def __init__(self, tag: str = DEFAULT_TAG):
        self.tag = tag
        tag_hash = hashlib.sha256(tag.encode("utf-8")).digest()
        self._prefix = tag_hash + tag_hash

    def digest(self, data: bytes) -> bytes:
        return hashlib.sha256(self._prefix + data).digest()


class Sha256(DigestPrimitive):
    """Plain SHA-256; the tag is ignored."""

    name = "sha256"

    def __init__(self, tag: str = ""):
        self.tag = tag

    def digest(self, data: bytes) -> bytes:
        return hashlib.sha256(data).digest()


_DIGESTS: dict[str, Type[DigestPrimitive]] = {}


def register_digest(name: str, digest_class: Type[DigestPrimitive]):
    """Register a digest primitive class under a name."""
    _DIGESTS[name.lower()] = digest_class


def get_digest(name: str, tag: str = DEFAULT_TAG) -> DigestPrimitive:
    """Instantiate a registered digest primitive.

    Raises:
        ValueError: If no primitive is registered under `name`.
    """
    key = name.lower()
    if key not in _DIGESTS:
        raise ValueError(
            f"Unknown digest '{name}'. Available: {list_digests()}"
        )
    return _DIGESTS[key](tag)


def list_digests() -> list[str]:
    return sorted(_DIGESTS)


register_digest(TaggedSha256.name, TaggedSha256)
register_digest(Sha256.name, Sha256)


# ─────────────────────────────────────────────────────────────
#  Mnemonic encoders
# ─────────────────────────────────────────────────────────────

class MnemonicEncoder(ABC):
    """Turns a digest into a short tuple of lowercase words."""

    @abstractmethod
    def encode(self, digest: bytes) -> tuple[str, ...]:
        ...


class Bip39Mnemonic(MnemonicEncoder):
    """Three words from the BIP-39 English list.

    33 bits of SHA-256(digest) select the words, 11 bits each.
    """

    def __init__(self, language: str = "english"):
        self.wordlist: list[str] = Mnemonic(language).wordlist

    def encode(self, digest: bytes) -> tuple[str, ...]:
        bits = int.from_bytes(hashlib.sha256(digest).digest()[:5], "big")
        return tuple(
            self.wordlist[(bits >> shift) & 0x7FF] for shift in (29, 18, 7)
        )


# ─────────────────────────────────────────────────────────────
#  Identifier
# ─────────────────────────────────────────────────────────────

_SCHEME = r"[a-z][a-z0-9:.-]*"
_SCHEME_RE = re.compile(rf"^{_SCHEME}$")
_IDENTIFIER_RE = re.compile(
    rf"^(?P<scheme>{_SCHEME}):(?P<version>\d+):(?P<token>[a-z2-7]+)"
    r"#(?P<words>[a-z]+(?:-[a-z]+)*)$"
)


def check_scheme(scheme: str) -> str:
    """Return `scheme` if Identifier.parse can read it back, else raise ValueError."""
    if not isinstance(scheme, str) or _SCHEME_RE.match(scheme) is None:
        raise ValueError(
            f"Identifier scheme {scheme!r} must start with a lowercase letter and "
            "contain only lowercase letters, digits, ':', '.' or '-'"
        )
    return scheme


@dataclass(frozen=True)
class Identifier:
    """Content-derived identifier of a resolved interface."""
    scheme: str
    version: int
    digest: bytes
    words: tuple[str, ...]

    @property
    def token(self) -> str:
        return base64.b32encode(self.digest).decode("ascii").rstrip("=").lower()

    @property
    def mnemonic(self) -> str:
        return "-".join(self.words)

    def __str__(self) -> str:
        return f"{self.scheme}:{self.version}:{self.token}#{self.mnemonic}"

    @classmethod
    def parse(cls, text: str) -> Identifier:
        """Parse the string form back into an Identifier.

        Raises:
            ValueError: If `text` is not a well-formed identifier.
        """
        match = _IDENTIFIER_RE.match(text.strip())
        if match is None:
            raise ValueError(f"Malformed interface identifier: {text!r}")
        token = match.group("token").upper()
        token += "=" * (-len(token) % 8)
        try:
            digest = base64.b32decode(token)
        except ValueError as exc:
            raise ValueError(f"Malformed digest in identifier {text!r}: {exc}") from exc
        return cls(
            scheme=match.group("scheme"),
            version=int(match.group("version")),
            digest=digest,
            words=tuple(match.group("words").split("-")),
        )


class IdentifierCommitter:
    """
    Derives identifiers from canonical bytes.

    Usage:
        committer = IdentifierCommitter()
        ident = committer.commit(canonicalize(resolved))
        print(ident)
    """

    def __init__(self, digest: DigestPrimitive | None = None,
                 mnemonic: MnemonicEncoder | None = None,
                 scheme: str = DEFAULT_SCHEME, version: int = DEFAULT_VERSION):
        self.digest = digest or TaggedSha256()
        self.mnemonic = mnemonic or Bip39Mnemonic()
        self.scheme = check_scheme(scheme)
        self.version = version

    def commit(self, data: bytes) -> Identifier:
        digest = self.digest.digest(data)
        words = self.mnemonic.encode(digest)
        if len(words) != MNEMONIC_WORDS:
            raise ValueError(
                f"Mnemonic encoder returned {len(words)} words, expected {MNEMONIC_WORDS}"
            )
        return Identifier(self.scheme, self.version, digest, tuple(words))

    def matches(self, identifier: Identifier | str, data: bytes) -> bool:
        """True when `identifier` commits to exactly `data`."""
        if isinstance(identifier, str):
            identifier = Identifier.parse(identifier)
        return identifier == self.commit(data)


_default_committer: IdentifierCommitter | None = None


def _committer() -> IdentifierCommitter:
    global _default_committer
    if _default_committer is None:
        _default_committer = IdentifierCommitter()
    return _default_committer


def commit_identifier(data: bytes, committer: IdentifierCommitter | None = None) -> Identifier:
    """Identifier for canonical bytes, using the default committer if none is given."""
    return (committer or _committer()).commit(data)


def identify(resolved: ResolvedInterface,
             committer: IdentifierCommitter | None = None) -> Identifier:
    ident = commit_identifier(canonicalize(resolved), committer)
    logger.debug("Identified %s as %s", resolved.name, ident)
    return ident
