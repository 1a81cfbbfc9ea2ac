# Facet — interface composition and validation engine
"""
Facet: composes contract-interface fragments through multiple
inheritance, validates the result and derives a stable identifier.
"""
from .multiplicity import Multiplicity, ONE, OPTIONAL, ONE_OR_MORE, ANY_COUNT, contains, join, meet, tighten
from .model import (
    GENESIS, SlotKind, Modifier, SlotDecl, ErrorDef, SlotUsage,
    OperationRule, Fragment, ResolvedInterface,
)
from .errors import (
    FacetError, StructuralError, DuplicateFragment, CyclicInheritance, UnknownParent,
    UnknownFragment, MergeError, IncompatibleOverride, FinalOverrideViolation,
    MissingRequiredOperation, ErrorMessageConflict, MultiplicityViolation,
    StrictValidationError, UnknownStandard,
)
from .lexer import Lexer, Token, TokenType
from .parser import Parser, parse_fragments, parse_fragment
from .store import FragmentStore
from .resolver import CompositionResolver
from .validator import ConsistencyValidator, Violation, ViolationKind, validate
from .canonical import (
    Identifier, IdentifierCommitter, DigestPrimitive, TaggedSha256, MnemonicEncoder,
    Bip39Mnemonic, canonical_form, canonicalize, commit_identifier, identify,
    register_digest, get_digest,
)
from .render import render_fragment, render_resolved
from .standard import (
    IfaceStandard, Inflation, Issues, FungibleFeatures, NftFeatures, CollectibleFeatures,
    standard_fragments, standard_composites, standard_store,
)
from .config import EngineConfig
from .engine import InterfaceEngine, CompiledInterface, CompilationReport

__version__ = "0.1.0"
__all__ = [
    "Multiplicity", "ONE", "OPTIONAL", "ONE_OR_MORE", "ANY_COUNT",
    "contains", "join", "meet", "tighten",
    "GENESIS", "SlotKind", "Modifier", "SlotDecl", "ErrorDef", "SlotUsage",
    "OperationRule", "Fragment", "ResolvedInterface",
    "FacetError", "StructuralError", "DuplicateFragment", "CyclicInheritance",
    "UnknownParent", "UnknownFragment", "MergeError", "IncompatibleOverride",
    "FinalOverrideViolation", "MissingRequiredOperation", "ErrorMessageConflict",
    "MultiplicityViolation", "StrictValidationError", "UnknownStandard",
    "Lexer", "Token", "TokenType",
    "Parser", "parse_fragments", "parse_fragment",
    "FragmentStore",
    "CompositionResolver",
    "ConsistencyValidator", "Violation", "ViolationKind", "validate",
    "Identifier", "IdentifierCommitter", "DigestPrimitive", "TaggedSha256",
    "MnemonicEncoder", "Bip39Mnemonic", "canonical_form", "canonicalize",
    "commit_identifier", "identify", "register_digest", "get_digest",
    "render_fragment", "render_resolved",
    "IfaceStandard", "Inflation", "Issues",
    "FungibleFeatures", "NftFeatures", "CollectibleFeatures",
    "standard_fragments", "standard_composites", "standard_store",
    "EngineConfig",
    "InterfaceEngine", "CompiledInterface", "CompilationReport",
]
