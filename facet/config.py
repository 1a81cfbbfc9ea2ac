"""
Facet Engine Configuration
==========================
Settings shared by the engine and the command line. Values come from
defaults, then FACET_* environment variables, then explicit overrides.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from .canonical import DEFAULT_SCHEME, DEFAULT_TAG, DEFAULT_VERSION, check_scheme, get_digest

ENV_PREFIX = "FACET_"
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for an InterfaceEngine."""

    digest: str = "tagged-sha256"           # Registered digest primitive
    digest_tag: str = DEFAULT_TAG           # Domain-separation tag
    identifier_scheme: str = DEFAULT_SCHEME
    identifier_version: int = DEFAULT_VERSION
    strict: bool = False                    # Any violation fails compilation
    workers: int = 1                        # Threads for batch compilation
    log_level: str = "WARNING"

    def __post_init__(self):
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.identifier_version < 0:
            raise ValueError(f"identifier_version must be >= 0, got {self.identifier_version}")
        check_scheme(self.identifier_scheme)
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level '{self.log_level}'")
        # Fails early on an unregistered digest name
        get_digest(self.digest, self.digest_tag)

    @property
    def level(self) -> int:
        return logging.getLevelName(self.log_level.upper())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EngineConfig:
        """Build from a mapping. Unknown keys are rejected."""
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ValueError(f"Unknown configuration key(s): {', '.join(unknown)}")
        values = {name: _coerce(known[name].type, name, value) for name, value in data.items()}
        return cls(**values)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> EngineConfig:
        """Defaults, then FACET_<FIELD> variables, then keyword overrides."""
        environ = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        for f in fields(cls):
            key = ENV_PREFIX + f.name.upper()
            if key in environ:
                data[f.name] = environ[key]
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(data)

    def with_overrides(self, **overrides) -> EngineConfig:
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _coerce(type_name: str, name: str, value: Any) -> Any:
    """Convert environment strings to the field's type."""
    if not isinstance(value, str):
        return value
    if type_name == "bool":
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ValueError(f"{name} expects a boolean, got {value!r}")
    if type_name == "int":
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"{name} expects an integer, got {value!r}") from None
    return value
