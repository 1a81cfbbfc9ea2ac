"""
Facet Renderer
==============
Prints fragments and resolved interfaces back as fragment source. Tables
are emitted sorted by name so output is stable.
"""
from __future__ import annotations

from .model import Fragment, OperationRule, ResolvedInterface, SlotDecl, SlotKind, SlotUsage
from .multiplicity import Multiplicity

INDENT = "    "
_MODIFIER_ORDER = ("required", "abstract", "default", "final")


def qualifier_text(multiplicity: Multiplicity) -> str:
    """Source suffix for a multiplicity: '', '?', '+', '*' or '[l..u]'."""
    if multiplicity.qualifier is not None:
        return multiplicity.qualifier
    upper = "*" if multiplicity.upper is None else str(multiplicity.upper)
    return f"[{multiplicity.lower}..{upper}]"


def _quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\t", "\\t")
    return f'"{escaped}"'


def _slot(slot: SlotDecl) -> str:
    return f"{slot.kind.value} {slot.name}{qualifier_text(slot.multiplicity)}: {slot.value_type}"


def _usage(usage: SlotUsage) -> str:
    text = usage.name + qualifier_text(usage.multiplicity)
    return text + " default" if usage.default else text


def _rule(rule: OperationRule, depth: int) -> list[str]:
    pad = INDENT * depth
    modifiers = [m for m in _MODIFIER_ORDER if any(x.value == m for x in rule.modifiers)]
    head = "genesis" if rule.is_genesis else f"transition {rule.name}"
    lines = [pad + " ".join([head] + modifiers)]

    body = pad + INDENT
    if rule.reads:
        lines.append(body + "reads " + ", ".join(sorted(rule.reads)))
    for clause in ("writes", "assigns", "inputs"):
        usages = getattr(rule, clause)
        if usages:
            lines.append(body + f"{clause} " + ", ".join(_usage(u) for u in usages))
    if rule.errors:
        lines.append(body + "errors " + ", ".join(sorted(rule.errors)))
    lines.append(pad + "end")
    return lines


def render_fragment(fragment: Fragment) -> str:
    head = f"interface {fragment.name}"
    if fragment.extends:
        head += " extends " + ", ".join(fragment.extends)
    lines = [head]

    kind_order = list(SlotKind)
    for slot in sorted(fragment.slots, key=lambda s: (kind_order.index(s.kind), s.name)):
        lines.append(INDENT + _slot(slot))
    for error in sorted(fragment.errors, key=lambda e: e.name):
        lines.append(INDENT + f"error {error.name} {_quote(error.message)}")
    if fragment.retracts:
        lines.append(INDENT + "retracts " + ", ".join(fragment.retracts))
    if fragment.genesis is not None:
        lines.extend(_rule(fragment.genesis, 1))
    for rule in sorted(fragment.transitions, key=lambda r: r.name):
        lines.extend(_rule(rule, 1))
    lines.append("end")
    return "\n".join(lines) + "\n"


def render_resolved(resolved: ResolvedInterface) -> str:
    """Flattened source of a resolved interface, with no extends list."""
    lines = [f"interface {resolved.name}"]
    for kind in SlotKind:
        for slot in resolved.slots_of(kind).values():
            lines.append(INDENT + _slot(slot))
    for error in resolved.errors.values():
        lines.append(INDENT + f"error {error.name} {_quote(error.message)}")
    lines.extend(_rule(resolved.genesis, 1))
    for rule in resolved.transitions.values():
        lines.extend(_rule(rule, 1))
    lines.append("end")
    return "\n".join(lines) + "\n"
