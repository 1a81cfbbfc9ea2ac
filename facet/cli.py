"""
Facet CLI — Command-Line Interface for the Interface Engine
===========================================================
Usage:
    # Compile every interface in a file and report violations
    facet check wallet.iface --strict

    # Identifier of one interface, extending the standard library
    facet --with-standard id wallet.iface MyToken

    # Lineage, identifier and flattened source of one interface
    facet show wallet.iface MyToken

    # Nearest-first linearization
    facet lineage wallet.iface MyToken

    # Standard composites and their identifiers
    facet standard --family rgb20
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import EngineConfig
from .engine import InterfaceEngine
from .errors import FacetError
from .render import render_resolved
from .standard import IfaceStandard, standard_composites, standard_store


# ─────────────────────────────────────────────────────────────
#  Helpers
# ─────────────────────────────────────────────────────────────

def _config(args) -> EngineConfig:
    levels = {0: None, 1: "INFO"}
    return EngineConfig.from_env(
        workers=args.workers,
        strict=True if getattr(args, "strict", False) else None,
        log_level=levels.get(args.verbose, "DEBUG"),
    )


def _engine(args, config: EngineConfig) -> tuple[InterfaceEngine, list[str]]:
    """Engine over the given files; also returns the names they declare."""
    engine = InterfaceEngine(
        standard_store() if args.with_standard else None, config,
    )
    names: list[str] = []
    for path in args.files:
        names.extend(engine.load(Path(path).read_text(encoding="utf-8")))
    return engine, names


# ─────────────────────────────────────────────────────────────
#  Commands
# ─────────────────────────────────────────────────────────────

def cmd_check(args, config: EngineConfig) -> int:
    """Compile interfaces and print their violations."""
    engine, declared = _engine(args, config)
    names = args.interface or declared
    report = engine.compile_all(names)

    for name in names:
        if name in report.failures:
            print(f"  ✘ {name}: {report.failures[name]}")
            continue
        compiled = report.compiled[name]
        mark = "✔" if compiled.valid else "⚠"
        print(f"  {mark} {name}  {compiled.identifier}")
        for violation in compiled.violations:
            print(f"    {violation}")

    print(f"\n{report.summary()}")
    return 1 if report.failures else 0


def cmd_id(args, config: EngineConfig) -> int:
    engine, _ = _engine(args, config)
    print(engine.compile(args.name).identifier)
    return 0


def cmd_show(args, config: EngineConfig) -> int:
    """Print lineage, identifier, violations and the flattened interface."""
    engine, _ = _engine(args, config)
    compiled = engine.compile(args.name)
    resolved = compiled.resolved
    print(f"# {compiled.identifier}")
    print(f"# lineage: {' → '.join(resolved.lineage)}")
    abstract = resolved.abstract_operations()
    if abstract:
        print(f"# abstract: {', '.join(abstract)}")
    for violation in compiled.violations:
        print(f"# {violation}")
    print(render_resolved(resolved), end="")
    return 0


def cmd_lineage(args, config: EngineConfig) -> int:
    engine, _ = _engine(args, config)
    for index, name in enumerate(engine.store.linearize(args.name)):
        print(f"  {index:2d}. {name}")
    return 0


def cmd_standard(args, config: EngineConfig) -> int:
    """List standard composites with their identifiers."""
    engine = InterfaceEngine(standard_store(), config)
    family = IfaceStandard.parse(args.family) if args.family else None
    names = [f.name for f in standard_composites(family)]
    report = engine.compile_all(names)
    for name in names:
        if name in report.failures:
            print(f"  ✘ {name}: {report.failures[name]}")
        else:
            print(f"  {name:<40} {report.compiled[name].identifier}")
    return 1 if report.failures else 0


# ─────────────────────────────────────────────────────────────
#  Entry point
# ─────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="facet",
        description="Facet — interface composition and validation engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  facet check wallet.iface --strict\n"
            "  facet --with-standard id wallet.iface MyToken\n"
            "  facet show wallet.iface MyToken\n"
            "  facet lineage wallet.iface MyToken\n"
            "  facet standard --family rgb21\n"
        ),
    )
    parser.add_argument("--with-standard", action="store_true",
                        help="Preload the standard interface library")
    parser.add_argument("--workers", type=int, default=None,
                        help="Threads used for batch compilation")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="More logging (-v info, -vv debug)")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # check
    p_check = subparsers.add_parser("check", help="Compile interfaces and report violations")
    p_check.add_argument("files", nargs="+", help="Interface source files")
    p_check.add_argument("--interface", "-i", action="append", default=[],
                         help="Only this interface (repeatable)")
    p_check.add_argument("--strict", action="store_true", help="Treat violations as failures")

    # id / show / lineage
    for command, help_text in (
        ("id", "Print the identifier of an interface"),
        ("show", "Print the resolved interface"),
        ("lineage", "Print the linearized ancestor order"),
    ):
        p_cmd = subparsers.add_parser(command, help=help_text)
        p_cmd.add_argument("files", nargs="+", help="Interface source files")
        p_cmd.add_argument("name", help="Interface name")

    # standard
    p_std = subparsers.add_parser("standard", help="List standard composites")
    p_std.add_argument("--family", default=None,
                       help="rgb20, rgb21 or rgb25 (default: all)")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    commands = {
        "check": cmd_check,
        "id": cmd_id,
        "show": cmd_show,
        "lineage": cmd_lineage,
        "standard": cmd_standard,
    }
    if args.command not in commands:
        parser.print_help()
        return 2

    try:
        config = _config(args)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    logging.basicConfig(level=config.level, format="%(levelname)s %(name)s: %(message)s")

    try:
        return commands[args.command](args, config)
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except SyntaxError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except FacetError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
