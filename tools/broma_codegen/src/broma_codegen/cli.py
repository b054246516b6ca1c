from __future__ import annotations

import argparse
import sys

from .commands import command_generate, command_mangle, command_parse
from .core import BromaCodegenError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="broma_codegen",
        description="Broma binding compiler (parse/generate/mangle).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    generate = sub.add_parser("generate", help="Generate ctypes bindings from Broma sources.")
    generate.add_argument("sources", nargs="*", help="Broma files, directories or globs (overrides config sources).")
    generate.add_argument(
        "--repo-root",
        default=".",
        help="Repository root used to resolve relative paths (default: current directory).",
    )
    generate.add_argument("--config", help="Path to codegen config JSON.")
    generate.add_argument("--target", help="Target name from config targets map (default: all targets).")
    generate.add_argument("--output-dir", help="Directory receiving the generated package.")
    generate.add_argument("--platform", help="Target platform (default: detected from the host).")
    generate.add_argument(
        "--docs",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Emit documentation strings from /// comments and docs attributes.",
    )
    generate.add_argument("--separate-files", action="store_true", help="Write one module per class.")
    generate.add_argument("--container-module", help="Module providing String, Vector, Map and friends.")
    generate.add_argument("--runtime-module", help="Module providing Runtime, Symbol, Platform.")
    generate.add_argument("--check", action="store_true", help="Fail when generated files are out of date.")
    generate.add_argument("--dry-run", action="store_true", help="Do not write files.")
    generate.add_argument("--report-json", help="Write generation report JSON to path.")
    generate.set_defaults(func=command_generate)

    parse = sub.add_parser("parse", help="Parse Broma sources and dump the syntax tree as JSON.")
    parse.add_argument("sources", nargs="+", help="Broma files, directories or globs.")
    parse.add_argument(
        "--repo-root",
        default=".",
        help="Repository root used to resolve relative paths (default: current directory).",
    )
    parse.add_argument("--output", help="Write JSON to path instead of stdout.")
    parse.set_defaults(func=command_parse)

    mangle = sub.add_parser("mangle", help="Print the Itanium symbol of a declaration.")
    mangle.add_argument("name", help="Qualified function name, or class name with --constructor/--destructor.")
    mangle.add_argument("--arg", action="append", help="Argument type spelling (repeatable, in order).")
    mangle.add_argument("--const", action="store_true", help="Mangle as a const member function.")
    kind = mangle.add_mutually_exclusive_group()
    kind.add_argument("--constructor", action="store_true", help="Mangle the base object constructor.")
    kind.add_argument("--destructor", action="store_true", help="Mangle the base object destructor.")
    mangle.set_defaults(func=command_mangle)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return int(args.func(args))
    except BromaCodegenError as exc:
        print(f"broma_codegen error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
