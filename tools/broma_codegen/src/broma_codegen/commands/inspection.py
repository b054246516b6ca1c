from __future__ import annotations

import argparse
import json
from pathlib import Path

from ..core import TOOL_VERSION, write_json
from ..mangle import mangle_symbol
from ..model import FunctionKind
from ..parser import parse_files
from .common import resolve_sources


def command_parse(args: argparse.Namespace) -> int:
    repo_root = Path(args.repo_root).resolve()
    root = parse_files(resolve_sources(repo_root, list(args.sources)))
    payload = {
        "tool": {"name": "broma_codegen", "version": TOOL_VERSION},
        "root": root.as_dict(),
    }
    if args.output:
        write_json(Path(args.output).resolve(), payload)
        print(
            f"parse: headers={len(root.headers)} classes={len(root.classes)} "
            f"functions={len(root.functions)} -> {args.output}"
        )
    else:
        print(json.dumps(payload, indent=2, sort_keys=True))
    return 0


def command_mangle(args: argparse.Namespace) -> int:
    if args.constructor:
        kind = FunctionKind.CONSTRUCTOR
    elif args.destructor:
        kind = FunctionKind.DESTRUCTOR
    else:
        kind = FunctionKind.NORMAL

    class_name = args.name if kind is not FunctionKind.NORMAL else None
    print(mangle_symbol(args.name, list(args.arg or []), kind=kind, class_name=class_name, is_const=bool(args.const)))
    return 0
