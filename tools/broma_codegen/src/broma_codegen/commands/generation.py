from __future__ import annotations

import argparse
from collections import Counter
from pathlib import Path
from typing import Any

from ..core import TOOL_VERSION, to_repo_relative, write_json
from ..generator import generate_from_sources
from .common import resolve_generation_jobs


def command_generate(args: argparse.Namespace) -> int:
    repo_root = Path(args.repo_root).resolve()
    jobs = resolve_generation_jobs(args, repo_root)

    aggregate: dict[str, Any] = {
        "tool": {"name": "broma_codegen", "version": TOOL_VERSION},
        "results": {},
    }
    exit_code = 0

    for job in jobs:
        result = generate_from_sources(
            sources=job.sources,
            output_dir=job.output_dir,
            options=job.options,
            check=bool(args.check),
            dry_run=bool(args.dry_run),
        )
        aggregate["results"][job.name] = result

        statuses = Counter(result["artifacts"].values())
        summary = " ".join(f"{status}={statuses[status]}" for status in sorted(statuses))
        print(
            f"[{job.name}] generate: platform={result['platform']} classes={result['classes']} "
            f"functions={result['functions']} files={len(result['artifacts'])} {summary}"
        )
        if args.check and result["has_drift"]:
            print(f"[{job.name}] generated bindings are out of date: {to_repo_relative(job.output_dir, repo_root)}")
            exit_code = 1

    if args.report_json:
        write_json(Path(args.report_json).resolve(), aggregate)
    return exit_code
