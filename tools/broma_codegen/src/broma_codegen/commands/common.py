from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..core import (
    BromaCodegenError,
    ensure_relative_path,
    iter_files_from_entries,
    load_config,
    resolve_target,
    resolve_target_names,
)
from ..generator import DEFAULT_CONTAINER_MODULE, DEFAULT_RUNTIME_MODULE, GeneratorOptions, resolve_platform


@dataclass(frozen=True)
class GenerationJob:
    name: str
    sources: list[Path]
    output_dir: Path
    options: GeneratorOptions


def resolve_sources(repo_root: Path, entries: list[str]) -> list[Path]:
    sources = iter_files_from_entries(repo_root, entries, ".bro")
    if not sources:
        raise BromaCodegenError(f"No Broma sources matched: {', '.join(entries)}")
    return sources


def _pick(cli_value: Any, target: dict[str, Any], key: str, default: Any) -> Any:
    if cli_value is not None:
        return cli_value
    return target.get(key, default)


def build_job(repo_root: Path, name: str, target: dict[str, Any], args: argparse.Namespace) -> GenerationJob:
    entries = list(args.sources or target.get("sources") or [])
    if not entries:
        raise BromaCodegenError(f"[{name}] no Broma sources given.")
    output_dir = args.output_dir or target.get("output_dir")
    if not output_dir:
        raise BromaCodegenError(f"[{name}] no output directory given (use --output-dir).")

    options = GeneratorOptions(
        platform=resolve_platform(_pick(args.platform, target, "platform", None)),
        generate_docs=bool(_pick(args.docs, target, "generate_docs", True)),
        separate_files=bool(args.separate_files or target.get("separate_files", False)),
        container_module=_pick(args.container_module, target, "container_module", DEFAULT_CONTAINER_MODULE),
        runtime_module=_pick(args.runtime_module, target, "runtime_module", DEFAULT_RUNTIME_MODULE),
    )
    return GenerationJob(
        name=name,
        sources=resolve_sources(repo_root, entries),
        output_dir=ensure_relative_path(repo_root, output_dir).resolve(),
        options=options,
    )


def resolve_generation_jobs(args: argparse.Namespace, repo_root: Path) -> list[GenerationJob]:
    if not args.config:
        return [build_job(repo_root, "default", {}, args)]

    config = load_config(ensure_relative_path(repo_root, args.config).resolve())
    return [
        build_job(repo_root, name, resolve_target(config, name), args)
        for name in resolve_target_names(config=config, target_name=args.target)
    ]
