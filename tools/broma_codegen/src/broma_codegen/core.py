from __future__ import annotations

import difflib
import glob
import json
from pathlib import Path
from typing import Any

TOOL_VERSION = "1.0.0"

CONFIG_TARGET_KEYS = {
    "sources",
    "output_dir",
    "platform",
    "generate_docs",
    "separate_files",
    "container_module",
    "runtime_module",
}


class BromaCodegenError(Exception):
    pass


class ConfigError(BromaCodegenError):
    pass


class SourceReadError(BromaCodegenError):
    pass


class ParseError(BromaCodegenError):
    def __init__(self, message: str, line: int, column: int, source: str | None = None) -> None:
        self.message = message
        self.line = line
        self.column = column
        self.source = source
        prefix = f"{source}: " if source else ""
        super().__init__(f"{prefix}{message}")


class UnexpectedTokenError(ParseError):
    def __init__(self, expected: str, found: str, line: int, column: int, source: str | None = None) -> None:
        self.expected = expected
        self.found = found
        super().__init__(
            f"Unexpected token at line {line}, column {column}: expected {expected}, found {found}",
            line,
            column,
            source,
        )


class UnexpectedEofError(ParseError):
    def __init__(self, expected: str, line: int, column: int, source: str | None = None) -> None:
        self.expected = expected
        super().__init__(
            f"Unexpected end of file at line {line}, column {column}: expected {expected}",
            line,
            column,
            source,
        )


class InvalidHexLiteralError(ParseError):
    def __init__(self, value: str, line: int, column: int, source: str | None = None) -> None:
        self.value = value
        super().__init__(f"Invalid hex literal '{value}' at line {line}, column {column}", line, column, source)


class SelfInheritanceError(ParseError):
    def __init__(self, name: str, line: int, column: int, source: str | None = None) -> None:
        self.name = name
        super().__init__(f"Class '{name}' inherits from itself at line {line}, column {column}", line, column, source)


class SemanticError(ParseError):
    def __init__(self, message: str, line: int, column: int, source: str | None = None) -> None:
        super().__init__(f"{message} at line {line}, column {column}", line, column, source)


def load_json(path: Path) -> dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Unable to read JSON file '{path}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in '{path}': {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"JSON root in '{path}' must be an object")
    return payload


def write_json(path: Path, value: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(value, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def read_source(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SourceReadError(f"Unable to read Broma file '{path}': {exc}") from exc


def write_if_changed(path: Path, content: str, check: bool, dry_run: bool) -> str:
    existing = path.read_text(encoding="utf-8") if path.exists() else None
    if existing == content:
        return "unchanged"
    if check:
        diff = difflib.unified_diff(
            (existing or "").splitlines(),
            content.splitlines(),
            fromfile=f"a/{path}",
            tofile=f"b/{path}",
            lineterm="",
        )
        print("\n".join(diff))
        return "drift"
    if not dry_run:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return "created" if existing is None else "updated"


def get_schema_path(kind: str) -> Path:
    base = Path(__file__).resolve().parent / "schemas"
    mapping = {
        "config": base / "config.schema.json",
    }
    if kind not in mapping:
        raise BromaCodegenError(f"Unknown schema kind: {kind}")
    return mapping[kind]


def validate_with_jsonschema_if_available(kind: str, payload: dict[str, Any]) -> tuple[bool, str | None]:
    schema_path = get_schema_path(kind)
    if not schema_path.exists():
        return False, f"schema file not found: {schema_path}"

    try:
        import jsonschema  # type: ignore
    except Exception:
        return False, "jsonschema package is not installed"

    schema_payload = load_json(schema_path)
    try:
        jsonschema.validate(payload, schema_payload)
    except jsonschema.ValidationError as exc:
        raise ConfigError(f"{kind} failed JSON schema validation: {exc.message}") from exc
    return True, None


def require_keys(obj: dict[str, Any], keys: list[str], label: str) -> None:
    missing = [key for key in keys if key not in obj]
    if missing:
        raise ConfigError(f"{label} is missing required keys: {', '.join(missing)}")


def validate_target_object(target: dict[str, Any], label: str) -> None:
    require_keys(target, ["sources", "output_dir"], label)
    unknown = sorted(set(target) - CONFIG_TARGET_KEYS)
    if unknown:
        raise ConfigError(f"{label} has unknown keys: {', '.join(unknown)}")
    sources = target["sources"]
    if not isinstance(sources, list) or not sources or not all(isinstance(item, str) for item in sources):
        raise ConfigError(f"{label}.sources must be a non-empty array of strings")
    for str_key in ["output_dir", "platform", "container_module", "runtime_module"]:
        value = target.get(str_key)
        if value is not None and (not isinstance(value, str) or not value):
            raise ConfigError(f"{label}.{str_key} must be a non-empty string when specified")
    for bool_key in ["generate_docs", "separate_files"]:
        value = target.get(bool_key)
        if value is not None and not isinstance(value, bool):
            raise ConfigError(f"{label}.{bool_key} must be boolean when specified")


def load_config(path: Path) -> dict[str, Any]:
    config = load_json(path)
    targets = config.get("targets")
    if not isinstance(targets, dict) or not targets:
        raise ConfigError("Config must contain non-empty object: 'targets'.")
    for name, target in targets.items():
        if not isinstance(target, dict):
            raise ConfigError(f"targets.{name} must be an object")
        validate_target_object(target, f"targets.{name}")
    validate_with_jsonschema_if_available("config", config)
    return config


def resolve_target(config: dict[str, Any], target_name: str) -> dict[str, Any]:
    targets = config.get("targets")
    if not isinstance(targets, dict):
        raise ConfigError("Config is missing required object: 'targets'.")
    target = targets.get(target_name)
    if not isinstance(target, dict):
        known = ", ".join(sorted(targets.keys()))
        raise ConfigError(f"Unknown target '{target_name}'. Known targets: {known or '<none>'}")
    return target


def resolve_target_names(config: dict[str, Any], target_name: str | None) -> list[str]:
    if target_name:
        resolve_target(config, target_name)
        return [target_name]
    return sorted(config.get("targets", {}).keys())


def ensure_relative_path(root: Path, value: str) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    return root / path


def to_repo_relative(path: Path, repo_root: Path) -> str:
    try:
        return str(path.resolve().relative_to(repo_root.resolve()))
    except ValueError:
        return str(path.resolve())


def iter_files_from_entries(root: Path, entries: list[str], suffix: str) -> list[Path]:
    paths: list[Path] = []
    seen: set[Path] = set()

    for entry in entries:
        expanded: list[Path] = []
        entry_path = ensure_relative_path(root, entry)

        if any(ch in entry for ch in "*?[]"):
            for match in sorted(glob.glob(str(entry_path), recursive=True)):
                expanded.append(Path(match))
        elif entry_path.is_dir():
            expanded.extend(sorted(entry_path.rglob(f"*{suffix}")))
        elif entry_path.is_file():
            expanded.append(entry_path)
        else:
            raise SourceReadError(f"Broma source not found: '{entry_path}'")

        for candidate in expanded:
            if not candidate.is_file() or candidate.suffix.lower() != suffix:
                continue
            resolved = candidate.resolve()
            if resolved not in seen:
                seen.add(resolved)
                paths.append(resolved)

    return paths
