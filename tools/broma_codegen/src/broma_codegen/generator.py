from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .core import TOOL_VERSION, ConfigError, write_if_changed
from .functions import (
    Thunk,
    base_method_name,
    build_address_table,
    disambiguate,
    method_names,
    render_address_table,
    render_docstring,
    render_placeholder,
    unresolved_reason,
)
from .layout import ClassIndex, build_layout, order_classes, platform_expression, render_layout
from .lowering import CONTAINER_NAMES, CTypeRenderer
from .mangle import mangle_bind, mangle_free_function
from .model import Class, FunctionKind, Root
from .naming import constant_name, sanitize_identifier, to_snake_case
from .parser import parse_files
from .platform import LEAF_PLATFORMS, CallingConvention, Platform, detect_platform

DEFAULT_CONTAINER_MODULE = "broma_stl"
DEFAULT_RUNTIME_MODULE = "broma_codegen.runtime"

GENERATED_HEADER = "# Auto-generated by broma_codegen from Broma sources. Do not edit manually."
STAR_IMPORTS = [
    "from ctypes import *  # noqa: F401,F403",
    "",
    "from ..types import *  # noqa: F401,F403",
]
CLASSES_IMPORT = "from .. import classes as _classes"


@dataclass(frozen=True)
class GeneratorOptions:
    platform: Platform
    generate_docs: bool = True
    separate_files: bool = False
    container_module: str = DEFAULT_CONTAINER_MODULE
    runtime_module: str = DEFAULT_RUNTIME_MODULE


def resolve_platform(value: str | None) -> Platform:
    if value is None:
        return detect_platform()
    try:
        platform = Platform.from_name(value)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    if platform not in LEAF_PLATFORMS:
        raise ConfigError(f"Target platform must be a single platform, got '{value}'")
    return platform


def _join_blocks(blocks: list[list[str]]) -> list[str]:
    lines: list[str] = []
    for block in blocks:
        if not block:
            continue
        if lines:
            lines.extend(["", ""])
        lines.extend(block)
    return lines


def _render_all(names: list[str]) -> list[str]:
    if not names:
        return ["__all__: list[str] = []"]
    return ["__all__ = ["] + [f'    "{name}",' for name in names] + ["]"]


def _module_text(lines: list[str]) -> str:
    return "\n".join(lines).rstrip() + "\n"


@dataclass
class _RenderedClass:
    blocks: list[list[str]]
    exports: list[str]


class BindingGenerator:
    def __init__(self, root: Root, options: GeneratorOptions) -> None:
        self.root = root
        self.options = options
        self.index = ClassIndex.from_root(root)

    @property
    def platform(self) -> Platform:
        return self.options.platform

    def generate(self) -> dict[str, str]:
        files = {
            "__init__.py": self._render_package_init(),
            "types.py": self._render_types(),
            "functions/__init__.py": _module_text([GENERATED_HEADER, "from .free import *  # noqa: F401,F403"]),
            "functions/free.py": self._render_free_functions(),
        }
        files.update(self._render_classes())
        return dict(sorted(files.items()))

    def _render_package_init(self) -> str:
        return _module_text(
            [
                GENERATED_HEADER,
                "from . import types  # noqa: F401",
                "from . import classes  # noqa: F401",
                "from . import functions  # noqa: F401",
            ]
        )

    def _render_types(self) -> str:
        lines = [
            GENERATED_HEADER,
            f"# broma_codegen {TOOL_VERSION}, target platform: {self.platform.display_name}",
            "from ctypes import *  # noqa: F401,F403",
            "",
            f"from {self.options.container_module} import {', '.join(sorted(CONTAINER_NAMES))}  # noqa: F401",
            f"from {self.options.runtime_module} import CallingConvention, Platform, Runtime, Symbol  # noqa: F401",
            "",
            f"TARGET_PLATFORM = Platform.{self.platform.name}",
            "RUNTIME = Runtime(TARGET_PLATFORM)",
            "",
        ]
        if self.root.headers:
            lines.append("HEADERS = (")
            for header in self.root.headers:
                lines.append(f'    ("{header.name}", {platform_expression(header.platform)}),')
            lines.append(")")
        else:
            lines.append("HEADERS = ()")
        return _module_text(lines)

    def _render_class(self, cls: Class, renderer: CTypeRenderer) -> _RenderedClass:
        generate_docs = self.options.generate_docs
        py_name = self.index.py_names[cls.name]
        self_type = renderer.class_prefix + py_name
        snake_class = to_snake_case(py_name)

        tables: list[list[str]] = []
        body: list[list[str]] = []
        specials: list[list[str]] = []
        exports = [py_name]
        has_constructor = False

        binds = cls.function_binds()
        names = disambiguate([base_method_name(bind.prototype) for bind in binds])
        bind_names = dict(zip((id(bind) for bind in binds), names))

        for item in cls.fields:
            inline = item.as_inline()
            if inline is not None:
                body.append([f"    # {line}".rstrip() for line in inline.inner.splitlines()])
                continue
            bind = item.as_function_bind()
            if bind is None:
                continue

            prototype = bind.prototype
            name = bind_names[id(bind)]
            is_special = prototype.kind is not FunctionKind.NORMAL
            has_constructor = has_constructor or prototype.kind is FunctionKind.CONSTRUCTOR
            qualified = f"{cls.name}::{prototype.name}"
            indent = "" if is_special else "    "
            target = specials if is_special else body

            table = build_address_table(
                bind.binds,
                mangle_bind(cls.name, bind),
                prototype.attributes.links,
                prototype.attributes.missing,
            )
            if table[self.platform] is None:
                target.append(render_placeholder(qualified, unresolved_reason(self.platform), indent))
                continue

            variable = constant_name(cls.name, name)
            convention = CallingConvention.for_member_function(prototype.is_static, self.platform)
            tables.append(render_address_table(variable, qualified, table, convention))
            if is_special:
                function_name = f"{snake_class}_{name}"
                thunk = Thunk(
                    function_name,
                    variable,
                    prototype.ret,
                    prototype.args,
                    this_type=self_type,
                    this_name="this",
                    attributes=prototype.attributes,
                )
                exports.append(function_name)
            else:
                thunk = Thunk(
                    name,
                    variable,
                    prototype.ret,
                    prototype.args,
                    this_type=None if prototype.is_static else self_type,
                    is_static=prototype.is_static,
                    attributes=prototype.attributes,
                )
            target.append(thunk.render(renderer, indent, generate_docs))

        class_lines = [f"class {py_name}(Structure):"]
        docstring = render_docstring(cls.attributes, "    ") if generate_docs else []
        class_lines.extend(docstring)
        has_statement = bool(docstring)
        for block in body:
            if len(class_lines) > 1:
                class_lines.append("")
            class_lines.extend(block)
            has_statement = has_statement or any(not line.lstrip().startswith("#") for line in block)
        if not has_statement:
            class_lines.append("    pass")

        if not has_constructor:
            specials.insert(0, [f"# No constructor binding for {cls.name}"])
        return _RenderedClass(blocks=[*tables, class_lines, *specials], exports=exports)

    def _render_layouts(self, renderer: CTypeRenderer) -> list[list[str]]:
        blocks: list[list[str]] = []
        for cls in order_classes(self.index, renderer):
            slots = build_layout(cls, self.index, renderer, method_names(cls))
            blocks.append(render_layout(self.index.py_names[cls.name], slots))
        return blocks

    def _render_classes(self) -> dict[str, str]:
        layout_renderer = self.index.renderer()
        layouts = [
            "# Struct layouts, dependencies first.",
            *_join_blocks(self._render_layouts(layout_renderer)),
        ]
        classes = list(self.index.classes.values())

        if not self.options.separate_files:
            rendered = [self._render_class(cls, layout_renderer) for cls in classes]
            exports = [name for item in rendered for name in item.exports]
            lines = [GENERATED_HEADER, *STAR_IMPORTS, "", *_render_all(exports)]
            blocks = [block for item in rendered for block in item.blocks]
            return {"classes/__init__.py": _module_text(_join_blocks([lines, *blocks, layouts]))}

        files: dict[str, str] = {}
        body_renderer = self.index.renderer("_classes.")
        module_names: dict[str, int] = {}
        imports: list[str] = []
        all_exports: list[str] = []
        for cls in classes:
            base = sanitize_identifier(to_snake_case(self.index.py_names[cls.name]))
            module_names[base] = module_names.get(base, 0) + 1
            module = base if module_names[base] == 1 else f"{base}_{module_names[base]}"

            rendered = self._render_class(cls, body_renderer)
            header = [GENERATED_HEADER, *STAR_IMPORTS, CLASSES_IMPORT, "", *_render_all(rendered.exports)]
            files[f"classes/{module}.py"] = _module_text(_join_blocks([header, *rendered.blocks]))
            imports.append(f"from .{module} import *  # noqa: F401,F403")
            all_exports.extend(rendered.exports)

        init_lines = [GENERATED_HEADER, *STAR_IMPORTS, *imports, "", *_render_all(all_exports)]
        files["classes/__init__.py"] = _module_text(_join_blocks([init_lines, layouts]))
        return files

    def _render_free_functions(self) -> str:
        renderer = self.index.renderer("_classes.")
        names = disambiguate([sanitize_identifier(to_snake_case(fn.prototype.name)) for fn in self.root.functions])
        blocks: list[list[str]] = []
        exports: list[str] = []
        for function, name in zip(self.root.functions, names):
            prototype = function.prototype
            table = build_address_table(
                function.binds,
                mangle_free_function(function),
                prototype.attributes.links,
                prototype.attributes.missing,
            )
            if table[self.platform] is None:
                blocks.append(render_placeholder(prototype.name, unresolved_reason(self.platform)))
                continue
            variable = constant_name(name)
            blocks.append(render_address_table(variable, prototype.name, table, CallingConvention.DEFAULT))
            thunk = Thunk(name, variable, prototype.ret, prototype.args, attributes=prototype.attributes)
            blocks.append(thunk.render(renderer, "", self.options.generate_docs))
            exports.append(name)

        header = [GENERATED_HEADER, *STAR_IMPORTS, CLASSES_IMPORT, "", *_render_all(exports)]
        return _module_text(_join_blocks([header, *blocks]))


def generate_bindings(root: Root, options: GeneratorOptions) -> dict[str, str]:
    return BindingGenerator(root, options).generate()


def write_bindings(output_dir: Path, files: dict[str, str], check: bool, dry_run: bool) -> dict[str, str]:
    return {
        relative: write_if_changed(output_dir / relative, content, check=check, dry_run=dry_run)
        for relative, content in files.items()
    }


def generate_from_sources(
    sources: list[Path],
    output_dir: Path,
    options: GeneratorOptions,
    check: bool = False,
    dry_run: bool = False,
) -> dict[str, Any]:
    root = parse_files(sources)
    files = generate_bindings(root, options)
    artifacts = write_bindings(output_dir, files, check=check, dry_run=dry_run)
    return {
        "platform": options.platform.display_name,
        "sources": [str(path) for path in sources],
        "output_dir": str(output_dir),
        "headers": len(root.headers),
        "classes": len(root.classes),
        "functions": len(root.functions),
        "artifacts": artifacts,
        "has_drift": any(status == "drift" for status in artifacts.values()),
    }
