from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

from .lowering import CTypeRenderer
from .model import Arg, Attributes, Class, FunctionKind, MemberFunctionProto, Type
from .naming import sanitize_identifier, to_snake_case
from .platform import LEAF_DISPLAY_NAMES, LEAF_PLATFORMS, CallingConvention, Platform, PlatformNumber
from .runtime import Slot, Symbol


def base_method_name(prototype: MemberFunctionProto) -> str:
    if prototype.kind is FunctionKind.CONSTRUCTOR:
        return "ctor"
    if prototype.kind is FunctionKind.DESTRUCTOR:
        return "dtor"
    return sanitize_identifier(to_snake_case(prototype.name))


def disambiguate(names: Sequence[str]) -> list[str]:
    """Suffix repeated names with ``_1.._n`` in declaration order."""
    counts = Counter(names)
    seen: Counter[str] = Counter()
    result: list[str] = []
    for name in names:
        if counts[name] > 1:
            seen[name] += 1
            result.append(f"{name}_{seen[name]}")
        else:
            result.append(name)
    return result


def method_names(cls: Class) -> set[str]:
    """Attribute names the class body defines for its bound methods."""
    binds = cls.function_binds()
    names = disambiguate([base_method_name(bind.prototype) for bind in binds])
    return {name for bind, name in zip(binds, names) if bind.prototype.kind is FunctionKind.NORMAL}


def build_address_table(
    binds: PlatformNumber,
    symbol: str | None,
    links: Platform = Platform.ALL,
    missing: Platform = Platform.NONE,
) -> dict[Platform, Slot]:
    linked = links or Platform.ALL
    table: dict[Platform, Slot] = {}
    for leaf, value in binds.items():
        if value >= 0:
            table[leaf] = value
        elif (
            value == PlatformNumber.UNSPECIFIED
            and symbol
            and leaf & Platform.ANDROID
            and leaf & linked
            and not leaf & missing
        ):
            table[leaf] = Symbol(symbol)
        else:
            table[leaf] = None
    return table


def render_slot(slot: Slot) -> str:
    if isinstance(slot, Symbol):
        return f'Symbol("{slot.name}")'
    if slot is None:
        return "None"
    return f"{slot:#x}"


def render_address_table(
    variable: str,
    qualified_name: str,
    table: dict[Platform, Slot],
    convention: CallingConvention,
) -> list[str]:
    lines = [f"{variable} = RUNTIME.table(", f'    "{qualified_name}",']
    for leaf in LEAF_PLATFORMS:
        lines.append(f"    {LEAF_DISPLAY_NAMES[leaf]}={render_slot(table.get(leaf))},")
    lines.append(f"    convention=CallingConvention.{convention.name},")
    lines.append(")")
    return lines


def render_docstring(attributes: Attributes, indent: str) -> list[str]:
    text = attributes.docs.strip()
    if attributes.since:
        text = (text + "\n\n" if text else "") + f"Available since {attributes.since}."
    if not text:
        return []
    text = text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    doc_lines = text.splitlines()
    if len(doc_lines) == 1:
        line = doc_lines[0] + (" " if doc_lines[0].endswith('"') else "")
        return [f'{indent}"""{line}"""']
    lines = [f'{indent}"""{doc_lines[0]}']
    lines.extend(f"{indent}{line}".rstrip() for line in doc_lines[1:])
    lines.append(f'{indent}"""')
    return lines


def parameter_names(args: Sequence[Arg], reserved: Sequence[str] = ()) -> list[str]:
    names: list[str] = []
    taken = set(reserved)
    for index, arg in enumerate(args):
        name = sanitize_identifier(arg.name)
        if name in taken:
            name = f"{name}_{index}"
        taken.add(name)
        names.append(name)
    return names


@dataclass(frozen=True)
class Thunk:
    """A generated Python callable forwarding to a bound address."""

    name: str
    table: str
    ret: Type
    args: tuple[Arg, ...]
    this_type: str | None = None
    this_name: str = "self"
    is_static: bool = False
    attributes: Attributes = Attributes()

    def render(self, renderer: CTypeRenderer, indent: str = "", generate_docs: bool = True) -> list[str]:
        reserved = [self.this_name] if self.this_type is not None else []
        params = parameter_names(self.args, reserved)
        argtypes = [renderer.render_spelling(arg.type.name) for arg in self.args]
        call_args = list(params)
        signature = list(params)
        if self.this_type is not None:
            argtypes.insert(0, f"POINTER({self.this_type})")
            call_args.insert(0, self.this_name)
            signature.insert(0, self.this_name)

        lines: list[str] = []
        if self.is_static:
            lines.append(f"{indent}@staticmethod")
        lines.append(f"{indent}def {self.name}({', '.join(signature)}):")
        body = indent + "    "
        if generate_docs:
            lines.extend(render_docstring(self.attributes, body))
        restype = renderer.render_spelling(self.ret.name)
        prototype = ", ".join([restype, *argtypes])
        lines.append(f"{body}fn = {self.table}.function({prototype})")
        lines.append(f"{body}return fn({', '.join(call_args)})")
        return lines


def render_placeholder(qualified_name: str, reason: str, indent: str = "") -> list[str]:
    return [f"{indent}# {qualified_name}: {reason}"]


def unresolved_reason(platform: Platform) -> str:
    return f"inline or unspecified on {platform.display_name}"
