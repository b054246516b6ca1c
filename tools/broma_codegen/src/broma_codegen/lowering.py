from __future__ import annotations

import enum
import re
from collections.abc import Collection, Mapping
from dataclasses import dataclass, replace


class TypeKind(enum.Enum):
    PRIMITIVE = "primitive"
    KNOWN_CLASS = "known_class"
    CONTAINER = "container"
    POINTER = "pointer"
    REFERENCE = "reference"
    TEMPLATE = "template"
    UNKNOWN = "unknown"


PRIMITIVE_CTYPES: dict[str, str] = {
    "void": "None",
    "bool": "c_bool",
    "char": "c_char",
    "signed char": "c_byte",
    "unsigned char": "c_ubyte",
    "short": "c_short",
    "short int": "c_short",
    "unsigned short": "c_ushort",
    "unsigned short int": "c_ushort",
    "int": "c_int",
    "signed": "c_int",
    "signed int": "c_int",
    "unsigned": "c_uint",
    "unsigned int": "c_uint",
    "long": "c_long",
    "long int": "c_long",
    "unsigned long": "c_ulong",
    "unsigned long int": "c_ulong",
    "long long": "c_longlong",
    "long long int": "c_longlong",
    "unsigned long long": "c_ulonglong",
    "unsigned long long int": "c_ulonglong",
    "float": "c_float",
    "double": "c_double",
    "long double": "c_longdouble",
    "wchar_t": "c_wchar",
    "char16_t": "c_uint16",
    "char32_t": "c_uint32",
    "size_t": "c_size_t",
    "ssize_t": "c_ssize_t",
    "ptrdiff_t": "c_ssize_t",
    "intptr_t": "c_ssize_t",
    "uintptr_t": "c_size_t",
    "int8_t": "c_int8",
    "uint8_t": "c_uint8",
    "int16_t": "c_int16",
    "uint16_t": "c_uint16",
    "int32_t": "c_int32",
    "uint32_t": "c_uint32",
    "int64_t": "c_int64",
    "uint64_t": "c_uint64",
}

STRING_TYPES = {"std::string", "gd::string"}

# Names provided by the container module that generated bindings import.
CONTAINER_TEMPLATES: dict[str, str] = {
    "vector": "Vector",
    "map": "Map",
    "unordered_map": "UnorderedMap",
    "set": "Set",
    "unordered_set": "UnorderedSet",
    "shared_ptr": "SharedPtr",
    "optional": "Optional",
    "variant": "Variant2",
}
CONTAINER_NAMES = ("String", *CONTAINER_TEMPLATES.values())

# `vector<int>const` and `vector<int> const` name the same type.
_CLOSE_CONST_RE = re.compile(r">const\b")


@dataclass(frozen=True)
class TypeDescriptor:
    kind: TypeKind
    name: str = ""
    inner: TypeDescriptor | None = None
    args: tuple[TypeDescriptor, ...] = ()
    is_const: bool = False
    is_struct: bool = False

    def spelling(self) -> str:
        if self.inner is not None:
            suffix = "*" if self.kind is TypeKind.POINTER else "&"
            return ("const " if self.is_const else "") + self.inner.spelling() + suffix
        text = self.name
        if self.kind is TypeKind.TEMPLATE:
            text += "<" + ", ".join(arg.spelling() for arg in self.args) + ">"
        if self.is_struct:
            text = "struct " + text
        if self.is_const:
            text += " const"
        return text

    def walk(self) -> list[TypeDescriptor]:
        found = [self]
        if self.inner is not None:
            found.extend(self.inner.walk())
        for arg in self.args:
            found.extend(arg.walk())
        return found

    @property
    def is_indirect(self) -> bool:
        return self.kind in (TypeKind.POINTER, TypeKind.REFERENCE)

    @property
    def is_void(self) -> bool:
        return self.kind is TypeKind.PRIMITIVE and self.name == "void"


def split_template_args(text: str) -> list[str]:
    args: list[str] = []
    current: list[str] = []
    depth = 0
    for char in text:
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
        elif char == "," and depth == 0:
            args.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        args.append(tail)
    return args


def template_base(name: str) -> str:
    """Strip a ``std::``/``gd::`` prefix from a template name."""
    for prefix in ("std::", "gd::"):
        if name.startswith(prefix):
            return name[len(prefix) :]
    return name


def normalize_spelling(spelling: str) -> str:
    return _CLOSE_CONST_RE.sub("> const", " ".join(spelling.split()))


def lower_type(spelling: str, known_classes: Collection[str] = frozenset()) -> TypeDescriptor:
    text = normalize_spelling(spelling)
    is_const = False
    if text.startswith("const "):
        is_const = True
        text = text[len("const ") :].strip()

    if text.endswith("*") or text.endswith("&"):
        kind = TypeKind.POINTER if text.endswith("*") else TypeKind.REFERENCE
        inner = lower_type(text[:-1].strip(), known_classes)
        return TypeDescriptor(kind, inner=inner, is_const=is_const)

    if text.endswith(" const"):
        lowered = lower_type(text[: -len(" const")], known_classes)
        return replace(lowered, is_const=True)

    is_struct = False
    if text.startswith("struct "):
        is_struct = True
        text = text[len("struct ") :].strip()

    if "<" in text and text.endswith(">"):
        opening = text.index("<")
        args = tuple(lower_type(arg, known_classes) for arg in split_template_args(text[opening + 1 : -1]))
        return TypeDescriptor(
            TypeKind.TEMPLATE,
            name=text[:opening].strip(),
            args=args,
            is_const=is_const,
            is_struct=is_struct,
        )

    if text in PRIMITIVE_CTYPES:
        kind = TypeKind.PRIMITIVE
    elif text in STRING_TYPES:
        kind = TypeKind.CONTAINER
    elif text in known_classes:
        kind = TypeKind.KNOWN_CLASS
    else:
        kind = TypeKind.UNKNOWN
    return TypeDescriptor(kind, name=text, is_const=is_const, is_struct=is_struct)


class CTypeRenderer:
    """Renders type descriptors as ctypes expressions for generated bindings."""

    def __init__(self, class_names: Mapping[str, str], class_prefix: str = "") -> None:
        self.class_names = class_names
        self.class_prefix = class_prefix

    @property
    def known_classes(self) -> frozenset[str]:
        return frozenset(self.class_names)

    def lower(self, spelling: str) -> TypeDescriptor:
        return lower_type(spelling, self.known_classes)

    def render(self, desc: TypeDescriptor) -> str:
        if desc.is_indirect:
            assert desc.inner is not None
            inner = desc.inner
            if inner.is_void or inner.kind is TypeKind.UNKNOWN:
                return "c_void_p"
            if inner.kind is TypeKind.PRIMITIVE and inner.name == "char" and desc.kind is TypeKind.POINTER:
                return "c_char_p"
            if inner.kind is TypeKind.TEMPLATE and template_base(inner.name) not in CONTAINER_TEMPLATES:
                return "c_void_p"
            return f"POINTER({self.render(inner)})"
        if desc.kind is TypeKind.PRIMITIVE:
            return PRIMITIVE_CTYPES[desc.name]
        if desc.kind is TypeKind.CONTAINER:
            return "String"
        if desc.kind is TypeKind.KNOWN_CLASS:
            return self.class_prefix + self.class_names[desc.name]
        if desc.kind is TypeKind.TEMPLATE:
            container = CONTAINER_TEMPLATES.get(template_base(desc.name))
            if container is not None:
                return f"{container}({', '.join(self.render(arg) for arg in desc.args)})"
        return "c_void_p"

    def render_spelling(self, spelling: str) -> str:
        return self.render(self.lower(spelling))

    def note(self, desc: TypeDescriptor) -> str | None:
        for part in desc.walk():
            if part.kind is TypeKind.UNKNOWN:
                return f"unknown type: {desc.spelling()}"
            if part.kind is TypeKind.TEMPLATE and template_base(part.name) not in CONTAINER_TEMPLATES:
                return f"unknown template: {desc.spelling()}"
        return None
