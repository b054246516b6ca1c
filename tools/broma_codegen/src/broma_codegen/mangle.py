"""Itanium C++ ABI name mangling for Broma declarations.

Only the subset needed to find exported symbols of bound functions is
implemented: builtin types, nested names, pointers, references, const
qualification, template instantiations (including the implicit arguments of
the standard containers) and substitution compression.
"""

from __future__ import annotations

from collections.abc import Sequence

from .lowering import normalize_spelling, split_template_args
from .model import Function, FunctionBindField, FunctionKind

BUILTIN_CODES: dict[str, str] = {
    "void": "v",
    "bool": "b",
    "char": "c",
    "signed char": "a",
    "unsigned char": "h",
    "short": "s",
    "unsigned short": "t",
    "int": "i",
    "unsigned": "j",
    "unsigned int": "j",
    "long": "l",
    "unsigned long": "m",
    "long long": "x",
    "unsigned long long": "y",
    "float": "f",
    "double": "d",
    "long double": "e",
    "wchar_t": "w",
    "...": "z",
    "int8_t": "a",
    "uint8_t": "h",
    "int16_t": "s",
    "uint16_t": "t",
    "int32_t": "i",
    "uint32_t": "j",
    "std::string": "Ss",
    "gd::string": "Ss",
    "std::allocator": "Sa",
}

# cocos2d declares these as typedefs of tagged structs; symbols use the tag.
TYPEDEF_ALIASES: dict[str, str] = {
    "cocos2d::ccColor3B": "cocos2d::_ccColor3B",
    "cocos2d::ccColor4B": "cocos2d::_ccColor4B",
    "cocos2d::ccColor4F": "cocos2d::_ccColor4F",
    "cocos2d::ccBlendFunc": "cocos2d::_ccBlendFunc",
    "cocos2d::ccTexParams": "cocos2d::_ccTexParams",
    "cocos2d::ccHSVValue": "cocos2d::_ccHSVValue",
}

_LIBRARY_NAMESPACES = {"std", "gd"}
_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def mangle_ident(name: str, nested: bool = True) -> str:
    """<source-name> ::= <length> <identifier>, wrapped in N..E for scoped names."""
    if "::" not in name:
        return f"{len(name)}{name}"
    body = "".join(f"{len(part)}{part}" for part in name.split("::"))
    return f"N{body}E" if nested else body


def to_base36(value: int) -> str:
    digits = ""
    while True:
        digits = _BASE36[value % 36] + digits
        value //= 36
        if value == 0:
            return digits


class SubstitutionTable:
    """Ordered memo of expanded spellings; position ``i`` is referenced as ``S_`` / ``S<i-1>_``."""

    def __init__(self, entries: Sequence[str] = ()) -> None:
        self._entries = list(entries)

    def copy(self) -> SubstitutionTable:
        return SubstitutionTable(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def lookup(self, expanded: str) -> str | None:
        for index, entry in enumerate(self._entries):
            if entry == expanded:
                return "S_" if index == 0 else f"S{to_base36(index - 1)}_"
        return None

    def seed(self, expanded: str) -> None:
        self._entries.append(expanded)

    def remember(self, mangled: str, expanded: str, substitute: bool) -> str:
        if not substitute or not mangled:
            return mangled
        found = self.lookup(expanded)
        if found is not None:
            return found
        self._entries.append(expanded)
        return mangled


def _mangle_qualified(table: SubstitutionTable, name: str, substitute: bool, template_prefix: bool) -> str:
    """<nested-name> ::= N [<prefix>] <unqualified-name> E"""
    expanded = ""
    substituted = ""
    whole_substituted = False
    parts = name.split("::")
    for part_name in parts:
        part = f"{len(part_name)}{part_name}"
        whole_substituted = False
        if part_name in _LIBRARY_NAMESPACES:
            substituted = "St"
        elif not substitute:
            substituted += part
        else:
            candidate = expanded + part
            found = table.lookup(candidate)
            if found is not None:
                substituted = found
                whole_substituted = True
            else:
                substituted = table.remember(substituted + part, candidate, substitute)
        expanded += part

    if whole_substituted or template_prefix:
        return substituted
    if parts[0] in _LIBRARY_NAMESPACES and len(parts) == 2:
        return substituted
    return f"N{substituted}E"


def _mangle_wrapped(table: SubstitutionTable, prefix: str, inner: str, substitute: bool) -> str:
    """<type> ::= P <type> | R <type> | K <type>"""
    key = prefix + mangle_type(table.copy(), inner, False)
    if not substitute:
        return key
    found = table.lookup(key)
    if found is not None:
        return found
    result = prefix + mangle_type(table, inner, substitute)
    return table.remember(result, key, substitute)


def _implicit_template_args(base: str, args: list[str]) -> list[str]:
    container = base.split("::")[-1] if base.split("::")[0] in _LIBRARY_NAMESPACES else ""
    if container == "map" and len(args) >= 2:
        return [f"std::less<{args[0]}>", f"std::allocator<std::pair<const {args[0]}, {args[1]}>>"]
    if container == "vector" and args:
        return [f"std::allocator<{args[0]}>"]
    if container == "set" and args:
        return [f"std::less<{args[0]}>", f"std::allocator<{args[0]}>"]
    if container == "unordered_map" and len(args) >= 2:
        return [
            f"std::hash<{args[0]}>",
            f"std::equal_to<{args[0]}>",
            f"std::allocator<std::pair<const {args[0]}, {args[1]}>>",
        ]
    if container == "unordered_set" and args:
        return [f"std::hash<{args[0]}>", f"std::equal_to<{args[0]}>", f"std::allocator<{args[0]}>"]
    return []


def _mangle_template_args(table: SubstitutionTable, base: str, args: list[str], substitute: bool) -> str:
    """<template-args> ::= I <template-arg>+ E"""
    outer = mangle_type(table, base, substitute, template_prefix=True)
    encoded = "".join(mangle_type(table, arg, substitute) for arg in args)
    encoded += "".join(mangle_type(table, arg, substitute) for arg in _implicit_template_args(base, args))
    return f"{outer}I{encoded}E"


def mangle_type(
    table: SubstitutionTable,
    name: str,
    substitute: bool = True,
    template_prefix: bool = False,
) -> str:
    name = normalize_spelling(name)
    if name.startswith("struct "):
        name = name[len("struct ") :]
    name = TYPEDEF_ALIASES.get(name, name)
    if name in BUILTIN_CODES:
        return BUILTIN_CODES[name]

    if name.endswith("*"):
        return _mangle_wrapped(table, "P", name[:-1].rstrip(), substitute)
    if name.endswith("&"):
        return _mangle_wrapped(table, "R", name[:-1].rstrip(), substitute)
    if name.endswith(" const"):
        return _mangle_wrapped(table, "K", name[: -len(" const")].rstrip(), substitute)
    if name.startswith("const "):
        return _mangle_wrapped(table, "K", name[len("const ") :].lstrip(), substitute)

    if "<" in name:
        opening = name.index("<")
        closing = name.rfind(">")
        base = name[:opening].strip()
        args = split_template_args(name[opening + 1 : closing])
        expanded = _mangle_template_args(table.copy(), base, args, False)
        if not substitute:
            return expanded
        found = table.lookup(expanded)
        if found is not None:
            return found
        result = _mangle_template_args(table, base, args, substitute)
        return table.remember(result, expanded, substitute)

    if "::" in name:
        return _mangle_qualified(table, name, substitute, template_prefix)

    mangled = mangle_ident(name)
    return table.remember(mangled, mangled, substitute)


def mangle_symbol(
    name: str,
    arg_types: Sequence[str],
    kind: FunctionKind = FunctionKind.NORMAL,
    class_name: str | None = None,
    is_const: bool = False,
) -> str:
    """Mangle a declaration.

    ``name`` is the declared name; ``class_name`` the owning class for member
    functions, constructors and destructors. Constructors and destructors use
    the base object variant and never encode their parameters.
    """
    if kind is FunctionKind.CONSTRUCTOR:
        return f"_ZN{mangle_ident(class_name or name, False)}C2E"
    if kind is FunctionKind.DESTRUCTOR:
        return f"_ZN{mangle_ident(class_name or name.lstrip('~'), False)}D2E"

    qualified = f"{class_name}::{name}" if class_name else name
    if is_const and "::" in qualified:
        symbol = f"_ZNK{mangle_ident(qualified, False)}E"
    else:
        symbol = f"_Z{mangle_ident(qualified)}"

    if not arg_types:
        return symbol + "v"

    table = SubstitutionTable()
    scope = class_name or (name.rsplit("::", 1)[0] if "::" in name else "")
    if scope:
        table.seed(mangle_ident(scope.split("::")[0]))
    return symbol + "".join(mangle_type(table, arg) for arg in arg_types)


def mangle_bind(class_name: str, bind: FunctionBindField) -> str:
    prototype = bind.prototype
    return mangle_symbol(
        prototype.name,
        [arg.type.name for arg in prototype.args],
        kind=prototype.kind,
        class_name=class_name,
        is_const=prototype.is_const,
    )


def mangle_free_function(function: Function) -> str:
    prototype = function.prototype
    return mangle_symbol(prototype.name, [arg.type.name for arg in prototype.args])
