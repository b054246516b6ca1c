from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Union

from .platform import Platform, PlatformNumber


def _platform_names(mask: Platform) -> list[str]:
    return [leaf.display_name for leaf in mask.leaves()]


@dataclass(frozen=True)
class Type:
    name: str
    is_struct: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "is_struct": self.is_struct}


@dataclass(frozen=True)
class Attributes:
    docs: str = ""
    links: Platform = Platform.NONE
    missing: Platform = Platform.NONE
    depends: tuple[str, ...] = ()
    since: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "docs": self.docs,
            "links": _platform_names(self.links),
            "missing": _platform_names(self.missing),
            "depends": list(self.depends),
            "since": self.since,
        }


@dataclass(frozen=True)
class Arg:
    type: Type
    name: str

    def as_dict(self) -> dict[str, Any]:
        return {"type": self.type.as_dict(), "name": self.name}


class FunctionKind(enum.Enum):
    NORMAL = "normal"
    CONSTRUCTOR = "constructor"
    DESTRUCTOR = "destructor"


class AccessModifier(enum.Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"


@dataclass(frozen=True)
class FunctionProto:
    attributes: Attributes
    ret: Type
    args: tuple[Arg, ...]
    name: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "attributes": self.attributes.as_dict(),
            "ret": self.ret.as_dict(),
            "args": [arg.as_dict() for arg in self.args],
            "name": self.name,
        }


@dataclass(frozen=True)
class MemberFunctionProto:
    attributes: Attributes
    ret: Type
    args: tuple[Arg, ...]
    name: str
    kind: FunctionKind = FunctionKind.NORMAL
    access: AccessModifier = AccessModifier.PUBLIC
    is_const: bool = False
    is_virtual: bool = False
    is_callback: bool = False
    is_static: bool = False

    def signature_matches(self, other: MemberFunctionProto) -> bool:
        return (
            self.name == other.name
            and self.is_const == other.is_const
            and [arg.type for arg in self.args] == [arg.type for arg in other.args]
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "attributes": self.attributes.as_dict(),
            "ret": self.ret.as_dict(),
            "args": [arg.as_dict() for arg in self.args],
            "name": self.name,
            "kind": self.kind.value,
            "access": self.access.value,
            "is_const": self.is_const,
            "is_virtual": self.is_virtual,
            "is_callback": self.is_callback,
            "is_static": self.is_static,
        }


@dataclass(frozen=True)
class InlineField:
    inner: str

    def as_dict(self) -> dict[str, Any]:
        return {"kind": "inline", "inner": self.inner}


@dataclass(frozen=True)
class PadField:
    amount: PlatformNumber

    def as_dict(self) -> dict[str, Any]:
        return {"kind": "pad", "amount": self.amount.as_dict()}


@dataclass(frozen=True)
class MemberField:
    platform: Platform
    name: str
    type: Type
    count: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": "member",
            "platform": _platform_names(self.platform),
            "name": self.name,
            "type": self.type.as_dict(),
            "count": self.count,
        }


@dataclass(frozen=True)
class FunctionBindField:
    prototype: MemberFunctionProto
    binds: PlatformNumber
    inner: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": "function_bind",
            "prototype": self.prototype.as_dict(),
            "binds": self.binds.as_dict(),
            "inner": self.inner,
        }


FieldInner = Union[InlineField, PadField, MemberField, FunctionBindField]


@dataclass(frozen=True)
class Field:
    field_id: int
    parent: str
    inner: FieldInner

    def as_inline(self) -> InlineField | None:
        return self.inner if isinstance(self.inner, InlineField) else None

    def as_pad(self) -> PadField | None:
        return self.inner if isinstance(self.inner, PadField) else None

    def as_member(self) -> MemberField | None:
        return self.inner if isinstance(self.inner, MemberField) else None

    def as_function_bind(self) -> FunctionBindField | None:
        return self.inner if isinstance(self.inner, FunctionBindField) else None

    def as_dict(self) -> dict[str, Any]:
        return {"field_id": self.field_id, "parent": self.parent, **self.inner.as_dict()}


@dataclass(frozen=True)
class Class:
    attributes: Attributes
    name: str
    superclasses: tuple[str, ...] = ()
    fields: tuple[Field, ...] = ()

    @property
    def short_name(self) -> str:
        return self.name.rsplit("::", 1)[-1]

    def find_field(self, name: str) -> Field | None:
        for item in self.fields:
            member = item.as_member()
            if member is not None and member.name == name:
                return item
            bind = item.as_function_bind()
            if bind is not None and bind.prototype.name == name:
                return item
        return None

    def function_binds(self) -> list[FunctionBindField]:
        return [item.inner for item in self.fields if isinstance(item.inner, FunctionBindField)]

    def has_virtual_functions(self) -> bool:
        return any(bind.prototype.is_virtual for bind in self.function_binds())

    def as_dict(self) -> dict[str, Any]:
        return {
            "attributes": self.attributes.as_dict(),
            "name": self.name,
            "superclasses": list(self.superclasses),
            "fields": [item.as_dict() for item in self.fields],
        }


@dataclass(frozen=True)
class Function:
    prototype: FunctionProto
    binds: PlatformNumber
    inner: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {"prototype": self.prototype.as_dict(), "binds": self.binds.as_dict(), "inner": self.inner}


@dataclass(frozen=True)
class Header:
    name: str
    platform: Platform = Platform.ALL

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "platform": _platform_names(self.platform)}


@dataclass(frozen=True)
class Root:
    headers: tuple[Header, ...] = ()
    classes: tuple[Class, ...] = ()
    functions: tuple[Function, ...] = ()

    def find_class(self, name: str) -> Class | None:
        for cls in self.classes:
            if cls.name == name:
                return cls
        return None

    def as_dict(self) -> dict[str, Any]:
        return {
            "headers": [header.as_dict() for header in self.headers],
            "classes": [cls.as_dict() for cls in self.classes],
            "functions": [function.as_dict() for function in self.functions],
        }
