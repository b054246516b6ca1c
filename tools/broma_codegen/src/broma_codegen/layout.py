from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

from .lowering import CTypeRenderer, TypeDescriptor, TypeKind
from .model import Class, Root
from .naming import member_name, python_class_name, to_snake_case
from .platform import LEAF_PLATFORMS, Platform

_NAMED_MASKS = {
    Platform.ALL: "Platform.ALL",
    Platform.MAC: "Platform.MAC",
    Platform.ANDROID: "Platform.ANDROID",
}


@dataclass(frozen=True)
class LayoutSlot:
    name: str
    ctype: str
    platform: Platform = Platform.ALL
    note: str | None = None


class ClassIndex:
    """Known classes by qualified name plus unambiguous unqualified names."""

    def __init__(self, classes: list[Class]) -> None:
        self.classes: dict[str, Class] = {}
        for cls in classes:
            self.classes.setdefault(cls.name, cls)

        short_counts: dict[str, int] = {}
        for cls in self.classes.values():
            short_counts[cls.short_name] = short_counts.get(cls.short_name, 0) + 1

        self.py_names: dict[str, str] = {}
        self._aliases: dict[str, str] = {}
        for cls in self.classes.values():
            unique = short_counts[cls.short_name] == 1
            self.py_names[cls.name] = python_class_name(cls.short_name if unique else cls.name)
            if unique and cls.short_name != cls.name:
                self._aliases[cls.short_name] = cls.name

    @classmethod
    def from_root(cls, root: Root) -> ClassIndex:
        return cls(list(root.classes))

    def resolve(self, name: str) -> Class | None:
        return self.classes.get(name) or self.classes.get(self._aliases.get(name, ""))

    def py_name(self, name: str) -> str:
        cls = self.resolve(name)
        if cls is None:
            raise KeyError(name)
        return self.py_names[cls.name]

    def renderer(self, class_prefix: str = "") -> CTypeRenderer:
        names = dict(self.py_names)
        for alias, qualified in self._aliases.items():
            names[alias] = self.py_names[qualified]
        return CTypeRenderer(names, class_prefix)


def platform_expression(mask: Platform) -> str:
    if mask in _NAMED_MASKS:
        return _NAMED_MASKS[mask]
    parts: list[str] = []
    remaining = mask
    for union in (Platform.MAC, Platform.ANDROID):
        if remaining & union == union:
            parts.append(_NAMED_MASKS[union])
            remaining &= ~union
    parts.extend(f"Platform.{leaf.name}" for leaf in LEAF_PLATFORMS if remaining & leaf)
    return " | ".join(parts)


def build_layout(
    cls: Class,
    index: ClassIndex,
    renderer: CTypeRenderer,
    reserved: Collection[str] = (),
) -> list[LayoutSlot]:
    """Storage slots of ``cls``; member names found in ``reserved`` get a ``_member`` suffix."""
    slots: list[LayoutSlot] = []

    if cls.superclasses:
        primary = cls.superclasses[0]
        if index.resolve(primary) is not None:
            slots.append(LayoutSlot("base", renderer.render_spelling(primary)))
        else:
            slots.append(LayoutSlot("base", "c_void_p", note=f"unknown base class: {primary}"))

    for secondary in cls.superclasses[1:]:
        base = index.resolve(secondary)
        short = secondary.rsplit("::", 1)[-1]
        if base is None or base.has_virtual_functions():
            slots.append(LayoutSlot(f"_vt_{short}", "c_void_p"))
        else:
            slots.append(LayoutSlot(f"base_{to_snake_case(short)}", renderer.render_spelling(secondary)))

    pad_index = 0
    for item in cls.fields:
        member = item.as_member()
        if member is not None:
            desc = renderer.lower(member.type.name)
            ctype = renderer.render(desc)
            if member.count:
                ctype = f"{ctype} * {member.count}"
            name = member_name(member.name)
            if name in reserved:
                name += "_member"
            slots.append(LayoutSlot(name, ctype, member.platform, renderer.note(desc)))
            continue

        pad = item.as_pad()
        if pad is not None:
            by_amount: dict[int, Platform] = {}
            for leaf, amount in pad.amount.items():
                if amount > 0:
                    by_amount[amount] = by_amount.get(amount, Platform.NONE) | leaf
            for amount, mask in by_amount.items():
                slots.append(LayoutSlot(f"_pad_{pad_index}", f"c_ubyte * {amount:#x}", mask))
            pad_index += 1

    return slots


def slots_for_platform(slots: list[LayoutSlot], platform: Platform) -> list[LayoutSlot]:
    return [slot for slot in slots if slot.platform & platform]


def render_layout(py_name: str, slots: list[LayoutSlot]) -> list[str]:
    if not slots:
        return [f"{py_name}._fields_ = []"]
    lines = [f"{py_name}._fields_ = RUNTIME.layout("]
    for slot in slots:
        if slot.platform == Platform.ALL:
            entry = f'    ("{slot.name}", {slot.ctype}),'
        else:
            entry = f'    ("{slot.name}", {slot.ctype}, {platform_expression(slot.platform)}),'
        if slot.note:
            entry += f"  # {slot.note}"
        lines.append(entry)
    lines.append(")")
    return lines


def _by_value_classes(desc: TypeDescriptor) -> list[str]:
    if desc.is_indirect:
        return []
    found = [desc.name] if desc.kind is TypeKind.KNOWN_CLASS else []
    for arg in desc.args:
        found.extend(_by_value_classes(arg))
    return found


def layout_dependencies(cls: Class, index: ClassIndex, renderer: CTypeRenderer) -> list[str]:
    names = list(cls.superclasses) + list(cls.attributes.depends)
    for item in cls.fields:
        member = item.as_member()
        if member is not None:
            names.extend(_by_value_classes(renderer.lower(member.type.name)))
    resolved: list[str] = []
    for name in names:
        dependency = index.resolve(name)
        if dependency is not None and dependency.name != cls.name and dependency.name not in resolved:
            resolved.append(dependency.name)
    return resolved


def order_classes(index: ClassIndex, renderer: CTypeRenderer) -> list[Class]:
    """Classes ordered so every by-value dependency precedes its user."""
    ordered: list[Class] = []
    state: dict[str, str] = {}

    def visit(cls: Class) -> None:
        if state.get(cls.name) is not None:
            return
        state[cls.name] = "visiting"
        for dependency in layout_dependencies(cls, index, renderer):
            visit(index.classes[dependency])
        state[cls.name] = "done"
        ordered.append(cls)

    for cls in index.classes.values():
        visit(cls)
    return ordered
