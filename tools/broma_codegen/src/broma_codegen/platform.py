from __future__ import annotations

import enum
import platform as _host
import sys
from dataclasses import dataclass, replace
from typing import Any


class Platform(enum.IntFlag):
    NONE = 0
    WINDOWS = 1 << 0
    MAC_INTEL = 1 << 1
    MAC_ARM = 1 << 2
    IOS = 1 << 3
    ANDROID32 = 1 << 4
    ANDROID64 = 1 << 5
    MAC = MAC_INTEL | MAC_ARM
    ANDROID = ANDROID32 | ANDROID64
    ALL = WINDOWS | MAC_INTEL | MAC_ARM | IOS | ANDROID32 | ANDROID64

    def leaves(self) -> list[Platform]:
        return [leaf for leaf in LEAF_PLATFORMS if self & leaf]

    @property
    def display_name(self) -> str:
        return LEAF_DISPLAY_NAMES.get(self, "|".join(LEAF_DISPLAY_NAMES[leaf] for leaf in self.leaves()) or "none")

    @classmethod
    def from_name(cls, name: str) -> Platform:
        key = name.strip().lower()
        if key not in PLATFORM_NAMES:
            known = ", ".join(sorted(PLATFORM_NAMES))
            raise ValueError(f"Unknown platform '{name}'. Known platforms: {known}")
        return PLATFORM_NAMES[key]

    @classmethod
    def is_dsl_name(cls, name: str) -> bool:
        return name in DSL_PLATFORM_NAMES


LEAF_PLATFORMS: tuple[Platform, ...] = (
    Platform.WINDOWS,
    Platform.MAC_INTEL,
    Platform.MAC_ARM,
    Platform.IOS,
    Platform.ANDROID32,
    Platform.ANDROID64,
)

LEAF_DISPLAY_NAMES: dict[Platform, str] = {
    Platform.WINDOWS: "windows",
    Platform.MAC_INTEL: "mac_intel",
    Platform.MAC_ARM: "mac_arm",
    Platform.IOS: "ios",
    Platform.ANDROID32: "android32",
    Platform.ANDROID64: "android64",
}

# Spellings accepted inside Broma sources.
DSL_PLATFORM_NAMES: dict[str, Platform] = {
    "win": Platform.WINDOWS,
    "windows": Platform.WINDOWS,
    "mac": Platform.MAC,
    "imac": Platform.MAC_INTEL,
    "m1": Platform.MAC_ARM,
    "ios": Platform.IOS,
    "android": Platform.ANDROID,
    "android32": Platform.ANDROID32,
    "android64": Platform.ANDROID64,
}

PLATFORM_NAMES: dict[str, Platform] = {
    **DSL_PLATFORM_NAMES,
    **{name: leaf for leaf, name in LEAF_DISPLAY_NAMES.items()},
    "all": Platform.ALL,
}

SLOT_NAMES: dict[Platform, str] = {
    Platform.WINDOWS: "win",
    Platform.MAC_INTEL: "imac",
    Platform.MAC_ARM: "m1",
    Platform.IOS: "ios",
    Platform.ANDROID32: "android32",
    Platform.ANDROID64: "android64",
}


def detect_platform() -> Platform:
    machine = _host.machine().lower()
    is_64bit = machine in {"aarch64", "arm64", "x86_64", "amd64"} or sys.maxsize > 2**32
    if sys.platform == "android" or hasattr(sys, "getandroidapilevel"):
        return Platform.ANDROID64 if is_64bit else Platform.ANDROID32
    if sys.platform == "ios":
        return Platform.IOS
    if sys.platform == "darwin":
        return Platform.MAC_ARM if machine in {"arm64", "aarch64"} else Platform.MAC_INTEL
    return Platform.WINDOWS


@dataclass(frozen=True)
class PlatformNumber:
    """Per-leaf offsets of a bound symbol.

    Slots hold a concrete offset (``>= 0``) or one of the sentinels below.
    """

    UNSPECIFIED = -1
    INLINE = -2
    DEFAULT = -3

    win: int = UNSPECIFIED
    imac: int = UNSPECIFIED
    m1: int = UNSPECIFIED
    ios: int = UNSPECIFIED
    android32: int = UNSPECIFIED
    android64: int = UNSPECIFIED

    @classmethod
    def filled(cls, value: int) -> PlatformNumber:
        return cls(value, value, value, value, value, value)

    def get(self, platform: Platform) -> int:
        return getattr(self, SLOT_NAMES[platform])

    def with_platform(self, platforms: Platform, value: int) -> PlatformNumber:
        changes = {SLOT_NAMES[leaf]: value for leaf in platforms.leaves()}
        return replace(self, **changes)

    def normalize(self, has_inline: bool) -> PlatformNumber:
        """Demote ``DEFAULT`` slots, then mark empty slots ``INLINE`` when there is a body.

        Demoting first makes the result idempotent. The cost is that a ``DEFAULT``
        slot on a declaration with a body ends up ``INLINE``, where a single
        promote-then-demote pass would leave it ``UNSPECIFIED`` and open to
        symbol lookup.
        """
        values = {name: getattr(self, name) for name in SLOT_NAMES.values()}
        for name, value in values.items():
            if value == self.DEFAULT:
                values[name] = self.UNSPECIFIED
        for name in values:
            if has_inline and values[name] == self.UNSPECIFIED:
                values[name] = self.INLINE
        return PlatformNumber(**values)

    def is_concrete(self, platform: Platform) -> bool:
        return self.get(platform) >= 0

    def items(self) -> list[tuple[Platform, int]]:
        return [(leaf, self.get(leaf)) for leaf in LEAF_PLATFORMS]

    def as_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in SLOT_NAMES.values()}


class CallingConvention(enum.Enum):
    DEFAULT = "default"
    CDECL = "cdecl"
    THISCALL = "thiscall"
    FASTCALL = "fastcall"
    OPTCALL = "optcall"
    MEMBERCALL = "membercall"
    STDCALL = "stdcall"

    @classmethod
    def for_member_function(cls, is_static: bool, platform: Platform) -> CallingConvention:
        # Windows is 64-bit only here; no other leaf has a member-specific convention.
        return cls.DEFAULT
