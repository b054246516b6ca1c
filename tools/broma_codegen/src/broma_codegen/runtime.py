"""Runtime support imported by generated bindings.

Generated modules create one :class:`Runtime` for their target platform and
describe every bound callable with :meth:`Runtime.table`. Addresses are
computed lazily, so importing bindings never touches the target process.
"""

from __future__ import annotations

import ctypes
import sys
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Union

from .core import BromaCodegenError
from .platform import LEAF_DISPLAY_NAMES, LEAF_PLATFORMS, CallingConvention, Platform

ANDROID_LIBRARY = "libcocos2dcpp.so"
ANDROID_ANCHOR_SYMBOL = "JNI_OnLoad"
APPLE_IMAGE_BASE = 0x100000000

RTLD_LAZY = 0x0001
RTLD_NOLOAD = 0x0004


class UnresolvedAddressError(BromaCodegenError):
    pass


@dataclass(frozen=True)
class Symbol:
    """A linker symbol resolved through the dynamic loader."""

    name: str


Slot = Union[int, Symbol, None]


class _NotAttempted:
    def __repr__(self) -> str:
        return "NOT_ATTEMPTED"


class _KnownMissing:
    def __repr__(self) -> str:
        return "KNOWN_MISSING"


@dataclass(frozen=True)
class ResolvedAt:
    offset: int


NOT_ATTEMPTED = _NotAttempted()
KNOWN_MISSING = _KnownMissing()
CacheEntry = Union[_NotAttempted, ResolvedAt, _KnownMissing]


class SymbolCache:
    """Process-wide memo of dynamic symbol lookups.

    Each symbol moves from ``NOT_ATTEMPTED`` to either ``ResolvedAt`` or
    ``KNOWN_MISSING`` exactly once; concurrent first lookups may both run the
    lookup but only the first stored result is kept.
    """

    def __init__(self, lookup: Callable[[str], int], image_base: Callable[[], int]) -> None:
        self._lookup = lookup
        self._image_base = image_base
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def entry(self, symbol: str) -> CacheEntry:
        with self._lock:
            return self._entries.get(symbol, NOT_ATTEMPTED)

    def resolve(self, symbol: str) -> CacheEntry:
        current = self.entry(symbol)
        if current is not NOT_ATTEMPTED:
            return current

        base = self._image_base()
        if not base:
            # Image not loaded yet; nothing is recorded until it is.
            return NOT_ATTEMPTED
        address = self._lookup(symbol)
        result: CacheEntry = ResolvedAt(address - base) if address and address >= base else KNOWN_MISSING

        with self._lock:
            return self._entries.setdefault(symbol, result)


class AddressTable:
    def __init__(
        self,
        runtime: Runtime,
        name: str,
        slots: dict[Platform, Slot],
        convention: CallingConvention = CallingConvention.DEFAULT,
    ) -> None:
        self.runtime = runtime
        self.name = name
        self.slots = slots
        self.convention = convention
        self._prototypes: dict[tuple[Any, ...], Any] = {}

    def __repr__(self) -> str:
        return f"AddressTable({self.name!r})"

    def offset(self, platform: Platform | None = None) -> int | None:
        slot = self.slots.get(platform or self.runtime.platform)
        if isinstance(slot, Symbol):
            entry = self.runtime.resolve_symbol(slot.name)
            return entry.offset if isinstance(entry, ResolvedAt) else None
        return slot

    def address(self, platform: Platform | None = None) -> int:
        offset = self.offset(platform)
        if offset is None:
            return 0
        base = self.runtime.image_base()
        if not base:
            return 0
        return base + offset

    def hook_target(self) -> tuple[int, CallingConvention]:
        return self.address(), self.convention

    def function(self, restype: Any, *argtypes: Any) -> Any:
        address = self.address()
        if not address:
            raise UnresolvedAddressError(
                f"No address for '{self.name}' on {self.runtime.platform.display_name}"
            )
        key = (restype, *argtypes)
        prototype = self._prototypes.get(key)
        if prototype is None:
            prototype = ctypes.CFUNCTYPE(restype, *argtypes)
            self._prototypes[key] = prototype
        return prototype(address)


class _DlInfo(ctypes.Structure):
    _fields_ = [
        ("dli_fname", ctypes.c_char_p),
        ("dli_fbase", ctypes.c_void_p),
        ("dli_sname", ctypes.c_char_p),
        ("dli_saddr", ctypes.c_void_p),
    ]


class DynamicLibrary:
    """dlopen/dlsym access to an already loaded shared library."""

    def __init__(self, name: str = ANDROID_LIBRARY) -> None:
        self.name = name
        self._handle: ctypes.CDLL | None = None

    def _library(self) -> ctypes.CDLL | None:
        if self._handle is None:
            try:
                self._handle = ctypes.CDLL(self.name, mode=RTLD_LAZY | RTLD_NOLOAD)
            except OSError:
                return None
        return self._handle

    def lookup(self, symbol: str) -> int:
        library = self._library()
        if library is None:
            return 0
        try:
            function = getattr(library, symbol)
        except AttributeError:
            return 0
        return ctypes.cast(function, ctypes.c_void_p).value or 0

    def image_base(self) -> int:
        anchor = self.lookup(ANDROID_ANCHOR_SYMBOL)
        if not anchor:
            return 0
        info = _DlInfo()
        dladdr = ctypes.CDLL(None).dladdr
        dladdr.argtypes = [ctypes.c_void_p, ctypes.POINTER(_DlInfo)]
        dladdr.restype = ctypes.c_int
        if not dladdr(anchor, ctypes.byref(info)):
            return 0
        return info.dli_fbase or 0


def _windows_image_base() -> int:
    kernel32 = ctypes.WinDLL("kernel32")  # type: ignore[attr-defined]
    kernel32.GetModuleHandleW.restype = ctypes.c_void_p
    return kernel32.GetModuleHandleW(None) or 0


def _apple_image_base() -> int:
    libsystem = ctypes.CDLL(None)
    libsystem._dyld_get_image_vmaddr_slide.restype = ctypes.c_ssize_t
    return APPLE_IMAGE_BASE + libsystem._dyld_get_image_vmaddr_slide(0)


def default_image_base(platform: Platform, library: DynamicLibrary) -> Callable[[], int]:
    if platform & Platform.ANDROID:
        return library.image_base
    if platform == Platform.WINDOWS and sys.platform == "win32":
        return _windows_image_base
    if platform & (Platform.MAC | Platform.IOS) and sys.platform in ("darwin", "ios"):
        return _apple_image_base
    return lambda: 0


class Runtime:
    def __init__(
        self,
        platform: Platform,
        image_base: Callable[[], int] | None = None,
        symbol_lookup: Callable[[str], int] | None = None,
    ) -> None:
        if platform not in LEAF_PLATFORMS:
            raise BromaCodegenError(f"Runtime platform must be a single platform, got {platform!r}")
        self.platform = platform
        library = DynamicLibrary()
        self._image_base_provider = image_base or default_image_base(platform, library)
        self._image_base: int | None = None
        self._lock = threading.Lock()
        self.symbols = SymbolCache(symbol_lookup or library.lookup, self.image_base)

    def image_base(self) -> int:
        """Load address of the target image, or 0 while it cannot be found.

        Only a found base is cached; 0 is retried on the next call.
        """
        if self._image_base is None:
            value = self._image_base_provider()
            if not value:
                return 0
            with self._lock:
                if self._image_base is None:
                    self._image_base = value
        return self._image_base

    def resolve_symbol(self, symbol: str) -> CacheEntry:
        return self.symbols.resolve(symbol)

    def layout(self, *entries: tuple[Any, ...]) -> list[tuple[str, Any]]:
        """Keep ``(name, type)`` entries and ``(name, type, platforms)`` entries matching this platform."""
        fields: list[tuple[str, Any]] = []
        for entry in entries:
            if len(entry) == 3 and not entry[2] & self.platform:
                continue
            fields.append((entry[0], entry[1]))
        return fields

    def table(
        self,
        name: str,
        convention: CallingConvention = CallingConvention.DEFAULT,
        **slots: Slot,
    ) -> AddressTable:
        by_platform: dict[Platform, Slot] = {}
        for leaf in LEAF_PLATFORMS:
            by_platform[leaf] = slots.pop(LEAF_DISPLAY_NAMES[leaf], None)
        if slots:
            raise BromaCodegenError(f"Unknown platform slots for '{name}': {', '.join(sorted(slots))}")
        return AddressTable(self, name, by_platform, convention)
