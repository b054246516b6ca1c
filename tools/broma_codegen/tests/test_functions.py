from __future__ import annotations

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from broma_codegen.functions import (  # noqa: E402
    Thunk,
    build_address_table,
    disambiguate,
    render_address_table,
    render_docstring,
    render_slot,
    unresolved_reason,
)
from broma_codegen.lowering import CTypeRenderer  # noqa: E402
from broma_codegen.model import Arg, Attributes, Type  # noqa: E402
from broma_codegen.platform import CallingConvention, Platform, PlatformNumber  # noqa: E402
from broma_codegen.runtime import Symbol  # noqa: E402


class AddressTableTests(unittest.TestCase):
    def test_concrete_offsets_including_zero(self) -> None:
        table = build_address_table(PlatformNumber(win=0x0, imac=0x24), "_Z1fv")
        self.assertEqual(table[Platform.WINDOWS], 0)
        self.assertEqual(table[Platform.MAC_INTEL], 0x24)
        self.assertIsNone(table[Platform.MAC_ARM])
        self.assertIsNone(table[Platform.IOS])

    def test_android_unspecified_slots_resolve_by_symbol(self) -> None:
        table = build_address_table(PlatformNumber(), "_ZN4Test6memberESs", links=Platform.ANDROID)
        self.assertEqual(table[Platform.ANDROID32], Symbol("_ZN4Test6memberESs"))
        self.assertEqual(table[Platform.ANDROID64], Symbol("_ZN4Test6memberESs"))
        self.assertIsNone(table[Platform.WINDOWS])

    def test_android_links_and_missing_are_respected(self) -> None:
        table = build_address_table(PlatformNumber(), "_Z1fv", links=Platform.ANDROID32)
        self.assertIsNone(table[Platform.ANDROID64])
        table = build_address_table(PlatformNumber(), "_Z1fv", missing=Platform.ANDROID)
        self.assertIsNone(table[Platform.ANDROID32])

    def test_inline_slots_never_resolve(self) -> None:
        table = build_address_table(PlatformNumber.filled(PlatformNumber.INLINE), "_Z1fv")
        self.assertTrue(all(slot is None for slot in table.values()))

    def test_render(self) -> None:
        table = build_address_table(PlatformNumber(win=0x5), "_Z5thingv", links=Platform.ANDROID64)
        self.assertEqual(render_slot(table[Platform.WINDOWS]), "0x5")
        self.assertEqual(
            render_address_table("_THING", "Test::thing", table, CallingConvention.DEFAULT),
            [
                "_THING = RUNTIME.table(",
                '    "Test::thing",',
                "    windows=0x5,",
                "    mac_intel=None,",
                "    mac_arm=None,",
                "    ios=None,",
                "    android32=None,",
                '    android64=Symbol("_Z5thingv"),',
                "    convention=CallingConvention.DEFAULT,",
                ")",
            ],
        )


class NamingHelperTests(unittest.TestCase):
    def test_disambiguate_overloads(self) -> None:
        self.assertEqual(disambiguate(["create", "init", "create"]), ["create_1", "init", "create_2"])

    def test_unresolved_reason(self) -> None:
        self.assertEqual(unresolved_reason(Platform.IOS), "inline or unspecified on ios")


class DocstringTests(unittest.TestCase):
    def test_single_and_multi_line(self) -> None:
        self.assertEqual(render_docstring(Attributes(docs="Hello.\n"), "    "), ['    """Hello."""'])
        self.assertEqual(
            render_docstring(Attributes(docs="First.\nSecond.\n", since="2.2"), ""),
            ['"""First.', "Second.", "", "Available since 2.2.", '"""'],
        )
        self.assertEqual(render_docstring(Attributes(), ""), [])

    def test_quotes_are_escaped(self) -> None:
        self.assertEqual(render_docstring(Attributes(docs='Say "hi"'), ""), ['"""Say "hi" """'])


class ThunkTests(unittest.TestCase):
    def setUp(self) -> None:
        self.renderer = CTypeRenderer({"Test": "Test"})

    def test_instance_method(self) -> None:
        thunk = Thunk(
            "member",
            "_TEST_MEMBER",
            Type("int"),
            (Arg(Type("gd::string"), "str"), Arg(Type("Test*"), "self")),
            this_type="Test",
            attributes=Attributes(docs="Docs."),
        )
        self.assertEqual(
            thunk.render(self.renderer, "    "),
            [
                "    def member(self, str, self_):",
                '        """Docs."""',
                "        fn = _TEST_MEMBER.function(c_int, POINTER(Test), String, POINTER(Test))",
                "        return fn(self, str, self_)",
            ],
        )

    def test_static_method_without_docs(self) -> None:
        thunk = Thunk("create", "_TEST_CREATE", Type("Test*"), (), is_static=True, attributes=Attributes(docs="x"))
        self.assertEqual(
            thunk.render(self.renderer, "    ", generate_docs=False),
            [
                "    @staticmethod",
                "    def create():",
                "        fn = _TEST_CREATE.function(POINTER(Test))",
                "        return fn()",
            ],
        )


if __name__ == "__main__":
    unittest.main()
