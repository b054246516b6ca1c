from __future__ import annotations

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from broma_codegen.functions import method_names  # noqa: E402
from broma_codegen.layout import (  # noqa: E402
    ClassIndex,
    LayoutSlot,
    build_layout,
    order_classes,
    platform_expression,
    render_layout,
    slots_for_platform,
)
from broma_codegen.parser import parse_file, parse_str  # noqa: E402
from broma_codegen.platform import Platform  # noqa: E402

FIXTURES = Path(__file__).resolve().parent / "fixtures"


class ClassIndexTests(unittest.TestCase):
    def test_short_names_are_used_when_unique(self) -> None:
        root = parse_str("class cocos2d::CCNode {}\nclass a::Dup {}\nclass b::Dup {}\n")
        index = ClassIndex.from_root(root)
        self.assertEqual(index.py_names["cocos2d::CCNode"], "CCNode")
        self.assertEqual(index.py_names["a::Dup"], "a_Dup")
        self.assertEqual(index.py_names["b::Dup"], "b_Dup")
        self.assertEqual(index.py_name("CCNode"), "CCNode")
        self.assertIsNone(index.resolve("Dup"))
        with self.assertRaises(KeyError):
            index.py_name("Missing")


class BuildLayoutTests(unittest.TestCase):
    def setUp(self) -> None:
        self.root = parse_file(FIXTURES / "class.bro")
        self.index = ClassIndex.from_root(self.root)
        self.renderer = self.index.renderer()

    def test_members_and_merged_pads(self) -> None:
        slots = build_layout(self.root.find_class("Test"), self.index, self.renderer)
        self.assertEqual(
            slots,
            [
                LayoutSlot("test_begin", "c_int"),
                LayoutSlot("_pad_0", "c_ubyte * 0x10", Platform.WINDOWS | Platform.ANDROID64),
                LayoutSlot("_pad_0", "c_ubyte * 0x8", Platform.ANDROID32),
                LayoutSlot("test_main", "c_char"),
                LayoutSlot("windows_only", "c_int", Platform.WINDOWS),
            ],
        )

    def test_single_platform_pad(self) -> None:
        root = parse_str("class Padded {\n    PAD = m1 0x18;\n    int m_value;\n}\n")
        index = ClassIndex.from_root(root)
        slots = build_layout(root.find_class("Padded"), index, index.renderer())
        self.assertEqual(
            slots,
            [LayoutSlot("_pad_0", "c_ubyte * 0x18", Platform.MAC_ARM), LayoutSlot("value", "c_int")],
        )

    def test_fields_yield_to_method_names(self) -> None:
        root = parse_str("class Layer {\n    bool isVisible() = win 0x10;\n    bool m_isVisible;\n    int m_tag;\n}\n")
        index = ClassIndex.from_root(root)
        cls = root.find_class("Layer")
        slots = build_layout(cls, index, index.renderer(), method_names(cls))
        self.assertEqual(slots, [LayoutSlot("is_visible_member", "c_bool"), LayoutSlot("tag", "c_int")])

    def test_platform_filtering(self) -> None:
        slots = build_layout(self.root.find_class("Test"), self.index, self.renderer)
        names = [slot.name for slot in slots_for_platform(slots, Platform.MAC_ARM)]
        self.assertEqual(names, ["test_begin", "test_main"])
        names = [slot.ctype for slot in slots_for_platform(slots, Platform.ANDROID32)]
        self.assertEqual(names, ["c_int", "c_ubyte * 0x8", "c_char"])

    def test_unknown_base_and_known_member(self) -> None:
        slots = build_layout(self.root.find_class("cocos2d::CCNode"), self.index, self.renderer)
        self.assertEqual(slots[0], LayoutSlot("base", "c_void_p", note="unknown base class: cocos2d::CCObject"))
        self.assertEqual(slots[1], LayoutSlot("position", "CCPoint"))
        self.assertEqual(slots[2], LayoutSlot("n_tag", "c_int"))

    def test_secondary_bases(self) -> None:
        root = parse_str(
            "class Plain {\n    int m_value;\n}\n"
            "class Virtual {\n    virtual void run() = win 0x10;\n}\n"
            "class Derived : Plain, Virtual, Unknown {}\n"
        )
        index = ClassIndex.from_root(root)
        slots = build_layout(root.find_class("Derived"), index, index.renderer())
        self.assertEqual(
            [(slot.name, slot.ctype) for slot in slots],
            [("base", "Plain"), ("_vt_Virtual", "c_void_p"), ("_vt_Unknown", "c_void_p")],
        )

    def test_member_arrays_and_unknown_notes(self) -> None:
        root = parse_str("class Holder {\n    int m_values[4];\n    Opaque m_opaque;\n}\n")
        index = ClassIndex.from_root(root)
        slots = build_layout(root.classes[0], index, index.renderer())
        self.assertEqual(slots[0].ctype, "c_int * 4")
        self.assertEqual(slots[1], LayoutSlot("opaque", "c_void_p", note="unknown type: Opaque"))


class RenderLayoutTests(unittest.TestCase):
    def test_platform_expression(self) -> None:
        self.assertEqual(platform_expression(Platform.ALL), "Platform.ALL")
        self.assertEqual(platform_expression(Platform.MAC | Platform.IOS), "Platform.MAC | Platform.IOS")
        self.assertEqual(
            platform_expression(Platform.WINDOWS | Platform.ANDROID64),
            "Platform.WINDOWS | Platform.ANDROID64",
        )

    def test_render(self) -> None:
        lines = render_layout(
            "Test",
            [
                LayoutSlot("value", "c_int"),
                LayoutSlot("_pad_0", "c_ubyte * 0x8", Platform.ANDROID32),
                LayoutSlot("base", "c_void_p", note="unknown base class: Base"),
            ],
        )
        self.assertEqual(
            lines,
            [
                "Test._fields_ = RUNTIME.layout(",
                '    ("value", c_int),',
                '    ("_pad_0", c_ubyte * 0x8, Platform.ANDROID32),',
                '    ("base", c_void_p),  # unknown base class: Base',
                ")",
            ],
        )
        self.assertEqual(render_layout("Empty", []), ["Empty._fields_ = []"])


class OrderClassesTests(unittest.TestCase):
    def test_by_value_dependencies_come_first(self) -> None:
        root = parse_file(FIXTURES / "class.bro")
        index = ClassIndex.from_root(root)
        ordered = [cls.name for cls in order_classes(index, index.renderer())]
        self.assertLess(ordered.index("cocos2d::CCPoint"), ordered.index("cocos2d::CCNode"))

    def test_pointers_do_not_create_dependencies(self) -> None:
        root = parse_str("class A {\n    B* m_b;\n}\nclass B {\n    A* m_a;\n}\n")
        index = ClassIndex.from_root(root)
        self.assertEqual([cls.name for cls in order_classes(index, index.renderer())], ["A", "B"])

    def test_depends_attribute_orders_classes(self) -> None:
        root = parse_str("[[depends(B)]]\nclass A {}\nclass B {}\n")
        index = ClassIndex.from_root(root)
        self.assertEqual([cls.name for cls in order_classes(index, index.renderer())], ["B", "A"])


if __name__ == "__main__":
    unittest.main()
