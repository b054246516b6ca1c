from __future__ import annotations

import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from broma_codegen import core  # noqa: E402
from broma_codegen.model import AccessModifier, FunctionKind  # noqa: E402
from broma_codegen.parser import merge_roots, parse_file, parse_files, parse_str  # noqa: E402
from broma_codegen.platform import Platform, PlatformNumber  # noqa: E402

FIXTURES = Path(__file__).resolve().parent / "fixtures"


class ClassParsingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.root = parse_file(FIXTURES / "class.bro")
        self.test_class = self.root.find_class("Test")
        self.assertIsNotNone(self.test_class)

    def _bind(self, name: str):
        item = self.test_class.find_field(name)
        self.assertIsNotNone(item, name)
        bind = item.as_function_bind()
        self.assertIsNotNone(bind, name)
        return bind

    def test_class_links_and_member_function(self) -> None:
        self.assertEqual(self.test_class.name, "Test")
        self.assertTrue(self.test_class.attributes.links & Platform.ANDROID)

        member = self._bind("member")
        self.assertEqual(member.prototype.name, "member")
        self.assertEqual(member.prototype.ret.name, "int")
        self.assertTrue(member.prototype.is_static)
        self.assertEqual(len(member.prototype.args), 1)
        self.assertEqual(member.prototype.args[0].type.name, "std::string")
        self.assertEqual(member.prototype.args[0].name, "str")
        self.assertEqual(member.prototype.attributes.docs, "Returns a member.\n")

    def test_access_modifier(self) -> None:
        self.assertEqual(self._bind("member2").prototype.access, AccessModifier.PROTECTED)
        self.assertEqual(self._bind("thing").prototype.access, AccessModifier.PUBLIC)

    def test_explicit_inline_keeps_other_slots_unspecified(self) -> None:
        bind = self._bind("bound_explicit_inline")
        self.assertEqual(bind.binds.win, 0x433)
        self.assertEqual(bind.binds.ios, PlatformNumber.INLINE)
        self.assertEqual(bind.binds.imac, PlatformNumber.UNSPECIFIED)
        self.assertEqual(bind.inner, "return;")

    def test_body_without_explicit_inline_marks_unbound_slots_inline(self) -> None:
        bind = self._bind("bound_implicit_inline")
        self.assertEqual(bind.binds.ios, 0x5467)
        self.assertEqual(bind.binds.win, PlatformNumber.INLINE)
        self.assertEqual(bind.binds.android64, PlatformNumber.INLINE)

    def test_offsets_per_platform(self) -> None:
        bind = self._bind("thing")
        self.assertEqual(bind.binds.win, 0x5)
        self.assertEqual(bind.binds.imac, 0x8)
        self.assertEqual(bind.binds.m1, 0x4)
        self.assertEqual(bind.binds.ios, PlatformNumber.UNSPECIFIED)

    def test_plain_body_is_inline_everywhere(self) -> None:
        bind = self._bind("normal_inline")
        self.assertEqual(bind.binds, PlatformNumber.filled(PlatformNumber.INLINE))
        self.assertTrue(bind.inner)

    def test_members_pads_and_inline_fields(self) -> None:
        begin = self.test_class.find_field("m_testBegin").as_member()
        self.assertEqual(begin.type.name, "int")
        self.assertEqual(begin.platform, Platform.ALL)
        main = self.test_class.find_field("m_testMain").as_member()
        self.assertEqual(main.type.name, "char")
        windows_only = self.test_class.find_field("m_windowsOnly").as_member()
        self.assertEqual(windows_only.platform, Platform.WINDOWS)

        pads = [item.as_pad() for item in self.test_class.fields if item.as_pad() is not None]
        self.assertEqual(len(pads), 1)
        self.assertEqual(pads[0].amount.win, 0x10)
        self.assertEqual(pads[0].amount.android32, 0x8)
        self.assertEqual(pads[0].amount.ios, PlatformNumber.UNSPECIFIED)

        inlines = [item.as_inline() for item in self.test_class.fields if item.as_inline() is not None]
        self.assertEqual(len(inlines), 1)
        self.assertTrue(inlines[0].inner.startswith("inline int helper()"))

    def test_field_ids_follow_declaration_order(self) -> None:
        ids = [item.field_id for item in self.test_class.fields]
        self.assertEqual(ids, list(range(len(ids))))
        self.assertTrue(all(item.parent == "Test" for item in self.test_class.fields))

    def test_since_attribute(self) -> None:
        self.assertEqual(self._bind("new_feature").prototype.attributes.since, "4.1.0")

    def test_constructor_destructor_and_const(self) -> None:
        node = self.root.find_class("cocos2d::CCNode")
        self.assertEqual(node.superclasses, ("cocos2d::CCObject",))
        self.assertIn("cocos2d::CCObject", node.attributes.depends)
        self.assertEqual(node.attributes.links, Platform.ALL)

        kinds = {bind.prototype.name: bind.prototype for bind in node.function_binds()}
        self.assertEqual(kinds["CCNode"].kind, FunctionKind.CONSTRUCTOR)
        self.assertEqual(kinds["~CCNode"].kind, FunctionKind.DESTRUCTOR)
        self.assertTrue(kinds["~CCNode"].is_virtual)
        self.assertTrue(kinds["getTag"].is_const)
        self.assertEqual(kinds["addChild"].args[0].type.name, "cocos2d::CCNode*")
        self.assertTrue(node.has_virtual_functions())

    def test_const_after_template_argument_list(self) -> None:
        root = parse_str("class Test {\n    void m3(gd::vector<int> const& v) = win 0x1;\n}\n")
        arg = root.classes[0].function_binds()[0].prototype.args[0]
        self.assertEqual(arg.type.name, "gd::vector<int> const&")

    def test_overload_signatures(self) -> None:
        root = parse_str(
            "class A {\n"
            "    void f(int a) = win 0x1;\n"
            "    void f(int b) = win 0x2;\n"
            "    void f(float a) = win 0x3;\n"
            "    void f(int a) const = win 0x4;\n"
            "    void f(int a, int b) = win 0x5;\n"
            "    void g(int a) = win 0x6;\n"
            "}\n"
        )
        first, renamed, other_type, const, longer, other_name = [
            bind.prototype for bind in root.classes[0].function_binds()
        ]
        self.assertTrue(first.signature_matches(renamed))
        self.assertTrue(first.signature_matches(first))
        self.assertFalse(first.signature_matches(other_type))
        self.assertFalse(first.signature_matches(const))
        self.assertFalse(first.signature_matches(longer))
        self.assertFalse(first.signature_matches(other_name))


class FreeFunctionParsingTests(unittest.TestCase):
    def test_free_functions(self) -> None:
        root = parse_file(FIXTURES / "free.bro")
        self.assertEqual(len(root.functions), 3)
        functions = {function.prototype.name: function for function in root.functions}

        say_hello = functions["say_hello"]
        self.assertEqual(say_hello.prototype.ret.name, "void")
        self.assertEqual(len(say_hello.prototype.args), 3)
        self.assertEqual(say_hello.prototype.args[2].type.name, "char const*")
        self.assertEqual(say_hello.binds.win, 0x0)
        self.assertEqual(say_hello.binds.imac, 0x24)
        self.assertEqual(say_hello.binds.m1, 0x554)
        self.assertEqual(say_hello.binds.ios, 0x343)

        i_hate_mat = functions["i_hate_mat"]
        self.assertEqual(i_hate_mat.prototype.args[0].type.name, "std::string")
        self.assertEqual(i_hate_mat.prototype.args[1].type.name, "std::vector<int>")
        self.assertEqual(i_hate_mat.binds.imac, 0x33)
        self.assertEqual(i_hate_mat.binds.m1, 0x33)

        self.assertEqual(functions["uhhhhhh"].binds.win, 0x3434)

    def test_unnamed_and_variadic_arguments(self) -> None:
        root = parse_str("void log(char const*, ...) = win 0x10;")
        args = root.functions[0].prototype.args
        self.assertEqual([arg.name for arg in args], ["p0", "p1"])
        self.assertEqual(args[1].type.name, "...")

    def test_default_keyword_leaves_slot_unspecified(self) -> None:
        root = parse_str("void f() = win default, imac 0x10;")
        binds = root.functions[0].binds
        self.assertEqual(binds.win, PlatformNumber.UNSPECIFIED)
        self.assertEqual(binds.imac, 0x10)


class HeaderParsingTests(unittest.TestCase):
    def test_entry_headers(self) -> None:
        root = parse_file(FIXTURES / "Entry.bro")
        names = [header.name for header in root.headers]
        self.assertEqual(len(names), 5)
        self.assertIn("Cocos2d.bro", names)

    def test_platform_scoped_imports_and_includes(self) -> None:
        root = parse_str('#import mac "MacOnly.bro"\n#include <cocos2d.h>\nimport "Plain.bro"\n')
        self.assertEqual(root.headers[0].name, "MacOnly.bro")
        self.assertEqual(root.headers[0].platform, Platform.MAC)
        self.assertEqual(root.headers[1].name, "cocos2d.h")
        self.assertEqual(root.headers[1].platform, Platform.ALL)
        self.assertEqual(root.headers[2].name, "Plain.bro")


class AttributeParsingTests(unittest.TestCase):
    def test_class_attributes(self) -> None:
        root = parse_str(
            '[[docs("A layer."), link(win, android), missing(ios), depends(cocos2d::CCLayer)]]\n'
            "class Layer {\n"
            "    void show() = win 0x10;\n"
            "}\n"
        )
        cls = root.classes[0]
        self.assertEqual(cls.attributes.docs, "A layer.")
        self.assertEqual(cls.attributes.links, Platform.WINDOWS | Platform.ANDROID)
        self.assertEqual(cls.attributes.missing, Platform.IOS)
        self.assertEqual(cls.attributes.depends, ("cocos2d::CCLayer",))

        show = cls.find_field("show").as_function_bind()
        self.assertEqual(show.prototype.attributes.links, Platform.WINDOWS | Platform.ANDROID)
        self.assertEqual(show.prototype.attributes.missing, Platform.IOS)

    def test_member_array_and_template_member(self) -> None:
        root = parse_str("class Holder {\n    int m_values[4];\n    gd::map<int, gd::string> m_names;\n}\n")
        cls = root.classes[0]
        self.assertEqual(cls.find_field("m_values").as_member().count, 4)
        self.assertEqual(cls.find_field("m_names").as_member().type.name, "gd::map<int, gd::string>")


class ParseErrorTests(unittest.TestCase):
    def test_self_inheritance(self) -> None:
        with self.assertRaises(core.SelfInheritanceError) as ctx:
            parse_str("class Foo : Foo {}")
        self.assertEqual((ctx.exception.line, ctx.exception.column), (1, 13))
        self.assertIn("Class 'Foo' inherits from itself at line 1, column 13", str(ctx.exception))

    def test_invalid_hex(self) -> None:
        with self.assertRaises(core.InvalidHexLiteralError) as ctx:
            parse_str("void f() = win 0xZZ;")
        self.assertEqual((ctx.exception.line, ctx.exception.column), (1, 16))
        self.assertEqual(ctx.exception.value, "0xZZ")

    def test_nested_platform_block(self) -> None:
        with self.assertRaises(core.SemanticError) as ctx:
            parse_str("class A {\n    win {\n        mac {\n        }\n    }\n}\n")
        self.assertEqual((ctx.exception.line, ctx.exception.column), (3, 9))
        self.assertIn("cannot use platform inside platform expression", str(ctx.exception))

    def test_pad_requires_platform_expression(self) -> None:
        with self.assertRaises(core.SemanticError) as ctx:
            parse_str("class A {\n    PAD = 0x10;\n}\n")
        self.assertEqual(
            str(ctx.exception), "must specify padding if not using platform expression at line 2, column 5"
        )

    def test_unexpected_token_and_eof(self) -> None:
        with self.assertRaises(core.UnexpectedTokenError) as ctx:
            parse_str("class A {\n    void f() = win;\n}\n")
        self.assertEqual(ctx.exception.line, 2)
        with self.assertRaises(core.UnexpectedEofError):
            parse_str("class A {\n    void f();\n")

    def test_errors_carry_source_name(self) -> None:
        with self.assertRaises(core.ParseError) as ctx:
            parse_str("class Foo : Foo {}", source="Broken.bro")
        self.assertTrue(str(ctx.exception).startswith("Broken.bro: "))


class MergeTests(unittest.TestCase):
    def test_parse_files_concatenates_in_order(self) -> None:
        root = parse_files([FIXTURES / "free.bro", FIXTURES / "class.bro"])
        self.assertEqual(len(root.functions), 3)
        self.assertEqual([cls.name for cls in root.classes], ["Test", "cocos2d::CCNode", "cocos2d::CCPoint"])

        merged = merge_roots([parse_str("void a();"), parse_str("void b();")])
        self.assertEqual([function.prototype.name for function in merged.functions], ["a", "b"])

    def test_missing_file_raises_source_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            with self.assertRaises(core.SourceReadError):
                parse_file(Path(temp_dir) / "missing.bro")


if __name__ == "__main__":
    unittest.main()
