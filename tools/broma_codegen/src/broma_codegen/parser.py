from __future__ import annotations

import bisect
import re
from dataclasses import dataclass, replace
from pathlib import Path

from .core import (
    InvalidHexLiteralError,
    SelfInheritanceError,
    SemanticError,
    UnexpectedEofError,
    UnexpectedTokenError,
    read_source,
)
from .model import (
    AccessModifier,
    Arg,
    Attributes,
    Class,
    Field,
    FieldInner,
    Function,
    FunctionBindField,
    FunctionKind,
    FunctionProto,
    Header,
    InlineField,
    MemberField,
    MemberFunctionProto,
    PadField,
    Root,
    Type,
)
from .platform import DSL_PLATFORM_NAMES, Platform, PlatformNumber

_TRIVIA_RE = re.compile(r"(?:\s+|//(?!/)[^\n]*|////[^\n]*|/\*.*?\*/)+", re.S)
_TOKEN_RE = re.compile(
    r"""
    (?P<doc>///[^\n]*)
  | (?P<hex>0[xX][0-9A-Za-z_]*)
  | (?P<number>[0-9]+)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<string>"(?:[^"\\\n]|\\.)*")
  | (?P<punct>::|\.\.\.|[{}()\[\]<>,;:=*&~\#])
    """,
    re.X,
)
_HEX_RE = re.compile(r"0[xX][0-9A-Fa-f]+")

_ACCESS_MODIFIERS = {
    "public": AccessModifier.PUBLIC,
    "protected": AccessModifier.PROTECTED,
    "private": AccessModifier.PRIVATE,
}
_FUNCTION_MODIFIERS = ("static", "virtual", "callback")
_PRIMITIVE_PREFIXES = {"unsigned", "signed", "long", "short"}
_PRIMITIVE_WORDS = {"int", "char", "long", "short", "double"} | _PRIMITIVE_PREFIXES


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    offset: int
    line: int
    column: int


class _Scanner:
    def __init__(self, text: str, source: str | None) -> None:
        self.text = text
        self.source = source
        self.pos = 0
        self._buffer: list[Token] = []
        self._line_starts = [0] + [match.end() for match in re.finditer("\n", text)]

    def location(self, offset: int) -> tuple[int, int]:
        index = bisect.bisect_right(self._line_starts, offset) - 1
        return index + 1, offset - self._line_starts[index] + 1

    def _lex(self) -> Token:
        trivia = _TRIVIA_RE.match(self.text, self.pos)
        if trivia is not None:
            self.pos = trivia.end()
        line, column = self.location(self.pos)
        if self.pos >= len(self.text):
            return Token("eof", "", self.pos, line, column)
        match = _TOKEN_RE.match(self.text, self.pos)
        if match is None:
            raise UnexpectedTokenError("a token", repr(self.text[self.pos]), line, column, self.source)
        kind = match.lastgroup or "punct"
        value = match.group()
        if kind == "hex" and not _HEX_RE.fullmatch(value):
            raise InvalidHexLiteralError(value, line, column, self.source)
        self.pos = match.end()
        return Token(kind, value, match.start(), line, column)

    def peek(self, ahead: int = 0) -> Token:
        while len(self._buffer) <= ahead:
            self._buffer.append(self._lex())
        return self._buffer[ahead]

    def next(self) -> Token:
        token = self.peek()
        self._buffer.pop(0)
        return token

    def _rewind(self, offset: int) -> None:
        self._buffer.clear()
        self.pos = offset

    def raw_block(self) -> str:
        """Consume a balanced ``{ ... }`` block verbatim, starting at the next token."""
        start = self.peek()
        text = self.text
        depth = 0
        index = start.offset
        while index < len(text):
            char = text[index]
            if char in "\"'":
                index = self._skip_quoted(index, char)
                continue
            if text.startswith("//", index):
                newline = text.find("\n", index)
                index = len(text) if newline < 0 else newline
                continue
            if text.startswith("/*", index):
                close = text.find("*/", index + 2)
                index = len(text) if close < 0 else close + 2
                continue
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    self._rewind(index + 1)
                    return text[start.offset : index + 1]
            index += 1
        line, column = self.location(len(text))
        raise UnexpectedEofError("'}'", line, column, self.source)

    def _skip_quoted(self, index: int, quote: str) -> int:
        index += 1
        while index < len(self.text):
            char = self.text[index]
            if char == "\\":
                index += 2
                continue
            if char == quote or char == "\n":
                return index + 1
            index += 1
        return index

    def raw_until(self, start_offset: int, closing: str) -> str:
        end = self.text.find(closing, start_offset)
        newline = self.text.find("\n", start_offset)
        if end < 0 or (0 <= newline < end):
            line, column = self.location(start_offset)
            raise UnexpectedTokenError(f"'{closing}'", "end of line", line, column, self.source)
        self._rewind(end + len(closing))
        return self.text[start_offset:end]

    def slice_to_current(self, start_offset: int) -> str:
        return self.text[start_offset : self.pos if not self._buffer else self._buffer[0].offset]


@dataclass
class _ClassContext:
    name: str
    attributes: Attributes
    next_field_id: int = 0

    @property
    def short_name(self) -> str:
        return self.name.rsplit("::", 1)[-1]

    def take_field_id(self) -> int:
        field_id = self.next_field_id
        self.next_field_id += 1
        return field_id


def _unquote(literal: str) -> str:
    return re.sub(r"\\(.)", r"\1", literal[1:-1])


def _join_type_pieces(pieces: list[str]) -> str:
    out = ""
    for piece in pieces:
        if out and (out[-1].isalnum() or out[-1] in "_>") and (piece[0].isalnum() or piece[0] == "_"):
            out += " "
        out += piece
    return out


class Parser:
    def __init__(self, text: str, source: str | None = None) -> None:
        self._scanner = _Scanner(text, source)
        self._source = source

    # token helpers

    def _peek(self, ahead: int = 0) -> Token:
        return self._scanner.peek(ahead)

    def _check(self, text: str, ahead: int = 0) -> bool:
        token = self._peek(ahead)
        return token.kind == "punct" and token.text == text

    def _check_ident(self, word: str | None = None, ahead: int = 0) -> bool:
        token = self._peek(ahead)
        return token.kind == "ident" and (word is None or token.text == word)

    def _accept(self, text: str) -> bool:
        if self._check(text):
            self._scanner.next()
            return True
        return False

    def _accept_ident(self, word: str) -> bool:
        if self._check_ident(word):
            self._scanner.next()
            return True
        return False

    def _unexpected(self, expected: str, token: Token) -> Exception:
        if token.kind == "eof":
            return UnexpectedEofError(expected, token.line, token.column, self._source)
        return UnexpectedTokenError(expected, f"'{token.text}'", token.line, token.column, self._source)

    def _expect(self, text: str) -> Token:
        token = self._scanner.next()
        if token.kind != "punct" or token.text != text:
            raise self._unexpected(f"'{text}'", token)
        return token

    def _expect_kind(self, kind: str, expected: str) -> Token:
        token = self._scanner.next()
        if token.kind != kind:
            raise self._unexpected(expected, token)
        return token

    def _at_platform(self, ahead: int = 0) -> bool:
        token = self._peek(ahead)
        return token.kind == "ident" and Platform.is_dsl_name(token.text)

    def _at_platform_block(self) -> bool:
        return self._at_platform() and (self._check("{", 1) or self._check(",", 1))

    def _at_platform_member(self) -> bool:
        return self._at_platform() and self._check_ident(ahead=1)

    # grammar

    def parse(self) -> Root:
        headers: list[Header] = []
        classes: list[Class] = []
        functions: list[Function] = []

        while self._peek().kind != "eof":
            if self._at_directive("import"):
                headers.append(self._parse_import())
                continue
            if self._at_directive("include"):
                headers.append(self._parse_include())
                continue
            attributes = self._parse_attributes(Attributes())
            if self._check_ident("class"):
                classes.append(self._parse_class(attributes))
            else:
                functions.append(self._parse_function(attributes))

        classes = [
            cls if cls.attributes.links else replace(cls, attributes=replace(cls.attributes, links=Platform.ALL))
            for cls in classes
        ]
        return Root(tuple(headers), tuple(classes), tuple(functions))

    def _at_directive(self, word: str) -> bool:
        if self._check("#"):
            return self._check_ident(word, 1)
        return word == "import" and self._check_ident("import")

    def _parse_header_platform(self) -> Platform:
        if self._at_platform():
            return self._parse_platforms()
        return Platform.ALL

    def _parse_import(self) -> Header:
        self._accept("#")
        self._scanner.next()
        platform = self._parse_header_platform()
        name = self._expect_kind("string", "an import path string")
        return Header(_unquote(name.text), platform)

    def _parse_include(self) -> Header:
        self._expect("#")
        self._scanner.next()
        platform = self._parse_header_platform()
        if self._check("<"):
            opening = self._scanner.next()
            return Header(self._scanner.raw_until(opening.offset + 1, ">").strip(), platform)
        name = self._expect_kind("string", "an include path")
        return Header(_unquote(name.text), platform)

    def _parse_platform(self) -> Platform:
        token = self._scanner.next()
        if token.kind != "ident" or not Platform.is_dsl_name(token.text):
            raise self._unexpected("a platform name", token)
        return DSL_PLATFORM_NAMES[token.text]

    def _parse_platforms(self) -> Platform:
        platforms = self._parse_platform()
        while self._check(",") and self._at_platform(1):
            self._scanner.next()
            platforms |= self._parse_platform()
        return platforms

    def _parse_attributes(self, base: Attributes) -> Attributes:
        docs = base.docs
        links = base.links
        missing = base.missing
        depends = list(base.depends)
        since = base.since

        while True:
            token = self._peek()
            if token.kind == "doc":
                self._scanner.next()
                docs += token.text[3:].strip() + "\n"
                continue
            if not (self._check("[") and self._check("[", 1)):
                break
            self._scanner.next()
            self._scanner.next()
            while True:
                name = self._expect_kind("ident", "an attribute name")
                self._expect("(")
                if name.text == "docs":
                    docs += _unquote(self._expect_kind("string", "a docs string").text)
                elif name.text in ("link", "links"):
                    links = Platform.NONE if self._check(")") else self._parse_platforms()
                elif name.text == "missing":
                    missing = Platform.NONE if self._check(")") else self._parse_platforms()
                elif name.text == "depends":
                    depends.append(self._parse_qualified_name())
                    while self._accept(","):
                        depends.append(self._parse_qualified_name())
                elif name.text == "since":
                    since = _unquote(self._expect_kind("string", "a version string").text)
                else:
                    raise self._unexpected("an attribute (docs, link, missing, depends, since)", name)
                self._expect(")")
                if not self._accept(","):
                    break
            self._expect("]")
            self._expect("]")

        return Attributes(docs=docs, links=links, missing=missing, depends=tuple(depends), since=since)

    def _parse_qualified_name(self) -> str:
        parts = [self._expect_kind("ident", "an identifier").text]
        while self._accept("::"):
            parts.append(self._expect_kind("ident", "an identifier").text)
        return "::".join(parts)

    def _parse_class(self, attributes: Attributes) -> Class:
        self._scanner.next()
        name = self._parse_qualified_name()
        superclasses: list[str] = []
        if self._accept(":"):
            while True:
                token = self._peek()
                base = self._parse_qualified_name()
                if base == name:
                    raise SelfInheritanceError(name, token.line, token.column, self._source)
                superclasses.append(base)
                if not self._accept(","):
                    break
        attributes = replace(attributes, depends=attributes.depends + tuple(superclasses))

        context = _ClassContext(name, attributes)
        fields: list[Field] = []
        self._expect("{")
        while not self._accept("}"):
            fields.extend(self._parse_class_item(context))
        self._accept(";")
        return Class(attributes, name, tuple(superclasses), tuple(fields))

    def _parse_class_item(self, context: _ClassContext) -> list[Field]:
        if not self._at_platform_block():
            return [self._parse_field(context, None)]

        platforms = self._parse_platforms()
        self._expect("{")
        fields: list[Field] = []
        while not self._accept("}"):
            if self._at_platform_block() or self._at_platform_member():
                token = self._peek()
                raise SemanticError(
                    "cannot use platform inside platform expression", token.line, token.column, self._source
                )
            fields.append(self._parse_field(context, platforms))
        return fields

    def _parse_field(self, context: _ClassContext, block: Platform | None) -> Field:
        bind_attributes = self._parse_attributes(
            Attributes(links=context.attributes.links, missing=context.attributes.missing)
        )
        inner: FieldInner
        if self._check_ident("inline"):
            inner = InlineField(self._parse_inline_text())
        elif self._check_ident("PAD"):
            inner = PadField(self._parse_pad(block))
        elif self._at_platform_member():
            platform = self._parse_platforms()
            inner = self._parse_member_or_bind(context, bind_attributes, platform, platform_prefixed=True)
        else:
            platform = Platform.ALL if block is None else block
            inner = self._parse_member_or_bind(context, bind_attributes, platform, platform_prefixed=False)
        return Field(context.take_field_id(), context.name, inner)

    def _parse_inline_text(self) -> str:
        start = self._scanner.next()
        depth = 0
        while True:
            token = self._peek()
            if token.kind == "eof":
                raise self._unexpected("an inline body", token)
            if self._check("("):
                depth += 1
            elif self._check(")"):
                depth -= 1
            elif depth <= 0 and self._check("{"):
                self._scanner.raw_block()
                text = self._scanner.slice_to_current(start.offset).strip()
                self._accept(";")
                return text
            elif depth <= 0 and self._check(";"):
                self._scanner.next()
                return self._scanner.slice_to_current(start.offset).strip()
            self._scanner.next()

    def _parse_pad(self, block: Platform | None) -> PlatformNumber:
        pad = self._scanner.next()
        amount = PlatformNumber()
        if block is not None:
            amount = amount.with_platform(block, 0)
        if self._accept("="):
            if self._peek().kind == "hex":
                value = self._scanner.next()
                if block is None:
                    raise SemanticError(
                        "must specify padding if not using platform expression", pad.line, pad.column, self._source
                    )
                amount = amount.with_platform(block, int(value.text, 16))
            else:
                amount, _ = self._parse_bind_list(amount)
        elif block is None:
            raise SemanticError(
                "must specify padding if not using platform expression", pad.line, pad.column, self._source
            )
        self._expect(";")
        return amount.normalize(False)

    def _parse_bind_list(self, binds: PlatformNumber) -> tuple[PlatformNumber, bool]:
        explicit_inline = False
        while True:
            if self._accept_ident("inline"):
                unspecified = Platform.NONE
                for leaf, value in binds.items():
                    if value == PlatformNumber.UNSPECIFIED:
                        unspecified |= leaf
                binds = binds.with_platform(unspecified, PlatformNumber.INLINE)
                explicit_inline = True
            else:
                platform = self._parse_platform()
                value = self._scanner.next()
                if value.kind == "hex":
                    binds = binds.with_platform(platform, int(value.text, 16))
                elif value.kind == "ident" and value.text == "default":
                    binds = binds.with_platform(platform, PlatformNumber.DEFAULT)
                elif value.kind == "ident" and value.text == "inline":
                    binds = binds.with_platform(platform, PlatformNumber.INLINE)
                    explicit_inline = True
                else:
                    raise self._unexpected("a hex offset, 'default' or 'inline'", value)
            if not self._accept(","):
                break
        return binds, explicit_inline

    def _parse_bind_tail(self) -> tuple[PlatformNumber, str]:
        binds = PlatformNumber()
        explicit_inline = False
        inner = ""
        if self._accept("="):
            binds, explicit_inline = self._parse_bind_list(binds)
        if self._check("{"):
            inner = self._scanner.raw_block()[1:-1].strip()
            self._accept(";")
        else:
            self._expect(";")
        return binds.normalize(bool(inner) and not explicit_inline), inner

    def _parse_member_or_bind(
        self,
        context: _ClassContext,
        attributes: Attributes,
        platform: Platform,
        platform_prefixed: bool,
    ) -> FieldInner:
        access = AccessModifier.PUBLIC
        while self._check_ident() and self._peek().text in _ACCESS_MODIFIERS:
            access = _ACCESS_MODIFIERS[self._scanner.next().text]

        modifiers: set[str] = set()
        while self._check_ident() and self._peek().text in _FUNCTION_MODIFIERS:
            modifiers.add(self._scanner.next().text)

        if self._accept("~"):
            name = "~" + self._expect_kind("ident", "a destructor name").text
            kind = FunctionKind.DESTRUCTOR
            ret = Type("void")
        elif self._check_ident() and self._check("(", 1):
            token = self._scanner.next()
            if modifiers or token.text != context.short_name:
                raise self._unexpected("a return type", token)
            name = token.text
            kind = FunctionKind.CONSTRUCTOR
            ret = Type("void")
        else:
            ret = self._parse_type()
            name_token = self._expect_kind("ident", "a member name")
            name = name_token.text
            kind = FunctionKind.NORMAL
            if not self._check("("):
                if modifiers:
                    raise self._unexpected("'('", self._peek())
                return self._parse_member_tail(platform, name, ret)

        if platform_prefixed:
            raise self._unexpected("';'", self._peek())
        args = self._parse_args()
        is_const = self._accept_ident("const")
        binds, inner = self._parse_bind_tail()
        prototype = MemberFunctionProto(
            attributes=attributes,
            ret=ret,
            args=args,
            name=name,
            kind=kind,
            access=access,
            is_const=is_const,
            is_virtual="virtual" in modifiers,
            is_callback="callback" in modifiers,
            is_static="static" in modifiers,
        )
        return FunctionBindField(prototype, binds, inner)

    def _parse_member_tail(self, platform: Platform, name: str, ty: Type) -> MemberField:
        count = 0
        if self._accept("["):
            token = self._scanner.next()
            if token.kind == "number":
                count = int(token.text)
            elif token.kind == "hex":
                count = int(token.text, 16)
            else:
                raise self._unexpected("an array length", token)
            self._expect("]")
        self._expect(";")
        return MemberField(platform, name, ty, count)

    def _parse_type(self) -> Type:
        pieces: list[str] = []
        is_struct = False
        if self._accept_ident("const"):
            pieces.append("const")
        if self._accept_ident("struct"):
            is_struct = True
        elif self._check_ident("class") or self._check_ident("enum"):
            self._scanner.next()

        first = self._expect_kind("ident", "a type name")
        pieces.append(first.text)
        if first.text in _PRIMITIVE_PREFIXES:
            while self._check_ident() and self._peek().text in _PRIMITIVE_WORDS:
                pieces.append(self._scanner.next().text)
        else:
            while self._accept("::"):
                pieces.append("::")
                pieces.append(self._expect_kind("ident", "an identifier").text)
            if self._check("<"):
                pieces.append(self._parse_template_args())

        while True:
            if self._check("*") or self._check("&"):
                pieces.append(self._scanner.next().text)
            elif self._check_ident("const"):
                pieces.append(self._scanner.next().text)
            else:
                break
        return Type(_join_type_pieces(pieces), is_struct)

    def _parse_template_args(self) -> str:
        self._expect("<")
        args: list[str] = []
        while not self._check(">"):
            token = self._peek()
            if token.kind in ("number", "hex"):
                args.append(self._scanner.next().text)
            else:
                ty = self._parse_type()
                args.append(("struct " if ty.is_struct else "") + ty.name)
            if not self._accept(","):
                break
        self._expect(">")
        return "<" + ", ".join(args) + ">"

    def _parse_args(self) -> tuple[Arg, ...]:
        self._expect("(")
        args: list[Arg] = []
        if self._accept(")"):
            return ()
        while True:
            if self._accept("..."):
                args.append(Arg(Type("..."), f"p{len(args)}"))
            else:
                ty = self._parse_type()
                if self._check_ident():
                    name = self._scanner.next().text
                else:
                    name = f"p{len(args)}"
                args.append(Arg(ty, name))
            if self._accept(")"):
                return tuple(args)
            self._expect(",")

    def _parse_function(self, attributes: Attributes) -> Function:
        ret = self._parse_type()
        name = self._parse_qualified_name()
        args = self._parse_args()
        binds, inner = self._parse_bind_tail()
        return Function(FunctionProto(attributes, ret, args, name), binds, inner)


def parse_str(text: str, source: str | None = None) -> Root:
    return Parser(text, source).parse()


def parse_file(path: Path) -> Root:
    return parse_str(read_source(path), source=str(path))


def merge_roots(roots: list[Root]) -> Root:
    return Root(
        headers=tuple(header for root in roots for header in root.headers),
        classes=tuple(cls for root in roots for cls in root.classes),
        functions=tuple(function for root in roots for function in root.functions),
    )


def parse_files(paths: list[Path]) -> Root:
    return merge_roots([parse_file(path) for path in paths])
