from .commands import command_generate, command_mangle, command_parse
from .core import (
    TOOL_VERSION,
    BromaCodegenError,
    ConfigError,
    InvalidHexLiteralError,
    ParseError,
    SelfInheritanceError,
    SemanticError,
    SourceReadError,
    UnexpectedEofError,
    UnexpectedTokenError,
    load_config,
    write_if_changed,
    write_json,
)
from .generator import GeneratorOptions, generate_bindings, generate_from_sources
from .lowering import TypeDescriptor, TypeKind, lower_type
from .mangle import mangle_bind, mangle_free_function, mangle_symbol
from .model import Class, Field, Function, Header, Root
from .parser import merge_roots, parse_file, parse_files, parse_str
from .platform import CallingConvention, Platform, PlatformNumber, detect_platform

__all__ = [
    "TOOL_VERSION",
    "BromaCodegenError",
    "CallingConvention",
    "Class",
    "ConfigError",
    "Field",
    "Function",
    "GeneratorOptions",
    "Header",
    "InvalidHexLiteralError",
    "ParseError",
    "Platform",
    "PlatformNumber",
    "Root",
    "SelfInheritanceError",
    "SemanticError",
    "SourceReadError",
    "TypeDescriptor",
    "TypeKind",
    "UnexpectedEofError",
    "UnexpectedTokenError",
    "command_generate",
    "command_mangle",
    "command_parse",
    "detect_platform",
    "generate_bindings",
    "generate_from_sources",
    "load_config",
    "lower_type",
    "mangle_bind",
    "mangle_free_function",
    "mangle_symbol",
    "merge_roots",
    "parse_file",
    "parse_files",
    "parse_str",
    "write_if_changed",
    "write_json",
]
