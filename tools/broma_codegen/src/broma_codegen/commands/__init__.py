from .generation import command_generate
from .inspection import command_mangle, command_parse

__all__ = [
    "command_generate",
    "command_mangle",
    "command_parse",
]
