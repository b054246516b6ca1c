from __future__ import annotations

import keyword
import re

_RESERVED_ATTRIBUTES = {"self", "None", "True", "False"}


def to_snake_case(name: str) -> str:
    text = name.replace("::", "_")
    out: list[str] = []
    for index, char in enumerate(text):
        if char.isupper() and index > 0:
            previous = text[index - 1]
            following = text[index + 1] if index + 1 < len(text) else ""
            if previous.islower() or previous.isdigit() or (previous.isupper() and following.islower()):
                out.append("_")
        out.append(char.lower())
    return "".join(out)


def sanitize_identifier(name: str) -> str:
    text = re.sub(r"\W", "_", name)
    if not text or text[0].isdigit():
        text = "_" + text
    if keyword.iskeyword(text) or keyword.issoftkeyword(text) or text in _RESERVED_ATTRIBUTES:
        text += "_"
    return text


def member_name(name: str) -> str:
    """``m_fooBar`` -> ``foo_bar``"""
    stripped = name[2:] if name.startswith("m_") and len(name) > 2 else name
    return sanitize_identifier(to_snake_case(stripped))


def python_class_name(name: str) -> str:
    return sanitize_identifier(name.replace("::", "_"))


def constant_name(*parts: str) -> str:
    return "_" + "_".join(sanitize_identifier(to_snake_case(part)).strip("_") for part in parts).upper()
