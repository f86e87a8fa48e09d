"""Naming helpers shared by the dispatcher, the event table and the renderer."""
from __future__ import annotations

import re


# Words that cannot be used as TypeScript binding names.
RESERVED_WORDS = frozenset({
    "break", "case", "catch", "class", "const", "continue", "debugger", "default",
    "delete", "do", "else", "enum", "export", "extends", "false", "finally", "for",
    "function", "if", "import", "in", "instanceof", "new", "null", "return", "super",
    "switch", "this", "throw", "true", "try", "typeof", "var", "void", "while", "with",
    "as", "implements", "interface", "let", "package", "private", "protected", "public",
    "static", "yield", "await", "arguments", "eval",
})

IDENTIFIER_REGEX = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

NAMESPACE_SEPARATOR = ":"


def qualify(name: str, namespace: str | None) -> str:
    """Wire name of a command or event: ``<namespace>:<name>`` when a namespace is set."""
    if not namespace:
        return name
    return f"{namespace}{NAMESPACE_SEPARATOR}{name}"


def split_words(text: str) -> list[str]:
    """Split snake_case, kebab-case, dotted and camelCase text into words."""
    normalized = re.sub(r"[^0-9a-zA-Z]+", "_", text)
    normalized = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", normalized)
    return [part for part in normalized.split("_") if part]


def to_pascal_case(text: str) -> str:
    """Convert a snake/kebab/dotted string into PascalCase."""
    return "".join(word[:1].upper() + word[1:] for word in split_words(text))


def to_camel_case(text: str) -> str:
    """Convert a snake/kebab/dotted string into camelCase."""
    pascal = to_pascal_case(text)
    return pascal[:1].lower() + pascal[1:]


def to_kebab_case(text: str) -> str:
    """Convert a PascalCase/snake_case string into kebab-case."""
    return "-".join(word.lower() for word in split_words(text))


def is_identifier(text: str) -> bool:
    return bool(IDENTIFIER_REGEX.match(text)) and text not in RESERVED_WORDS


def safe_identifier(text: str) -> str:
    """Make ``text`` usable as a TypeScript binding name."""
    if not text or text[0].isdigit():
        text = f"_{text}"
    if text in RESERVED_WORDS:
        return f"{text}_"
    return text


class NameReservations:
    """Hands out unique export names, suffixing repeats with 2, 3, ..."""

    def __init__(self) -> None:
        self.used_export_names: set[str] = set()

    def __contains__(self, export_name: object) -> bool:
        return export_name in self.used_export_names

    def reserve(self, preferred_export_name: str) -> str:
        """
        Returns a unique export symbol name and reserves it immediately, so
        declarations and references always agree on the name.
        """
        if preferred_export_name not in self.used_export_names:
            self.used_export_names.add(preferred_export_name)
            return preferred_export_name

        suffix_number = 2
        while f"{preferred_export_name}{suffix_number}" in self.used_export_names:
            suffix_number += 1

        unique_name = f"{preferred_export_name}{suffix_number}"
        self.used_export_names.add(unique_name)
        return unique_name
