"""A small INI reader: named sections of ordered key/value pairs."""

from __future__ import annotations

import os
import re

_INT_RE = re.compile(r"[+-]?\d+")


class Section:
    """One "[name]" section with its keys in file order."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._values: dict[str, str | None] = {}

    def __repr__(self) -> str:
        return f"Section({self.name!r}, keys={self.keys()!r})"

    def keys(self) -> list[str]:
        """Return the key names in the order they were added."""
        return list(self._values)

    def has_key(self, key: str) -> bool:
        """Tell whether the section holds the key."""
        return key in self._values

    def add(self, key: str, value: str | None) -> None:
        """Set a key, replacing any earlier value."""
        self._values[key] = value

    def get_value(self, key: str) -> str:
        """Return the value of a key; KeyError if it is absent or has no value."""
        value = self._values.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def get_value_with_default(self, key: str, default: str) -> str:
        """Return the value of a key, or default if it has none."""
        value = self._values.get(key)
        return default if value is None else value

    def get_int(self, key: str) -> int:
        """Return the value of a key as an integer."""
        value = self.get_value(key)
        if not _INT_RE.fullmatch(value):
            raise ValueError(f"value of {key!r} is not an integer: {value!r}")
        return int(value)


class Ini:
    """Sections loaded from one or more INI texts; later loads merge in."""

    def __init__(self) -> None:
        self._sections: dict[str, Section] = {}

    def load_file(self, path: str | os.PathLike) -> None:
        """Read a file and merge its sections."""
        with open(path, encoding="utf-8") as f:
            self.load_string(f.read())

    def load_string(self, text: str) -> None:
        """Parse text and merge its sections."""
        current: Section | None = None
        for line in _logical_lines(text):
            if not line or line[0] in "#;":
                continue
            if line.startswith("[") and line.endswith("]"):
                name = line[1:-1].strip()
                current = self._sections.get(name)
                if current is None:
                    current = self._sections[name] = Section(name)
                continue
            if current is None:
                continue
            current.add(*_split_key_value(line))

    def sections(self) -> list[Section]:
        """Return the sections in the order they first appeared."""
        return list(self._sections.values())

    def get_section(self, name: str) -> Section:
        """Return a section by name; KeyError if there is none."""
        return self._sections[name]

    def get_value_with_default(self, section: str, key: str, default: str) -> str:
        """Return a value from a section, or default if either is missing."""
        found = self._sections.get(section)
        if found is None:
            return default
        return found.get_value_with_default(key, default)


def _logical_lines(text: str):
    """Yield stripped lines, joining those that end with a backslash."""
    pending = ""
    for raw in text.splitlines():
        line = raw.strip()
        if line.endswith("\\"):
            pending += line[:-1]
            continue
        yield pending + line
        pending = ""
    if pending:
        yield pending


def _split_key_value(line: str) -> tuple[str, str | None]:
    for sep in ("=", ":"):
        key, found, value = line.partition(sep)
        if found:
            return key.strip(), value.strip()
    return line.strip(), None