"""A configuration section and typed access to its values."""

from __future__ import annotations

import logging
import re
import socket
from dataclasses import dataclass, field

from procvisor.ini import Section
from procvisor.string_expression import StringExpression, StringExpressionError

log = logging.getLogger(__name__)

_INT_RE = re.compile(r"[+-]?\d+")
_ENV_KEY_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "$": "$"}
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}
_BYTE_UNITS = {"KB": 1024, "MB": 1024 * 1024, "GB": 1024 * 1024 * 1024}


def to_int(s: str, factor: int, default: int) -> int:
    """Return int(s) * factor, or default if s is not an integer."""
    if _INT_RE.fullmatch(s):
        return int(s) * factor
    return default


def parse_env(s: str) -> dict[str, str]:
    """Parse 'A="x y",B=z' into a dict of names and values."""
    result: dict[str, str] = {}
    start = 0
    n = len(s)
    while True:
        eq = s.find("=", start)
        if eq == -1:
            eq = n
        key = s[start:eq].strip()
        start = eq + 1
        if start >= n:
            break
        if s[start] == '"':
            close = s.find('"', start + 1)
            if close == -1:
                break
            result[key] = s[start + 1:close].strip()
            if close + 1 < n and s[close + 1] == ",":
                start = close + 2
            else:
                break
        else:
            comma = s.find(",", start)
            if comma == -1:
                result[key] = s[start:].strip()
                break
            result[key] = s[start:comma].strip()
            start = comma + 1
    return result


def _unquote_env_value(value: str, lineno: int) -> str:
    if value[:1] in ('"', "'"):
        quote = value[0]
        if len(value) < 2 or not value.endswith(quote):
            raise ValueError(f"line {lineno}: unterminated quoted value")
        inner = value[1:-1]
        if quote == "'":
            return inner
        return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m[1], m[1]), inner)
    comment = value.find(" #")
    if comment != -1:
        value = value[:comment]
    return value.strip()


def _parse_env_text(text: str) -> dict[str, str]:
    result: dict[str, str] = {}
    for lineno, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export") and line[6:7].isspace():
            line = line[6:].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not _ENV_KEY_RE.fullmatch(key):
            raise ValueError(f"line {lineno}: invalid environment line")
        result[key] = _unquote_env_value(value.strip(), lineno)
    return result


def parse_env_files(s: str) -> dict[str, str]:
    """Read comma separated env files; unreadable or invalid files are skipped."""
    result: dict[str, str] = {}
    for path in (p.strip() for p in s.split(",")):
        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except OSError as exc:
            log.error("Read file failed: %s (%s)", path, exc)
            continue
        try:
            result.update(_parse_env_text(text))
        except ValueError as exc:
            log.error("Parse env file failed: %s (%s)", path, exc)
    return result


@dataclass
class Entry:
    """A configuration section such as "program:web" with its values."""

    config_dir: str
    group: str = ""
    name: str = ""
    key_values: dict[str, str] = field(default_factory=dict)

    def _name_after(self, prefix: str) -> str:
        return self.name[len(prefix):] if self.name.startswith(prefix) else ""

    def is_program(self) -> bool:
        return self.name.startswith("program:")

    def get_program_name(self) -> str:
        return self._name_after("program:")

    def is_event_listener(self) -> bool:
        return self.name.startswith("eventlistener:")

    def get_event_listener_name(self) -> str:
        return self._name_after("eventlistener:")

    def is_group(self) -> bool:
        return self.name.startswith("group:")

    def get_group_name(self) -> str:
        return self._name_after("group:")

    def get_programs(self) -> list[str]:
        """Return the programs listed by a group section."""
        if not self.is_group():
            return []
        return [p.strip() for p in self.get_string_array("programs", ",")]

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.key_values.get(key)
        if value in _TRUE:
            return True
        if value in _FALSE:
            return False
        return default

    def has_parameter(self, key: str) -> bool:
        return key in self.key_values

    def get_int(self, key: str, default: int) -> int:
        value = self.key_values.get(key)
        return default if value is None else to_int(value, 1, default)

    def _expression(self) -> StringExpression:
        return StringExpression(
            "program_name", self.get_program_name(),
            "process_num", self.get_string("process_num", "0"),
            "group_name", self.get_group_name(),
            "here", self.config_dir,
        )

    def _evaluated_env(self, env: dict[str, str]) -> list[str]:
        result = []
        for k, v in env.items():
            try:
                result.append(self._expression().eval(f"{k}={v}"))
            except StringExpressionError:
                continue
        return result

    def get_env(self, key: str) -> list[str]:
        """Return 'NAME=value' strings from an environment setting."""
        value = self.key_values.get(key)
        return [] if value is None else self._evaluated_env(parse_env(value))

    def get_env_from_files(self, key: str) -> list[str]:
        """Return 'NAME=value' strings read from the env files a key lists."""
        value = self.key_values.get(key)
        return [] if value is None else self._evaluated_env(parse_env_files(value))

    def get_string(self, key: str, default: str) -> str:
        """Return a value with %(here)s expanded, or default."""
        value = self.key_values.get(key)
        if value is None:
            return default
        try:
            return StringExpression("here", self.config_dir).eval(value)
        except StringExpressionError as exc:
            log.warning("Unable to parse expression for %s of %s: %s",
                        key, self.get_program_name(), exc)
            return default

    def get_string_expression(self, key: str, default: str) -> str:
        """Return a value with all program variables expanded; "" if unset."""
        value = self.key_values.get(key)
        if not value:
            return ""
        try:
            host_name = socket.gethostname()
        except OSError:
            host_name = "Unknown"
        try:
            return self._expression().add("host_node_name", host_name).eval(value)
        except StringExpressionError as exc:
            log.warning("unable to parse expression for %s of %s: %s",
                        key, self.get_program_name(), exc)
            return value

    def get_string_array(self, key: str, sep: str) -> list[str]:
        value = self.key_values.get(key)
        return [] if value is None else value.split(sep)

    def get_bytes(self, key: str, default: int) -> int:
        """Return a size such as 1024, 2KB, 3MB or 4GB in bytes."""
        value = self.key_values.get(key)
        if value is None:
            return default
        if len(value) > 2 and value[-2:] in _BYTE_UNITS:
            return to_int(value[:-2], _BYTE_UNITS[value[-2:]], default)
        return to_int(value, 1, default)

    def parse(self, section: Section) -> None:
        """Take the name and values of an INI section."""
        self.name = section.name
        for key in section.keys():
            self.key_values[key] = section.get_value_with_default(key, "").strip()

    def __str__(self) -> str:
        return "".join(f"{k}={v}\n" for k, v in self.key_values.items())