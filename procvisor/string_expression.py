"""Substitution of python-style "%(var)s" expressions in strings."""

from __future__ import annotations

import os
import re
import socket

_INT_RE = re.compile(r"[+-]?\d+")


class StringExpressionError(ValueError):
    """Raised when an expression cannot be evaluated."""


def _is_ascii_letter(ch: str) -> bool:
    return ("a" <= ch <= "z") or ("A" <= ch <= "Z")


class StringExpression:
    """Replaces "%(name)s" and "%(name)d" with values from its environment.

    Every process environment variable is available as ENV_<name>, the
    host name as host_node_name, and the given pairs of names and values
    as themselves.
    """

    def __init__(self, *envs: str) -> None:
        self.env: dict[str, str] = {
            f"ENV_{key}": value for key, value in os.environ.items()
        }
        for key, value in zip(envs[0::2], envs[1::2]):
            self.env[key] = value
        try:
            self.env["host_node_name"] = socket.gethostname()
        except OSError:
            pass

    def add(self, key: str, value: str) -> StringExpression:
        """Set a variable and return self for chaining."""
        self.env[key] = value
        return self

    def eval(self, s: str) -> str:
        """Return s with every expression replaced by its value."""
        while True:
            start = s.find("%(")
            if start == -1:
                return s
            n = len(s)
            end = start + 1
            while end < n and s[end] != ")":
                end += 1
            typ = end + 1
            while typ < n and not _is_ascii_letter(s[typ]):
                typ += 1
            if typ >= n:
                raise StringExpressionError("invalid string expression format")

            var_name = s[start + 2:end]
            try:
                var_value = self.env[var_name]
            except KeyError:
                raise StringExpressionError(
                    f"fail to find the environment variable {var_name}"
                ) from None

            kind = s[typ]
            if kind == "d":
                if not _INT_RE.fullmatch(var_value):
                    raise StringExpressionError(
                        f"can't convert {var_value} to integer"
                    )
                spec = "%" + s[end + 1:typ + 1]
                try:
                    formatted = spec % int(var_value)
                except (ValueError, TypeError) as exc:
                    raise StringExpressionError(
                        f"invalid format {spec!r}"
                    ) from exc
                s = s[:start] + formatted + s[typ + 1:]
            elif kind == "s":
                s = s[:start] + var_value + s[typ + 1:]
            else:
                raise StringExpressionError(f"not implement type:{kind}")