"""Start-up helpers: environment files and locating the configuration."""

from __future__ import annotations

import logging
import os

from procvisor.ini import Ini
from procvisor.string_expression import StringExpression, StringExpressionError

log = logging.getLogger(__name__)

_CANDIDATES = (
    "./supervisord.ini",
    "./etc/supervisord.conf",
    "/etc/supervisord.conf",
    "/etc/supervisor/supervisord.conf",
    "../etc/supervisord.conf",
    "../supervisord.conf",
)


def load_env_file(path: str | None) -> None:
    """Put the NAME=value lines of an environment file into os.environ.

    Comment lines and an "export" prefix are allowed; pairs with an empty
    name or value are skipped, as is a last line without a newline.
    """
    if not path:
        return
    try:
        f = open(path, encoding="utf-8")
    except OSError:
        log.error("Fail to open environment file %s", path)
        return
    with f:
        for raw in f:
            if not raw.endswith("\n"):
                break
            line = raw.strip()
            if line.startswith("#"):
                continue
            if line.startswith("export") and len(line) > 6 and line[6].isspace():
                line = line[6:].strip()
            key, sep, value = line.partition("=")
            if not sep:
                continue
            key, value = key.strip(), value.strip()
            if key and value:
                os.environ[key] = value


def find_supervisord_conf(configuration: str | None) -> str:
    """Return the absolute path of the first configuration file that exists.

    The given configuration is tried first, then the usual locations.
    Raises FileNotFoundError if none exists.
    """
    for candidate in (configuration or "", *_CANDIDATES):
        if candidate and os.path.exists(candidate):
            return os.path.abspath(candidate)
    raise FileNotFoundError("fail to find supervisord.conf")


def get_supervisord_log_file(config_file: str) -> str:
    """Return the logfile of the [supervisord] section with %(here)s expanded."""
    env = StringExpression("here", os.path.dirname(config_file) or ".")
    ini = Ini()
    try:
        ini.load_file(config_file)
    except (OSError, UnicodeDecodeError):
        pass
    try:
        cwd = os.getcwd()
    except OSError:
        cwd = "."
    log_file = ini.get_value_with_default(
        "supervisord", "logfile", os.path.join(cwd, "supervisord.log")
    )
    try:
        return env.eval(log_file)
    except StringExpressionError:
        return os.path.join(".", "supervisord.log")