"""The supervisor configuration file: its sections, groups and programs."""

from __future__ import annotations

import logging
import os
import re
from typing import Callable

from procvisor.entry import Entry, parse_env
from procvisor.ini import Ini, Section
from procvisor.process_group import ProcessGroup
from procvisor.process_sort import sort_program
from procvisor.string_expression import StringExpression, StringExpressionError

log = logging.getLogger(__name__)

_PROGRAM = "program:"
_EVENT_LISTENER = "eventlistener:"
_GROUP = "group:"


def to_regexp(pattern: str) -> str:
    """Turn a file pattern with "*" and "?" into a regular expression."""
    parts = (
        part.replace("*", ".*").replace("?", ".")
        for part in pattern.split(".")
    )
    return "\\.".join(parts)


def _load_ini_file(ini: Ini, path: str) -> None:
    try:
        ini.load_file(path)
    except (OSError, UnicodeDecodeError) as exc:
        log.warning("fail to load configuration file %s: %s", path, exc)


def _program_prefix(section: Section) -> str | None:
    """Return "program:" or "eventlistener:" if the section is one, else None."""
    for prefix in (_PROGRAM, _EVENT_LISTENER):
        if section.name.startswith(prefix):
            return prefix
    return None


class Config:
    """Configuration entries loaded from a file and the files it includes."""

    def __init__(self, config_file: str) -> None:
        self.config_file = config_file
        self._entries: dict[str, Entry] = {}
        self.program_group = ProcessGroup()

    def _create_entry(self, name: str, config_dir: str) -> Entry:
        entry = self._entries.get(name)
        if entry is None:
            entry = self._entries[name] = Entry(config_dir)
        return entry

    def load(self) -> list[str]:
        """Load the configuration and return the names of loaded programs."""
        ini = Ini()
        self.program_group = ProcessGroup()
        log.info("load configuration from file %s", self.config_file)
        _load_ini_file(ini, self.config_file)
        for path in self._get_include_files(ini):
            log.info("load configuration from file %s", path)
            _load_ini_file(ini, path)
        return self._parse(ini)

    def _get_include_files(self, ini: Ini) -> list[str]:
        try:
            files = ini.get_section("include").get_value("files")
        except KeyError:
            return []
        here = self.get_config_file_dir()
        env = StringExpression("here", here)
        result: list[str] = []
        for raw in files.split():
            try:
                path = env.eval(raw)
            except StringExpressionError:
                continue
            if os.path.isabs(path):
                directory = os.path.dirname(path)
            else:
                directory = os.path.join(here, os.path.dirname(path))
            try:
                names = sorted(os.listdir(directory))
            except OSError:
                continue
            try:
                pattern = re.compile(to_regexp(os.path.basename(path)))
            except re.error:
                continue
            result.extend(
                os.path.join(directory, name) for name in names if pattern.search(name)
            )
        return result

    def _parse(self, ini: Ini) -> list[str]:
        self._set_program_default_params(ini)
        self._parse_group(ini)
        loaded = self._parse_program(ini)
        here = self.get_config_file_dir()
        for section in ini.sections():
            if not section.name.startswith((_GROUP, _PROGRAM, _EVENT_LISTENER)):
                self._create_entry(section.name, here).parse(section)
        return loaded

    @staticmethod
    def _set_program_default_params(ini: Ini) -> None:
        try:
            defaults = ini.get_section("program-default")
        except KeyError:
            return
        for section in ini.sections():
            if section.name == "program-default" or not section.name.startswith(_PROGRAM):
                continue
            for key in defaults.keys():
                if not section.has_key(key):
                    section.add(key, defaults.get_value_with_default(key, ""))

    def _parse_group(self, ini: Ini) -> None:
        here = self.get_config_file_dir()
        for section in ini.sections():
            if section.name.startswith(_GROUP):
                entry = self._create_entry(section.name, here)
                entry.parse(section)
                group_name = entry.get_group_name()
                for program in entry.get_programs():
                    self.program_group.add(group_name, program)

    def _parse_program(self, ini: Ini) -> list[str]:
        here = self.get_config_file_dir()
        loaded: list[str] = []
        for section in ini.sections():
            prefix = _program_prefix(section)
            if prefix is None:
                continue
            program_name = section.name[len(prefix):]
            try:
                num_procs = section.get_int("numprocs")
            except (KeyError, ValueError):
                num_procs = 1
            try:
                proc_name_pattern: str | None = section.get_value("process_name")
            except KeyError:
                proc_name_pattern = None
            if num_procs > 1 and (
                proc_name_pattern is None or "%(process_num)" not in proc_name_pattern
            ):
                log.error("no process_num in process name: numprocs=%d process_name=%s",
                          num_procs, proc_name_pattern)
            original_proc_name = proc_name_pattern or program_name
            if proc_name_pattern is not None:
                original_proc_name = proc_name_pattern
            original_cmd = section.get_value_with_default("command", "")

            for i in range(1, num_procs + 1):
                envs = StringExpression(
                    "program_name", program_name,
                    "process_num", str(i),
                    "group_name", self.program_group.get_group(program_name, program_name),
                    "here", here,
                )
                try:
                    env_value = section.get_value("environment")
                except KeyError:
                    env_value = None
                if env_value is not None:
                    for k, v in parse_env(env_value).items():
                        envs.add(f"ENV_{k}", v)
                try:
                    cmd = envs.eval(original_cmd)
                    proc_name = envs.eval(original_proc_name)
                except StringExpressionError as exc:
                    log.error("get envs failed for program %s: %s", program_name, exc)
                    continue
                section.add("command", cmd)
                section.add("process_name", proc_name)
                section.add("numprocs_start", str(i - 1))
                section.add("process_num", str(i))
                entry = self._create_entry(proc_name, here)
                entry.parse(section)
                entry.name = prefix + proc_name
                entry.group = self.program_group.get_group(program_name, program_name)
                loaded.append(proc_name)
        return loaded

    def get_config_file_dir(self) -> str:
        """Return the directory of the configuration file."""
        return os.path.dirname(self.config_file) or "."

    def get_unix_http_server(self) -> Entry | None:
        return self._entries.get("unix_http_server")

    def get_supervisord(self) -> Entry | None:
        return self._entries.get("supervisord")

    def get_inet_http_server(self) -> Entry | None:
        return self._entries.get("inet_http_server")

    def get_supervisorctl(self) -> Entry | None:
        return self._entries.get("supervisorctl")

    def get_entries(self, filter_func: Callable[[Entry], bool]) -> list[Entry]:
        """Return the entries accepted by filter_func."""
        return [entry for entry in self._entries.values() if filter_func(entry)]

    def get_groups(self) -> list[Entry]:
        return self.get_entries(Entry.is_group)

    def get_programs(self) -> list[Entry]:
        """Return the program entries in start order."""
        return sort_program(self.get_entries(Entry.is_program))

    def get_event_listeners(self) -> list[Entry]:
        return self.get_entries(Entry.is_event_listener)

    def get_program_names(self) -> list[str]:
        """Return the program names in start order."""
        return [entry.get_program_name() for entry in self.get_programs()]

    def get_program(self, name: str) -> Entry | None:
        """Return the entry of a program, or None."""
        for entry in self._entries.values():
            if entry.is_program() and entry.get_program_name() == name:
                return entry
        return None

    def remove_program(self, program_name: str) -> None:
        """Forget a program and its group membership."""
        self._entries.pop(program_name, None)
        self.program_group.remove(program_name)

    def __str__(self) -> str:
        return "".join(f"[{entry.name}]\n{entry}\n" for entry in self._entries.values())