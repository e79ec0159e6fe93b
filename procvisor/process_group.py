"""Mapping between programs and the groups they belong to."""

from __future__ import annotations

from typing import Callable


class ProcessGroup:
    """Keeps the group of every program."""

    def __init__(self) -> None:
        self._groups: dict[str, str] = {}

    def clone(self) -> ProcessGroup:
        """Return an independent copy."""
        new = ProcessGroup()
        new._groups = dict(self._groups)
        return new

    def sub(self, other: ProcessGroup) -> tuple[list[str], list[str], list[str]]:
        """Compare with other: return (added, changed, removed) groups."""
        this_groups = self.get_all_group()
        other_groups = other.get_all_group()
        added = [g for g in this_groups if g not in other_groups]
        removed = [g for g in other_groups if g not in this_groups]
        changed = []
        for group in this_groups:
            mine = self.get_all_process(group)
            theirs = other.get_all_process(group)
            if theirs and sorted(mine) != sorted(theirs):
                changed.append(group)
        return added, changed, removed

    def add(self, group: str, proc_name: str) -> None:
        """Put a process into a group."""
        self._groups[proc_name] = group

    def remove(self, proc_name: str) -> None:
        """Forget a process."""
        self._groups.pop(proc_name, None)

    def get_all_group(self) -> list[str]:
        """Return every group name once."""
        return list(dict.fromkeys(self._groups.values()))

    def get_all_process(self, group: str) -> list[str]:
        """Return the processes of a group."""
        return [proc for proc, g in self._groups.items() if g == group]

    def in_group(self, proc_name: str, group: str) -> bool:
        """Tell whether a process belongs to a group."""
        return self._groups.get(proc_name) == group

    def for_each_process(self, proc_func: Callable[[str, str], None]) -> None:
        """Call proc_func(group, proc_name) for every process."""
        for proc, group in list(self._groups.items()):
            proc_func(group, proc)

    def get_group(self, proc_name: str, def_group: str) -> str:
        """Return the group of a process, assigning def_group if it has none."""
        return self._groups.setdefault(proc_name, def_group)

    def __str__(self) -> str:
        return "".join(
            f"{group}:{','.join(self.get_all_process(group))};"
            for group in self.get_all_group()
        )