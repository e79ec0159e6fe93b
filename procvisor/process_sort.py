"""Start order of programs: dependencies first, then by priority."""

from __future__ import annotations

from procvisor.entry import Entry


class ProcessSorter:
    """Orders program entries by depends_on and priority."""

    def sort_program(self, program_configs: list[Entry]) -> list[Entry]:
        """Return the program entries in the order they should start.

        Programs taking part in depends_on relations come first, each after
        what it depends on; the rest follow by ascending priority (default
        999). Raises ValueError if the dependencies form a cycle.
        """
        programs = [c for c in program_configs if c.is_program()]
        graph = self._depends_graph(programs)
        involved = dict.fromkeys(
            name for prog, deps in graph.items() for name in (prog, *deps)
        )

        result = [
            config
            for prog in self._sort_depends(graph, involved)
            for config in programs
            if config.get_program_name() == prog
        ]
        independent = [c for c in programs if c.get_program_name() not in involved]
        independent.sort(key=lambda c: c.get_int("priority", 999))
        return result + independent

    @staticmethod
    def _depends_graph(programs: list[Entry]) -> dict[str, list[str]]:
        graph: dict[str, list[str]] = {}
        for config in programs:
            if not config.has_parameter("depends_on"):
                continue
            for dep in config.get_string("depends_on", "").split(","):
                dep = dep.strip()
                if dep:
                    graph.setdefault(config.get_program_name(), []).append(dep)
        return graph

    @staticmethod
    def _sort_depends(graph: dict[str, list[str]], involved: dict[str, None]) -> list[str]:
        order = [name for name in involved if name not in graph]
        finished = set(order)
        while len(finished) < len(involved):
            progressed = False
            for prog, deps in graph.items():
                if prog not in finished and all(d in finished for d in deps):
                    finished.add(prog)
                    order.append(prog)
                    progressed = True
            if not progressed:
                pending = sorted(p for p in graph if p not in finished)
                raise ValueError(f"circular depends_on among: {', '.join(pending)}")
        return order


def sort_program(configs: list[Entry]) -> list[Entry]:
    """Return the program entries in start order."""
    return ProcessSorter().sort_program(configs)