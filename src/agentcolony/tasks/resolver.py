"""Claimability and cycle detection over the task dependency graph.

Pure: works on a snapshot of tasks keyed by id and never touches the store.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from agentcolony.errors import InvalidDependency
from agentcolony.tasks.schema import AUTO_ASSIGN, Task, TaskStatus


class DependencyResolver:
    """Answers dependency questions against one snapshot of the task table."""

    def __init__(self, tasks: Mapping[str, Task]) -> None:
        self._tasks = tasks

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> DependencyResolver:
        return cls({task.id: task for task in tasks})

    @staticmethod
    def assignment_admits(task: Task, agent_id: str) -> bool:
        """Unset, "auto", or the agent itself."""
        return task.assigned_to in (None, AUTO_ASSIGN, agent_id)

    def unmet_dependencies(self, task: Task) -> list[str]:
        """Dependencies that are missing or not yet completed, in declared order."""
        unmet = []
        for dep_id in task.dependencies:
            dep = self._tasks.get(dep_id)
            if dep is None or dep.status is not TaskStatus.COMPLETED:
                unmet.append(dep_id)
        return unmet

    def claimable(self, task: Task, agent_id: str) -> bool:
        return (
            task.status is TaskStatus.PENDING
            and self.assignment_admits(task, agent_id)
            and not self.unmet_dependencies(task)
        )

    def find_cycle(self, task_id: str, dependencies: Iterable[str]) -> list[str] | None:
        """Search for a path from any declared dependency back to ``task_id``.

        Returns:
            The cycle as a list of ids starting and ending with ``task_id``,
            or None if adding the edges keeps the graph acyclic.
        """
        visited: set[str] = set()
        for start in dependencies:
            if start == task_id:
                return [task_id, task_id]
            path = self._path_to(start, task_id, visited)
            if path is not None:
                return [task_id, *path]
        return None

    def _path_to(self, start: str, target: str, visited: set[str]) -> list[str] | None:
        # Iterative DFS; each stack frame keeps the path that reached it.
        stack: list[tuple[str, list[str]]] = [(start, [start])]
        while stack:
            node, path = stack.pop()
            if node == target:
                return path
            if node in visited:
                continue
            visited.add(node)
            task = self._tasks.get(node)
            if task is None:
                continue
            for dep_id in reversed(task.dependencies):
                if dep_id not in visited:
                    stack.append((dep_id, [*path, dep_id]))
        return None

    def check_new_task(self, task_id: str, dependencies: list[str]) -> None:
        """Validate the dependency set of a task about to be created.

        Raises:
            InvalidDependency: Self-dependency, unknown ids, or a cycle
        """
        if task_id in dependencies:
            raise InvalidDependency(f"task '{task_id}' cannot depend on itself", [task_id, task_id])

        missing = [dep_id for dep_id in dependencies if dep_id not in self._tasks]
        if missing:
            raise InvalidDependency(f"unknown dependencies: {', '.join(missing)}")

        cycle = self.find_cycle(task_id, dependencies)
        if cycle is not None:
            raise InvalidDependency(f"dependency cycle: {' -> '.join(cycle)}", cycle)
