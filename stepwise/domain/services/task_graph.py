"""Dependency graph checks over a plan's tasks."""

from collections import deque
from collections.abc import Iterable
from uuid import UUID

from pydantic import BaseModel

from stepwise.domain.entities.task import PlanTask


class GraphReport(BaseModel):
    order: list[UUID]
    missing: list[tuple[UUID, UUID]] = []  # (task, unknown dependency)
    cyclic: list[UUID] = []

    @property
    def is_valid(self) -> bool:
        return not self.missing and not self.cyclic


def topological_order(tasks: Iterable[PlanTask]) -> GraphReport:
    """Kahn's algorithm, seeding and draining in insertion order.

    Edges pointing at unknown tasks are reported and ignored for ordering.
    Tasks left unvisited when the queue drains sit on a cycle.
    """
    task_list = list(tasks)
    known = {t.id for t in task_list}
    in_degree: dict[UUID, int] = {t.id: 0 for t in task_list}
    dependents: dict[UUID, list[UUID]] = {t.id: [] for t in task_list}
    missing: list[tuple[UUID, UUID]] = []

    for task in task_list:
        for dep in task.dependencies:
            if dep not in known:
                missing.append((task.id, dep))
                continue
            in_degree[task.id] += 1
            dependents[dep].append(task.id)

    queue = deque(t.id for t in task_list if in_degree[t.id] == 0)
    order: list[UUID] = []
    while queue:
        current = queue.popleft()
        order.append(current)
        for dependent in dependents[current]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    visited = set(order)
    cyclic = [t.id for t in task_list if t.id not in visited]
    return GraphReport(order=order, missing=missing, cyclic=cyclic)


def creates_cycle(tasks: Iterable[PlanTask], task_id: UUID, dependencies: Iterable[UUID]) -> bool:
    """Check whether giving `task_id` these dependencies closes a cycle.

    Walks from each new dependency through existing edges looking for `task_id`.
    """
    edges = {t.id: list(t.dependencies) for t in tasks}
    edges[task_id] = list(dependencies)

    stack = list(edges[task_id])
    seen: set[UUID] = set()
    while stack:
        node = stack.pop()
        if node == task_id:
            return True
        if node in seen:
            continue
        seen.add(node)
        stack.extend(edges.get(node, []))
    return False
