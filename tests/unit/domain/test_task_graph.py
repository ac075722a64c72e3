from uuid import uuid4

from stepwise.domain.entities import PlanTask
from stepwise.domain.services import creates_cycle, topological_order


def make_tasks(count: int) -> list[PlanTask]:
    return [PlanTask(order=i + 1, title=f"t{i + 1}") for i in range(count)]


class TestTopologicalOrder:
    def test_independent_tasks_keep_insertion_order(self):
        tasks = make_tasks(3)
        report = topological_order(tasks)
        assert report.order == [t.id for t in tasks]
        assert report.is_valid

    def test_dependencies_come_first(self):
        a, b, c = make_tasks(3)
        a.dependencies = [c.id]
        report = topological_order([a, b, c])
        assert report.order == [b.id, c.id, a.id]

    def test_cycle_is_reported(self):
        a, b, c = make_tasks(3)
        a.dependencies = [b.id]
        b.dependencies = [a.id]
        report = topological_order([a, b, c])
        assert report.order == [c.id]
        assert set(report.cyclic) == {a.id, b.id}
        assert not report.is_valid

    def test_missing_dependency_is_reported(self):
        (a,) = make_tasks(1)
        ghost = uuid4()
        a.dependencies = [ghost]
        report = topological_order([a])
        assert report.missing == [(a.id, ghost)]
        assert report.order == [a.id]


class TestCreatesCycle:
    def test_self_dependency(self):
        (a,) = make_tasks(1)
        assert creates_cycle([a], a.id, [a.id])

    def test_transitive_cycle(self):
        a, b, c = make_tasks(3)
        b.dependencies = [a.id]
        c.dependencies = [b.id]
        assert creates_cycle([a, b, c], a.id, [c.id])

    def test_diamond_is_fine(self):
        a, b, c = make_tasks(3)
        b.dependencies = [a.id]
        assert not creates_cycle([a, b, c], c.id, [a.id, b.id])
