from stepwise.domain.services.task_graph import GraphReport, creates_cycle, topological_order

__all__ = ["GraphReport", "creates_cycle", "topological_order"]
