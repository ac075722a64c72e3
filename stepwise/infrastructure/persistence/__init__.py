from stepwise.infrastructure.persistence.atomic_io import FileAtomicStorage, atomic_write
from stepwise.infrastructure.persistence.json_plan_repo import JsonPlanRepo

__all__ = ["FileAtomicStorage", "JsonPlanRepo", "atomic_write"]
