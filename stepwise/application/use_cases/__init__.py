from stepwise.application.use_cases.manage_plan import ManagePlan

__all__ = ["ManagePlan"]
