from stepwise.infrastructure.providers.scripted_provider import ScriptedProvider

__all__ = ["ScriptedProvider"]
