from scopeguard.integrations.pytest_plugin.plugin import resource_scope

__all__ = ["resource_scope"]
