"""
Runtime package: the boundary to an external run loop.

Architecture:
- Executes the action descriptors of machine states
- Resolves named actions and delays through explicit registries
- Forwards built-in descriptors to a dispatcher

Cross-cutting:
- No timers or queues; scheduling belongs to the caller
"""

from .executor import ActionExecutor

__all__ = ["ActionExecutor"]
