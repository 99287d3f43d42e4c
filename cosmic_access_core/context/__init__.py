"""Context management for operations and actor attribution."""

from .actor_context import ActorContext, actor_context
from .operation_context import OperationContext, OperationHandler, operation

__all__ = [
    "ActorContext",
    "actor_context",
    "operation",
    "OperationContext",
    "OperationHandler",
]
