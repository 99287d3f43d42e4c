"""
Actor context management for audit attribution.

The HTTP layer sets the acting user once per request; token creation,
revocation and activation read it to fill created_by/updated_by/revoked_by
when the caller does not pass an explicit actor.
"""

import threading
from contextlib import contextmanager
from typing import Generator, Optional

from ..exceptions import ErrorCode, ValidationError
from ..utils.logger import get_logger


class ActorContext:
    """Holds the current actor id in thread-local storage."""

    _thread_local = threading.local()

    @classmethod
    def set_current_actor(cls, actor_id: str) -> None:
        """
        Set the current actor id for the execution context.

        Raises:
            ValidationError: If actor_id is empty or not a string
        """
        if not actor_id or not isinstance(actor_id, str) or not actor_id.strip():
            raise ValidationError(
                "actor_id must be a non-empty string",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="actor_id",
                value=actor_id,
            )

        cls._thread_local.actor_id = actor_id.strip()
        get_logger().debug(f"Current actor set to: {actor_id}")

    @classmethod
    def get_current_actor_id(cls) -> Optional[str]:
        return getattr(cls._thread_local, "actor_id", None)

    @classmethod
    def clear_current_actor(cls) -> None:
        if hasattr(cls._thread_local, "actor_id"):
            delattr(cls._thread_local, "actor_id")

    @classmethod
    def resolve(cls, actor_id: Optional[str] = None) -> Optional[str]:
        """Return the explicit actor if given, else the one from context."""
        return actor_id or cls.get_current_actor_id()


@contextmanager
def actor_context(actor_id: str) -> Generator[None, None, None]:
    """
    Set the current actor for the duration of the block.

    The previous actor, if any, is restored on exit.
    """
    previous_actor = ActorContext.get_current_actor_id()
    ActorContext.set_current_actor(actor_id)
    try:
        yield
    finally:
        if previous_actor:
            ActorContext.set_current_actor(previous_actor)
        else:
            ActorContext.clear_current_actor()
