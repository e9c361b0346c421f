from __future__ import annotations

from enum import Enum


class LockMode(Enum):
    """Select how a guard serializes its open-to-closed transition.

    Use these values for descriptor-level ``lock_mode`` or the scope-level
    ``default_lock_mode``. Both also accept ``"auto"``: scopeguard maps
    ``"auto"`` to async locks when the descriptor is asynchronous and to
    thread locks otherwise.

    Locking only protects against a stray concurrent ``close``. Guards and
    scopes are still meant to be used by a single owner at a time.
    """

    THREAD = "thread"
    """Guard the close transition with ``threading.Lock``."""

    ASYNC = "async"
    """Guard the close transition with ``asyncio.Lock`` in ``aclose``."""

    NONE = "none"
    """Rely on the state check alone."""
