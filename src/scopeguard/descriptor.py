from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import KW_ONLY, dataclass, field
from typing import Any, Generic, Literal, TypeAlias, TypeVar

from scopeguard.lock_mode import LockMode

HandleT = TypeVar("HandleT")

AcquireFunction: TypeAlias = Callable[..., HandleT] | Callable[..., Awaitable[HandleT]]
"""A callable that opens a resource and returns its handle."""

ReleaseFunction: TypeAlias = Callable[[HandleT], None] | Callable[[HandleT], Awaitable[None]]
"""A callable that releases a handle previously returned by an acquire function."""

LockModeOption: TypeAlias = LockMode | Literal["auto"]
"""A lock mode, or ``"auto"`` to derive it from the descriptor."""


@dataclass(frozen=True)
class ResourceDescriptor(Generic[HandleT]):
    """Describe how one kind of resource is acquired and released.

    A descriptor is supplied once per resource kind (file, lock, socket,
    arena) and never holds a handle itself. Handles live in the guards that
    ``acquire`` produces.

    Examples:
        .. code-block:: python

            sockets = ResourceDescriptor(
                lambda address: socket.create_connection(address),
                lambda sock: sock.close(),
                name="socket",
            )

            with acquire(sockets, ("example.com", 80)) as guard:
                guard.use(lambda sock: sock.sendall(b"ping"))

    """

    acquire: AcquireFunction[HandleT]
    """Open the resource. Positional and keyword arguments are forwarded."""
    release: ReleaseFunction[HandleT]
    """Release a handle. Called at most once per acquired handle."""
    _: KW_ONLY
    name: str = "resource"
    """A label used in logs, reprs and error messages."""
    lock_mode: LockModeOption = "auto"
    """How guards of this kind serialize their close transition."""

    is_async_acquire: bool = field(init=False)
    """True if ``acquire`` must be awaited."""
    is_async_release: bool = field(init=False)
    """True if ``release`` must be awaited."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "is_async_acquire", inspect.iscoroutinefunction(self.acquire))
        object.__setattr__(self, "is_async_release", inspect.iscoroutinefunction(self.release))

    @property
    def is_async(self) -> bool:
        """True if either side of the resource is asynchronous."""
        return self.is_async_acquire or self.is_async_release

    def resolve_lock_mode(self, default: LockModeOption = "auto") -> LockMode:
        """Return the concrete lock mode for guards of this descriptor.

        The descriptor's own mode wins. ``default`` is consulted when the
        descriptor is ``"auto"``; when both are ``"auto"`` async descriptors get
        ``LockMode.ASYNC`` and sync ones ``LockMode.THREAD``.
        """
        for candidate in (self.lock_mode, default):
            if isinstance(candidate, LockMode):
                return candidate
        if self.is_async:
            return LockMode.ASYNC
        return LockMode.THREAD

    def __repr__(self) -> str:
        return f"ResourceDescriptor(name={self.name!r}, is_async={self.is_async})"


def validate_descriptor(descriptor: Any) -> ResourceDescriptor[Any]:
    if not isinstance(descriptor, ResourceDescriptor):
        msg = f"Expected a ResourceDescriptor, got {descriptor!r}."
        raise TypeError(msg)
    return descriptor
