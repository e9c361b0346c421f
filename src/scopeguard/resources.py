"""Ready-made descriptors for common resource kinds.

These adapters cover locks, files and existing context managers. Anything else
is described with ``ResourceDescriptor`` directly.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager, AbstractContextManager
from dataclasses import dataclass
from operator import methodcaller
from pathlib import Path
from typing import IO, Any, Generic, Protocol, TypeVar

from scopeguard.descriptor import ResourceDescriptor

T = TypeVar("T")


class SupportsAcquireRelease(Protocol):
    def acquire(self, blocking: bool = ..., timeout: float = ...) -> bool: ...

    def release(self) -> None: ...


@dataclass(frozen=True, slots=True)
class EnteredContext(Generic[T]):
    """Handle of a resource backed by a context manager.

    ``value`` is what ``__enter__``/``__aenter__`` returned; ``manager`` is kept
    so the matching exit can run on release.
    """

    manager: Any
    value: T


def lock_resource(
    lock: SupportsAcquireRelease,
    *,
    name: str = "lock",
    timeout: float | None = None,
) -> ResourceDescriptor[SupportsAcquireRelease]:
    """Describe holding ``lock`` as a resource.

    The handle is the lock itself. With ``timeout`` set, failing to get the lock
    in time raises ``TimeoutError`` from the acquire, which callers see as
    ``AcquireError``. Only the unlock-on-exit contract is provided here; mutual
    exclusion is the lock's own job.
    """

    def acquire_lock() -> SupportsAcquireRelease:
        acquired = lock.acquire() if timeout is None else lock.acquire(timeout=timeout)
        if not acquired:
            msg = f"Timed out after {timeout} seconds waiting for '{name}'."
            raise TimeoutError(msg)
        return lock

    return ResourceDescriptor(acquire_lock, methodcaller("release"), name=name)


def async_lock_resource(
    lock: asyncio.Lock,
    *,
    name: str = "lock",
) -> ResourceDescriptor[asyncio.Lock]:
    """Describe holding an ``asyncio.Lock`` as an async resource."""

    async def acquire_lock() -> asyncio.Lock:
        await lock.acquire()
        return lock

    async def release_lock(handle: asyncio.Lock) -> None:
        handle.release()

    return ResourceDescriptor(acquire_lock, release_lock, name=name)


def file_resource(
    *,
    name: str = "file",
    encoding: str | None = None,
) -> ResourceDescriptor[IO[Any]]:
    """Describe an open file.

    Acquire takes ``(path, mode="r")`` and returns the file object; release
    closes it.
    """

    def open_file(path: str | Path, mode: str = "r") -> IO[Any]:
        if "b" in mode:
            return Path(path).open(mode)  # noqa: SIM115
        return Path(path).open(mode, encoding=encoding)  # noqa: SIM115

    return ResourceDescriptor(open_file, methodcaller("close"), name=name)


def context_manager_resource(
    factory: Callable[..., AbstractContextManager[T]],
    *,
    name: str | None = None,
) -> ResourceDescriptor[EnteredContext[T]]:
    """Adapt a context-manager factory into a descriptor.

    Acquire arguments are forwarded to ``factory``. The handle is an
    ``EnteredContext`` whose ``value`` is the entered value. Release runs
    ``__exit__`` with no exception, so a factory that swallows or raises on
    exit behaves as it would at the end of a ``with`` block.
    """

    def enter(*args: Any, **kwargs: Any) -> EnteredContext[T]:
        manager = factory(*args, **kwargs)
        return EnteredContext(manager=manager, value=manager.__enter__())

    def exit_(handle: EnteredContext[T]) -> None:
        handle.manager.__exit__(None, None, None)

    return ResourceDescriptor(enter, exit_, name=name or _callable_name(factory))


def async_context_manager_resource(
    factory: Callable[..., AbstractAsyncContextManager[T]],
    *,
    name: str | None = None,
) -> ResourceDescriptor[EnteredContext[T]]:
    """Adapt an async context-manager factory into an async descriptor."""

    async def enter(*args: Any, **kwargs: Any) -> EnteredContext[T]:
        manager = factory(*args, **kwargs)
        return EnteredContext(manager=manager, value=await manager.__aenter__())

    async def exit_(handle: EnteredContext[T]) -> None:
        await handle.manager.__aexit__(None, None, None)

    return ResourceDescriptor(enter, exit_, name=name or _callable_name(factory))


def _callable_name(factory: Callable[..., Any]) -> str:
    return getattr(factory, "__qualname__", None) or repr(factory)
