from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Mapping
from contextlib import AbstractContextManager, nullcontext
from enum import Enum
from types import TracebackType
from typing import Any, Generic, TypeVar

from typing_extensions import Self

from scopeguard.descriptor import HandleT, LockModeOption, ResourceDescriptor, validate_descriptor
from scopeguard.exceptions import (
    AcquireError,
    AsyncResourceInSyncContextError,
    GuardMovedError,
    ReleaseError,
    UseAfterCloseError,
)
from scopeguard.lock_mode import LockMode

R = TypeVar("R")

logger = logging.getLogger(__name__)


class GuardState(Enum):
    """Lifecycle state of a guard.

    ``OPEN`` is the only state in which the handle is reachable. The
    transitions ``OPEN -> CLOSED`` and ``OPEN -> MOVED`` are one-way.
    """

    OPEN = "open"
    """The guard owns a live handle and the obligation to release it."""

    CLOSED = "closed"
    """The handle was released (successfully or not) and is gone."""

    MOVED = "moved"
    """The handle and its release obligation were transferred to another guard."""


class Guard(Generic[HandleT]):
    """Own exactly one acquired resource handle and release it exactly once.

    Guards are produced by ``acquire``/``aacquire`` (or ``ResourceScope.acquire``)
    after a successful acquisition, so a guard never wraps a failed one. While
    the guard is open the handle is reachable through ``use`` and ``handle``.
    ``close`` releases the handle once; later calls are no-ops, so code that
    closes explicitly can still be closed again by a scope on exit.

    Guards are context managers:

    .. code-block:: python

        with acquire(files, "report.txt", "w") as guard:
            guard.use(lambda f: f.write("done"))

    """

    __slots__ = (
        "__weakref__",
        "_async_lock",
        "_descriptor",
        "_handle",
        "_lock_mode",
        "_owner",
        "_state",
        "_thread_lock",
    )

    def __init__(
        self,
        descriptor: ResourceDescriptor[HandleT],
        handle: HandleT,
        *,
        lock_mode: LockMode = LockMode.THREAD,
    ) -> None:
        self._descriptor = descriptor
        self._handle: HandleT | None = handle
        self._state = GuardState.OPEN
        self._lock_mode = lock_mode
        self._thread_lock = threading.Lock() if lock_mode is LockMode.THREAD else None
        self._async_lock: asyncio.Lock | None = None
        self._owner: object | None = None

    @property
    def descriptor(self) -> ResourceDescriptor[HandleT]:
        """Descriptor the handle was acquired through."""
        return self._descriptor

    @property
    def name(self) -> str:
        """Name of the descriptor, used in logs and error messages."""
        return self._descriptor.name

    @property
    def state(self) -> GuardState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_open(self) -> bool:
        """Whether the guard still owns a live handle."""
        return self._state is GuardState.OPEN

    @property
    def lock_mode(self) -> LockMode:
        """How the close edge is serialized."""
        return self._lock_mode

    @property
    def owner(self) -> object | None:
        """Scope currently holding the guard, or ``None`` if the caller owns it."""
        return self._owner

    @property
    def handle(self) -> HandleT:
        """Return the live handle.

        Raises:
            UseAfterCloseError: If the guard is closed.
            GuardMovedError: If ownership was transferred away.

        """
        self._ensure_open()
        return self._handle  # type: ignore[return-value]

    def use(self, operation: Callable[..., R], /, *args: Any, **kwargs: Any) -> R:
        """Apply ``operation`` to the handle and return its result unchanged.

        Extra arguments are passed after the handle. Errors raised by the
        operation propagate untouched. Awaitables are returned as-is.

        Raises:
            UseAfterCloseError: If the guard is closed.
            GuardMovedError: If ownership was transferred away.

        """
        return operation(self.handle, *args, **kwargs)

    def close(self) -> None:
        """Release the handle if the guard is still open.

        The guard is closed afterwards even when the release fails; the failure
        is raised as ``ReleaseError`` chained from the original exception.

        Raises:
            ReleaseError: If the descriptor's release failed.
            AsyncResourceInSyncContextError: If the release must be awaited.

        """
        if self._state is not GuardState.OPEN:
            return
        if self._descriptor.is_async_release:
            msg = f"Resource '{self.name}' has an async release. Use 'await guard.aclose()'."
            raise AsyncResourceInSyncContextError(msg)

        with self._sync_lock():
            handle = self._take_handle()
            if handle is _NOT_OPEN:
                return
            try:
                self._descriptor.release(handle)
            except ReleaseError:
                logger.warning("Failed to release resource %r", self.name)
                raise
            except Exception as error:
                logger.warning("Failed to release resource %r", self.name)
                raise ReleaseError(self.name) from error
        logger.debug("Released resource %r", self.name)

    async def aclose(self) -> None:
        """Release the handle, awaiting the release when it is asynchronous.

        Same semantics as ``close``. Sync releases are called directly.

        Raises:
            ReleaseError: If the descriptor's release failed.

        """
        if self._state is not GuardState.OPEN:
            return

        if self._lock_mode is LockMode.ASYNC:
            if self._async_lock is None:
                self._async_lock = asyncio.Lock()
            async with self._async_lock:
                await self._release_async()
        else:
            await self._release_async()

    def transfer_ownership(self) -> Guard[HandleT]:
        """Move the handle and its release obligation to a new guard.

        The source guard becomes ``MOVED``: it can no longer expose the handle or
        release it, and scopes still holding it skip it on exit. Use this to
        hand a resource to a longer-lived owner without double-closing or
        leaking it.

        Examples:
            .. code-block:: python

                with ResourceScope() as request_scope:
                    guard = request_scope.acquire(connections, dsn)
                    app_scope.register(guard.transfer_ownership())

        Raises:
            UseAfterCloseError: If the guard is closed.
            GuardMovedError: If ownership was already transferred away.

        """
        with self._sync_lock():
            self._ensure_open()
            handle = self._handle
            self._handle = None
            self._state = GuardState.MOVED
        logger.debug("Transferred ownership of resource %r", self.name)
        return Guard(self._descriptor, handle, lock_mode=self._lock_mode)  # type: ignore[arg-type]

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"Guard(name={self.name!r}, state={self._state.value})"

    async def _release_async(self) -> None:
        with self._sync_lock():
            handle = self._take_handle()
        if handle is _NOT_OPEN:
            return
        try:
            if self._descriptor.is_async_release:
                await self._descriptor.release(handle)  # type: ignore[misc]
            else:
                self._descriptor.release(handle)
        except ReleaseError:
            logger.warning("Failed to release resource %r", self.name)
            raise
        except Exception as error:
            logger.warning("Failed to release resource %r", self.name)
            raise ReleaseError(self.name) from error
        logger.debug("Released resource %r", self.name)

    def _take_handle(self) -> Any:
        # The only place an open guard becomes closed.
        if self._state is not GuardState.OPEN:
            return _NOT_OPEN
        handle = self._handle
        self._handle = None
        self._state = GuardState.CLOSED
        return handle

    def _sync_lock(self) -> AbstractContextManager[Any]:
        if self._thread_lock is None:
            return nullcontext()
        return self._thread_lock

    def _attach(self, owner: object) -> None:
        self._owner = owner

    def _ensure_open(self) -> None:
        if self._state is GuardState.MOVED:
            raise GuardMovedError(self.name)
        if self._state is GuardState.CLOSED:
            raise UseAfterCloseError(self.name)


_NOT_OPEN: Any = object()


def acquire(
    descriptor: ResourceDescriptor[HandleT],
    /,
    *args: Any,
    **kwargs: Any,
) -> Guard[HandleT]:
    """Acquire a resource and return an open guard owning its handle.

    Arguments after the descriptor are forwarded to its ``acquire`` callable.
    When acquisition fails no guard exists and there is nothing to release.

    Raises:
        AcquireError: If the descriptor's acquire failed. The original exception
            is available as ``__cause__``.
        AsyncResourceInSyncContextError: If the acquire must be awaited.

    """
    return acquire_guard(descriptor, args, kwargs)


async def aacquire(
    descriptor: ResourceDescriptor[HandleT],
    /,
    *args: Any,
    **kwargs: Any,
) -> Guard[HandleT]:
    """Asynchronously acquire a resource and return an open guard.

    Same semantics as ``acquire``; sync acquire callables are called directly.
    Cancellation while awaiting the acquisition propagates unchanged.
    """
    return await aacquire_guard(descriptor, args, kwargs)


def acquire_guard(
    descriptor: ResourceDescriptor[HandleT],
    args: tuple[Any, ...],
    kwargs: Mapping[str, Any],
    *,
    default_lock_mode: LockModeOption = "auto",
) -> Guard[HandleT]:
    validate_descriptor(descriptor)
    if descriptor.is_async_acquire:
        msg = f"Resource '{descriptor.name}' has an async acquire. Use 'await aacquire(...)'."
        raise AsyncResourceInSyncContextError(msg)

    try:
        handle = descriptor.acquire(*args, **kwargs)
    except AcquireError:
        logger.debug("Failed to acquire resource %r", descriptor.name)
        raise
    except Exception as error:
        logger.debug("Failed to acquire resource %r", descriptor.name)
        raise AcquireError(descriptor.name) from error

    logger.debug("Acquired resource %r", descriptor.name)
    return Guard(
        descriptor,
        handle,  # type: ignore[arg-type]
        lock_mode=descriptor.resolve_lock_mode(default_lock_mode),
    )


async def aacquire_guard(
    descriptor: ResourceDescriptor[HandleT],
    args: tuple[Any, ...],
    kwargs: Mapping[str, Any],
    *,
    default_lock_mode: LockModeOption = "auto",
) -> Guard[HandleT]:
    validate_descriptor(descriptor)
    try:
        if descriptor.is_async_acquire:
            handle = await descriptor.acquire(*args, **kwargs)  # type: ignore[misc]
        else:
            handle = descriptor.acquire(*args, **kwargs)
    except AcquireError:
        logger.debug("Failed to acquire resource %r", descriptor.name)
        raise
    except Exception as error:
        logger.debug("Failed to acquire resource %r", descriptor.name)
        raise AcquireError(descriptor.name) from error

    logger.debug("Acquired resource %r", descriptor.name)
    return Guard(
        descriptor,
        handle,
        lock_mode=descriptor.resolve_lock_mode(default_lock_mode),
    )
