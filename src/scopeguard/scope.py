from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Callable
from contextvars import ContextVar, Token
from types import TracebackType
from typing import Any, TypeVar, cast, overload

from typing_extensions import Self

from scopeguard.descriptor import HandleT, LockModeOption, ResourceDescriptor
from scopeguard.exceptions import (
    AggregateReleaseError,
    AsyncResourceInSyncContextError,
    InvalidRegistrationError,
    NoActiveScopeError,
    ReleaseError,
    ScopeExitedError,
)
from scopeguard.guard import Guard, GuardState, aacquire_guard, acquire_guard

F = TypeVar("F", bound=Callable[..., Any])

logger = logging.getLogger(__name__)

_current_scope: ContextVar[ResourceScope | None] = ContextVar(
    "scopeguard_current_scope",
    default=None,
)


class ResourceScope:
    """Track the guards opened within one extent and release them on exit.

    Guards are kept in acquisition order and released newest-first when the
    scope exits, whatever the reason for leaving the extent. A failed release
    does not stop the unwind: every remaining guard is still closed and all
    failures are reported together as ``AggregateReleaseError``.

    A scope is single-use. ``exit`` is idempotent, so an explicit early exit can
    be followed by the automatic one at the end of a ``with`` block.

    Examples:
        .. code-block:: python

            with ResourceScope() as scope:
                source = scope.acquire(files, "in.txt")
                target = scope.acquire(files, "out.txt", "w")
                target.use(lambda f: f.write(source.use(lambda f: f.read())))

        If opening ``out.txt`` fails, ``in.txt`` is still closed on the way out.

    """

    def __init__(
        self,
        *,
        name: str | None = None,
        default_lock_mode: LockModeOption = "auto",
    ) -> None:
        self._name = name
        self._default_lock_mode = default_lock_mode
        self._guards: list[Guard[Any]] = []
        self._exited = False
        self._entered_sync = False
        self._tokens: list[Token[ResourceScope | None]] = []

    @classmethod
    def enter(
        cls,
        *,
        name: str | None = None,
        default_lock_mode: LockModeOption = "auto",
    ) -> Self:
        """Begin a new, empty scope.

        The returned scope is not made current; use it as a context manager
        for that, or thread it through the extent and call ``exit`` on every
        exit path.
        """
        scope = cls(name=name, default_lock_mode=default_lock_mode)
        logger.debug("Entered scope %r", scope.name)
        return scope

    @property
    def name(self) -> str:
        """Label used in logs and reprs."""
        return self._name or f"scope-{id(self):x}"

    @property
    def guards(self) -> tuple[Guard[Any], ...]:
        """Registered guards in acquisition order."""
        return tuple(self._guards)

    @property
    def exited(self) -> bool:
        """Whether ``exit`` or ``aexit`` has run."""
        return self._exited

    def __len__(self) -> int:
        return len(self._guards)

    def register(self, guard: Guard[HandleT]) -> Guard[HandleT]:
        """Append an open guard to the scope and return it.

        Raises:
            ScopeExitedError: If the scope was already exited.
            InvalidRegistrationError: If the guard is not open or already belongs
                to a scope.

        """
        self._ensure_active()
        if guard.state is not GuardState.OPEN:
            msg = f"Cannot register guard for '{guard.name}' in state '{guard.state.value}'."
            raise InvalidRegistrationError(msg)
        if guard.owner is self:
            msg = f"Guard for '{guard.name}' is already registered with scope '{self.name}'."
            raise InvalidRegistrationError(msg)
        if guard.owner is not None:
            owner = cast("ResourceScope", guard.owner)
            msg = (
                f"Guard for '{guard.name}' is already owned by scope '{owner.name}'. "
                "Use 'guard.transfer_ownership()' to move it."
            )
            raise InvalidRegistrationError(msg)
        self._ensure_releasable(guard.descriptor)
        self._append(guard)
        return guard

    def acquire(
        self,
        descriptor: ResourceDescriptor[HandleT],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> Guard[HandleT]:
        """Acquire a resource and register its guard in one step.

        If the acquisition fails nothing is registered and ``AcquireError``
        propagates; guards registered earlier stay in the scope and are released
        when it exits.

        Raises:
            ScopeExitedError: If the scope was already exited.
            AcquireError: If the descriptor's acquire failed.
            AsyncResourceInSyncContextError: If the scope was entered with a
                plain ``with`` and the resource needs an async release.

        """
        self._ensure_active()
        self._ensure_releasable(descriptor)
        guard = acquire_guard(
            descriptor,
            args,
            kwargs,
            default_lock_mode=self._default_lock_mode,
        )
        self._append(guard)
        return guard

    async def aacquire(
        self,
        descriptor: ResourceDescriptor[HandleT],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> Guard[HandleT]:
        """Asynchronously acquire a resource and register its guard."""
        self._ensure_active()
        self._ensure_releasable(descriptor)
        guard = await aacquire_guard(
            descriptor,
            args,
            kwargs,
            default_lock_mode=self._default_lock_mode,
        )
        self._append(guard)
        return guard

    def exit(self) -> None:
        """Close every registered guard, newest first.

        Calling ``exit`` again after the first call does nothing.

        Raises:
            AggregateReleaseError: If one or more releases failed. Every guard
                was still closed.
            AsyncResourceInSyncContextError: If an open guard needs an async
                release. Nothing is released and the scope stays usable for
                ``aexit``.

        """
        if self._exited:
            return
        pending_async = [
            guard.name
            for guard in self._guards
            if guard.is_open and guard.descriptor.is_async_release
        ]
        if pending_async:
            msg = (
                f"Scope '{self.name}' holds resources with async release "
                f"({', '.join(pending_async)}). Use 'await scope.aexit()' or 'async with'."
            )
            raise AsyncResourceInSyncContextError(msg)

        self._exited = True
        errors: list[ReleaseError] = []
        interruption: BaseException | None = None
        while self._guards:
            guard = self._guards.pop()
            try:
                guard.close()
            except ReleaseError as error:
                errors.append(error)
            except BaseException as error:
                if interruption is None:
                    interruption = error
        self._finish(errors, interruption)

    async def aexit(self) -> None:
        """Close every registered guard newest first, awaiting async releases.

        Same semantics as ``exit``.

        Raises:
            AggregateReleaseError: If one or more releases failed.

        """
        if self._exited:
            return
        self._exited = True
        errors: list[ReleaseError] = []
        interruption: BaseException | None = None
        while self._guards:
            guard = self._guards.pop()
            try:
                await guard.aclose()
            except ReleaseError as error:
                errors.append(error)
            except BaseException as error:
                if interruption is None:
                    interruption = error
        self._finish(errors, interruption)

    def __enter__(self) -> Self:
        self._ensure_active()
        self._entered_sync = True
        self._tokens.append(_current_scope.set(self))
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        _current_scope.reset(self._tokens.pop())
        self.exit()

    async def __aenter__(self) -> Self:
        self._ensure_active()
        self._tokens.append(_current_scope.set(self))
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        _current_scope.reset(self._tokens.pop())
        await self.aexit()

    def __repr__(self) -> str:
        return (
            f"ResourceScope(name={self.name!r}, guards={len(self._guards)}, "
            f"exited={self._exited})"
        )

    def _finish(self, errors: list[ReleaseError], interruption: BaseException | None) -> None:
        logger.debug("Exited scope %r with %d release error(s)", self.name, len(errors))
        if interruption is not None and errors:
            # The interruption wins; the release errors travel as its context.
            try:
                raise AggregateReleaseError(errors)
            except AggregateReleaseError:
                raise interruption  # noqa: B904
        if interruption is not None:
            raise interruption
        if errors:
            raise AggregateReleaseError(errors)

    def _append(self, guard: Guard[Any]) -> None:
        guard._attach(self)  # noqa: SLF001
        self._guards.append(guard)

    def _ensure_releasable(self, descriptor: ResourceDescriptor[Any]) -> None:
        # A plain `with` can only run `exit`, which cannot await a release.
        if self._entered_sync and descriptor.is_async_release:
            msg = (
                f"Resource '{descriptor.name}' has an async release and scope "
                f"'{self.name}' was entered with 'with'. Use 'async with'."
            )
            raise AsyncResourceInSyncContextError(msg)

    def _ensure_active(self) -> None:
        if self._exited:
            msg = f"Scope '{self.name}' was already exited."
            raise ScopeExitedError(msg)


def current_scope() -> ResourceScope:
    """Return the innermost scope entered with ``with``/``async with``.

    The current scope is tracked per thread and per asyncio task.

    Raises:
        NoActiveScopeError: If no scope is active in the running context.

    """
    scope = _current_scope.get()
    if scope is None:
        msg = "No resource scope is active. Use 'with ResourceScope():' or '@scoped'."
        raise NoActiveScopeError(msg)
    return scope


@overload
def scoped(func: F, /) -> F: ...


@overload
def scoped(
    *,
    name: str | None = None,
    default_lock_mode: LockModeOption = "auto",
) -> Callable[[F], F]: ...


def scoped(
    func: F | None = None,
    /,
    *,
    name: str | None = None,
    default_lock_mode: LockModeOption = "auto",
) -> F | Callable[[F], F]:
    """Run each call of the decorated function inside a fresh scope.

    Inside the call the scope is reachable with ``current_scope()``. Sync and
    async functions are both supported; async functions exit their scope with
    ``aexit``.

    Examples:
        .. code-block:: python

            @scoped
            def copy(source_path: str, target_path: str) -> None:
                scope = current_scope()
                source = scope.acquire(files, source_path)
                target = scope.acquire(files, target_path, "w")
                ...

    """

    def decorator(wrapped: F) -> F:
        scope_name = name or wrapped.__qualname__

        if inspect.iscoroutinefunction(wrapped):

            @functools.wraps(wrapped)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                async with ResourceScope(name=scope_name, default_lock_mode=default_lock_mode):
                    return await wrapped(*args, **kwargs)

            return cast("F", async_wrapper)

        @functools.wraps(wrapped)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with ResourceScope(name=scope_name, default_lock_mode=default_lock_mode):
                return wrapped(*args, **kwargs)

        return cast("F", wrapper)

    if func is None:
        return decorator
    return decorator(func)
