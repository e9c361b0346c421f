from __future__ import annotations


class ScopeGuardError(Exception):
    """Represent a base class for all scopeguard-specific failures.

    Catch this type when you want to handle any scopeguard error path without
    matching each concrete exception class individually. Errors raised by the
    resource back-ends themselves (for example ``OSError`` from a read inside
    ``Guard.use``) are never wrapped and do not derive from this class.
    """


class AcquireError(ScopeGuardError):
    """Signal that a resource could not be acquired.

    Raised by ``acquire``/``aacquire`` and ``ResourceScope.acquire`` when the
    descriptor's ``acquire`` callable fails. The underlying failure is kept as
    ``__cause__``. No ``Guard`` exists for a failed acquisition, so there is
    nothing to release.

    Back-ends may raise ``AcquireError`` themselves; it is then propagated
    unchanged.
    """

    def __init__(self, descriptor_name: str, message: str | None = None) -> None:
        self.descriptor_name = descriptor_name
        super().__init__(message or f"Failed to acquire resource '{descriptor_name}'.")


class UseAfterCloseError(ScopeGuardError):
    """Signal an operation on a guard that no longer owns its resource.

    Raised by ``Guard.use``, ``Guard.handle`` and ``Guard.transfer_ownership``
    once the guard was closed. This always indicates a logic error in the
    calling code and is not expected in correct programs.

    Typical fix is to keep resource usage inside the ``with`` block (or before
    the explicit ``close``/``exit`` call) that owns the guard.
    """

    def __init__(self, descriptor_name: str, message: str | None = None) -> None:
        self.descriptor_name = descriptor_name
        super().__init__(
            message or f"Resource '{descriptor_name}' was used after its guard was closed.",
        )


class GuardMovedError(UseAfterCloseError):
    """Signal an operation on a guard whose ownership was transferred.

    Raised instead of the more generic ``UseAfterCloseError`` when the guard
    was the source of ``Guard.transfer_ownership``. Use the guard returned by
    the transfer instead.
    """

    def __init__(self, descriptor_name: str) -> None:
        super().__init__(
            descriptor_name,
            f"Ownership of resource '{descriptor_name}' was transferred to another guard.",
        )


class ReleaseError(ScopeGuardError):
    """Signal that a resource failed to release.

    Raised by ``Guard.close``/``Guard.aclose``; collected by
    ``ResourceScope.exit`` into ``AggregateReleaseError``. The guard is
    considered closed afterwards and its handle is no longer reachable. The
    underlying failure is kept as ``__cause__``.
    """

    def __init__(self, descriptor_name: str) -> None:
        self.descriptor_name = descriptor_name
        super().__init__(f"Failed to release resource '{descriptor_name}'.")


class AggregateReleaseError(ScopeGuardError):
    """Collect every release failure observed while a scope unwinds.

    Raised by ``ResourceScope.exit``/``ResourceScope.aexit`` after all guards
    were closed. ``errors`` keeps each ``ReleaseError`` in release order
    (newest guard first), so no failure is lost behind the first one.
    """

    def __init__(self, errors: list[ReleaseError]) -> None:
        self.errors = errors
        names = ", ".join(f"'{error.descriptor_name}'" for error in errors)
        super().__init__(f"{len(errors)} resource(s) failed to release: {names}.")


class InvalidRegistrationError(ScopeGuardError):
    """Signal that a guard cannot be registered with a scope.

    Raised by ``ResourceScope.register`` when the guard is not open or is
    already registered with the same scope.
    """


class ScopeExitedError(ScopeGuardError):
    """Signal use of a scope after it was exited.

    Raised by ``ResourceScope.register`` and ``ResourceScope.acquire`` once
    ``exit``/``aexit`` has run. Scopes are single-use; enter a new one instead.
    """


class NoActiveScopeError(ScopeGuardError):
    """Signal a ``current_scope()`` call outside any active scope.

    Typical fix is wrapping the call in ``with ResourceScope():`` or decorating
    the enclosing function with ``@scoped``.
    """


class AsyncResourceInSyncContextError(ScopeGuardError):
    """Signal synchronous acquisition or release of an asynchronous resource.

    Raised by ``acquire``, ``Guard.close`` and ``ResourceScope.exit`` when the
    descriptor's ``acquire`` or ``release`` is a coroutine function. Nothing is
    acquired or released in that case.

    Typical fix is switching to ``await aacquire(...)``, ``await guard.aclose()`` or
    ``async with`` for the scope.
    """
