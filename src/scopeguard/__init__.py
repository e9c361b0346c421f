from scopeguard.descriptor import ResourceDescriptor
from scopeguard.exceptions import (
    AcquireError,
    AggregateReleaseError,
    AsyncResourceInSyncContextError,
    GuardMovedError,
    InvalidRegistrationError,
    NoActiveScopeError,
    ReleaseError,
    ScopeExitedError,
    ScopeGuardError,
    UseAfterCloseError,
)
from scopeguard.guard import Guard, GuardState, aacquire, acquire
from scopeguard.lock_mode import LockMode
from scopeguard.resources import (
    EnteredContext,
    async_context_manager_resource,
    async_lock_resource,
    context_manager_resource,
    file_resource,
    lock_resource,
)
from scopeguard.scope import ResourceScope, current_scope, scoped

__all__ = [
    "AcquireError",
    "AggregateReleaseError",
    "AsyncResourceInSyncContextError",
    "EnteredContext",
    "Guard",
    "GuardMovedError",
    "GuardState",
    "InvalidRegistrationError",
    "LockMode",
    "NoActiveScopeError",
    "ReleaseError",
    "ResourceDescriptor",
    "ResourceScope",
    "ScopeExitedError",
    "ScopeGuardError",
    "UseAfterCloseError",
    "aacquire",
    "acquire",
    "async_context_manager_resource",
    "async_lock_resource",
    "context_manager_resource",
    "current_scope",
    "file_resource",
    "lock_resource",
    "scoped",
]
