"""Ownership transfer: hand a resource to a longer-lived scope.

The request scope acquires a connection and transfers it to the application
scope. The request scope exit skips the moved-from guard; the connection is
released once, when the application scope exits.
"""

from __future__ import annotations

from scopeguard import GuardMovedError, ResourceDescriptor, ResourceScope

released: list[str] = []


def main() -> None:
    connections = ResourceDescriptor(
        lambda dsn: f"conn:{dsn}",
        released.append,
        name="connection",
    )
    app_scope = ResourceScope.enter(name="app")

    with ResourceScope(name="request") as request_scope:
        request_guard = request_scope.acquire(connections, "db")
        app_guard = app_scope.register(request_guard.transfer_ownership())

    print(f"released_after_request={released}")  # => released_after_request=[]
    print(f"app_handle={app_guard.handle}")  # => app_handle=conn:db

    try:
        request_guard.use(len)
    except GuardMovedError as error:
        moved_error = type(error).__name__
        print(f"moved_guard_error={moved_error}")  # => moved_guard_error=GuardMovedError

    app_scope.exit()
    print(f"released_after_app={released}")  # => released_after_app=['conn:db']


if __name__ == "__main__":
    main()
