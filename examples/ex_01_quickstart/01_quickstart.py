"""Quickstart: describe a resource, acquire it, and let a scope release it.

This module covers:

1. Declaring a ``ResourceDescriptor`` from an acquire/release pair.
2. Acquiring through ``ResourceScope.acquire`` inside ``with``.
3. Reverse-order release on scope exit.
4. ``UseAfterCloseError`` when a guard is used after its scope ended.
"""

from __future__ import annotations

from scopeguard import ResourceDescriptor, ResourceScope, UseAfterCloseError

events: list[str] = []


def open_buffer(name: str) -> list[str]:
    events.append(f"open:{name}")
    return [name]


def close_buffer(buffer: list[str]) -> None:
    events.append(f"close:{buffer[0]}")


buffers = ResourceDescriptor(open_buffer, close_buffer, name="buffer")


def main() -> None:
    with ResourceScope(name="quickstart") as scope:
        first = scope.acquire(buffers, "first")
        scope.acquire(buffers, "second")
        print(f"first_handle={first.use(lambda buffer: buffer[0])}")  # => first_handle=first

    print(f"events={','.join(events)}")  # => events=open:first,open:second,close:second,close:first

    try:
        first.use(lambda buffer: buffer[0])
    except UseAfterCloseError as error:
        error_name = type(error).__name__
        print(f"use_after_close={error_name}")  # => use_after_close=UseAfterCloseError


if __name__ == "__main__":
    main()
