"""Async resources: awaited acquire and release inside ``async with``.

``ResourceScope.exit`` refuses async releases; ``aexit`` (used by
``async with``) awaits them one by one, still newest first.
"""

from __future__ import annotations

import asyncio

from scopeguard import ResourceDescriptor, ResourceScope

events: list[str] = []


async def connect(host: str) -> str:
    await asyncio.sleep(0)
    events.append(f"connect:{host}")
    return host


async def disconnect(host: str) -> None:
    await asyncio.sleep(0)
    events.append(f"disconnect:{host}")


async def run() -> None:
    sockets = ResourceDescriptor(connect, disconnect, name="socket")
    async with ResourceScope(name="client") as scope:
        await scope.aacquire(sockets, "primary")
        await scope.aacquire(sockets, "replica")


def main() -> None:
    asyncio.run(run())
    print(f"events={','.join(events)}")  # => events=connect:primary,connect:replica,disconnect:replica,disconnect:primary


if __name__ == "__main__":
    main()
