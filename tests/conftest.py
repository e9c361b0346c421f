"""Shared pytest fixtures for scopeguard tests."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from scopeguard.descriptor import ResourceDescriptor


@dataclass
class FakeHandle:
    """A handle produced by the fake back-end."""

    name: str
    data: list[str] = field(default_factory=list)


@dataclass
class FakeBackend:
    """Record every acquire and release performed through its descriptors."""

    events: list[tuple[str, str]] = field(default_factory=list)

    def descriptor(
        self,
        name: str,
        *,
        fail_acquire: bool = False,
        fail_release: bool = False,
        is_async: bool = False,
    ) -> ResourceDescriptor[FakeHandle]:
        def acquire(*args: object) -> FakeHandle:
            if fail_acquire:
                msg = f"cannot open {name}"
                raise OSError(msg)
            self.events.append(("acquire", name))
            return FakeHandle(name=name, data=[str(arg) for arg in args])

        def release(handle: FakeHandle) -> None:
            self.events.append(("release", handle.name))
            if fail_release:
                msg = f"cannot close {handle.name}"
                raise OSError(msg)

        if not is_async:
            return ResourceDescriptor(acquire, release, name=name)

        async def aacquire(*args: object) -> FakeHandle:
            return acquire(*args)

        async def arelease(handle: FakeHandle) -> None:
            release(handle)

        return ResourceDescriptor(aacquire, arelease, name=name)

    @property
    def acquired(self) -> list[str]:
        return [name for kind, name in self.events if kind == "acquire"]

    @property
    def released(self) -> list[str]:
        return [name for kind, name in self.events if kind == "release"]


@pytest.fixture()
def backend() -> FakeBackend:
    """Fresh fake back-end with an empty event log."""
    return FakeBackend()
