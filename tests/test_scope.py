"""Tests for ResourceScope unwinding, registration and the current scope."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

import pytest

from scopeguard.descriptor import ResourceDescriptor
from scopeguard.exceptions import (
    AcquireError,
    AggregateReleaseError,
    AsyncResourceInSyncContextError,
    InvalidRegistrationError,
    NoActiveScopeError,
    ScopeExitedError,
)
from scopeguard.guard import Guard, GuardState, acquire
from scopeguard.resources import file_resource, lock_resource
from scopeguard.scope import ResourceScope, current_scope, scoped

if TYPE_CHECKING:
    from tests.conftest import FakeBackend


class TestExitOrder:
    @pytest.mark.parametrize("count", [0, 1, 2, 5])
    def test_releases_every_guard_in_reverse_order(self, backend: FakeBackend, count: int) -> None:
        names = [f"resource-{index}" for index in range(count)]

        with ResourceScope() as scope:
            for name in names:
                scope.acquire(backend.descriptor(name))

        assert backend.acquired == names
        assert backend.released == list(reversed(names))

    def test_releases_in_reverse_order_on_error(self, backend: FakeBackend) -> None:
        with pytest.raises(RuntimeError), ResourceScope() as scope:
            scope.acquire(backend.descriptor("a"))
            scope.acquire(backend.descriptor("b"))
            raise RuntimeError

        assert backend.released == ["b", "a"]

    def test_registered_guards_are_released_with_acquired_ones(self, backend: FakeBackend) -> None:
        with ResourceScope() as scope:
            scope.acquire(backend.descriptor("a"))
            scope.register(acquire(backend.descriptor("b")))
            scope.acquire(backend.descriptor("c"))

        assert backend.released == ["c", "b", "a"]

    def test_explicitly_closed_guard_is_not_released_again(self, backend: FakeBackend) -> None:
        with ResourceScope() as scope:
            scope.acquire(backend.descriptor("a"))
            scope.acquire(backend.descriptor("b")).close()

        assert backend.released == ["b", "a"]

    def test_exit_is_idempotent(self, backend: FakeBackend) -> None:
        scope = ResourceScope.enter()
        scope.acquire(backend.descriptor("a"))

        scope.exit()
        scope.exit()

        assert scope.exited
        assert len(scope) == 0
        assert backend.released == ["a"]

    def test_early_exit_followed_by_with_exit(self, backend: FakeBackend) -> None:
        with ResourceScope() as scope:
            scope.acquire(backend.descriptor("a"))
            scope.exit()

        assert backend.released == ["a"]


class TestPartialAcquisition:
    def test_failed_second_acquire_releases_only_first(self, backend: FakeBackend) -> None:
        with pytest.raises(AcquireError) as exc_info, ResourceScope() as scope:
            scope.acquire(backend.descriptor("a"))
            scope.acquire(backend.descriptor("b", fail_acquire=True))

        assert exc_info.value.descriptor_name == "b"
        assert backend.acquired == ["a"]
        assert backend.released == ["a"]

    def test_failed_acquire_is_not_registered(self, backend: FakeBackend) -> None:
        scope = ResourceScope.enter()
        scope.acquire(backend.descriptor("a"))

        with pytest.raises(AcquireError):
            scope.acquire(backend.descriptor("b", fail_acquire=True))

        assert [guard.name for guard in scope.guards] == ["a"]
        scope.exit()
        assert backend.released == ["a"]

    def test_two_file_transfer_with_missing_second_file(self, tmp_path: Path) -> None:
        source_path = tmp_path / "source.txt"
        source_path.write_text("payload", encoding="utf-8")
        released: list[IO[Any]] = []
        files = file_resource(encoding="utf-8")

        def close_file(handle: IO[Any]) -> None:
            released.append(handle)
            handle.close()

        tracked = ResourceDescriptor(files.acquire, close_file, name="file")

        with pytest.raises(AcquireError) as exc_info, ResourceScope() as scope:
            source = scope.acquire(tracked, source_path)
            source_handle = source.handle
            scope.acquire(tracked, tmp_path / "missing" / "target.txt", "w")

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)
        assert released == [source_handle]
        assert source_handle.closed
        assert source.state is GuardState.CLOSED

    def test_interruption_during_acquire_still_releases_registered(
        self,
        backend: FakeBackend,
    ) -> None:
        def interrupted() -> object:
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt), ResourceScope() as scope:
            scope.acquire(backend.descriptor("a"))
            scope.acquire(ResourceDescriptor(interrupted, lambda handle: None))

        assert backend.released == ["a"]


class TestReleaseFailures:
    def test_failure_of_newest_still_releases_oldest(self, backend: FakeBackend) -> None:
        with pytest.raises(AggregateReleaseError) as exc_info, ResourceScope() as scope:
            scope.acquire(backend.descriptor("a"))
            scope.acquire(backend.descriptor("b", fail_release=True))

        assert backend.released == ["b", "a"]
        assert [error.descriptor_name for error in exc_info.value.errors] == ["b"]
        assert isinstance(exc_info.value.errors[0].__cause__, OSError)

    def test_all_failures_are_collected_in_release_order(self, backend: FakeBackend) -> None:
        scope = ResourceScope.enter()
        scope.acquire(backend.descriptor("a", fail_release=True))
        scope.acquire(backend.descriptor("b"))
        scope.acquire(backend.descriptor("c", fail_release=True))

        with pytest.raises(AggregateReleaseError) as exc_info:
            scope.exit()

        assert backend.released == ["c", "b", "a"]
        assert [error.descriptor_name for error in exc_info.value.errors] == ["c", "a"]
        assert "2 resource(s)" in str(exc_info.value)

    def test_release_failures_are_not_repeated_on_second_exit(self, backend: FakeBackend) -> None:
        scope = ResourceScope.enter()
        scope.acquire(backend.descriptor("a", fail_release=True))

        with pytest.raises(AggregateReleaseError):
            scope.exit()
        scope.exit()

    def test_interruption_in_release_still_releases_the_rest(self, backend: FakeBackend) -> None:
        def interrupted(handle: object) -> None:
            raise KeyboardInterrupt

        scope = ResourceScope.enter()
        scope.acquire(backend.descriptor("a"))
        scope.acquire(ResourceDescriptor(lambda: "lock", interrupted, name="lock"))

        with pytest.raises(KeyboardInterrupt):
            scope.exit()

        assert backend.released == ["a"]

    def test_interruption_carries_release_errors_as_context(self, backend: FakeBackend) -> None:
        def interrupted(handle: object) -> None:
            raise KeyboardInterrupt

        scope = ResourceScope.enter()
        scope.acquire(backend.descriptor("disk", fail_release=True))
        scope.acquire(ResourceDescriptor(lambda: "lock", interrupted, name="lock"))

        with pytest.raises(KeyboardInterrupt) as exc_info:
            scope.exit()

        aggregate = exc_info.value.__context__
        assert isinstance(aggregate, AggregateReleaseError)
        assert [error.descriptor_name for error in aggregate.errors] == ["disk"]
        assert backend.released == ["disk"]


class TestLockGuard:
    @pytest.mark.parametrize("early", [True, False])
    def test_lock_is_released_once_on_every_return_path(self, early: bool) -> None:
        lock = threading.Lock()
        releases: list[object] = []

        def unlock(handle: threading.Lock) -> None:
            releases.append(handle)
            handle.release()

        counted = ResourceDescriptor(lock_resource(lock).acquire, unlock, name="lock")

        @scoped
        def critical_section() -> str:
            current_scope().acquire(counted)
            if early:
                return "early"
            return "late"

        assert critical_section() == ("early" if early else "late")
        assert releases == [lock]
        assert not lock.locked()

    def test_lock_timeout_is_an_acquire_error(self) -> None:
        lock = threading.Lock()
        lock.acquire()
        try:
            with pytest.raises(AcquireError) as exc_info:
                acquire(lock_resource(lock, timeout=0.01))
        finally:
            lock.release()

        assert isinstance(exc_info.value.__cause__, TimeoutError)

    def test_async_release_is_refused_before_acquiring(self) -> None:
        lock = threading.Lock()
        acquired: list[str] = []

        async def disconnect(handle: str) -> None:
            pass

        def connect() -> str:
            acquired.append("socket")
            return "socket"

        sockets = ResourceDescriptor(connect, disconnect, name="socket")

        @scoped
        def critical_section() -> None:
            current_scope().acquire(lock_resource(lock))
            current_scope().acquire(sockets)

        with pytest.raises(AsyncResourceInSyncContextError, match="socket"):
            critical_section()

        assert acquired == []
        assert not lock.locked()


class TestRegistration:
    def test_register_returns_guard(self, backend: FakeBackend) -> None:
        guard = acquire(backend.descriptor("a"))
        with ResourceScope() as scope:
            assert scope.register(guard) is guard
            assert scope.guards == (guard,)

    def test_register_closed_guard_raises(self, backend: FakeBackend) -> None:
        guard = acquire(backend.descriptor("a"))
        guard.close()

        with pytest.raises(InvalidRegistrationError, match="closed"):
            ResourceScope().register(guard)

    def test_register_twice_raises(self, backend: FakeBackend) -> None:
        scope = ResourceScope()
        guard = scope.acquire(backend.descriptor("a"))

        with pytest.raises(InvalidRegistrationError, match="already registered"):
            scope.register(guard)

    def test_register_guard_owned_by_another_scope_raises(self, backend: FakeBackend) -> None:
        first = ResourceScope.enter(name="first")
        second = ResourceScope.enter(name="second")
        guard = first.acquire(backend.descriptor("connection"))

        with pytest.raises(InvalidRegistrationError, match="owned by scope 'first'"):
            second.register(guard)

        assert guard.owner is first
        assert second.guards == ()
        first.exit()
        second.exit()
        assert backend.released == ["connection"]

    def test_sync_entered_scope_refuses_async_release_guard(self, backend: FakeBackend) -> None:
        with ResourceScope() as scope:
            with pytest.raises(AsyncResourceInSyncContextError, match="async with"):
                scope.register(_open_async_guard(backend))
            assert scope.guards == ()

    def test_register_after_exit_raises(self, backend: FakeBackend) -> None:
        scope = ResourceScope()
        scope.exit()

        with pytest.raises(ScopeExitedError):
            scope.register(acquire(backend.descriptor("a")))
        with pytest.raises(ScopeExitedError):
            scope.acquire(backend.descriptor("b"))
        with pytest.raises(ScopeExitedError), scope:
            pass

        assert backend.acquired == ["a"]

    def test_transferred_guard_is_released_by_new_owner_only(self, backend: FakeBackend) -> None:
        outer = ResourceScope.enter(name="outer")

        with ResourceScope(name="inner") as inner:
            guard = inner.acquire(backend.descriptor("connection"))
            moved = outer.register(guard.transfer_ownership())

        assert moved.owner is outer
        assert backend.released == []
        outer.exit()
        assert backend.released == ["connection"]

    def test_sync_exit_refuses_async_guards(self, backend: FakeBackend) -> None:
        scope = ResourceScope()
        scope.acquire(backend.descriptor("a"))
        scope.register(_open_async_guard(backend))

        with pytest.raises(AsyncResourceInSyncContextError, match="socket"):
            scope.exit()

        assert not scope.exited
        assert backend.released == []


class TestCurrentScope:
    def test_no_active_scope_raises(self) -> None:
        with pytest.raises(NoActiveScopeError):
            current_scope()

    def test_nested_scopes_restore_previous(self) -> None:
        with ResourceScope(name="outer") as outer:
            assert current_scope() is outer
            with ResourceScope(name="inner") as inner:
                assert current_scope() is inner
            assert current_scope() is outer

        with pytest.raises(NoActiveScopeError):
            current_scope()

    def test_current_scope_is_per_thread(self) -> None:
        seen: list[BaseException] = []

        def worker() -> None:
            try:
                current_scope()
            except NoActiveScopeError as error:
                seen.append(error)

        with ResourceScope():
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

        assert len(seen) == 1

    def test_scoped_decorator_opens_fresh_scope_per_call(self, backend: FakeBackend) -> None:
        scopes: list[ResourceScope] = []

        @scoped(name="handler")
        def handler(value: int) -> int:
            scope = current_scope()
            scopes.append(scope)
            scope.acquire(backend.descriptor(f"r{value}"))
            return value * 2

        assert handler(1) == 2
        assert handler(2) == 4

        assert scopes[0] is not scopes[1]
        assert all(scope.exited and scope.name == "handler" for scope in scopes)
        assert backend.released == ["r1", "r2"]
        assert handler.__name__ == "handler"

    def test_scoped_decorator_releases_on_error(self, backend: FakeBackend) -> None:
        @scoped
        def handler() -> None:
            current_scope().acquire(backend.descriptor("a"))
            msg = "boom"
            raise ValueError(msg)

        with pytest.raises(ValueError, match="boom"):
            handler()

        assert backend.released == ["a"]


def test_scope_repr_and_default_name() -> None:
    scope = ResourceScope()
    assert scope.name.startswith("scope-")
    assert repr(ResourceScope(name="request")) == (
        "ResourceScope(name='request', guards=0, exited=False)"
    )


def _open_async_guard(backend: FakeBackend) -> Guard[object]:
    return Guard(backend.descriptor("socket", is_async=True), "socket")
