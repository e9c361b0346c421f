from __future__ import annotations

from collections.abc import Iterator

import pytest

from scopeguard.scope import ResourceScope


@pytest.fixture()
def resource_scope(request: pytest.FixtureRequest) -> Iterator[ResourceScope]:
    """Provide a scope that is current for the test and exited at teardown.

    Guards acquired through it are released after the test, newest first.
    Release failures surface as a teardown error with the
    ``AggregateReleaseError`` details.

    Enable with ``pytest_plugins = ["scopeguard.integrations.pytest_plugin"]``.
    """
    with ResourceScope(name=request.node.nodeid) as scope:
        yield scope
