"""Release failures are collected, never stop the unwind.

Resource ``b`` fails to release. Resource ``a`` is still released afterwards
and the aggregate error reports exactly the failure of ``b``.
"""

from __future__ import annotations

import logging

from scopeguard import AggregateReleaseError, ResourceDescriptor, ResourceScope

released: list[str] = []


def release(name: str) -> None:
    released.append(name)
    if name == "b":
        msg = f"cannot release {name}"
        raise OSError(msg)


def main() -> None:
    # Failed releases are logged at WARNING; keep them off stderr here.
    logging.basicConfig(level=logging.ERROR)
    resources = ResourceDescriptor(lambda name: name, release, name="resource")
    scope = ResourceScope.enter(name="failures")
    scope.acquire(resources, "a")
    scope.acquire(resources, "b")

    try:
        scope.exit()
    except AggregateReleaseError as error:
        failed = [str(item.__cause__) for item in error.errors]
        print(f"failed={failed}")  # => failed=['cannot release b']
    print(f"released={','.join(released)}")  # => released=b,a

    scope.exit()
    print(f"second_exit_released={len(released)}")  # => second_exit_released=2


if __name__ == "__main__":
    main()
