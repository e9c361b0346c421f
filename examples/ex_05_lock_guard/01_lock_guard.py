"""Lock guard in a function with several exits.

The early return and the normal return both release the lock exactly once.
"""

from __future__ import annotations

import threading

from scopeguard import current_scope, lock_resource, scoped

lock = threading.Lock()
locks = lock_resource(lock, name="inventory")
inventory = {"apples": 3}


@scoped
def take(item: str) -> bool:
    current_scope().acquire(locks)
    if inventory.get(item, 0) == 0:
        return False
    inventory[item] -= 1
    return True


def main() -> None:
    print(f"took_apple={take('apples')}")  # => took_apple=True
    print(f"locked_after_normal_return={lock.locked()}")  # => locked_after_normal_return=False
    print(f"took_pear={take('pears')}")  # => took_pear=False
    print(f"locked_after_early_return={lock.locked()}")  # => locked_after_early_return=False


if __name__ == "__main__":
    main()
