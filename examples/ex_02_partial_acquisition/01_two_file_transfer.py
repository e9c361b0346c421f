"""Partial acquisition: the second of two files fails to open.

The first file is already registered with the scope, so it is closed on the
way out without any hand-written cleanup branch. The second file never opened
and is never released.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from scopeguard import AcquireError, ResourceScope, file_resource


def transfer(source_path: Path, target_path: Path) -> None:
    files = file_resource(encoding="utf-8")
    with ResourceScope(name="transfer") as scope:
        source = scope.acquire(files, source_path)
        target = scope.acquire(files, target_path, "w")
        target.use(lambda f: f.write(source.use(lambda f: f.read())))


def main() -> None:
    with tempfile.TemporaryDirectory() as directory:
        source_path = Path(directory) / "source.txt"
        source_path.write_text("payload", encoding="utf-8")

        transfer(source_path, Path(directory) / "target.txt")
        copied = (Path(directory) / "target.txt").read_text(encoding="utf-8")
        print(f"copied={copied}")  # => copied=payload

        try:
            transfer(source_path, Path(directory) / "missing" / "target.txt")
        except AcquireError as error:
            cause = type(error.__cause__).__name__
            print(f"second_file_error={cause}")  # => second_file_error=FileNotFoundError


if __name__ == "__main__":
    main()
