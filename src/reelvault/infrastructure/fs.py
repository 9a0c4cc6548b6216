"""Small filesystem helpers used during startup and setup."""

import logging
import shutil
import threading
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)


def ensure_dir(path: str | Path) -> None:
    """Create a directory (and parents) if it does not exist."""
    Path(path).mkdir(parents=True, exist_ok=True)


def empty_dir(path: str | Path) -> None:
    """Delete everything inside a directory, keeping the directory itself.

    A missing directory counts as empty.
    """
    directory = Path(path)
    if not directory.is_dir():
        return

    for entry in directory.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()


def touch(path: str | Path) -> None:
    """Create an empty file if it does not exist. Existing content is kept."""
    Path(path).touch(exist_ok=True)


# Hey future me - this is how startup avoids hanging on slow disks! fn runs on a
# daemon thread; we wait at most `timeout` seconds. If it finishes in time we're
# done. If not, on_timeout() fires and a second daemon thread waits for the work
# and calls on_complete() whenever it eventually finishes. The caller never
# blocks past the timeout.
def run_with_timeout(
    fn: Callable[[], None],
    timeout: float,
    on_timeout: Callable[[], None] | None = None,
    on_complete: Callable[[], None] | None = None,
    name: str = "background-task",
) -> bool:
    """Run fn in the background and wait up to timeout seconds for it.

    Returns:
        True if fn finished within the timeout
    """
    worker = threading.Thread(target=fn, name=name, daemon=True)
    worker.start()
    worker.join(timeout)

    if not worker.is_alive():
        return True

    if on_timeout is not None:
        on_timeout()

    def _watch() -> None:
        worker.join()
        if on_complete is not None:
            on_complete()

    threading.Thread(target=_watch, name=f"{name}-watch", daemon=True).start()
    return False
