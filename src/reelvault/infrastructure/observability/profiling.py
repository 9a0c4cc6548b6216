"""CPU profiling for the whole process lifetime.

Enabled by setting REELVAULT_CPU_PROFILE_PATH. Stats are written in pstats
format when the process shuts down; inspect with ``python -m pstats <file>``.

The profiler is attached to the thread that calls start_cpu_profiling (the
one running ProcessOrchestrator.initialize). Work done on other threads, such
as threadpool routes, setup, migrate and background jobs, may be missing from
the stats.
"""

import cProfile
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

_profiler: cProfile.Profile | None = None
_profile_path: Path | None = None


def start_cpu_profiling(profile_path: str | Path | None) -> bool:
    """Start profiling the calling thread if a path is configured.

    Returns:
        True if profiling was started
    """
    global _profiler, _profile_path

    if not profile_path:
        return False
    if _profiler is not None:
        logger.debug("CPU profiling already running")
        return True

    path = Path(profile_path)
    # Fail early on an unwritable path instead of losing the profile at exit
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch()

    _profiler = cProfile.Profile()
    _profiler.enable()
    _profile_path = path
    logger.info("Profiling to %s", path)
    return True


def stop_cpu_profiling() -> None:
    """Stop profiling and dump stats. No-op when not running."""
    global _profiler, _profile_path

    if _profiler is None or _profile_path is None:
        return

    _profiler.disable()
    try:
        _profiler.dump_stats(str(_profile_path))
        logger.info("CPU profile written to %s", _profile_path)
    except OSError as e:
        logger.warning("Could not write CPU profile to %s: %s", _profile_path, e)
    finally:
        _profiler = None
        _profile_path = None
