"""Integration tests for cross-process coordination of hook processes.

Each worker runs in its own process, as hook invocations do.  We use the
'spawn' start method so workers start from a clean interpreter, the way the
host launches hooks.
"""

from __future__ import annotations

import multiprocessing
import re
import sys
import tempfile
import time
from pathlib import Path
from typing import Any

import pytest

_mp_context = multiprocessing.get_context("spawn")

LINE_RE = re.compile(
    r"^\[\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z\] \[stress\] \[INFO\] \[worker-(\d+)\] entry (\d+) x+$"
)

# =============================================================================
# Helper Functions for Multiprocess Tests
# =============================================================================


def _append_log_worker(
    log_path: str,
    worker_id: int,
    num_lines: int,
    start: Any,
    results_queue: "multiprocessing.Queue[dict[str, Any]]",
) -> None:
    """Append *num_lines* entries to the shared session log."""
    try:
        from marketplace_utils.core.locking import FileLockProvider
        from marketplace_utils.core.logging import SessionLogger

        log = SessionLogger(
            "stress",
            f"worker-{worker_id}",
            Path(log_path),
            level="INFO",
            lock_provider=FileLockProvider(timeout=30.0, poll_interval=0.001),
        )
        start.wait(timeout=30)
        # Long lines make torn writes visible
        padding = "x" * 2000
        for i in range(num_lines):
            log.info(f"entry {i} {padding}")
        log.close()
        results_queue.put({"worker_id": worker_id, "success": True, "error": None})
    except Exception as e:
        results_queue.put({"worker_id": worker_id, "success": False, "error": str(e)})


def _mark_shown_worker(
    session_path: str,
    recommendation_type: str,
    degraded: bool,
    start: Any,
    results_queue: "multiprocessing.Queue[dict[str, Any]]",
) -> None:
    """Set one recommendation flag, as a PostToolUse hook would."""
    try:
        from marketplace_utils.core.locking import FileLockProvider, NullLockProvider
        from marketplace_utils.core.session import FileSessionBackend, SessionStore

        provider = NullLockProvider() if degraded else FileLockProvider(timeout=30.0, poll_interval=0.001)
        store = SessionStore(FileSessionBackend(Path(session_path)), provider, session_key="stress")
        start.wait(timeout=30)
        flipped = store.mark_shown("nextjs-16", recommendation_type)
        results_queue.put({"type": recommendation_type, "flipped": flipped, "error": None})
    except Exception as e:
        results_queue.put({"type": recommendation_type, "flipped": False, "error": str(e)})


def _hold_lock_worker(resource: str, acquired: Any) -> None:
    """Take the lock and never release it."""
    from marketplace_utils.core.locking import FileLockProvider

    with FileLockProvider(timeout=5.0).lock(Path(resource)):
        acquired.set()
        time.sleep(60)


def _collect(results_queue: Any, expected: int) -> list[dict[str, Any]]:
    return [results_queue.get(timeout=60) for _ in range(expected)]


def _run_workers(target: Any, args_list: list[tuple[Any, ...]]) -> list[dict[str, Any]]:
    start = _mp_context.Event()
    results_queue: "multiprocessing.Queue[dict[str, Any]]" = _mp_context.Queue()
    processes = [
        _mp_context.Process(target=target, args=(*args, start, results_queue)) for args in args_list
    ]
    for p in processes:
        p.start()
    start.set()
    results = _collect(results_queue, len(processes))
    for p in processes:
        p.join(timeout=60)
    return results


# =============================================================================
# Integration Tests
# =============================================================================


@pytest.mark.integration
class TestConcurrentLogAppends:
    def test_no_lost_or_torn_lines(self) -> None:
        """N concurrent appends produce exactly N well-formed lines."""
        with tempfile.TemporaryDirectory() as tmpdir:
            log_path = Path(tmpdir) / "claude-session-stress.log"
            num_workers = 4
            lines_per_worker = 50

            results = _run_workers(
                _append_log_worker,
                [(str(log_path), worker_id, lines_per_worker) for worker_id in range(num_workers)],
            )
            for result in results:
                assert result["success"], f"Worker {result['worker_id']} failed: {result['error']}"

            lines = log_path.read_text(encoding="utf-8").splitlines()
            assert len(lines) == num_workers * lines_per_worker

            seen = set()
            for line in lines:
                match = LINE_RE.match(line)
                assert match is not None, f"Malformed line: {line[:120]!r}"
                seen.add((int(match.group(1)), int(match.group(2))))
            assert seen == {(w, i) for w in range(num_workers) for i in range(lines_per_worker)}


@pytest.mark.integration
class TestConcurrentSessionWrites:
    def test_different_keys_all_persist(self) -> None:
        from marketplace_utils.core.session import FileSessionBackend, SessionStore

        with tempfile.TemporaryDirectory() as tmpdir:
            session_path = Path(tmpdir) / "claude-session-stress.json"
            keys = [f"rec_{i}" for i in range(6)]

            results = _run_workers(_mark_shown_worker, [(str(session_path), key, False) for key in keys])
            assert all(r["error"] is None for r in results), results
            assert all(r["flipped"] for r in results)

            flags = SessionStore(FileSessionBackend(session_path)).snapshot().flags["nextjs-16"]
            assert flags == {key: True for key in keys}

    def test_same_key_flips_exactly_once(self) -> None:
        """Overlapping invocations never both show the same recommendation."""
        with tempfile.TemporaryDirectory() as tmpdir:
            session_path = Path(tmpdir) / "claude-session-stress.json"
            results = _run_workers(
                _mark_shown_worker, [(str(session_path), "middleware_warning", False) for _ in range(5)]
            )
            assert all(r["error"] is None for r in results), results
            assert sum(1 for r in results if r["flipped"]) == 1

    def test_degraded_mode_writes_persist(self) -> None:
        """Without a lock, writes to different keys still both land."""
        from marketplace_utils.core.session import FileSessionBackend, SessionStore

        with tempfile.TemporaryDirectory() as tmpdir:
            session_path = Path(tmpdir) / "claude-session-stress.json"
            results = _run_workers(
                _mark_shown_worker,
                [(str(session_path), "middleware_warning", True), (str(session_path), "nextjs_skills", True)],
            )
            assert all(r["error"] is None for r in results), results

            flags = SessionStore(FileSessionBackend(session_path)).snapshot().flags["nextjs-16"]
            assert flags == {"middleware_warning": True, "nextjs_skills": True}


@pytest.mark.integration
class TestLockRelease:
    @pytest.mark.skipif(sys.platform == "win32", reason="SIGKILL semantics are POSIX-only")
    def test_lock_released_when_holder_is_killed(self) -> None:
        """A hook killed mid-critical-section does not leave the lock held."""
        from marketplace_utils.core.errors import LockTimeoutError
        from marketplace_utils.core.locking import FileLockProvider

        with tempfile.TemporaryDirectory() as tmpdir:
            resource = Path(tmpdir) / "claude-session-kill.json"
            acquired = _mp_context.Event()
            p = _mp_context.Process(target=_hold_lock_worker, args=(str(resource), acquired))
            p.start()
            try:
                assert acquired.wait(timeout=30), "worker never acquired the lock"

                contender = FileLockProvider(timeout=0.2, poll_interval=0.01)
                with pytest.raises(LockTimeoutError):
                    with contender.lock(resource):
                        pass

                p.kill()  # SIGKILL: no cleanup handlers run
                p.join(timeout=10)

                with FileLockProvider(timeout=5.0).lock(resource):
                    pass
            finally:
                if p.is_alive():
                    p.kill()
                    p.join(timeout=10)
