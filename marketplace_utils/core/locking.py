"""Cross-process advisory locking for session artifacts.

Hook processes for one session contend on the same session file, log and
error journal.  Writers serialize through a ``<resource>.lock`` sibling file
locked with :mod:`filelock`, which uses ``flock`` on POSIX and ``msvcrt`` on
Windows: the kernel drops the lock when the holder dies, including on
``SIGKILL``, so a hook terminated by the host mid-write cannot leave a stale
lock behind.

When no kernel-released primitive is available (``filelock`` would fall
back to ``SoftFileLock``), or locking is disabled in settings, a
:class:`NullLockProvider` is used instead and a single warning is emitted
per session so operators can tell they are running without synchronization.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from filelock import FileLock, SoftFileLock
from filelock import Timeout as FileLockTimeout

from marketplace_utils.core.errors import LockTimeoutError

if TYPE_CHECKING:
    from marketplace_utils.config import Settings

logger = logging.getLogger(__name__)

DEGRADED_MODE_MESSAGE = (
    "Advisory locking unavailable ({reason}); session writes are unsynchronized"
)

# Set once this process has reported degraded mode.
_degraded_notified = False


def lock_path_for(resource: Path) -> Path:
    """Return the lock file guarding *resource*."""
    return resource.with_name(resource.name + ".lock")


class LockProvider(Protocol):
    """Structural type for lock providers."""

    degraded: bool

    def lock(self, resource: Path) -> AbstractContextManager[None]: ...


class FileLockProvider:
    """Exclusive cross-process lock per resource, backed by ``filelock``.

    Lock objects are cached per lock path, so a resource locked twice in the
    same thread is re-entered instead of deadlocking against itself.

    Example:
        provider = FileLockProvider(timeout=10.0)
        with provider.lock(Path("/tmp/claude-session-42.json")):
            ...  # read-modify-write
    """

    degraded = False

    def __init__(self, timeout: float = 10.0, poll_interval: float = 0.05) -> None:
        """Initialize the provider.

        Args:
            timeout: Maximum seconds to wait for a lock.
            poll_interval: Seconds between acquisition attempts.
        """
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._locks: dict[Path, FileLock] = {}

    def _get_lock(self, lock_path: Path) -> FileLock:
        file_lock = self._locks.get(lock_path)
        if file_lock is None:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
            file_lock = FileLock(str(lock_path), timeout=self.timeout)
            self._locks[lock_path] = file_lock
        return file_lock

    @contextmanager
    def lock(self, resource: Path) -> Iterator[None]:
        """Hold the lock for *resource* for the duration of the block.

        Raises:
            LockTimeoutError: If the lock is not acquired within ``timeout``.
        """
        lock_path = lock_path_for(resource)
        file_lock = self._get_lock(lock_path)
        try:
            file_lock.acquire(timeout=self.timeout, poll_interval=self.poll_interval)
        except FileLockTimeout:
            raise LockTimeoutError(
                lock_path=str(lock_path),
                timeout=self.timeout,
            ) from None
        try:
            yield
        finally:
            file_lock.release()


class NullLockProvider:
    """Pass-through provider used when no locking primitive is available."""

    degraded = True

    def __init__(self, reason: str = "disabled") -> None:
        self.reason = reason

    @contextmanager
    def lock(self, resource: Path) -> Iterator[None]:
        yield


def kernel_locking_available() -> bool:
    """Whether ``filelock`` resolved to a lock the kernel releases on exit."""
    return FileLock is not SoftFileLock


def _claim_session_notice(marker: Path | None) -> bool:
    """Create the per-session degraded-mode marker.

    Returns:
        True if this call created it (first notice of the session), or if
        no marker is in use.
    """
    if marker is None:
        return True
    try:
        marker.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(marker), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
    except FileExistsError:
        return False
    except OSError:
        # Marker unavailable: prefer a repeated warning over none.
        return True
    os.close(fd)
    return True


def select_lock_provider(
    settings: Settings,
    notify: Callable[[str], None] | None = None,
) -> LockProvider:
    """Pick the lock provider for this process.

    Args:
        settings: Runtime settings (timeout, disable flag, session key).
        notify: Called with the degraded-mode message the first time the
            degraded path is taken in this session.  Defaults to a
            ``logging`` warning on stderr.

    Returns:
        A :class:`FileLockProvider`, or a :class:`NullLockProvider` when
        locking is disabled or unsupported.
    """
    global _degraded_notified

    if settings.locking_disabled:
        reason = "disabled by CLAUDE_DISABLE_LOCKING"
    elif not kernel_locking_available():
        reason = "no OS-level file locking on this platform"
    else:
        return FileLockProvider(timeout=settings.lock_timeout)

    provider = NullLockProvider(reason=reason)
    if not _degraded_notified:
        _degraded_notified = True
        marker = settings.artifact_dir() / f"claude-session-{settings.session_key()}.nolock"
        if _claim_session_notice(marker):
            message = DEGRADED_MODE_MESSAGE.format(reason=reason)
            (notify or logger.warning)(message)
    return provider
