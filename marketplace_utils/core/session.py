"""Per-session state shared by the hook processes of one host session.

A session record is a single JSON document holding plugin-scoped flags
("has this recommendation been shown?") and values.  Every mutation is a
read-modify-write performed under the advisory lock, so overlapping hook
invocations never lose each other's writes and a flag, once set, stays set
for the rest of the session.

A missing, empty, truncated or otherwise invalid file is treated as "no
prior state", never as an error.
"""

from __future__ import annotations

import logging
import os
import random
import re
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from marketplace_utils.core.errors import InvalidPluginNameError
from marketplace_utils.core.locking import LockProvider, NullLockProvider
from marketplace_utils.core.utils import parse_timestamp, utc_now, utc_timestamp

logger = logging.getLogger(__name__)

PLUGIN_NAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")

# Read-back attempts for writes made without a lock
DEGRADED_WRITE_ATTEMPTS = 5


def validate_plugin_name(plugin: str) -> str:
    """Return *plugin* unchanged if it is a safe identifier.

    Raises:
        InvalidPluginNameError: If the name is empty or has unsafe characters.
    """
    if not plugin or not PLUGIN_NAME_RE.match(plugin):
        raise InvalidPluginNameError(plugin)
    return plugin


class SessionRecord(BaseModel):
    """On-disk session document."""

    session_id: str = ""
    plugin: str = ""
    started_at: str = ""
    flags: dict[str, dict[str, bool]] = Field(default_factory=dict)
    validations: dict[str, dict[str, dict[str, bool]]] = Field(default_factory=dict)
    values: dict[str, dict[str, Any]] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")


# ---------------------------------------------------------------------------
# Storage backends
# ---------------------------------------------------------------------------


class SessionBackend(Protocol):
    """Structural type for session storage.

    ``resource`` names the lock that guards the backend.
    """

    resource: Path

    def read(self) -> str | None: ...

    def write(self, text: str) -> None: ...

    def delete(self) -> None: ...


class FileSessionBackend:
    """JSON file storage with atomic replacement.

    Writes go to a per-process temp file that is then ``os.replace()``-d
    over the session file, so readers never see a half-written document.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.resource = self.path

    def read(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Unreadable session file {self.path.name}: {e}")
            return None

    def write(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.{os.getpid()}.tmp")
        tmp_path.write_text(text, encoding="utf-8")
        os.replace(str(tmp_path), str(self.path))

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)


class InMemorySessionBackend:
    """Process-local storage, for tests and dry runs."""

    def __init__(self, text: str | None = None) -> None:
        self.text = text
        self.resource = Path("in-memory-session.json")

    def read(self) -> str | None:
        return self.text

    def write(self, text: str) -> None:
        self.text = text

    def delete(self) -> None:
        self.text = None


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SessionStore:
    """Plugin-scoped key/value and flag storage for one session.

    Example:
        store = SessionStore(FileSessionBackend(path), lock_provider, session_key="4242")
        store.init("nextjs-16")
        if store.mark_shown("nextjs-16", "middleware_warning"):
            ...  # first time this session
    """

    def __init__(
        self,
        backend: SessionBackend,
        lock_provider: LockProvider | None = None,
        session_key: str = "",
    ) -> None:
        """Initialize the store.

        Args:
            backend: Where the session document lives.
            lock_provider: Cross-process lock guarding mutations.
            session_key: Key of the host session, used to build ``session_id``.
        """
        self.backend = backend
        self.lock_provider = lock_provider or NullLockProvider()
        self.session_key = session_key or str(os.getppid())

    # -- internals ---------------------------------------------------------

    def _load(self) -> SessionRecord:
        raw = self.backend.read()
        if not raw or not raw.strip():
            return SessionRecord()
        try:
            return SessionRecord.model_validate_json(raw)
        except ValidationError:
            logger.debug("Corrupt session record, treating as uninitialized")
            return SessionRecord()

    def _save(self, record: SessionRecord) -> None:
        self.backend.write(record.model_dump_json(indent=2))

    def _stamp(self, record: SessionRecord) -> None:
        if not record.session_id:
            record.session_id = f"{self.session_key}-{int(utc_now().timestamp())}"
            record.started_at = utc_timestamp()

    def _update(self, mutate: Callable[[SessionRecord], bool]) -> None:
        """Lock, load, apply *mutate*, save if it reports a change.

        *mutate* must return False when the record already reflects it.
        """
        with self.lock_provider.lock(self.backend.resource):
            record = self._load()
            if not mutate(record):
                return
            self._stamp(record)
            self._save(record)
        if self.lock_provider.degraded:
            self._confirm(mutate)

    def _confirm(self, mutate: Callable[[SessionRecord], bool]) -> None:
        """Read back an unsynchronized write and re-apply it if it was lost.

        Without a lock, a concurrent writer can replace the file between our
        load and save.  Re-applying on top of the winner's record keeps both
        updates.  The write counts as settled after two consecutive reads
        that already reflect it.
        """
        confirmed = 0
        for _ in range(DEGRADED_WRITE_ATTEMPTS):
            time.sleep(random.uniform(0.001, 0.01))
            current = self._load()
            if not mutate(current):
                confirmed += 1
                if confirmed == 2:
                    return
                continue
            confirmed = 0
            logger.debug("Session update lost to a concurrent writer, re-applying")
            self._stamp(current)
            self._save(current)
        logger.warning("Session update could not be confirmed without locking")

    # -- lifecycle ---------------------------------------------------------

    def init(self, plugin: str) -> SessionRecord:
        """(Re)create the session record for *plugin*.

        Clears the flags, validations and values of *plugin*; state of other
        plugins sharing the session is kept.  Reusing an existing record
        restarts its clock, so ``session_age`` counts from this init.

        Returns:
            The record as written.
        """
        validate_plugin_name(plugin)
        written: list[SessionRecord] = []

        def mutate(record: SessionRecord) -> bool:
            changed = not record.session_id or record.plugin != plugin
            record.plugin = plugin
            for table in (record.flags, record.validations, record.values):
                if table.pop(plugin, None) is not None:
                    changed = True
            if changed and record.session_id:
                record.started_at = utc_timestamp()
            written.append(record)
            return changed

        self._update(mutate)
        return written[-1]

    def reset(self) -> None:
        """Delete the whole session record."""
        with self.lock_provider.lock(self.backend.resource):
            self.backend.delete()

    def exists(self) -> bool:
        return bool(self._load().session_id)

    def snapshot(self) -> SessionRecord:
        """Consistent copy of the full record."""
        with self.lock_provider.lock(self.backend.resource):
            return self._load()

    def session_age(self) -> int:
        """Seconds since the record was created, or ``-1`` if uninitialized."""
        started = parse_timestamp(self._load().started_at)
        if started is None:
            return -1
        return max(0, int((utc_now() - started).total_seconds()))

    # -- values ------------------------------------------------------------

    def get(self, plugin: str, key: str, default: Any = None) -> Any:
        """Best-effort read without the lock (may be stale)."""
        return self._load().values.get(plugin, {}).get(key, default)

    def set(self, plugin: str, key: str, value: Any) -> None:
        def mutate(record: SessionRecord) -> bool:
            values = record.values.setdefault(plugin, {})
            if key in values and values[key] == value:
                return False
            values[key] = value
            return True

        self._update(mutate)

    # -- recommendation flags ---------------------------------------------

    def has_shown(self, plugin: str, recommendation_type: str) -> bool:
        with self.lock_provider.lock(self.backend.resource):
            record = self._load()
        return record.flags.get(plugin, {}).get(recommendation_type, False)

    def mark_shown(self, plugin: str, recommendation_type: str) -> bool:
        """Set the flag for *recommendation_type*.

        The check and the set happen in one lock hold, so among concurrent
        callers exactly one sees ``True``.

        Returns:
            True if this call flipped the flag, False if it was already set.
        """
        flipped: list[bool] = []

        def mutate(record: SessionRecord) -> bool:
            shown = record.flags.setdefault(plugin, {})
            if shown.get(recommendation_type, False):
                return False
            shown[recommendation_type] = True
            flipped.append(True)
            return True

        self._update(mutate)
        return bool(flipped)

    # -- validations -------------------------------------------------------

    def has_passed_validation(self, plugin: str, name: str, scope: str = "global") -> bool:
        with self.lock_provider.lock(self.backend.resource):
            record = self._load()
        return record.validations.get(plugin, {}).get(scope, {}).get(name, False)

    def mark_validation_passed(self, plugin: str, name: str, scope: str = "global") -> None:
        def mutate(record: SessionRecord) -> bool:
            passed = record.validations.setdefault(plugin, {}).setdefault(scope, {})
            if passed.get(name, False):
                return False
            passed[name] = True
            return True

        self._update(mutate)
