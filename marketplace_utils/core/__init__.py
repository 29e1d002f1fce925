"""Core session-coordination components for hook scripts."""

from marketplace_utils.core.documents import get_field, get_str, has_field
from marketplace_utils.core.errors import (
    ConfigurationError,
    HookResponseError,
    InvalidPluginNameError,
    LockTimeoutError,
    MarketplaceUtilsError,
    PathSecurityError,
)
from marketplace_utils.core.journal import ErrorJournal
from marketplace_utils.core.locking import (
    FileLockProvider,
    LockProvider,
    NullLockProvider,
    select_lock_provider,
)
from marketplace_utils.core.logging import HookLevel, SessionLogger, parse_level
from marketplace_utils.core.session import (
    FileSessionBackend,
    InMemorySessionBackend,
    SessionBackend,
    SessionRecord,
    SessionStore,
)

__all__ = [
    # Documents
    "get_field",
    "get_str",
    "has_field",
    # Errors
    "ConfigurationError",
    "HookResponseError",
    "InvalidPluginNameError",
    "LockTimeoutError",
    "MarketplaceUtilsError",
    "PathSecurityError",
    # Journal
    "ErrorJournal",
    # Locking
    "FileLockProvider",
    "LockProvider",
    "NullLockProvider",
    "select_lock_provider",
    # Logging
    "HookLevel",
    "SessionLogger",
    "parse_level",
    # Session
    "FileSessionBackend",
    "InMemorySessionBackend",
    "SessionBackend",
    "SessionRecord",
    "SessionStore",
]
