"""Marketplace Utils - session coordination for short-lived plugin hook processes."""

__version__ = "0.1.0"

# Re-export core components for convenience
from marketplace_utils.config import Settings, get_settings
from marketplace_utils.core import (
    # Errors
    ConfigurationError,
    # Journal
    ErrorJournal,
    HookResponseError,
    InvalidPluginNameError,
    LockTimeoutError,
    MarketplaceUtilsError,
    PathSecurityError,
    # Logging
    SessionLogger,
    # Session
    SessionRecord,
    SessionStore,
)
from marketplace_utils.hooks import Decision, HookContext, HookResponse, run_hook

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    # Errors
    "ConfigurationError",
    "HookResponseError",
    "InvalidPluginNameError",
    "LockTimeoutError",
    "MarketplaceUtilsError",
    "PathSecurityError",
    # Components
    "ErrorJournal",
    "SessionLogger",
    "SessionRecord",
    "SessionStore",
    # Hooks
    "Decision",
    "HookContext",
    "HookResponse",
    "run_hook",
]
