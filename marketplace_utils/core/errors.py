"""Custom exceptions for marketplace hook utilities."""

from pathlib import Path


def sanitize_path_for_error(path: str | Path) -> str:
    """Extract only the filename from a path for safe error messages.

    Args:
        path: Full path or filename.

    Returns:
        Just the filename portion.
    """
    if isinstance(path, Path):
        return path.name
    return Path(path).name


class MarketplaceUtilsError(Exception):
    """Base exception for all hook utility errors."""

    pass


class ConfigurationError(MarketplaceUtilsError):
    """Raised when configuration is invalid."""

    pass


class InvalidPluginNameError(MarketplaceUtilsError):
    """Raised when a plugin name is not a safe identifier."""

    def __init__(self, plugin: str) -> None:
        self.plugin = plugin
        super().__init__(f"Invalid plugin name: {plugin!r}")


class HookResponseError(MarketplaceUtilsError):
    """Raised when a hook response violates the host protocol.

    The only case today is a ``block`` decision without a message: the host
    must be able to tell the user why the action was stopped.
    """

    pass


class LockTimeoutError(MarketplaceUtilsError):
    """Raised when an advisory lock cannot be acquired within the timeout."""

    def __init__(
        self,
        lock_path: str,
        timeout: float,
        message: str | None = None,
    ) -> None:
        self.lock_path = lock_path
        self.timeout = timeout
        safe_name = sanitize_path_for_error(lock_path)
        self.message = message or f"Failed to acquire file lock at {safe_name} after {timeout}s"
        super().__init__(self.message)


class PathSecurityError(MarketplaceUtilsError):
    """Raised when a file path from hook input violates security constraints.

    Note:
        Error messages only include the filename, not the full path.
    """

    def __init__(
        self,
        path: str,
        violation_type: str,
        message: str | None = None,
    ) -> None:
        self.path = path
        self.violation_type = violation_type
        safe_name = sanitize_path_for_error(path)
        self.message = message or f"Path security violation ({violation_type}): {safe_name}"
        super().__init__(self.message)
