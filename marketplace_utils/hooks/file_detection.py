"""Path classification for the files a tool call touches.

Hook handlers receive ``tool_input.file_path`` and decide which
recommendations or checks apply.  Everything here works on the path string
only; nothing reads the file.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath

from marketplace_utils.core.errors import PathSecurityError

logger = logging.getLogger(__name__)

# =============================================================================
# Patterns
# =============================================================================

TYPESCRIPT_RE = re.compile(r"\.(ts|tsx)$")
JAVASCRIPT_RE = re.compile(r"\.(js|jsx|mjs|cjs)$")
_TEST_RE = re.compile(r"(test|spec|__tests__|__test__)")
_COMPONENT_RE = re.compile(r"(component|Component)|/components/")
_JSX_RE = re.compile(r"\.(tsx|jsx)$")
_NON_COMPONENT_RE = re.compile(r"(test|spec|hook|util|lib)")
_HOOK_RE = re.compile(r"use[A-Z]|/hooks/")
_CONFIG_RE = re.compile(
    r"(config|configuration)"
    r"|\.(config|rc)\.(ts|js|json)$"
    r"|(tsconfig|package|eslintrc|prettierrc)\."
)
_SERVER_RE = re.compile(r"/server/|/api/|route\.(ts|js)$")

# Ordered: first match wins
_FRAMEWORK_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"/app/.*\.(tsx|jsx|ts|js)$"), "nextjs"),
    (re.compile(r"/pages/.*\.(tsx|jsx|ts|js)$"), "nextjs-pages"),
    (re.compile(r"/src/routes/.*\.(tsx|jsx|ts|js|svelte)$"), "sveltekit"),
    (re.compile(r"\.(tsx|jsx)$"), "react"),
    (re.compile(r"\.vue$"), "vue"),
    (re.compile(r"\.svelte$"), "svelte"),
]

_SAFE_PATH_RE = re.compile(r"^[a-zA-Z0-9/_.-]+$")

# Files a hook should never inspect or recommend against
_SENSITIVE_NAMES = frozenset({"id_rsa", "id_ed25519", "credentials.json", "serviceAccount.json"})
_SENSITIVE_SUFFIXES = frozenset({".pem", ".key"})
_SENSITIVE_DIRS = frozenset({".git", ".ssh", "node_modules", "vendor", ".venv"})


# =============================================================================
# Classifiers
# =============================================================================


def is_typescript_file(path: str) -> bool:
    return bool(TYPESCRIPT_RE.search(path))


def is_javascript_file(path: str) -> bool:
    return bool(JAVASCRIPT_RE.search(path))


def is_test_file(path: str) -> bool:
    return bool(_TEST_RE.search(path))


def is_component_file(path: str) -> bool:
    """Component by name, by directory, or any JSX/TSX file that is not a
    test, hook or utility module."""
    if _COMPONENT_RE.search(path):
        return True
    return bool(_JSX_RE.search(path)) and not _NON_COMPONENT_RE.search(path)


def is_hook_file(path: str) -> bool:
    return bool(_HOOK_RE.search(path))


def is_config_file(path: str) -> bool:
    return bool(_CONFIG_RE.search(path))


def is_server_file(path: str) -> bool:
    return bool(_SERVER_RE.search(path))


def is_nextjs_app_dir(path: str) -> bool:
    return "/app/" in path


def is_nextjs_pages_dir(path: str) -> bool:
    return "/pages/" in path


def get_file_type(path: str) -> str:
    """Coarse file category.

    Returns:
        One of ``test``, ``component``, ``hook``, ``server``, ``config``,
        ``typescript``, ``javascript`` or ``unknown``.
    """
    if is_test_file(path):
        return "test"
    if is_component_file(path):
        return "component"
    if is_hook_file(path):
        return "hook"
    if is_server_file(path):
        return "server"
    if is_config_file(path):
        return "config"
    if is_typescript_file(path):
        return "typescript"
    if is_javascript_file(path):
        return "javascript"
    return "unknown"


def detect_framework(path: str) -> str:
    """Guess the UI framework from the path layout, or ``unknown``."""
    for pattern, framework in _FRAMEWORK_RULES:
        if pattern.search(path):
            return framework
    return "unknown"


# =============================================================================
# Safety
# =============================================================================


def validate_file_path(path: str) -> str:
    """Reject traversal in a path received from the host.

    Characters outside ``[a-zA-Z0-9/_.-]`` are allowed but logged.

    Returns:
        The path unchanged.

    Raises:
        PathSecurityError: If the path contains ``..``.
    """
    if ".." in path:
        raise PathSecurityError(path, "traversal_attempt")
    if path and not _SAFE_PATH_RE.match(path):
        logger.warning(f"Suspicious characters in path: {path!r}")
    return path


def is_sensitive_file(path: str) -> bool:
    """Secrets, shell history, VCS internals and vendored dependencies."""
    p = PurePosixPath(path)
    name = p.name
    if name == ".env" or name.startswith(".env."):
        return True
    if name.startswith(".") and name.endswith("_history"):
        return True
    if name in _SENSITIVE_NAMES or p.suffix in _SENSITIVE_SUFFIXES:
        return True
    return any(part in _SENSITIVE_DIRS for part in p.parts[:-1])
