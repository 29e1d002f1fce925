"""Hook-side modules: protocol adapter, lifecycle wrapper and plugin handlers.

A hook process is spawned per event, so everything here is imported on the
hot path.  Keep module-level work to building tables and regexes.
"""

from marketplace_utils.hooks.lifecycle import (
    HookContext,
    HookLifecycle,
    cleanup_session_artifacts,
    run_hook,
)
from marketplace_utils.hooks.models import (
    EXIT_ALLOW,
    EXIT_BLOCK,
    Decision,
    HookResponse,
    exit_code_for,
    normalize_event,
)
from marketplace_utils.hooks.protocol import HookProtocol

__all__ = [
    "EXIT_ALLOW",
    "EXIT_BLOCK",
    "Decision",
    "HookContext",
    "HookLifecycle",
    "HookProtocol",
    "HookResponse",
    "cleanup_session_artifacts",
    "exit_code_for",
    "normalize_event",
    "run_hook",
]
