"""Routes a hook invocation to the handler registered for its plugin and event.

CLI usage::

    echo '{"tool_input":{"file_path":"app/middleware.ts"}}' \\
        | python -m marketplace_utils hook nextjs-16 PostToolUse

Plugin and event may be omitted, in which case ``PLUGIN_NAME`` and
``HOOK_NAME`` are used.  Events accept PascalCase or kebab-case.  A pair
with no registered handler still gets a well-formed allow response.
"""

from __future__ import annotations

import sys
from typing import Any, NoReturn

from marketplace_utils.hooks.lifecycle import HookContext, HookHandler, run_hook
from marketplace_utils.hooks.models import POST_TOOL_USE, SESSION_START, HookResponse, normalize_event
from marketplace_utils.hooks.recommenders import RECOMMENDERS

# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------

_HANDLER_MAP: dict[tuple[str, str], HookHandler] = {}


def register(plugin: str, event: str, handler: HookHandler) -> None:
    """Register *handler* for *plugin*/*event*, replacing any previous one."""
    _HANDLER_MAP[(plugin, normalize_event(event))] = handler


def get_handler(plugin: str, event: str) -> HookHandler | None:
    return _HANDLER_MAP.get((plugin, normalize_event(event)))


def registered() -> list[tuple[str, str]]:
    return sorted(_HANDLER_MAP)


for _recommender in RECOMMENDERS.values():
    register(_recommender.plugin, SESSION_START, _recommender.session_start)
    register(_recommender.plugin, POST_TOOL_USE, _recommender.recommend)


def _route(ctx: HookContext) -> HookResponse | None:
    """Resolve the handler once the lifecycle has settled plugin and event."""
    handler = get_handler(ctx.plugin, ctx.event)
    if handler is None:
        ctx.logger.debug(f"No handler for {ctx.plugin}/{ctx.event}")
        return None
    return handler(ctx)


# ---------------------------------------------------------------------------
# Primary dispatch function (testable surface)
# ---------------------------------------------------------------------------


def dispatch(plugin: str | None, event: str | None, **kwargs: Any) -> NoReturn:
    """Run the registered handler for *plugin*/*event* and exit.

    Keyword arguments are passed to :class:`HookLifecycle`.
    """
    run_hook(plugin, event, _route, **kwargs)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

USAGE = (
    "Usage: marketplace-hook [<plugin> [<event>]]\n"
    "Events: SessionStart, PreToolUse, PostToolUse, UserPromptSubmit, Stop, "
    "SubagentStop, SessionEnd"
)


def main(argv: list[str] | None = None) -> NoReturn:
    """CLI entry point for ``marketplace-hook <plugin> <event>``.

    Reads stdin, dispatches to the handler, writes the stdout response and
    exits 0 or 2.
    """
    args = sys.argv[1:] if argv is None else argv
    if args and args[0] in ("--help", "-h"):
        print(USAGE)
        sys.exit(0)

    plugin = args[0] if len(args) > 0 else None
    event = args[1] if len(args) > 1 else None
    dispatch(plugin, event)


if __name__ == "__main__":
    main()
