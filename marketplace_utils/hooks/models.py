"""Domain types for hook input/output.

Provides the decision enum, the response type and the fixed mapping from
decision to process exit code that the host interprets:

    ALLOW / WARN / FAIL_OPEN -> 0    (host proceeds; a message is advisory)
    BLOCK                    -> 2    (host prevents the action, shows message)

Any other non-zero exit code is read by the host as a crashed hook, so the
lifecycle never produces one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from marketplace_utils.core.errors import HookResponseError

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_ALLOW = 0
EXIT_BLOCK = 2


class Decision(str, Enum):
    """Outcome of one hook invocation."""

    ALLOW = "allow"
    WARN = "warn"  # allow, with an advisory message for the host to surface
    BLOCK = "block"
    FAIL_OPEN = "fail-open-allow"  # internal failure, allowed by policy


_EXIT_CODES: dict[Decision, int] = {
    Decision.ALLOW: EXIT_ALLOW,
    Decision.WARN: EXIT_ALLOW,
    Decision.FAIL_OPEN: EXIT_ALLOW,
    Decision.BLOCK: EXIT_BLOCK,
}


def exit_code_for(decision: Decision) -> int:
    """Translate a decision to the process exit code."""
    return _EXIT_CODES[decision]


def decision_for_exit_code(code: int) -> Decision:
    """How the host reads an exit code (non-zero, non-2 codes fail open)."""
    if code == EXIT_ALLOW:
        return Decision.ALLOW
    if code == EXIT_BLOCK:
        return Decision.BLOCK
    return Decision.FAIL_OPEN


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

PRE_TOOL_USE = "PreToolUse"
POST_TOOL_USE = "PostToolUse"
SESSION_START = "SessionStart"
SESSION_END = "SessionEnd"
STOP = "Stop"
SUBAGENT_STOP = "SubagentStop"
USER_PROMPT_SUBMIT = "UserPromptSubmit"

_EVENT_ALIASES: dict[str, str] = {
    # PascalCase (canonical)
    "PreToolUse": PRE_TOOL_USE,
    "PostToolUse": POST_TOOL_USE,
    "SessionStart": SESSION_START,
    "SessionEnd": SESSION_END,
    "Stop": STOP,
    "SubagentStop": SUBAGENT_STOP,
    "UserPromptSubmit": USER_PROMPT_SUBMIT,
    "Notification": "Notification",
    "PreCompact": "PreCompact",
    # kebab-case (CLI)
    "pre-tool-use": PRE_TOOL_USE,
    "post-tool-use": POST_TOOL_USE,
    "session-start": SESSION_START,
    "session-end": SESSION_END,
    "stop": STOP,
    "subagent-stop": SUBAGENT_STOP,
    "user-prompt-submit": USER_PROMPT_SUBMIT,
    "notification": "Notification",
    "pre-compact": "PreCompact",
}


def normalize_event(raw: str) -> str:
    """Normalize an event name to canonical PascalCase.

    Unknown names are returned unchanged: the host may add events, and the
    generic response shape handles them.
    """
    return _EVENT_ALIASES.get(raw, raw)


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HookResponse:
    """The single response a hook invocation sends to the host.

    Frozen dataclass, immutable after construction.

    Attributes:
        decision: Allow, warn, block or fail-open.
        message: Human-readable reason (mandatory for BLOCK).
        context: Additional context merged back into the host conversation.
        updated_input: Replacement tool input (PreToolUse only).
    """

    decision: Decision = Decision.ALLOW
    message: str = ""
    context: str = ""
    updated_input: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if self.decision is Decision.BLOCK and not self.message.strip():
            raise HookResponseError("A block decision requires a non-empty message")

    @property
    def exit_code(self) -> int:
        return exit_code_for(self.decision)

    @classmethod
    def allow(cls) -> HookResponse:
        return cls()

    @classmethod
    def warn(cls, message: str) -> HookResponse:
        return cls(decision=Decision.WARN, message=message)

    @classmethod
    def block(cls, message: str) -> HookResponse:
        return cls(decision=Decision.BLOCK, message=message)

    @classmethod
    def inject(cls, context: str) -> HookResponse:
        """Allow, carrying *context* for the host to add to the conversation."""
        return cls(context=context)

    @classmethod
    def fail_open(cls) -> HookResponse:
        return cls(decision=Decision.FAIL_OPEN)
