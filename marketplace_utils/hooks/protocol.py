"""stdin/stdout protocol between a hook process and the host.

The host writes one JSON document to stdin and reads back one JSON document
from stdout plus the exit code (see :mod:`marketplace_utils.hooks.models`).
stderr is a side channel for diagnostics, and carries the block reason when
exiting with code 2.

Reading never raises: a TTY, empty input, invalid JSON or a non-object
document all produce ``{}``.
"""

from __future__ import annotations

import json
import os
import sys
from typing import IO, TYPE_CHECKING, Any, NoReturn

from marketplace_utils.core.errors import HookResponseError
from marketplace_utils.hooks.models import (
    PRE_TOOL_USE,
    POST_TOOL_USE,
    SESSION_END,
    STOP,
    SUBAGENT_STOP,
    Decision,
    HookResponse,
)

if TYPE_CHECKING:
    from marketplace_utils.core.journal import ErrorJournal

MAX_INPUT_BYTES = 524_288  # 512KB

# Events whose output schema has no additionalContext slot
_NO_CONTEXT_EVENTS = frozenset({STOP, SUBAGENT_STOP, SESSION_END, "PreCompact"})

# ---------------------------------------------------------------------------
# Per-event payload builders
# ---------------------------------------------------------------------------


def pretooluse_payload(
    decision: str = "allow",
    reason: str = "",
    updated_input: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a PreToolUse permission response.

    Args:
        decision: ``allow``, ``deny`` or ``ask``.
        reason: Shown to the user (and to the model for ``deny``).
        updated_input: Replacement tool input.
    """
    output: dict[str, Any] = {
        "hookEventName": PRE_TOOL_USE,
        "permissionDecision": decision,
    }
    if reason:
        output["permissionDecisionReason"] = reason
    if updated_input is not None:
        output["updatedInput"] = updated_input
    return {"hookSpecificOutput": output}


def posttooluse_payload(decision: str = "", reason: str = "", context: str = "") -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if decision:
        payload["decision"] = decision
        payload["reason"] = reason
    if context:
        payload["hookSpecificOutput"] = {
            "hookEventName": POST_TOOL_USE,
            "additionalContext": context,
        }
    return payload


def stop_payload(decision: str = "", reason: str = "") -> dict[str, Any]:
    """Build a Stop/SubagentStop response.

    Raises:
        HookResponseError: If *decision* is ``block`` without a reason.
    """
    if decision == "block" and not reason:
        raise HookResponseError("Stop decision 'block' requires a reason")
    if not decision:
        return {}
    return {"decision": decision, "reason": reason}


def context_payload(context: str, event: str) -> dict[str, Any]:
    """Build a response injecting *context* into the host conversation."""
    return {"hookSpecificOutput": {"hookEventName": event, "additionalContext": context}}


def _join(*parts: str) -> str:
    return "\n\n".join(part for part in parts if part)


def build_payload(response: HookResponse, event: str) -> dict[str, Any]:
    """Render *response* in the JSON shape the host expects for *event*."""
    blocked = response.decision is Decision.BLOCK
    advisory = response.message if response.decision is Decision.WARN else ""

    if event == PRE_TOOL_USE:
        payload = pretooluse_payload(
            "deny" if blocked else "allow",
            reason=response.message if response.decision in (Decision.BLOCK, Decision.WARN) else "",
            updated_input=response.updated_input,
        )
        if response.context:
            payload["hookSpecificOutput"]["additionalContext"] = response.context
        return payload

    if event == POST_TOOL_USE:
        return posttooluse_payload(
            decision="block" if blocked else "",
            reason=response.message if blocked else "",
            context=_join(advisory, response.context),
        )

    if event in _NO_CONTEXT_EVENTS:
        payload = stop_payload("block" if blocked else "", response.message if blocked else "")
        notice = _join(advisory, response.context)
        if notice:
            payload["systemMessage"] = notice
        return payload

    # SessionStart, UserPromptSubmit and anything newer
    payload = {}
    if blocked:
        payload = {"decision": "block", "reason": response.message}
    context = _join(advisory, response.context)
    if context:
        payload.update(context_payload(context, event))
    return payload


# ---------------------------------------------------------------------------
# Protocol adapter
# ---------------------------------------------------------------------------


class HookProtocol:
    """Reads the request and writes the single response of one invocation.

    Streams default to the process's stdin/stdout/stderr and can be replaced
    with in-memory streams in tests.
    """

    def __init__(
        self,
        stdin: IO[Any] | None = None,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
        journal: ErrorJournal | None = None,
    ) -> None:
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self.journal = journal
        self.responded = False

    def read_request(self) -> dict[str, Any]:
        """Consume stdin once and parse it.

        Returns:
            Parsed dict, or empty dict on any error.
        """
        try:
            if self.stdin.isatty():
                return {}
        except (AttributeError, OSError, ValueError):
            pass

        try:
            source = getattr(self.stdin, "buffer", self.stdin)
            raw = source.read(MAX_INPUT_BYTES + 1)
        except (OSError, ValueError):
            return {}

        if len(raw) > MAX_INPUT_BYTES:
            if self.journal is not None:
                self.journal.report_warning(
                    "INPUT_TRUNCATED",
                    f"Hook input exceeds {MAX_INPUT_BYTES} bytes, ignoring request",
                    {"limit": MAX_INPUT_BYTES},
                )
            return {}

        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        if not raw or not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, RecursionError):
            return {}
        return data if isinstance(data, dict) else {}

    def respond(self, response: HookResponse, event: str) -> dict[str, Any]:
        """Write *response* for *event* to stdout.

        A block message is also written to stderr, which the host shows for
        exit code 2.

        Returns:
            The payload written.

        Raises:
            HookResponseError: If a response was already written.
        """
        if self.responded:
            raise HookResponseError("Hook response already sent")
        payload = build_payload(response, event)
        # Nothing reaches stdout unless the whole payload encodes
        text = json.dumps(payload, ensure_ascii=False)
        self.responded = True

        try:
            self.stdout.write(text + "\n")
            self.stdout.flush()
        except BrokenPipeError:
            self._silence_stdout()
        if response.decision is Decision.BLOCK:
            self.user_message(response.message)
        return payload

    def user_message(self, text: str) -> None:
        """Write a human-readable line to stderr."""
        try:
            self.stderr.write(text.rstrip("\n") + "\n")
            self.stderr.flush()
        except (OSError, ValueError):
            pass

    def finish(self, exit_code: int) -> NoReturn:
        """Flush all output and exit the process with *exit_code*."""
        for stream in (self.stdout, self.stderr):
            try:
                stream.flush()
            except BrokenPipeError:
                if stream is self.stdout:
                    self._silence_stdout()
            except (OSError, ValueError):
                pass
        raise SystemExit(exit_code)

    def _silence_stdout(self) -> None:
        """Point a closed process stdout at devnull.

        The interpreter flushes stdout again at shutdown; without this, a
        reader that went away would turn into a noisy BrokenPipeError.
        """
        if self.stdout is not sys.stdout:
            return
        try:
            devnull = os.open(os.devnull, os.O_WRONLY)
            os.dup2(devnull, sys.stdout.fileno())
            os.close(devnull)
        except (OSError, ValueError, AttributeError):
            pass
