"""Per-invocation entry/exit sequence shared by every plugin hook.

    START -> IDENTIFY -> RUN -> RESPOND -> END

IDENTIFY wires settings, lock provider, session logger, error journal and
session store together and parses the request.  RUN calls the plugin
handler.  RESPOND writes exactly one response; END logs the elapsed time
and exits through :meth:`HookProtocol.finish`.

**Fail-open**: any exception in IDENTIFY or RUN is recorded in the error
journal and turned into an allow response with exit code 0.  Only a
handler that successfully returns a BLOCK response can stop the host's
action (exit code 2).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, NoReturn

from pydantic import ValidationError

from marketplace_utils.config import Settings, get_settings
from marketplace_utils.core.documents import get_field, get_str
from marketplace_utils.core.errors import ConfigurationError, InvalidPluginNameError
from marketplace_utils.core.journal import ErrorJournal
from marketplace_utils.core.locking import (
    LockProvider,
    lock_path_for,
    select_lock_provider,
)
from marketplace_utils.core.logging import SessionLogger
from marketplace_utils.core.session import (
    FileSessionBackend,
    SessionBackend,
    SessionStore,
    validate_plugin_name,
)
from marketplace_utils.hooks.models import (
    EXIT_ALLOW,
    SESSION_END,
    SESSION_START,
    Decision,
    HookResponse,
    normalize_event,
)
from marketplace_utils.hooks.protocol import HookProtocol

logger = logging.getLogger(__name__)


@dataclass
class HookContext:
    """Everything a plugin handler gets to work with."""

    plugin: str
    event: str
    request: dict[str, Any]
    settings: Settings
    logger: SessionLogger
    journal: ErrorJournal
    session: SessionStore
    started_at: float = field(default_factory=time.monotonic)

    def field(self, path: str, default: Any = None) -> Any:
        return get_field(self.request, path, default)

    def field_str(self, path: str) -> str:
        return get_str(self.request, path)

    @property
    def tool_name(self) -> str:
        return get_str(self.request, "tool_name")

    @property
    def file_path(self) -> str:
        return get_str(self.request, "tool_input.file_path")

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


HookHandler = Callable[[HookContext], "HookResponse | None"]


def cleanup_session_artifacts(settings: Settings, keep_logs: bool | None = None) -> list[Path]:
    """Remove the files of the current session.

    Args:
        settings: Settings naming the session artifacts.
        keep_logs: Keep the log and journal.  Defaults to
            ``settings.retain_logs``.

    Returns:
        The paths that were removed.
    """
    if keep_logs is None:
        keep_logs = settings.retain_logs

    session_file = settings.session_file_path()
    targets = [
        session_file,
        lock_path_for(session_file),
        settings.artifact_dir() / f"claude-session-{settings.session_key()}.nolock",
    ]
    if not keep_logs:
        for path in (settings.log_file_path(), settings.journal_path()):
            targets.extend([path, lock_path_for(path)])

    removed = []
    for path in targets:
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.debug(f"Could not remove {path.name}: {e}")
            continue
        removed.append(path)
    return removed


class HookLifecycle:
    """Runs one hook invocation from request to exit code.

    Collaborators can be injected for tests; by default they are built from
    :func:`get_settings`.

    Example:
        def handler(ctx: HookContext) -> HookResponse | None:
            if ctx.file_path.endswith(".env"):
                return HookResponse.block(f"Refusing to edit {ctx.file_path}")
            return None

        HookLifecycle("my-plugin", "PreToolUse").run(handler)
    """

    def __init__(
        self,
        plugin: str | None = None,
        event: str | None = None,
        *,
        settings: Settings | None = None,
        protocol: HookProtocol | None = None,
        lock_provider: LockProvider | None = None,
        session_backend: SessionBackend | None = None,
    ) -> None:
        self.plugin = plugin or ""
        self.event = normalize_event(event) if event else ""
        self.protocol = protocol or HookProtocol()
        self.started_at = time.monotonic()

        self._settings = settings
        self._lock_provider = lock_provider
        self._session_backend = session_backend

        self.settings: Settings | None = None
        self.logger: SessionLogger | None = None
        self.journal: ErrorJournal | None = None
        self.context: HookContext | None = None

    # -- IDENTIFY ----------------------------------------------------------

    def identify(self) -> HookContext:
        """Wire collaborators, validate the plugin name, read the request."""
        try:
            settings = self._settings or get_settings()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid hook environment: {e.error_count()} error(s)") from e
        self.settings = settings
        self.plugin = self.plugin or settings.plugin_name
        self.event = self.event or normalize_event(settings.hook_name)

        notices: list[str] = []
        lock_provider = self._lock_provider or select_lock_provider(settings, notify=notices.append)

        self.logger = SessionLogger(
            self.plugin,
            self.event,
            settings.log_file_path(),
            level=settings.log_level,
            lock_provider=lock_provider,
        )
        for notice in notices:
            logger.warning(notice)
            self.logger.warn(notice, component="locking")

        self.journal = ErrorJournal(
            settings.journal_path(),
            plugin=self.plugin,
            hook=self.event,
            lock_provider=lock_provider,
            session_logger=self.logger,
        )
        if self.protocol.journal is None:
            self.protocol.journal = self.journal

        validate_plugin_name(self.plugin)

        if settings.remote:
            self.logger.info("Running in remote/web environment")

        backend = self._session_backend or FileSessionBackend(settings.session_file_path())
        session = SessionStore(backend, lock_provider, session_key=settings.session_key())

        request = self.protocol.read_request()

        if self.event == SESSION_START:
            session.init(self.plugin)

        self.context = HookContext(
            plugin=self.plugin,
            event=self.event,
            request=request,
            settings=settings,
            logger=self.logger,
            journal=self.journal,
            session=session,
            started_at=self.started_at,
        )
        self.logger.debug(f"Hook initialized: {self.plugin}/{self.event} in {self.elapsed_ms()}ms")
        return self.context

    # -- RUN / RESPOND / END -----------------------------------------------

    def run(self, handler: HookHandler) -> NoReturn:
        """Execute *handler* and exit the process with the mapped code."""
        response = HookResponse.fail_open()
        try:
            context = self.identify()
            result = handler(context)
            if result is not None and not isinstance(result, HookResponse):
                raise TypeError(f"Handler returned {type(result).__name__}, expected HookResponse or None")
            response = result if result is not None else HookResponse.allow()
        except InvalidPluginNameError as e:
            self._record_failure(e, "INVALID_PLUGIN_NAME")
        except ConfigurationError as e:
            self._record_failure(e, "CONFIGURATION_ERROR")
        except (Exception, SystemExit) as e:
            # A handler calling sys.exit() still gets a response
            self._record_failure(e, "HOOK_FAILED")

        exit_code = self._respond(response)
        try:
            self._log_completion(response)
        except Exception as e:
            logger.debug(f"Could not log hook completion: {e}")
        if self.event == SESSION_END and self.settings is not None:
            self._end_session(self.settings)

        self.protocol.finish(exit_code)

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)

    def _respond(self, response: HookResponse) -> int:
        try:
            self.protocol.respond(response, self.event)
            return response.exit_code
        except Exception as e:
            self._record_failure(e, "RESPONSE_FAILED")

        if not self.protocol.responded:
            try:
                self.protocol.respond(HookResponse.fail_open(), self.event)
            except Exception:
                # Nothing left to report to; the exit code still allows.
                pass
        return EXIT_ALLOW

    def _record_failure(self, exc: BaseException, code: str) -> None:
        """Journal a failure that is being converted to fail-open."""
        try:
            journal = self.journal or self._fallback_journal()
            journal.report_exception(
                exc,
                code=code,
                context={"plugin": self.plugin, "hook": self.event, "decision": "fail-open-allow"},
            )
        except Exception as e:
            logger.debug(f"Could not record hook failure: {e}")

    def _fallback_journal(self) -> ErrorJournal:
        """Journal used when IDENTIFY failed before wiring one.

        Falls back to unvalidated default settings if the environment itself
        is what failed to parse.
        """
        settings = self.settings or self._settings or Settings.model_construct()
        return ErrorJournal(settings.journal_path(), plugin=self.plugin, hook=self.event)

    def _log_completion(self, response: HookResponse) -> None:
        if self.logger is None:
            return
        elapsed = self.elapsed_ms()
        name = f"{self.plugin}/{self.event}"
        if response.decision is Decision.FAIL_OPEN:
            self.logger.error(f"Hook failed open: {name} after {elapsed}ms")
        elif response.decision is Decision.BLOCK:
            self.logger.warn(f"Hook blocked: {name} in {elapsed}ms: {response.message}")
        else:
            self.logger.info(f"Hook completed: {name} in {elapsed}ms")

    def _end_session(self, settings: Settings) -> None:
        try:
            if self.logger is not None:
                self.logger.close()
            cleanup_session_artifacts(settings)
        except Exception as e:
            logger.debug(f"Session cleanup failed: {e}")


def run_hook(
    plugin: str | None,
    event: str | None,
    handler: HookHandler,
    **kwargs: Any,
) -> NoReturn:
    """Run *handler* as the ``plugin``/``event`` hook and exit.

    Keyword arguments are passed to :class:`HookLifecycle`.
    """
    HookLifecycle(plugin, event, **kwargs).run(handler)
