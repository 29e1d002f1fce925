"""End-to-end tests running hooks as the host does: a fresh process per event.

The request goes in on stdin; the response comes back as one JSON document
on stdout plus the exit code.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path
from typing import Any

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]


def _run_hook(
    args: list[str],
    stdin: bytes,
    tmp_path: Path,
    extra_env: dict[str, str] | None = None,
) -> subprocess.CompletedProcess[bytes]:
    env = {k: v for k, v in os.environ.items() if not k.startswith("CLAUDE_")}
    env.update(
        {
            "CLAUDE_SESSION_PID": "e2e",
            "CLAUDE_HOOKS_TMPDIR": str(tmp_path),
            "PYTHONPATH": os.pathsep.join(filter(None, [str(REPO_ROOT), env.get("PYTHONPATH", "")])),
        }
    )
    env.update(extra_env or {})
    return subprocess.run(
        [sys.executable, "-m", "marketplace_utils", "hook", *args],
        input=stdin,
        capture_output=True,
        env=env,
        timeout=60,
    )


def _response(result: subprocess.CompletedProcess[bytes]) -> dict[str, Any]:
    lines = [line for line in result.stdout.decode("utf-8").splitlines() if line.strip()]
    assert len(lines) == 1, result.stdout
    return json.loads(lines[0])


@pytest.mark.integration
class TestHookProcess:
    def test_middleware_warning_once(self, tmp_path: Path) -> None:
        request = json.dumps({"tool_input": {"file_path": "middleware.ts"}}).encode("utf-8")

        first = _run_hook(["nextjs-16", "PostToolUse"], request, tmp_path)
        assert first.returncode == 0, first.stderr
        assert "CVE-2025-29927" in _response(first)["hookSpecificOutput"]["additionalContext"]

        second = _run_hook(["nextjs-16", "PostToolUse"], request, tmp_path)
        assert second.returncode == 0, second.stderr
        assert _response(second) == {}

        session = json.loads((tmp_path / "claude-session-e2e.json").read_text(encoding="utf-8"))
        assert session["flags"]["nextjs-16"]["middleware_warning"] is True

    def test_session_start_injects_banner(self, tmp_path: Path) -> None:
        result = _run_hook(["prisma-6", "SessionStart"], b'{"source": "startup"}', tmp_path)
        assert result.returncode == 0
        assert _response(result)["hookSpecificOutput"]["additionalContext"] == "Prisma 6 plugin session started"

    @pytest.mark.parametrize("stdin", [b"", b"{broken", b"[]"])
    def test_malformed_input_allows(self, tmp_path: Path, stdin: bytes) -> None:
        result = _run_hook(["nextjs-16", "PostToolUse"], stdin, tmp_path)
        assert result.returncode == 0
        assert _response(result) == {}

    def test_failure_is_journaled_and_allowed(self, tmp_path: Path) -> None:
        request = json.dumps({"tool_input": {"file_path": "../../etc/middleware.ts"}}).encode("utf-8")
        result = _run_hook(["nextjs-16", "PostToolUse"], request, tmp_path)
        assert result.returncode == 0
        assert _response(result) == {}

        journal = (tmp_path / "claude-errors-e2e.jsonl").read_text(encoding="utf-8").splitlines()
        entry = json.loads(journal[0])
        assert entry["code"] == "HOOK_FAILED"
        assert entry["plugin"] == "nextjs-16"

    def test_invalid_plugin_allowed(self, tmp_path: Path) -> None:
        result = _run_hook(["bad plugin!", "PostToolUse"], b"{}", tmp_path)
        assert result.returncode == 0
        assert _response(result) == {}

    def test_error_level_log(self, tmp_path: Path) -> None:
        request = json.dumps({"tool_input": {"file_path": "middleware.ts"}}).encode("utf-8")
        _run_hook(["nextjs-16", "PostToolUse"], request, tmp_path, {"CLAUDE_DEBUG_LEVEL": "ERROR"})
        # The middleware warning is logged at WARN, below the threshold
        assert not (tmp_path / "claude-session-e2e.log").exists()

    def test_session_end_cleans_up(self, tmp_path: Path) -> None:
        request = json.dumps({"tool_input": {"file_path": "middleware.ts"}}).encode("utf-8")
        _run_hook(["nextjs-16", "PostToolUse"], request, tmp_path)
        assert (tmp_path / "claude-session-e2e.json").exists()

        result = _run_hook(["nextjs-16", "SessionEnd"], b"{}", tmp_path)
        assert result.returncode == 0
        assert not (tmp_path / "claude-session-e2e.json").exists()
        assert not (tmp_path / "claude-session-e2e.log").exists()

    def test_console_entry_point_module(self, tmp_path: Path) -> None:
        env = {k: v for k, v in os.environ.items() if not k.startswith("CLAUDE_")}
        env["PYTHONPATH"] = str(REPO_ROOT)
        result = subprocess.run(
            [sys.executable, "-m", "marketplace_utils.hooks.dispatcher", "--help"],
            capture_output=True,
            env=env,
            timeout=60,
        )
        assert result.returncode == 0
        assert b"Usage: marketplace-hook" in result.stdout
