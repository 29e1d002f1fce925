"""Unit tests for path classification."""

from __future__ import annotations

import logging

import pytest

from marketplace_utils.core.errors import PathSecurityError
from marketplace_utils.hooks.file_detection import (
    detect_framework,
    get_file_type,
    is_component_file,
    is_config_file,
    is_hook_file,
    is_javascript_file,
    is_nextjs_app_dir,
    is_sensitive_file,
    is_server_file,
    is_test_file,
    is_typescript_file,
    validate_file_path,
)


@pytest.mark.unit
class TestClassifiers:
    def test_languages(self) -> None:
        assert is_typescript_file("src/a.ts")
        assert is_typescript_file("src/A.tsx")
        assert not is_typescript_file("src/a.js")
        assert is_javascript_file("lib/a.mjs")
        assert is_javascript_file("lib/a.cjs")
        assert not is_javascript_file("lib/a.json")

    def test_test_files(self) -> None:
        assert is_test_file("src/a.test.ts")
        assert is_test_file("src/__tests__/a.ts")
        assert not is_test_file("src/a.ts")

    def test_components(self) -> None:
        assert is_component_file("src/components/Button.ts")
        assert is_component_file("src/Card.tsx")
        assert not is_component_file("src/lib/format.tsx")
        assert not is_component_file("src/a.ts")

    def test_hooks(self) -> None:
        assert is_hook_file("src/useAuth.ts")
        assert is_hook_file("src/hooks/auth.ts")
        assert not is_hook_file("src/user.ts")

    def test_config_and_server(self) -> None:
        assert is_config_file("next.config.js")
        assert is_config_file("tsconfig.json")
        assert is_server_file("app/api/users/route.ts")
        assert is_server_file("src/server/db.ts")
        assert not is_server_file("src/client.ts")

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("src/a.spec.tsx", "test"),
            ("src/components/Nav.tsx", "component"),
            ("src/useThing.ts", "hook"),
            ("src/api/handler.ts", "server"),
            ("vite.config.ts", "config"),
            ("src/math.ts", "typescript"),
            ("src/math.js", "javascript"),
            ("README.md", "unknown"),
        ],
    )
    def test_file_type(self, path: str, expected: str) -> None:
        assert get_file_type(path) == expected

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/repo/app/dashboard/page.tsx", "nextjs"),
            ("/repo/pages/index.tsx", "nextjs-pages"),
            ("/repo/src/routes/+page.svelte", "sveltekit"),
            ("/repo/src/Widget.jsx", "react"),
            ("/repo/src/Widget.vue", "vue"),
            ("/repo/src/Widget.svelte", "svelte"),
            ("/repo/main.py", "unknown"),
        ],
    )
    def test_detect_framework(self, path: str, expected: str) -> None:
        assert detect_framework(path) == expected

    def test_app_dir(self) -> None:
        assert is_nextjs_app_dir("/repo/app/page.tsx")
        assert not is_nextjs_app_dir("/repo/application.ts")


@pytest.mark.unit
class TestSafety:
    def test_traversal_rejected(self) -> None:
        with pytest.raises(PathSecurityError) as exc_info:
            validate_file_path("/repo/../etc/passwd")
        assert exc_info.value.violation_type == "traversal_attempt"

    def test_plain_path_accepted(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            assert validate_file_path("/repo/src/app.ts") == "/repo/src/app.ts"
        assert caplog.text == ""

    def test_unusual_characters_warn(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="marketplace_utils.hooks.file_detection"):
            assert validate_file_path("/repo/my file$.ts") == "/repo/my file$.ts"
        assert "Suspicious characters" in caplog.text

    @pytest.mark.parametrize(
        "path",
        [
            "/repo/.env",
            "/repo/.env.local",
            "/home/u/.bash_history",
            "/repo/.git/config",
            "/home/u/.ssh/config",
            "/home/u/id_rsa",
            "/repo/credentials.json",
            "/repo/certs/server.pem",
            "/repo/node_modules/react/index.js",
            "/repo/.venv/lib/site.py",
        ],
    )
    def test_sensitive(self, path: str) -> None:
        assert is_sensitive_file(path)

    @pytest.mark.parametrize("path", ["/repo/src/env.ts", "/repo/app/page.tsx", "/repo/keys.ts"])
    def test_not_sensitive(self, path: str) -> None:
        assert not is_sensitive_file(path)
