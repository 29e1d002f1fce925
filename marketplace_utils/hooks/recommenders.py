"""Once-per-session skill recommendations for the bundled plugins.

Each plugin has a table of rules matched against the path of the file a tool
call touched.  The first matching rule wins; its recommendation is shown the
first time it matches in a session and never again, tracked by a
recommendation flag in the session store.
"""

from __future__ import annotations

import posixpath
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from marketplace_utils.hooks.file_detection import (
    is_javascript_file,
    is_nextjs_app_dir,
    is_sensitive_file,
    is_test_file,
    is_typescript_file,
    validate_file_path,
)
from marketplace_utils.hooks.models import HookResponse

if TYPE_CHECKING:
    from marketplace_utils.hooks.lifecycle import HookContext

SKILL_FOOTER = "Use Skill tool to activate specific skills when needed."


@dataclass(frozen=True)
class RecommendationRule:
    """One row of a recommender table.

    Attributes:
        recommendation_type: Flag name in the session store.
        matches: Predicate on the file path.
        message: Text shown to the host.
        warning: Emit as a warning rather than as plain context.
    """

    recommendation_type: str
    matches: Callable[[str], bool]
    message: str
    warning: bool = False


class SkillRecommender:
    """Recommends skills for one plugin from a rule table."""

    def __init__(
        self,
        plugin: str,
        rules: Sequence[RecommendationRule],
        session_banner: str,
        path_fields: Sequence[str] = ("tool_input.file_path",),
    ) -> None:
        self.plugin = plugin
        self.rules = list(rules)
        self.session_banner = session_banner
        self.path_fields = tuple(path_fields)

    def match(self, file_path: str) -> RecommendationRule | None:
        for rule in self.rules:
            if rule.matches(file_path):
                return rule
        return None

    def file_path(self, ctx: HookContext) -> str:
        for path_field in self.path_fields:
            value = ctx.field_str(path_field)
            if value:
                return value
        return ""

    def recommend(self, ctx: HookContext) -> HookResponse | None:
        """PostToolUse handler: show the matching recommendation once."""
        file_path = self.file_path(ctx)
        if not file_path:
            return None
        validate_file_path(file_path)
        if is_sensitive_file(file_path):
            ctx.logger.debug(f"Skipping sensitive file: {file_path}")
            return None

        rule = self.match(file_path)
        if rule is None:
            return None

        if not ctx.session.mark_shown(self.plugin, rule.recommendation_type):
            ctx.logger.debug(f"Already shown: {rule.recommendation_type}")
            return None

        if rule.warning:
            ctx.logger.warn(f"{rule.recommendation_type} for {file_path}", component="recommend")
            return HookResponse.warn(rule.message)
        ctx.logger.info(f"Showing recommendation: {rule.recommendation_type}", component="recommend")
        return HookResponse.inject(f"{rule.message}\n{SKILL_FOOTER}")

    def session_start(self, ctx: HookContext) -> HookResponse:
        """SessionStart handler: announce the plugin's skills."""
        ctx.logger.info(f"{self.plugin} session initialized")
        return HookResponse.inject(self.session_banner)


# =============================================================================
# Path predicates
# =============================================================================


def _basename(path: str) -> str:
    return posixpath.basename(path)


def _is_middleware(path: str) -> bool:
    return _basename(path) in ("middleware.ts", "middleware.js")


def _is_server_action(path: str) -> bool:
    name = _basename(path)
    return ("action" in name or "server" in name) and is_typescript_file(name)


def _is_app_router_file(path: str) -> bool:
    return is_nextjs_app_dir(path) and (is_typescript_file(path) or is_javascript_file(path))


def _is_prisma_schema(path: str) -> bool:
    return _basename(path) == "schema.prisma"


def _is_in_migrations(path: str) -> bool:
    return "migrations" in posixpath.dirname(path)


def _is_typescript_test(path: str) -> bool:
    return is_typescript_file(path) and is_test_file(path)


def _is_plain_javascript(path: str) -> bool:
    return path.endswith((".js", ".jsx"))


# =============================================================================
# Plugin tables
# =============================================================================

NEXTJS_SKILLS = "SECURITY-*, CACHING-*, MIGRATION-*, ROUTING-*, FORMS-*"

NEXTJS_16 = SkillRecommender(
    "nextjs-16",
    [
        RecommendationRule(
            "middleware_warning",
            _is_middleware,
            "⚠️  CRITICAL: middleware.ts is deprecated in Next.js 16\n"
            "Use MIGRATION-middleware-to-proxy skill\n"
            "Security: CVE-2025-29927 - middleware no longer safe for auth",
            warning=True,
        ),
        RecommendationRule(
            "security_skills",
            _is_server_action,
            "🔒 Server action detected. Critical: Use SECURITY-data-access-layer for authentication",
        ),
        RecommendationRule(
            "nextjs_skills",
            _is_app_router_file,
            f"📚 Next.js 16 App Router detected: {NEXTJS_SKILLS} skills available",
        ),
    ],
    session_banner=f"Next.js 16 plugin session started. Skills available: {NEXTJS_SKILLS}",
)

PRISMA_6 = SkillRecommender(
    "prisma-6",
    [
        RecommendationRule(
            "schema_files",
            _is_prisma_schema,
            "Prisma Schema: MIGRATIONS-*, CLIENT-*, QUERIES-type-safety",
        ),
        RecommendationRule(
            "migration_files",
            _is_in_migrations,
            "Prisma Migrations: MIGRATIONS-dev-workflow, MIGRATIONS-production, MIGRATIONS-v6-upgrade",
        ),
    ],
    session_banner="Prisma 6 plugin session started",
    path_fields=("tool_input.file_path", "tool_input.path"),
)

PLUGIN_TEMPLATE = SkillRecommender(
    "plugin-template",
    [
        RecommendationRule(
            "test_files",
            _is_typescript_test,
            "📚 Test File Detected: your-testing-skill skills available",
        ),
        RecommendationRule(
            "typescript_files",
            is_typescript_file,
            "📚 TypeScript File: your-main-skill, your-secondary-skill skills available",
        ),
        RecommendationRule(
            "javascript_files",
            _is_plain_javascript,
            "📚 JavaScript File: your-js-skill skills available",
        ),
    ],
    session_banner="plugin-template plugin session started",
)

RECOMMENDERS: dict[str, SkillRecommender] = {
    r.plugin: r for r in (NEXTJS_16, PRISMA_6, PLUGIN_TEMPLATE)
}
