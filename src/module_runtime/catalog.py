"""Built-in module catalog.

Maps module ids to factories for the dashboard's feature modules. The
registry constructs a module through this map the first time it is loaded.

Each component renders a Rich panel from its ``config`` and an optional
``data`` payload (whatever the module fetched from its endpoints).
"""

from collections.abc import Callable
from typing import Any

from loguru import logger
from rich.console import RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from module_runtime.models import (
    ModuleConfig,
    ModuleContext,
    ModuleDefinition,
    ModuleEndpoints,
    ModuleFactory,
    ModuleFeatures,
    ModulePermissions,
)

AUTH_CONFIG = ModuleConfig(
    id="auth",
    name="Authentication",
    version="1.0.0",
    description="Session and user identity for the other modules",
    endpoints=ModuleEndpoints(primary="/api/auth", fallback=["/api/login"]),
    features=ModuleFeatures(cache=False),
    permissions=ModulePermissions(required=[], optional=["auth.admin"]),
)

DASHBOARD_CONFIG = ModuleConfig(
    id="dashboard",
    name="Dashboard",
    version="1.0.0",
    description="Task status overview and statistics",
    endpoints=ModuleEndpoints(primary="/api", fallback=["/api/v1", "/api/backup"]),
    features=ModuleFeatures(realtime=True, cache=True, offline=False, auto_refresh=30000),
    permissions=ModulePermissions(
        required=["dashboard.view"],
        optional=["dashboard.export", "dashboard.settings"],
    ),
    ui={"theme": "light", "position": "main", "size": "full"},
    dependencies=["auth"],
    custom_config={"status_cards": {"show_preview": True, "max_preview_items": 3}},
)

SUMMARY_CARDS_CONFIG = ModuleConfig(
    id="summary-cards",
    name="Summary Cards",
    version="1.0.0",
    description="Personal task counters",
    endpoints=ModuleEndpoints(primary="/api/users/me/stats", fallback=["/api/stats/user", "/api/dashboard/stats"]),
    features=ModuleFeatures(realtime=True, cache=True),
    permissions=ModulePermissions(required=["read:stats"]),
    ui={"color_scheme": "purple", "size": "md"},
    dependencies=["dashboard"],
)

TASK_LIST_CONFIG = ModuleConfig(
    id="task-list",
    name="Task List",
    version="1.0.0",
    description="Tasks assigned to the current user",
    endpoints=ModuleEndpoints(primary="/api/tasks", fallback=["/api/tasks/list", "/api/user/tasks"]),
    features=ModuleFeatures(realtime=True, cache=True, auto_refresh=30000),
    permissions=ModulePermissions(required=["read:tasks", "write:tasks"]),
    ui={"color_scheme": "blue", "size": "md"},
    dependencies=["auth"],
)

TEAM_CHAT_CONFIG = ModuleConfig(
    id="team-chat",
    name="Team Chat",
    version="1.0.0",
    description="Team message feed",
    endpoints=ModuleEndpoints(primary="/api/team/messages", fallback=["/api/chat/messages", "/api/team/chat"]),
    features=ModuleFeatures(realtime=True, cache=False, auto_refresh=5000),
    permissions=ModulePermissions(required=["read:messages", "write:messages"]),
    ui={"color_scheme": "green", "size": "md"},
    dependencies=["auth"],
)

WEEKLY_REPORT_CONFIG = ModuleConfig(
    id="weekly-report",
    name="Weekly Report",
    version="1.0.0",
    description="Weekly completion report",
    endpoints=ModuleEndpoints(
        primary="/api/reports/weekly",
        fallback=["/api/analytics/weekly", "/api/tasks/weekly-summary"],
    ),
    features=ModuleFeatures(realtime=True, cache=True),
    permissions=ModulePermissions(required=["read:reports", "read:analytics"]),
    ui={"color_scheme": "indigo", "size": "lg"},
    dependencies=["task-list"],
)


def _header(config: ModuleConfig) -> Text:
    return Text.assemble((config.name, "bold"), (f"  v{config.version}", "dim"))


def render_auth(*, config: ModuleConfig, data: dict[str, Any] | None = None, **_props: Any) -> RenderableType:
    user = (data or {}).get("user")
    body = Text(f"Signed in as {user}" if user else "Not signed in", style="green" if user else "yellow")
    return Panel(body, title=_header(config), border_style="cyan")


def render_dashboard(*, config: ModuleConfig, data: dict[str, Any] | None = None, **_props: Any) -> RenderableType:
    counts = (data or {}).get("counts", {})
    table = Table(show_header=True, header_style="bold", expand=True)
    for status in ("scheduled", "in_progress", "completed", "cancelled", "postponed"):
        table.add_column(status.replace("_", " "), justify="right")
    table.add_row(*(str(counts.get(status, 0)) for status in ("scheduled", "in_progress", "completed", "cancelled", "postponed")))
    return Panel(table, title=_header(config), border_style="blue")


def render_summary_cards(*, config: ModuleConfig, data: dict[str, Any] | None = None, **_props: Any) -> RenderableType:
    stats = data or {}
    total = stats.get("total", 0)
    completed = stats.get("completed", 0)
    rate = f"{completed / total:.0%}" if total else "-"
    body = Text.assemble(
        ("Total ", "bold"), str(total), "   ",
        ("In progress ", "bold"), str(stats.get("in_progress", 0)), "   ",
        ("Completed ", "bold"), f"{completed} ({rate})",
    )  # fmt: skip
    return Panel(body, title=_header(config), border_style="magenta")


def render_task_list(*, config: ModuleConfig, data: dict[str, Any] | None = None, **_props: Any) -> RenderableType:
    table = Table("Title", "Status", "Due", expand=True)
    for task in (data or {}).get("tasks", []):
        table.add_row(str(task.get("title", "")), str(task.get("status", "")), str(task.get("due", "")))
    if not table.row_count:
        return Panel(Text("No tasks", style="dim"), title=_header(config), border_style="blue")
    return Panel(table, title=_header(config), border_style="blue")


def render_team_chat(*, config: ModuleConfig, data: dict[str, Any] | None = None, **_props: Any) -> RenderableType:
    messages = (data or {}).get("messages", [])
    body = Text()
    for message in messages[-10:]:
        body.append(f"{message.get('author', '?')}: ", style="bold green")
        body.append(f"{message.get('text', '')}\n")
    return Panel(body if messages else Text("No messages", style="dim"), title=_header(config), border_style="green")


def render_weekly_report(*, config: ModuleConfig, data: dict[str, Any] | None = None, **_props: Any) -> RenderableType:
    table = Table("Day", "Completed", expand=True)
    for day, completed in (data or {}).get("days", {}).items():
        table.add_row(str(day), str(completed))
    return Panel(table, title=_header(config), border_style="bright_blue")


def _init_auth(context: ModuleContext) -> None:
    logger.debug(f"Auth module initialized for environment '{context.environment}'")


def _static_factory(
    config: ModuleConfig,
    component: Callable[..., RenderableType],
    init: Callable[[ModuleContext], None] | None = None,
) -> ModuleFactory:
    def factory() -> ModuleDefinition:
        return ModuleDefinition(config=config, component=component, init=init)

    return factory


def build_catalog() -> dict[str, ModuleFactory]:
    """Return a fresh id -> factory map of the built-in modules."""
    return {
        AUTH_CONFIG.id: _static_factory(AUTH_CONFIG, render_auth, _init_auth),
        DASHBOARD_CONFIG.id: _static_factory(DASHBOARD_CONFIG, render_dashboard),
        SUMMARY_CARDS_CONFIG.id: _static_factory(SUMMARY_CARDS_CONFIG, render_summary_cards),
        TASK_LIST_CONFIG.id: _static_factory(TASK_LIST_CONFIG, render_task_list),
        TEAM_CHAT_CONFIG.id: _static_factory(TEAM_CHAT_CONFIG, render_team_chat),
        WEEKLY_REPORT_CONFIG.id: _static_factory(WEEKLY_REPORT_CONFIG, render_weekly_report),
    }


def catalog_configs() -> dict[str, ModuleConfig]:
    """Configs of the built-in modules keyed by id."""
    return {
        config.id: config
        for config in (
            AUTH_CONFIG,
            DASHBOARD_CONFIG,
            SUMMARY_CARDS_CONFIG,
            TASK_LIST_CONFIG,
            TEAM_CHAT_CONFIG,
            WEEKLY_REPORT_CONFIG,
        )
    }
