"""Rich renderables shared by the registry, loader and error boundary."""

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.spinner import Spinner
from rich.text import Text


def loading_view(module_id: str) -> RenderableType:
    """Default spinner shown while a module is loading."""
    return Spinner("dots", text=Text(f"Loading module {module_id}...", style="dim"))


def not_loaded_view(module_id: str) -> RenderableType:
    """Placeholder for a loader that has not started yet."""
    return Panel(
        Text.assemble(("Module not loaded: ", "bold"), module_id, "\n", ("Trigger a load to display it.", "dim")),
        border_style="yellow",
        title="module",
    )


def load_failed_view(module_id: str, message: str, footer: str | None = None) -> RenderableType:
    """Panel describing a module that could not be loaded."""
    lines: list[RenderableType] = [Text(message, style="red")]
    if footer:
        lines.append(Text(footer, style="dim"))
    return Panel(
        Group(*lines),
        title=f"Module loading failed: {module_id}",
        border_style="red",
    )


def render_failed_view(
    module_name: str,
    timestamp: str,
    retry_count: int,
    max_retries: int,
    hint: str,
    details: str | None = None,
) -> RenderableType:
    """Panel describing a module that failed while rendering."""
    body = Text()
    body.append("Module: ", style="bold")
    body.append(f"{module_name}\n")
    body.append("Time: ", style="bold")
    body.append(f"{timestamp}\n")
    if retry_count > 0:
        body.append("Retry: ", style="bold")
        body.append(f"{retry_count}/{max_retries}\n")
    parts: list[RenderableType] = [body]
    if details:
        parts.append(Text(details, style="dim red"))
    parts.append(Text(hint, style="italic"))
    return Panel(Group(*parts), title="A module error occurred", border_style="red")
