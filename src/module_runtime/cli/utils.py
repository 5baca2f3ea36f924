"""CLI utility functions shared across commands.

This module contains generic CLI utilities for:
- Building a registry over the built-in catalog
- Validating module ids
- Console output
"""

import typer
from rich.console import Console

from module_runtime.catalog import build_catalog
from module_runtime.registry import ModuleRegistry

console = Console()

STATUS_STYLES = {
    "active": "green",
    "loaded": "cyan",
    "error": "red",
    "not loaded": "dim",
}


def create_registry() -> ModuleRegistry:
    """Create a registry whose factory map is the built-in catalog."""
    return ModuleRegistry(factories=build_catalog())


def validate_module_ids(registry: ModuleRegistry, module_ids: list[str]) -> None:
    """Validate that every id is known to the catalog.

    Raises:
        typer.Exit: If an id has no factory
    """
    unknown = [module_id for module_id in module_ids if not registry.has_factory(module_id)]
    if unknown:
        console.print(f"[red]Error: unknown module(s): {', '.join(unknown)}[/red]")
        raise typer.Exit(1)


def styled_status(status: str) -> str:
    """Wrap a module status label in Rich markup."""
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"
