"""Module inspection commands."""

import asyncio

import typer
from rich.table import Table

from module_runtime.api_client import ModuleApiClient
from module_runtime.cli.utils import console, create_registry, styled_status, validate_module_ids
from module_runtime.exceptions import ModuleRegistryError
from module_runtime.loader import ModuleLoader, describe_status, preload
from module_runtime.registry import ModuleRegistry

app = typer.Typer(help="Module operations")


async def _load_closure(registry: ModuleRegistry, module_id: str) -> bool:
    """Load a module and, transitively, its dependencies. False on any failure."""
    pending = [module_id]
    seen: set[str] = set()
    ok = True
    while pending:
        name = pending.pop()
        if name in seen:
            continue
        seen.add(name)
        instance = await registry.load(name)
        if instance.error is not None:
            console.print(f"[red]{name}: {instance.error}[/red]")
            ok = False
            continue
        pending.extend(instance.dependencies)
    return ok


@app.command("list")
def list_modules():
    """List the built-in modules in dependency order.

    Every catalog module is loaded so its dependencies are known.

    Examples:
        module-runtime modules list
    """
    registry = create_registry()
    catalog_ids = sorted(registry.get_factory_ids())
    asyncio.run(preload(registry, catalog_ids))

    try:
        ordered = registry.sort_modules_by_dependencies(catalog_ids)
    except ModuleRegistryError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e

    table = Table(title="Modules")
    table.add_column("Id", style="bold")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Dependencies")
    table.add_column("Status")

    for module_id in ordered:
        instance = registry.get(module_id)
        status = describe_status(instance)
        if instance is None:
            table.add_row(module_id, "", "", "", styled_status(status))
            continue
        table.add_row(
            module_id,
            instance.config.name,
            instance.config.version,
            ", ".join(instance.dependencies) or "-",
            styled_status(status),
        )

    console.print(table)


@app.command()
def check(
    module_id: str = typer.Argument(..., help="Module to check"),
    skip_health: bool = typer.Option(
        False,
        "--skip-health",
        help="Skip the endpoint health check",
    ),
):
    """Load and initialize a module, then check its endpoints.

    Validates:
    - The module and its dependencies can be constructed
    - The dependency graph is acyclic and complete
    - ``GET /health`` answers on one of the module's endpoints

    Examples:
        module-runtime modules check dashboard
        module-runtime modules check team-chat --skip-health
    """
    registry = create_registry()
    validate_module_ids(registry, [module_id])

    console.print(f"[bold]Checking module {module_id}...[/bold]\n")

    async def run() -> bool:
        if not await _load_closure(registry, module_id):
            return False
        try:
            await registry.initialize(module_id)
        except ModuleRegistryError as e:
            console.print(f"[red]Dependency graph error: {e}[/red]")
            return False
        console.print(f"[green]Module {module_id} loaded and initialized[/green]")

        if skip_health:
            return True

        instance = registry.get(module_id)
        assert instance is not None
        async with ModuleApiClient(instance.config, settings=registry.settings) as client:
            healthy = await client.health_check()
        if healthy:
            console.print("[green]Endpoints are healthy[/green]")
        else:
            console.print(f"[yellow]No endpoint answered: {', '.join(instance.config.endpoints.all())}[/yellow]")
        return healthy

    if not asyncio.run(run()):
        raise typer.Exit(1)


@app.command()
def render(
    module_ids: list[str] = typer.Argument(..., help="Modules to render"),
    retry: bool = typer.Option(
        False,
        "--retry",
        help="Retry failed loads with backoff before rendering",
    ),
):
    """Render modules in the terminal.

    Each module is rendered on its own; a failing module shows its error
    panel and the others still render.

    Examples:
        module-runtime modules render dashboard team-chat
    """
    registry = create_registry()
    validate_module_ids(registry, module_ids)

    async def run() -> None:
        for module_id in module_ids:
            async with ModuleLoader(registry, module_id, retry_on_error=retry) as loader:
                await loader.wait_idle()
                console.print(loader.render())

    asyncio.run(run())


@app.command()
def diagnose():
    """Load every built-in module and print the registry diagnosis.

    Examples:
        module-runtime modules diagnose
    """
    registry = create_registry()
    asyncio.run(preload(registry, sorted(registry.get_factory_ids())))
    console.print(registry.diagnose())
