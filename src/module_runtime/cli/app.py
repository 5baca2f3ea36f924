"""Main CLI application."""

import typer

from module_runtime.cli.commands import modules
from module_runtime.main import serve

app = typer.Typer(
    name="module-runtime",
    help="Module runtime CLI - inspect, check and render dashboard modules",
    no_args_is_help=True,
)

# Register commands and command groups
app.command()(serve)
app.add_typer(modules.app, name="modules")
