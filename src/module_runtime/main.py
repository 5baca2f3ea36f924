"""Main entry point for the status server using Typer and Pydantic Settings."""

import typer
import uvicorn
from loguru import logger

from module_runtime.logging import setup_logging
from module_runtime.settings import get_settings

app = typer.Typer()


HOST_OPTION = typer.Option(
    None,
    help="Host to bind the server to (overrides MODULE_RUNTIME_HOST)",
    metavar="<server>",
)  # fmt: skip
PORT_OPTION = typer.Option(
    None,
    help="Port to bind the server to (overrides MODULE_RUNTIME_PORT)",
    metavar="<port>",
)  # fmt: skip
RELOAD_OPTION = typer.Option(
    None,
    help="Enable/disable auto-reload (overrides MODULE_RUNTIME_RELOAD)",
)  # fmt: skip
LOG_LEVEL_OPTION = typer.Option(
    None,
    help="Log level (overrides MODULE_RUNTIME_LOG_LEVEL)",
    metavar="<level>",
    case_sensitive=False,
)  # fmt: skip
API_BASE_URL_OPTION = typer.Option(
    None,
    help="Base URL for relative module endpoints (overrides MODULE_RUNTIME_API_BASE_URL)",
    metavar="<url>",
)  # fmt: skip


def _update_settings(
    host: str | None,
    port: int | None,
    log_level: str | None,
    reload: bool | None,
    api_base_url: str | None,
) -> None:
    """Update settings with CLI overrides.

    Args:
        host: Host override
        port: Port override
        log_level: Log level override
        reload: Reload override
        api_base_url: Backend base URL override
    """
    settings = get_settings()

    # Apply overrides
    if host is not None:
        settings.host = host
    if port is not None:
        settings.port = port
    if log_level is not None:
        settings.log_level = log_level.upper()
    if reload is not None:
        settings.reload = reload
    if api_base_url is not None:
        settings.api_base_url = api_base_url


@app.command()
def serve(
    host: str = HOST_OPTION,
    port: int = PORT_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
    reload: bool = RELOAD_OPTION,
    api_base_url: str = API_BASE_URL_OPTION,
) -> None:
    """Run the module runtime status server."""
    # Update settings with CLI overrides
    _update_settings(host, port, log_level, reload, api_base_url)

    # Get final settings
    settings = get_settings()

    # Setup logging
    setup_logging(settings.log_level)

    logger.info(f"Starting module runtime on {settings.host}:{settings.port}")
    logger.info(f"Backend: {settings.api_base_url}")
    logger.info(f"Reload: {settings.reload}")

    # The app is built by its factory so reload mode can re-import it
    uvicorn.run(
        "module_runtime.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    app()
