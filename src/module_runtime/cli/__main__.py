"""CLI entry point.

Usage:
    python -m module_runtime.cli modules list
    python -m module_runtime.cli modules check dashboard
    module-runtime modules render dashboard team-chat
    module-runtime serve
"""

from module_runtime.cli.app import app
from module_runtime.logging import setup_cli_logging


def main() -> None:
    """CLI entry point with logging configuration."""
    setup_cli_logging()
    app()


if __name__ == "__main__":
    main()
