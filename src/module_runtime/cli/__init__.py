"""CLI module for module-runtime.

Provides command-line interface for administrative tasks like inspecting and rendering modules.
"""

from module_runtime.cli.app import app

__all__ = ["app"]
