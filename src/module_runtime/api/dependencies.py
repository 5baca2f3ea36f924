"""API dependencies for FastAPI endpoints."""

from fastapi import Request

from module_runtime.registry import ModuleRegistry


def get_module_registry(request: Request) -> ModuleRegistry:
    """FastAPI dependency that provides the application's module registry.

    Example:
        ```python
        @router.get("/endpoint")
        def endpoint(registry: ModuleRegistry = Depends(get_module_registry)):
            return registry.get_summary()
        ```
    """
    return request.app.state.module_registry
