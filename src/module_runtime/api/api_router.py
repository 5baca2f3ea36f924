"""API router initialization."""

from fastapi import APIRouter
from loguru import logger

from module_runtime.api.modules import router as modules_router

# Create main API router
router = APIRouter()

# Mount API endpoints
router.include_router(modules_router, prefix="/modules", tags=["modules"])

logger.debug("API router initialized (modules router mounted)")
