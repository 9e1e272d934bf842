"""
Main API router that aggregates all feature-specific routers.
"""

from fastapi import APIRouter

from docgate.features.convert.presentation.routes import router as convert_router
from docgate.features.parse.presentation.routes import router as parse_router

# This is the main router that will be included in the FastAPI app instance.
api_router = APIRouter()

# Include the convert router with its own prefix.
api_router.include_router(convert_router, prefix="/convert")

# Include the parse router with its own prefix.
api_router.include_router(parse_router, prefix="/parse")
