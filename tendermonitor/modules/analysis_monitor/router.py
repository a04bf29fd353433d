"""
Main router for the analysis monitor module.
"""
from fastapi import APIRouter
from .endpoints import endpoints

router = APIRouter()

# Include all endpoint routers from this module
router.include_router(endpoints.router)
