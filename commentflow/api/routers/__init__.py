"""
API Routers
"""

from commentflow.api.routers.analysis_router import router as analysis_router

__all__ = ["analysis_router"]
