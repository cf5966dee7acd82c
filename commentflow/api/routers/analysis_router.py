# commentflow/api/routers/analysis_router.py
"""
Analysis API Router
REST endpoints to start analyses, poll progress and inspect results
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from commentflow.app.dependencies import ServiceContainer, get_cache_monitor, get_services
from commentflow.domain.exceptions import ServiceError, error_to_http_status
from commentflow.infrastructure.cache import CacheMonitor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Analysis"])


# ============================================================================
# Request/Response Models
# ============================================================================


class AnalysisRequest(BaseModel):
    """Request to analyze one user's comments"""

    username: str = Field(..., min_length=1, description="Content source username")


class AnalysisResponse(BaseModel):
    job_id: str
    status: str = "pending"
    message: str


class ProgressResponse(BaseModel):
    job_id: str
    status: str
    progress: int
    total: int
    percentage: float
    metadata: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class PreviewRequest(BaseModel):
    text: str = Field(default="", description="Text to score")


class PreviewResponse(BaseModel):
    keyword_count: int
    would_approve: bool
    matched_keywords: List[str] = Field(default_factory=list)


class KeywordRequest(BaseModel):
    word: str = Field(..., min_length=1)
    description: Optional[str] = None


def _http_error(error: ServiceError) -> HTTPException:
    return HTTPException(status_code=error_to_http_status(error), detail=error.to_dict())


# ============================================================================
# Analysis Endpoints
# ============================================================================


@router.post("/analysis", response_model=AnalysisResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_analysis(
    request: AnalysisRequest, services: ServiceContainer = Depends(get_services)
):
    """
    Start importing and classifying a user's comments

    - **username**: Content source username (case-insensitive)
    """
    try:
        job_id = await services.analysis.start_analysis(request.username)
    except ServiceError as e:
        raise _http_error(e)

    return AnalysisResponse(job_id=job_id, message=f"Analysis started for '{request.username}'")


@router.get("/analysis/{job_id}", response_model=ProgressResponse)
async def get_progress(job_id: str, services: ServiceContainer = Depends(get_services)):
    """Poll the progress of an analysis run"""
    try:
        return await services.analysis.get_progress(job_id)
    except ServiceError as e:
        raise _http_error(e)


@router.post("/analysis/preview", response_model=PreviewResponse)
async def preview_classification(
    request: PreviewRequest, services: ServiceContainer = Depends(get_services)
):
    """Score text against the active keywords without storing anything"""
    return await services.analysis.classify_preview(request.text)


# ============================================================================
# Metrics Endpoints
# ============================================================================


@router.get("/metrics/users/{user_id}")
async def user_metrics(user_id: int, services: ServiceContainer = Depends(get_services)):
    try:
        return await services.metrics.calculate_user_metrics(user_id)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/metrics/group")
async def group_metrics(services: ServiceContainer = Depends(get_services)):
    return await services.metrics.calculate_group_metrics()


# ============================================================================
# Keyword Endpoints
# ============================================================================


@router.get("/keywords")
async def list_keywords(services: ServiceContainer = Depends(get_services)):
    return {"keywords": await services.keywords.list_active()}


@router.post("/keywords", status_code=status.HTTP_201_CREATED)
async def add_keyword(request: KeywordRequest, services: ServiceContainer = Depends(get_services)):
    """Add a keyword; triggers reclassification of every comment"""
    try:
        keyword = await services.keywords.add_keyword(request.word, request.description)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return keyword.to_dict()


@router.delete("/keywords/{word}")
async def deactivate_keyword(word: str, services: ServiceContainer = Depends(get_services)):
    if not await services.keywords.deactivate_keyword(word):
        raise HTTPException(status_code=404, detail=f"Keyword '{word}' not found")
    return {"word": word, "active": False}


# ============================================================================
# Health Endpoints
# ============================================================================


@router.get("/health/cache")
async def cache_health(monitor: CacheMonitor = Depends(get_cache_monitor)):
    """Cache health report with statistics, recommendations and alerts"""
    return monitor.health_report()
