"""
FastAPI API Routes
==================

Diagram generation, deep-dive follow-ups and LLM metrics.

Endpoints:
- POST /api/describe     query -> diagram, structured content and prose
- POST /api/deep-dive    follow-up question about selected text
- GET  /api/llm/metrics  per-model performance metrics
"""

import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from models import (
    DeepDiveRequest,
    DeepDiveResponse,
    DescribeRequest,
    DiagramResponse,
    ErrorResponse,
    FactMetadata,
    GenerationRequest,
)
from services.error_handler import QueryValidationError, error_type_for
from services.performance_tracker import PipelineTimer, performance_tracker

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api", tags=["api"])

ERROR_STATUS = {
    'validation_error': 400,
}


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_pipeline(request: Request):
    """Pipeline created in the application lifespan."""
    return request.app.state.pipeline


def get_deep_dive_agent(request: Request):
    return request.app.state.deep_dive_agent


# ============================================================================
# HELPERS
# ============================================================================

def error_response(exc: Exception, request_id: Optional[str] = None) -> JSONResponse:
    """Map any exception to the failure payload and its HTTP status."""
    error_type = error_type_for(exc)
    payload = ErrorResponse(
        detail=str(exc) or type(exc).__name__,
        error_type=error_type,
        stage=getattr(exc, 'stage', None),
        request_id=request_id,
    )
    return JSONResponse(
        status_code=ERROR_STATUS.get(error_type, 500),
        content=payload.model_dump()
    )


def meta_payload(meta: Optional[List[FactMetadata]]) -> Optional[List[Dict[str, Any]]]:
    """Serialize fact metadata with the field names renderers expect."""
    if not meta:
        return None
    return [
        {
            'theme': m.theme,
            'keywords': list(m.keywords),
            'search': m.search_hint,
            'entity': m.entity,
        }
        for m in meta
    ]


# ============================================================================
# DIAGRAM GENERATION
# ============================================================================

@router.post(
    '/describe',
    response_model=DiagramResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def describe(req: DescribeRequest, pipeline=Depends(get_pipeline)):
    """
    Generate a diagram for a free-text query.

    Tries one unified LLM call and falls back to the sequential pipeline.
    A blank query is rejected with 400 before any LLM call.
    """
    timer = PipelineTimer()
    query = req.query or ''

    if not query.strip():
        return error_response(QueryValidationError("Query cannot be empty", stage='validation'), timer.request_id)

    logger.debug(f"[{timer.request_id}] Describe request: {len(query)} chars, diagram_type={req.diagram_type}")

    try:
        request = GenerationRequest(query=query, diagram_type_hint=req.diagram_type)
        result = await pipeline.generate(request, timer=timer)
    except Exception as e:
        logger.error(
            f"[{timer.request_id}] Diagram generation failed at stage "
            f"{getattr(e, 'stage', None)!r}: {type(e).__name__}: {e}"
        )
        return error_response(e, timer.request_id)

    return DiagramResponse(
        query=query,
        diagram_type=result.diagram_type.value,
        universal_content=result.universal_content,
        content=result.structured_content,
        description=result.structured_content,
        diagram=result.diagram_source,
        rendered_content=result.diagram_source,
        diagram_meta=meta_payload(result.diagram_meta),
        request_id=timer.request_id,
    )


# ============================================================================
# DEEP DIVE
# ============================================================================

@router.post(
    '/deep-dive',
    response_model=DeepDiveResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def deep_dive(req: DeepDiveRequest, agent=Depends(get_deep_dive_agent)):
    """Answer a follow-up question about text selected from a generated answer."""
    try:
        answer = await agent.answer(req.selected_text, req.question, req.original_query)
    except Exception as e:
        logger.error(f"Deep dive failed: {type(e).__name__}: {e}")
        return error_response(e)

    return DeepDiveResponse(response=answer)


# ============================================================================
# METRICS
# ============================================================================

@router.get('/llm/metrics')
async def get_llm_metrics(model: Optional[str] = None):
    """
    Get performance metrics for LLM models.

    Query Parameters:
        model (optional): Specific model name to get metrics for

    Returns:
        JSON with total requests, success/failure counts, response times
        (avg, min, max, recent) and recent errors

    Examples:
        GET /api/llm/metrics - Get metrics for all models
        GET /api/llm/metrics?model=gpt-5-mini - Get metrics for one model
    """
    try:
        metrics = performance_tracker.get_metrics(model)

        return JSONResponse(
            content={
                'status': 'success',
                'metrics': metrics,
                'timestamp': int(time.time())
            }
        )

    except Exception as e:
        logger.error(f"Error getting LLM metrics: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to retrieve metrics: {str(e)}"
        )
