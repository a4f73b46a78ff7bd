"""
Response Models
===============

Pydantic models for API response validation and documentation.
"""

from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Failure payload returned by the describe and deep-dive endpoints"""
    success: bool = Field(False, description="Always false")
    detail: str = Field(..., description="Error message")
    error_type: Optional[str] = Field(None, description="Type of error")
    stage: Optional[str] = Field(None, description="Pipeline stage that failed")
    request_id: Optional[str] = Field(None, description="Request identifier")

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "detail": "Provider rate limit exceeded",
                "error_type": "provider_error",
                "stage": "unified"
            }
        }


class DiagramResponse(BaseModel):
    """Response model for /api/describe endpoint"""
    success: bool = Field(True, description="Whether generation succeeded")
    query: str = Field(..., description="Query as received")
    diagram_type: str = Field(..., description="Detected/used diagram type")
    universal_content: str = Field(..., description="Long-form prose answer")
    content: str = Field(..., description="Structured diagram content")
    description: str = Field(..., description="Alias of content kept for older clients")
    diagram: str = Field(..., description="Sanitized Mermaid source")
    rendered_content: str = Field(..., description="Sanitized Mermaid source for the renderer")
    render_type: str = Field("html", description="Renderer hint")
    diagram_meta: Optional[List[Dict[str, Any]]] = Field(None, description="Per-fact search metadata")
    request_id: Optional[str] = Field(None, description="Request identifier")

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "query": "the Roman Empire",
                "diagram_type": "radial_mindmap",
                "universal_content": "The Roman Empire ...",
                "content": "Main topic: Roman Empire\n- Founded in 27 BC ...",
                "description": "Main topic: Roman Empire\n- Founded in 27 BC ...",
                "diagram": "flowchart TD\n    A((Roman Empire))",
                "rendered_content": "flowchart TD\n    A((Roman Empire))",
                "render_type": "html"
            }
        }


class DeepDiveResponse(BaseModel):
    """Response model for /api/deep-dive endpoint"""
    success: bool = Field(True, description="Whether the follow-up succeeded")
    response: str = Field(..., description="Answer to the follow-up question")


class HealthResponse(BaseModel):
    """Response model for /health endpoint"""
    status: str = Field(..., description="Health status")
    version: str = Field(..., description="Application version")
