"""
Request Models
==============

Pydantic models for validating API request payloads.
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator

from .common import DiagramType, normalize_diagram_type


class DescribeRequest(BaseModel):
    """Request model for /api/describe endpoint"""
    # Blank queries are rejected by the route with a 400, not by the model
    query: Optional[str] = Field(None, max_length=10000, description="Free-text question or topic")
    diagram_type: Optional[DiagramType] = Field(None, description="Diagram type (auto-detected if not provided)")

    @field_validator('diagram_type', mode='before')
    @classmethod
    def normalize_diagram_type(cls, v):
        """Normalize diagram type aliases (e.g., 'mindmap' -> 'radial_mindmap')"""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        normalized = normalize_diagram_type(v)
        # Unknown values fall through so pydantic reports the enum error
        return normalized.value if normalized else v

    class Config:
        json_schema_extra = {
            "example": {
                "query": "How do I reset a home router?",
                "diagram_type": "flowchart"
            }
        }


class DeepDiveRequest(BaseModel):
    """Request model for /api/deep-dive endpoint"""
    selected_text: Optional[str] = Field(None, max_length=5000, description="Text the user highlighted")
    question: Optional[str] = Field(None, max_length=2000, description="Follow-up question about the selection")
    original_query: Optional[str] = Field(None, max_length=10000, description="Query that produced the diagram")

    class Config:
        json_schema_extra = {
            "example": {
                "selected_text": "Photosynthesis converts light energy into chemical energy",
                "question": "Where does the oxygen come from?",
                "original_query": "photosynthesis"
            }
        }
