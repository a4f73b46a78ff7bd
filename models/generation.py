"""
Generation Models
=================

Pipeline-internal value objects: the request, the per-call model choice,
per-fact metadata and the final generation result.
"""

from typing import Optional, List
from pydantic import BaseModel, Field, field_validator

from .common import DiagramType, LLMProtocol, ReasoningEffort


class GenerationRequest(BaseModel):
    """A single user query, optionally pinned to a diagram type"""
    query: str = Field(..., description="Free-text user query")
    diagram_type_hint: Optional[DiagramType] = Field(None, description="Caller-supplied diagram type")

    class Config:
        frozen = True


class ModelChoice(BaseModel):
    """Model, protocol and budget for one LLM call. Recomputed per call."""
    model_id: str
    protocol: LLMProtocol
    max_output_tokens: int = Field(..., gt=0)
    effort: ReasoningEffort

    class Config:
        frozen = True


class FactMetadata(BaseModel):
    """Search metadata for one diagram fact (never shown in node labels)"""
    theme: str = ""
    keywords: List[str] = Field(default_factory=list)
    search_hint: Optional[str] = None
    entity: Optional[str] = None


class ParsedContent(BaseModel):
    """Structured diagram content recovered from a content-step response"""
    structured_content: str
    topic: Optional[str] = None
    facts: List[str] = Field(default_factory=list)
    diagram_meta: Optional[List[FactMetadata]] = None


class ParsedGeneration(BaseModel):
    """Everything recovered from a single unified or combined response"""
    diagram_type: Optional[DiagramType] = None
    universal_content: Optional[str] = None
    structured_content: Optional[str] = None
    diagram_source: str
    diagram_meta: Optional[List[FactMetadata]] = None


class GenerationResult(BaseModel):
    """Final pipeline output. diagram_source is always sanitized."""
    diagram_type: DiagramType
    universal_content: str
    structured_content: str
    diagram_source: str
    diagram_meta: Optional[List[FactMetadata]] = None

    @field_validator('diagram_source')
    @classmethod
    def require_diagram_source(cls, v):
        if not v or not v.strip():
            raise ValueError("diagram_source must be non-empty")
        return v
