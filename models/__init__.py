"""
Diagram Service Pydantic Models
===============================

Request and response models for FastAPI type safety and validation, plus
the value objects passed between pipeline stages.
"""

from .requests import (
    DescribeRequest,
    DeepDiveRequest,
)

from .responses import (
    DiagramResponse,
    DeepDiveResponse,
    ErrorResponse,
    HealthResponse,
)

from .generation import (
    GenerationRequest,
    ModelChoice,
    FactMetadata,
    ParsedContent,
    ParsedGeneration,
    GenerationResult,
)

from .common import (
    DiagramType,
    OperationKind,
    LLMProtocol,
    ReasoningEffort,
    normalize_diagram_type,
)

__all__ = [
    # Requests
    "DescribeRequest",
    "DeepDiveRequest",
    # Responses
    "DiagramResponse",
    "DeepDiveResponse",
    "ErrorResponse",
    "HealthResponse",
    # Pipeline values
    "GenerationRequest",
    "ModelChoice",
    "FactMetadata",
    "ParsedContent",
    "ParsedGeneration",
    "GenerationResult",
    # Enums
    "DiagramType",
    "OperationKind",
    "LLMProtocol",
    "ReasoningEffort",
    "normalize_diagram_type",
]
