"""
Diagram Agents Package

Central registry for the per-type diagram agents.
"""

from models.common import DiagramType, normalize_diagram_type
from .diagrams import (
    FlowchartAgent,
    RadialMindmapAgent,
    SequenceComparisonAgent
)

# Agent Registry - Maps diagram types to their agent classes
AGENT_REGISTRY = {
    DiagramType.FLOWCHART: FlowchartAgent,
    DiagramType.RADIAL_MINDMAP: RadialMindmapAgent,
    DiagramType.SEQUENCE_COMPARISON: SequenceComparisonAgent,
}

def get_agent(diagram_type, executor, router=None):
    """
    Get an agent instance for the specified diagram type.

    Args:
        diagram_type: DiagramType or a loose spelling of one
        executor: LLM executor the agent calls
        router: Optional model router

    Returns:
        Agent instance; unknown types get the radial mind map agent
    """
    agent_class = AGENT_REGISTRY.get(normalize_diagram_type(diagram_type), RadialMindmapAgent)
    return agent_class(executor, router=router)

def get_available_diagram_types():
    """
    Get list of all available diagram types.

    Returns:
        List of diagram type strings
    """
    return [diagram_type.value for diagram_type in AGENT_REGISTRY]

def is_agent_available(diagram_type) -> bool:
    """Check if an agent is available for the specified diagram type."""
    return normalize_diagram_type(diagram_type) in AGENT_REGISTRY

__all__ = [
    'FlowchartAgent',
    'RadialMindmapAgent',
    'SequenceComparisonAgent',
    'AGENT_REGISTRY',
    'get_agent',
    'get_available_diagram_types',
    'is_agent_available'
]
