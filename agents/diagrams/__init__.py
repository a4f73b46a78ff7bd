"""
Diagram Agents Package

One agent per supported diagram type.
"""

from .flowchart_agent import FlowchartAgent
from .radial_mindmap_agent import RadialMindmapAgent
from .sequence_comparison_agent import SequenceComparisonAgent

__all__ = [
    'FlowchartAgent',
    'RadialMindmapAgent',
    'SequenceComparisonAgent',
]
