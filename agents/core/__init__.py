"""
Core agent functionality

This module contains the base agent class, the response parser and the
JSON recovery helpers used by all diagram agents.
"""

from .base_agent import BaseDiagramAgent
from .agent_utils import extract_json_from_response, strip_code_fences
from .response_parser import parse

__all__ = ['BaseDiagramAgent', 'extract_json_from_response', 'strip_code_fences', 'parse']
