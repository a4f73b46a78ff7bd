"""
Centralized Prompt Registry

Unified lookup for every prompt the diagram pipeline sends, keyed by
name, prompt type and language.
"""

from typing import Dict, Any, Union

from models.common import DiagramType
from .diagram_prompts import DIAGRAM_PROMPTS


# Unified prompt registry
PROMPT_REGISTRY = {
    **DIAGRAM_PROMPTS,
}


def get_prompt(name: str, language: str = 'en', prompt_type: str = 'generation') -> str:
    """
    Get a prompt by name and language.

    Args:
        name: Prompt owner (e.g., 'flowchart', 'universal', 'classification')
        language: Language code (only 'en' is shipped)
        prompt_type: 'generation', 'content', 'diagram' or 'combined'

    Returns:
        str: The prompt text, or "" when no such prompt exists
    """
    key = f"{name}_{prompt_type}_{language}"
    return PROMPT_REGISTRY.get(key, "")


def _type_name(diagram_type: Union[DiagramType, str]) -> str:
    return diagram_type.value if isinstance(diagram_type, DiagramType) else str(diagram_type)


def get_content_prompt(diagram_type: Union[DiagramType, str], language: str = 'en') -> str:
    return get_prompt(_type_name(diagram_type), language, 'content')


def get_diagram_prompt(diagram_type: Union[DiagramType, str], language: str = 'en') -> str:
    return get_prompt(_type_name(diagram_type), language, 'diagram')


def get_combined_prompt(diagram_type: Union[DiagramType, str], language: str = 'en') -> str:
    return get_prompt(_type_name(diagram_type), language, 'combined')


def get_prompt_metadata(name: str) -> Dict[str, Any]:
    """Get metadata about which prompt types exist for a name."""
    metadata = {
        'prompt_types': [],
        'languages': []
    }

    for key in PROMPT_REGISTRY.keys():
        if not key.startswith(f"{name}_"):
            continue
        prompt_type, language = key[len(name) + 1:].rsplit('_', 1)
        metadata['prompt_types'].append(prompt_type)
        metadata['languages'].append(language)

    metadata['prompt_types'] = sorted(set(metadata['prompt_types']))
    metadata['languages'] = sorted(set(metadata['languages']))
    return metadata
