"""
Response Parser
===============

Turns unreliable LLM text into the shapes the pipeline needs. Each layer
is a small pure function; ``parse`` chains them and returns at the first
layer that succeeds:

1. strip markdown fences
2. parse the whole text as JSON
3. extract the first balanced ``{...}`` and parse it (with clean-up)
4. line heuristics (topic marker lines, bullet/ordinal facts, long lines)

Expected shapes: a DiagramType (structured content step), ``"universal"``
(prose answer), ``"unified"`` (type chosen by the model) and ``"combined"``
(type already known).
"""

import re
import json
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from models.common import DiagramType, normalize_diagram_type
from models.generation import FactMetadata, ParsedContent, ParsedGeneration
from services.error_handler import ParseError, MissingDiagramSourceError
from .agent_utils import strip_code_fences, loads_lenient, extract_json_from_response, find_balanced_object

logger = logging.getLogger(__name__)

UNIVERSAL = 'universal'
UNIFIED = 'unified'
COMBINED = 'combined'

MAX_KEYWORDS = 8

# Keys LLMs use for each part of a unified/combined answer, in preference order
CONTENT_KEYS = ('diagram_content', 'content', 'structured_content', 'description')
UNIVERSAL_KEYS = ('universal_content', 'universal', 'answer', 'explanation')
DIAGRAM_KEYS = ('mermaid_code', 'diagram_mermaid', 'mermaid', 'diagram_code', 'diagram')

TOPIC_LINE_RE = re.compile(r'^(?:main\s+topic|topic)\s*[:\-]\s*(.+)$', re.IGNORECASE)
ITEMS_LINE_RE = re.compile(r'^items?\s*:\s*(.+)$', re.IGNORECASE)
TOPIC_TOKEN_RE = re.compile(r'^\s*(?:main\s+topic|topic|items?)\s*:', re.IGNORECASE | re.MULTILINE)
FACT_LABEL_RE = re.compile(r'^fact\s*\d+\s*[:.)\-]\s*(.+)$', re.IGNORECASE)
BULLET_RE = re.compile(r'^[-*\u2022]\s+(.+)$')
ORDINAL_RE = re.compile(r'^\d+[.)]\s+(.+)$')
BULLET_FACT_LINE_RE = re.compile(r'^\s*(?:[-*\u2022]|\d+[.)])\s+\S')

# Words fused by a dropped space, e.g. "informationthe" -> "information the"
FUSED_WORD_RE = re.compile(r'\b(\w{3,}(?:tion|sion|ment|ness|ity|ing|ly))(the|and|of|to|for|with|from|in)\b')

DIAGRAM_KEYWORD_RE = re.compile(r'^[ \t]*(?:flowchart|graph|sequenceDiagram|mindmap)\b', re.MULTILINE)
MERMAID_FENCE_RE = re.compile(r'```[ \t]*mermaid[ \t]*\n?(.*?)```', re.DOTALL | re.IGNORECASE)


# ============================================================================
# TEXT CLEANING
# ============================================================================

def clean_text(text: str) -> str:
    """
    Normalise LLM prose: collapse runs of spaces, trim each line, ensure a
    space after , ; : ! ? when a letter follows, and split words that were
    fused together at common suffixes.
    """
    if not text:
        return ''
    lines = [re.sub(r'[ \t\u00a0]+', ' ', line).strip() for line in text.replace('\r\n', '\n').split('\n')]
    text = '\n'.join(lines)
    text = re.sub(r'\n{3,}', '\n\n', text)
    text = re.sub(r'([,;:!?])(?=[A-Za-z])', r'\1 ', text)
    text = FUSED_WORD_RE.sub(r'\1 \2', text)
    return text.strip()


def _strip_markdown_emphasis(line: str) -> str:
    return line.replace('**', '').replace('__', '').strip()


# ============================================================================
# JSON LAYERS
# ============================================================================

def try_parse_json(text: str) -> Optional[Any]:
    """Parse the whole text as JSON, None on failure."""
    if not text:
        return None
    try:
        return loads_lenient(text)
    except json.JSONDecodeError:
        return None


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """First balanced ``{...}`` in text, parsed (with clean-up); dicts only."""
    data = extract_json_from_response(text)
    return data if isinstance(data, dict) else None


def parse_json_layers(raw: str) -> Tuple[str, Optional[Dict[str, Any]]]:
    """
    Run layers 1-3. Returns the fence-stripped text and the recovered
    object (None when only line heuristics remain).
    """
    text = strip_code_fences(raw)
    data = try_parse_json(text)
    if isinstance(data, dict):
        return text, data
    return text, extract_json_object(text)


def strip_embedded_metadata(text: str) -> str:
    """Remove an embedded JSON metadata block (and a dangling label) from prose."""
    block = find_balanced_object(text)
    if block is None:
        return text
    remaining = text.replace(block, '')
    remaining = re.sub(r'```(?:json)?\s*```', '', remaining)
    remaining = re.sub(r'(?im)^\s*(?:#+\s*)?"?diagram_meta"?\s*:?\s*$', '', remaining)
    return remaining.strip()


def _first_string(data: Dict[str, Any], keys) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value
        if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
            return '\n'.join(value)
    return None


# ============================================================================
# LINE HEURISTICS
# ============================================================================

def parse_lines(text: str, diagram_type: DiagramType = DiagramType.RADIAL_MINDMAP) -> Tuple[Optional[str], List[str]]:
    """
    Recover (topic, facts) from free text.

    Standard content: "Main topic:"/"Topic:" lines give the topic; "Fact N:",
    "- " and "1. " lines give facts; any other line over 10 chars is a fact.
    Comparison content: "Items:" gives the topic; similarity and unique
    lines are the facts.
    """
    topic = None
    facts: List[str] = []
    comparison = diagram_type == DiagramType.SEQUENCE_COMPARISON

    for raw_line in (text or '').split('\n'):
        line = _strip_markdown_emphasis(raw_line)
        if not line or line.startswith('```') or line in ('{', '}', '[', ']'):
            continue
        line = line.lstrip('#').strip()
        if not line:
            continue

        if comparison:
            items_match = ITEMS_LINE_RE.match(line)
            if items_match and topic is None:
                topic = clean_text(items_match.group(1))
                continue
            lower = line.lower()
            if 'similarit' in lower or 'unique' in lower or 'difference' in lower:
                facts.append(clean_text(_strip_bullet(line)))
            continue

        topic_match = TOPIC_LINE_RE.match(line)
        if topic_match:
            if topic is None:
                topic = clean_text(topic_match.group(1))
            continue

        for pattern in (FACT_LABEL_RE, BULLET_RE, ORDINAL_RE):
            match = pattern.match(line)
            if match:
                facts.append(clean_text(match.group(1)))
                break
        else:
            if len(line) > 10:
                facts.append(clean_text(line))

    return topic, [f for f in facts if f]


def _strip_bullet(line: str) -> str:
    for pattern in (BULLET_RE, ORDINAL_RE):
        match = pattern.match(line)
        if match:
            return match.group(1)
    return line


def build_structured_content(topic: Optional[str], facts: List[str], diagram_type: DiagramType) -> str:
    """Render (topic, facts) in the canonical text form used downstream."""
    if diagram_type == DiagramType.SEQUENCE_COMPARISON:
        lines = [f"Items: {topic}"] if topic else []
        lines.extend(facts)
        return '\n'.join(lines)
    lines = [f"Main topic: {topic}"] if topic else []
    lines.extend(f"- {fact}" for fact in facts)
    return '\n'.join(lines)


def count_bullet_facts(structured_content: str) -> int:
    return sum(1 for line in (structured_content or '').split('\n') if BULLET_FACT_LINE_RE.match(line))


def ensure_topic(structured_content: str, query: str) -> str:
    """Prefix "Main topic: {query}" when content carries no topic token."""
    content = (structured_content or '').strip()
    if TOPIC_TOKEN_RE.search(content):
        return content
    prefix = f"Main topic: {(query or '').strip()}"
    return f"{prefix}\n{content}" if content else prefix


# ============================================================================
# METADATA
# ============================================================================

def normalize_metadata(raw_meta: Any, topic: Optional[str] = None) -> Optional[List[FactMetadata]]:
    """
    Accept a list, ``{"facts": [...]}`` or ``{"nodes": {...}}`` and return
    normalised FactMetadata: theme and keywords trimmed and lower-cased,
    keywords capped, ``search`` mapped to search_hint, entity defaulted to
    the topic.
    """
    if raw_meta is None:
        return None
    if isinstance(raw_meta, dict):
        if isinstance(raw_meta.get('facts'), list):
            items = raw_meta['facts']
        elif isinstance(raw_meta.get('nodes'), dict):
            items = list(raw_meta['nodes'].values())
        elif isinstance(raw_meta.get('nodes'), list):
            items = raw_meta['nodes']
        else:
            return None
    elif isinstance(raw_meta, list):
        items = raw_meta
    else:
        return None

    normalized = []
    for item in items:
        if not isinstance(item, dict):
            continue
        keywords = item.get('keywords') or []
        if isinstance(keywords, str):
            keywords = keywords.split(',')
        keywords = [k.strip().lower() for k in keywords if isinstance(k, str) and k.strip()][:MAX_KEYWORDS]

        search = item.get('search') or item.get('search_hint')
        search = search.strip() if isinstance(search, str) and search.strip() else None

        entity = item.get('entity')
        entity = entity.strip() if isinstance(entity, str) and entity.strip() else topic

        normalized.append(FactMetadata(
            theme=str(item.get('theme') or '').strip().lower(),
            keywords=keywords,
            search_hint=search,
            entity=entity,
        ))
    return normalized or None


def align_metadata(meta: Optional[List[FactMetadata]], structured_content: str) -> Optional[List[FactMetadata]]:
    """Keep metadata only when it lines up one-to-one with the bullet facts."""
    if not meta:
        return None
    fact_count = count_bullet_facts(structured_content)
    if len(meta) != fact_count:
        logger.warning(f"[ResponseParser] Dropping diagram_meta: {len(meta)} entries for {fact_count} facts")
        return None
    return meta


# ============================================================================
# DIAGRAM SOURCE
# ============================================================================

def _cut_at_fence(text: str) -> str:
    end = text.find('```')
    return text[:end] if end != -1 else text


def _locate_diagram_source(text: str) -> Optional[str]:
    fence = MERMAID_FENCE_RE.search(text)
    if fence and fence.group(1).strip():
        return fence.group(1)

    init_at = text.find('%%{init')
    if init_at != -1:
        return _cut_at_fence(text[init_at:])

    keyword = DIAGRAM_KEYWORD_RE.search(text)
    if keyword:
        return _cut_at_fence(text[keyword.start():])
    return None


def extract_diagram_source(text: str) -> str:
    """
    Locate diagram source in text: a ```mermaid fence, then a %%{init
    directive, then a flowchart/graph/sequenceDiagram/mindmap header.
    Escaped newlines are unescaped.

    Raises:
        MissingDiagramSourceError: when none is found
    """
    if text:
        unescaped = text.replace('\\r\\n', '\n').replace('\\n', '\n')
        source = _locate_diagram_source(unescaped)
        if source and source.strip():
            return source.strip()
    raise MissingDiagramSourceError("No diagram source found in response")


def _extract_diagram_from(data: Optional[Dict[str, Any]], raw: str) -> str:
    candidates = []
    if data:
        value = _first_string(data, DIAGRAM_KEYS)
        if value:
            candidates.append(value)
    candidates.append(raw)
    for candidate in candidates:
        try:
            return extract_diagram_source(candidate)
        except MissingDiagramSourceError:
            continue
    raise MissingDiagramSourceError("No diagram source found in response")


# ============================================================================
# VALIDATION
# ============================================================================

def validate_structured_content(content: str, diagram_type: DiagramType) -> None:
    """
    Raises:
        ParseError: when content lacks the markers its diagram type needs
    """
    lower = (content or '').lower()
    if diagram_type == DiagramType.SEQUENCE_COMPARISON:
        if 'items:' in lower and 'similarit' in lower and 'unique' in lower:
            return
        raise ParseError("Comparison content needs items, similarity and unique lines")

    topic, facts = parse_lines(content, diagram_type)
    if topic is None:
        raise ParseError("Content has no topic line")
    if not facts:
        raise ParseError("Content has no facts")


def validate_universal_content(text: str) -> None:
    """
    Raises:
        ParseError: when prose is too short or has fewer than two substantive lines
    """
    trimmed = (text or '').strip()
    if len(trimmed) < 50:
        raise ParseError("Universal content is too short")
    substantive = [
        line for line in (l.strip() for l in trimmed.split('\n'))
        if len(line) > 20 and not re.fullmatch(r'[#*\-=]+', line) and not re.fullmatch(r'\d+\.?\s*', line)
    ]
    if len(substantive) < 2:
        raise ParseError("Universal content has fewer than two substantive lines")


# ============================================================================
# SHAPE PARSERS
# ============================================================================

def parse_structured_content(raw: str, diagram_type: DiagramType) -> ParsedContent:
    """Parse a content-step response into canonical structured content plus metadata."""
    text, data = parse_json_layers(raw)

    raw_meta = None
    body = None
    if data is not None:
        raw_meta = data.get('diagram_meta')
        body = _first_string(data, CONTENT_KEYS)
        if body is None and ('topic' in data or 'facts' in data):
            topic = str(data.get('topic') or '').strip() or None
            facts = [clean_text(str(f)) for f in data.get('facts') or [] if str(f).strip()]
            body = build_structured_content(topic, facts, diagram_type)
        if raw_meta is None and ('facts' in data or 'nodes' in data) and body is None:
            raw_meta = data

    if body is None:
        body = strip_embedded_metadata(text)

    topic, facts = parse_lines(body, diagram_type)
    structured = build_structured_content(topic, facts, diagram_type)
    if not structured:
        raise ParseError("No structured content could be recovered")

    meta = align_metadata(normalize_metadata(raw_meta, topic), structured)
    return ParsedContent(structured_content=structured, topic=topic, facts=facts, diagram_meta=meta)


def parse_universal_content(raw: str) -> str:
    """Parse a prose answer; JSON-wrapped answers are unwrapped."""
    text, data = parse_json_layers(raw)
    if data is not None:
        body = _first_string(data, UNIVERSAL_KEYS)
        if body is not None:
            text = body
        else:
            text = strip_embedded_metadata(text)
    cleaned = clean_text(text)
    validate_universal_content(cleaned)
    return cleaned


def _split_prose_and_structure(text: str) -> Tuple[str, str]:
    """Separate long prose lines from topic/bullet lines in a non-JSON answer."""
    prose, structure = [], []
    in_structure = False
    for line in text.split('\n'):
        stripped = _strip_markdown_emphasis(line)
        is_structural = bool(
            TOPIC_LINE_RE.match(stripped) or ITEMS_LINE_RE.match(stripped)
            or BULLET_RE.match(stripped) or ORDINAL_RE.match(stripped)
        )
        if is_structural:
            structure.append(stripped)
            in_structure = True
        elif len(stripped) > 50 and not in_structure:
            prose.append(stripped)
        elif stripped:
            (structure if in_structure else prose).append(stripped)
    return '\n'.join(prose).strip(), '\n'.join(structure).strip()


def parse_generation(raw: str, shape: str, diagram_type: Optional[DiagramType] = None) -> ParsedGeneration:
    """
    Parse a unified or combined single-call answer.

    Raises:
        MissingDiagramSourceError: when no diagram source can be found
    """
    text, data = parse_json_layers(raw)
    diagram_source = _extract_diagram_from(data, raw)

    if shape == UNIFIED and data is not None:
        diagram_type = normalize_diagram_type(data.get('diagram_type')) or diagram_type
    effective_type = diagram_type or DiagramType.RADIAL_MINDMAP

    universal = None
    structured = None
    raw_meta = None
    if data is not None:
        universal = _first_string(data, UNIVERSAL_KEYS)
        structured = _first_string(data, CONTENT_KEYS)
        raw_meta = data.get('diagram_meta')
    else:
        head = text
        source_at = head.find(diagram_source.split('\n', 1)[0])
        if source_at > 0:
            head = head[:source_at]
        head = re.sub(r'```[\w-]*', '', head)
        universal, structured = _split_prose_and_structure(head)

    topic = None
    if structured:
        topic, facts = parse_lines(structured, effective_type)
        structured = build_structured_content(topic, facts, effective_type) or clean_text(structured)

    meta = None
    if structured:
        meta = align_metadata(normalize_metadata(raw_meta, topic), structured)

    return ParsedGeneration(
        diagram_type=diagram_type,
        universal_content=clean_text(universal) if universal else None,
        structured_content=structured or None,
        diagram_source=diagram_source,
        diagram_meta=meta,
    )


def parse(
    raw: str,
    expected_shape: Union[DiagramType, str],
    diagram_type: Optional[DiagramType] = None
) -> Union[ParsedContent, ParsedGeneration, str]:
    """
    Parse a raw LLM response into the expected shape.

    Args:
        raw: Response text from the executor
        expected_shape: DiagramType, "universal", "unified" or "combined"
        diagram_type: Known type for combined parses

    Raises:
        ParseError / MissingDiagramSourceError on unrecoverable input
    """
    if isinstance(expected_shape, DiagramType):
        return parse_structured_content(raw, expected_shape)
    if expected_shape == UNIVERSAL:
        return parse_universal_content(raw)
    if expected_shape in (UNIFIED, COMBINED):
        return parse_generation(raw, expected_shape, diagram_type)
    as_type = normalize_diagram_type(expected_shape)
    if as_type is not None:
        return parse_structured_content(raw, as_type)
    raise ValueError(f"Unknown response shape: {expected_shape!r}")
