"""
Mermaid Sanitizer
=================

Deterministic repair of LLM-generated Mermaid source before it reaches the
renderer. Passes run in a fixed order and each one is idempotent, so
sanitize_mermaid(sanitize_mermaid(s)) == sanitize_mermaid(s).

Pass order:
1. Hold aside the %%{init: ...}%% directive block
2. Strip markdown fences
3. Decode HTML entities until stable
4. Replace typographically unsafe characters on content lines
5. Normalize unicode
6. Normalize <br> markup
7. Fix whitespace around directive keywords
8. Re-indent node lines under a flowchart/graph header
9. Per line: repair subgraph headers and stray quotes in node labels
10. Final clean-up, then restore the directive block untouched
"""

import html
import logging
import re
import unicodedata
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

INIT_PLACEHOLDER = '%%MERMAID_INIT_BLOCK%%'
INIT_BLOCK_RE = re.compile(r'%%\{\s*init\s*:.*?\}%%', re.DOTALL)

FENCE_OPEN_RE = re.compile(r'^[ \t]*```[ \t]*(?:mermaid)?[ \t]*', re.MULTILINE | re.IGNORECASE)
FENCE_CLOSE_RE = re.compile(r'[ \t]*```[ \t]*$', re.MULTILINE)

# Lines starting with these carry diagram syntax, not label text
DIRECTIVE_PREFIXES = (
    '%%{init:',
    'flowchart',
    'sequenceDiagram',
    'classDiagram',
    'graph',
    'participant',
    'actor',
    'activate',
    'deactivate',
)

UNSAFE_CHAR_REPLACEMENTS = (
    ('\u2013', '-'),
    ('\u2014', '-'),
    ('\u201c', '"'),
    ('\u201d', '"'),
    ('\u2018', "'"),
    ('\u2019', "'"),
    ('\u00a0', ' '),
    ('\u2026', '...'),
    ('\u2022', '-'),
    ('$', 'USD '),
    ('\u2122', ' TM'),
    ('\u00ae', ' (R)'),
    ('\u00a9', ' (C)'),
    ('\\', '/'),
    ('`', "'"),
    (';', ','),
)

UNICODE_REPLACEMENTS = (
    ('\u2013', '-'),
    ('\u2014', '-'),
    ('\u201c', '"'),
    ('\u201d', '"'),
    ('\u2018', "'"),
    ('\u2019', "'"),
    ('\u00a0', ' '),
)
ZERO_WIDTH_RE = re.compile(r'[\u200b\u200c\u200d\u2060\ufeff]')

LINE_BREAK_RE = re.compile(r'<\s*br\s*/?\s*>', re.IGNORECASE)

DIRECTION = r'(?:TD|TB|BT|LR|RL)'
FUSED_DIRECTION_RE = re.compile(r'\b(flowchart|graph)(' + DIRECTION + r')\b')
HEADER_THEN_NODE_RE = re.compile(
    r'^([ \t]*(?:flowchart|graph)[ \t]+' + DIRECTION + r')[ \t]*(?=[A-Za-z_][\w-]*[ \t]*[\[\(\{>])',
    re.MULTILINE
)
SEQUENCE_THEN_PARTICIPANT_RE = re.compile(
    r'^([ \t]*sequenceDiagram)[ \t]+(?=(?:participant|actor)\b)',
    re.MULTILINE
)

FLOWCHART_HEADER_RE = re.compile(r'^(?:flowchart|graph)\b', re.IGNORECASE)
NODE_LINE_RE = re.compile(r'^[A-Za-z_][\w-]*[ \t]*(?:[\[\(\{>]|-->|---|-\.->|==>)')
BLOCK_KEYWORDS = ('subgraph', 'end', 'style', 'classDef', 'class ', 'linkStyle', 'click', 'direction', '%%')

SUBGRAPH_RE = re.compile(r'^subgraph\b[ \t]*(.*)$', re.IGNORECASE)
SUBGRAPH_BRACKET_RE = re.compile(r'^([^\[\s"]*)[ \t]*\[[ \t]*(.*?)[ \t]*\]$')
SAFE_ID_RE = re.compile(r'^[A-Za-z]\w*$')
DEFAULT_SUBGRAPH_ID = 'Subgraph'

# Node label shapes, scanned in one pass. A fully quoted label is matched up
# to its closing quote-and-bracket so brackets inside the quotes stay put.
# Double-paren forms come before the single-paren ones.
NODE_LABEL_SHAPES = (
    ('((', '))', r'\(\(', r'\)\)'),
    ('[', ']', r'\[', r'\]'),
    ('(', ')', r'\((?!\()', r'\)'),
    ('{', '}', r'\{(?!\{)', r'\}'),
)


def _node_label_regex():
    branches = []
    for index, (_, _, open_re, close_re) in enumerate(NODE_LABEL_SHAPES):
        branches.append(rf'{open_re}[ \t]*"(?P<q{index}>.*?)"[ \t]*{close_re}')
        branches.append(rf'{open_re}(?P<u{index}>.*?){close_re}')
    return re.compile(r'(?P<id>\b[\w-]+)(?:' + '|'.join(branches) + ')')


NODE_LABEL_RE = _node_label_regex()


# ============================================================================
# DIRECTIVE BLOCK
# ============================================================================

def extract_init_block(text: str) -> Tuple[str, Optional[str]]:
    """Swap the first %%{init: ...}%% block for a placeholder."""
    match = INIT_BLOCK_RE.search(text)
    if not match:
        return text, None
    return text[:match.start()] + INIT_PLACEHOLDER + text[match.end():], match.group(0)


def restore_init_block(text: str, block: Optional[str]) -> str:
    if block is None:
        return text
    return text.replace(INIT_PLACEHOLDER, block, 1)


# ============================================================================
# TEXT PASSES
# ============================================================================

def strip_fences(text: str) -> str:
    text = FENCE_OPEN_RE.sub('', text)
    return FENCE_CLOSE_RE.sub('', text)


def decode_entities(text: str) -> str:
    """Decode HTML entities until the text stops changing (double-encoded input is common)."""
    while True:
        decoded = html.unescape(text)
        if decoded == text:
            return text
        text = decoded


def _is_directive_line(stripped: str) -> bool:
    return stripped.startswith(DIRECTIVE_PREFIXES) or INIT_PLACEHOLDER in stripped


def replace_unsafe_chars(text: str) -> str:
    lines = []
    for line in text.split('\n'):
        stripped = line.strip()
        if not stripped or _is_directive_line(stripped):
            lines.append(line)
            continue
        # A statement terminator is dropped rather than turned into a comma
        line = line.rstrip()
        while line.endswith(';'):
            line = line[:-1].rstrip()
        for unsafe, safe in UNSAFE_CHAR_REPLACEMENTS:
            line = line.replace(unsafe, safe)
        lines.append(line)
    return '\n'.join(lines)


def normalize_unicode(text: str) -> str:
    text = unicodedata.normalize('NFC', text)
    for unsafe, safe in UNICODE_REPLACEMENTS:
        text = text.replace(unsafe, safe)
    return ZERO_WIDTH_RE.sub('', text)


def normalize_line_breaks(text: str) -> str:
    return LINE_BREAK_RE.sub('<br>', text)


def fix_directive_spacing(text: str) -> str:
    """
    flowchartTD -> flowchart TD, a node glued onto the header line moves
    to its own line, and sequenceDiagram gets its participants on new lines.
    """
    text = FUSED_DIRECTION_RE.sub(r'\1 \2', text)
    text = HEADER_THEN_NODE_RE.sub(r'\1\n    ', text)
    return SEQUENCE_THEN_PARTICIPANT_RE.sub(r'\1\n    ', text)


def indent_node_lines(text: str) -> str:
    """Indent unindented node declarations that follow a flowchart/graph header."""
    lines = text.split('\n')
    in_flowchart = False
    result: List[str] = []

    for line in lines:
        stripped = line.strip()
        if FLOWCHART_HEADER_RE.match(stripped):
            in_flowchart = True
            result.append(line)
            continue
        if (
            in_flowchart
            and line == stripped
            and not stripped.startswith(BLOCK_KEYWORDS)
            and NODE_LINE_RE.match(stripped)
        ):
            line = '    ' + stripped
        result.append(line)

    return '\n'.join(result)


# ============================================================================
# PER-LINE REPAIRS
# ============================================================================

def _safe_identifier(raw_id: str) -> str:
    safe = re.sub(r'\W', '_', raw_id)
    return re.sub(r'_+', '_', safe).strip('_')


def fix_subgraph_line(content: str) -> str:
    """
    Normalize a subgraph header to ``subgraph Id["Title"]`` (or ``subgraph Id``).

    Identifiers are reduced to word characters; when nothing usable is left
    the original text becomes the title under a generic identifier.
    """
    match = SUBGRAPH_RE.match(content)
    if not match:
        return content
    rest = match.group(1).strip()
    if not rest:
        return 'subgraph'

    title: Optional[str] = None
    bracket = SUBGRAPH_BRACKET_RE.match(rest)
    if bracket:
        raw_id = bracket.group(1)
        title = bracket.group(2).strip().strip('"').strip()
    elif rest.startswith('"'):
        raw_id = ''
        title = rest.strip('"').strip()
    else:
        parts = rest.split(None, 1)
        raw_id = parts[0]
        if len(parts) > 1:
            title = rest

    safe_id = _safe_identifier(raw_id)
    if not SAFE_ID_RE.match(safe_id):
        if title is None:
            title = rest.strip('"').strip()
        safe_id = DEFAULT_SUBGRAPH_ID

    if title:
        title = re.sub(r'\s+', ' ', title.replace('"', "'"))
        return f'subgraph {safe_id}["{title}"]'
    return f'subgraph {safe_id}'


def _balance_label(label: str) -> str:
    label = re.sub(r'\s+', ' ', label).strip()
    if len(label) >= 2 and label.startswith('"') and label.endswith('"'):
        inner = label[1:-1].replace('"', "'")
        return f'"{inner}"'
    return label.replace('"', "'")


def _repair_node_label(match) -> str:
    for index, (opener, closer, _, _) in enumerate(NODE_LABEL_SHAPES):
        quoted = match.group(f'q{index}')
        if quoted is not None:
            label = _balance_label('"' + quoted + '"')
            return f'{match.group("id")}{opener}{label}{closer}'
        unquoted = match.group(f'u{index}')
        if unquoted is not None:
            return f'{match.group("id")}{opener}{_balance_label(unquoted)}{closer}'
    return match.group(0)


def fix_node_labels(content: str) -> str:
    """Make quoting inside node labels balanced: only an outer pair of double quotes survives."""
    return NODE_LABEL_RE.sub(_repair_node_label, content)


def process_line(line: str) -> str:
    stripped = line.strip()
    if not stripped or stripped.startswith('%%') or INIT_PLACEHOLDER in stripped:
        return line.rstrip()

    indent = line[:len(line) - len(line.lstrip())]
    if SUBGRAPH_RE.match(stripped):
        return indent + fix_subgraph_line(stripped)
    return indent + fix_node_labels(stripped)


def final_cleanup(text: str) -> str:
    return text.replace('"[', '[')


# ============================================================================
# ENTRY POINT
# ============================================================================

def sanitize_mermaid(raw: Optional[str]) -> str:
    """
    Repair generated Mermaid source. Never raises; unrepairable input is
    returned with whatever fixes could be applied.
    """
    if not raw:
        return ''

    text = raw.replace('\r\n', '\n').replace('\r', '\n').strip()
    text, init_block = extract_init_block(text)

    text = strip_fences(text)
    text = decode_entities(text)
    text = replace_unsafe_chars(text)
    text = normalize_unicode(text)
    text = normalize_line_breaks(text)
    text = fix_directive_spacing(text)
    text = indent_node_lines(text)
    text = '\n'.join(process_line(line) for line in text.split('\n'))
    text = final_cleanup(text)

    text = restore_init_block(text.strip(), init_block).strip()

    if text != raw.strip():
        logger.debug(f"[MermaidSanitizer] Repaired diagram source ({len(raw)} -> {len(text)} chars)")
    return text
