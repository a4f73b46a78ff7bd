"""
Agent Utilities Module

JSON recovery helpers shared by the response parser and the agents:
fence stripping, balanced-brace object extraction and clean-up of the
formatting slips LLMs commonly make inside JSON.
"""

import re
import json
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r'^\s*```[\w-]*[ \t]*\n?(.*?)\n?[ \t]*```\s*$', re.DOTALL)


def strip_code_fences(text: str) -> str:
    """
    Unwrap a response that is entirely wrapped in one markdown fence
    (```json ... ```, ```mermaid ... ```, or bare ```).
    """
    if not text:
        return ''
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def loads_lenient(text: str) -> Any:
    """
    json.loads that tolerates raw newlines and tabs inside string values,
    which LLMs emit routinely when embedding diagram code.
    """
    return json.loads(text, strict=False)


def find_balanced_object(content: str) -> Optional[str]:
    """
    Return the first complete top-level ``{...}`` in content, respecting
    string literals and escapes, or None when no brace ever balances.
    """
    start = content.find('{')
    while start != -1:
        depth = 0
        in_string = False
        escape_next = False

        for i in range(start, len(content)):
            char = content[i]

            if escape_next:
                escape_next = False
                continue
            if char == '\\':
                escape_next = True
                continue
            if char == '"':
                in_string = not in_string
                continue
            if in_string:
                continue

            if char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    return content[start:i + 1]

        # Unbalanced from this brace; try the next opening brace
        start = content.find('{', start + 1)
    return None


def _remove_js_comments_safely(text: str) -> str:
    """
    Remove // and /* */ comments, but only outside of string values so URLs
    and paths inside strings survive.
    """
    result = []
    i = 0
    in_string = False
    escape_next = False

    while i < len(text):
        char = text[i]

        if escape_next:
            result.append(char)
            escape_next = False
            i += 1
            continue
        if char == '\\':
            result.append(char)
            escape_next = True
            i += 1
            continue
        if char == '"':
            in_string = not in_string
            result.append(char)
            i += 1
            continue
        if in_string:
            result.append(char)
            i += 1
            continue

        if text.startswith('//', i):
            while i < len(text) and text[i] != '\n':
                i += 1
        elif text.startswith('/*', i):
            end = text.find('*/', i + 2)
            i = len(text) if end == -1 else end + 2
        else:
            result.append(char)
            i += 1

    return ''.join(result)


def clean_json_string(text: str) -> str:
    """
    Fix formatting issues that don't change JSON semantics:
    smart quotes, zero-width and control characters, comments and
    trailing commas. Structural damage (truncation) is not repaired.
    """
    text = re.sub(r'```(?:json)?\s*\n?', '', text)
    text = text.strip().strip('`')

    text = text.replace('\u201c', '"').replace('\u201d', '"')
    text = text.replace('\u2018', "'").replace('\u2019', "'")

    text = re.sub(r'[\u200B-\u200D\uFEFF]', '', text)
    text = re.sub(r'[\x00-\x08\x0B\x0C\x0E-\x1F]', '', text)

    text = _remove_js_comments_safely(text)
    text = re.sub(r',\s*(\]|\})', r'\1', text)

    return text.strip()


def extract_json_from_response(response_content: str) -> Optional[Any]:
    """
    Recover a JSON object embedded in an LLM response.

    Tries the first balanced object as-is, then after clean-up.

    Returns:
        Parsed object, or None when nothing JSON-like can be recovered
    """
    if not response_content:
        return None

    candidate = find_balanced_object(str(response_content))
    if candidate is None:
        logger.debug("[AgentUtils] No balanced JSON object found in response")
        return None

    try:
        return loads_lenient(candidate)
    except json.JSONDecodeError:
        pass

    cleaned = clean_json_string(candidate)
    try:
        return loads_lenient(cleaned)
    except json.JSONDecodeError as e:
        preview = cleaned[:300] + "..." if len(cleaned) > 300 else cleaned
        logger.debug(f"[AgentUtils] JSON object still invalid after clean-up: {e}. Preview: {preview}")
        return None
