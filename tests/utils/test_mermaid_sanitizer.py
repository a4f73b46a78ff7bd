"""
Unit Tests for the Mermaid Sanitizer
====================================
"""

import pytest

from utils.mermaid_sanitizer import (
    decode_entities,
    fix_subgraph_line,
    sanitize_mermaid,
    strip_fences,
)


INIT_BLOCK = '%%{init: {"theme": "base", "themeVariables": {"primaryColor": "#ffcc00"}}}%%'


class TestSanitizeMermaid:
    """End-to-end repairs on generated diagram source."""

    def test_empty_input(self):
        assert sanitize_mermaid('') == ''
        assert sanitize_mermaid(None) == ''

    def test_stray_quotes_in_label_with_init_block(self):
        """Inner double quotes become single quotes; the init block is untouched."""
        raw = f'{INIT_BLOCK}\nflowchart TD\n    A["Say "hi""] --> B[Done]'

        result = sanitize_mermaid(raw)

        assert result == f'{INIT_BLOCK}\nflowchart TD\n    A["Say \'hi\'"] --> B[Done]'

    def test_strips_fences_and_indents_nodes(self):
        raw = "```mermaid\nflowchart TD\nA[Start] --> B[End]\n```"

        assert sanitize_mermaid(raw) == "flowchart TD\n    A[Start] --> B[End]"

    def test_double_encoded_entities(self):
        raw = "flowchart TD\n    A[Tom &amp;amp; Jerry]"

        assert sanitize_mermaid(raw) == "flowchart TD\n    A[Tom & Jerry]"

    def test_fused_direction(self):
        assert sanitize_mermaid("flowchartTD\nA[Start]") == "flowchart TD\n    A[Start]"

    def test_node_on_header_line(self):
        raw = "graph LR A[One] --> B[Two]"

        assert sanitize_mermaid(raw) == "graph LR\n    A[One] --> B[Two]"

    def test_sequence_participants_split(self):
        raw = "sequenceDiagram participant Cats\n    participant Dogs\n    Cats->>Dogs: Both are pets"

        assert sanitize_mermaid(raw) == (
            "sequenceDiagram\n    participant Cats\n    participant Dogs\n    Cats->>Dogs: Both are pets"
        )

    def test_semicolons(self):
        raw = "flowchart TD\n    A[Red; Blue] --> B[End];"

        assert sanitize_mermaid(raw) == "flowchart TD\n    A[Red, Blue] --> B[End]"

    def test_unsafe_characters(self):
        raw = "flowchart TD\n    A[\u201cquoted\u201d] --> B[Costs $5]\n    B --> C[Step \u2014 one]"

        result = sanitize_mermaid(raw)

        assert 'A["quoted"]' in result
        assert 'B[Costs USD 5]' in result
        assert 'C[Step - one]' in result

    def test_line_breaks_normalized(self):
        raw = "flowchart TD\n    A[Line one<BR/>Line two]"

        assert sanitize_mermaid(raw) == "flowchart TD\n    A[Line one<br>Line two]"

    def test_zero_width_characters_removed(self):
        assert sanitize_mermaid("flowchart TD\n    A[Hel\u200blo]") == "flowchart TD\n    A[Hello]"

    def test_round_node_labels(self):
        raw = 'flowchart TD\n    A((Center "x")) --> B(Leaf "y")'

        assert sanitize_mermaid(raw) == "flowchart TD\n    A((Center 'x')) --> B(Leaf 'y')"

    @pytest.mark.parametrize('source', [
        'flowchart TD\n    A("How does DNS (Domain Name System) work?")',
        'flowchart TD\n    A["Array [0] index"]',
        'flowchart TD\n    A{"Pick (a) or (b)"}',
        'flowchart TD\n    A(("Core (root)"))',
        'flowchart TD\n    A("DNS (Domain Name System)") --> B["Resolver [cache]"]',
    ])
    def test_quoted_labels_with_brackets_untouched(self, source):
        assert sanitize_mermaid(source) == source

    def test_quoted_label_with_brackets_and_inner_quotes(self):
        raw = 'flowchart TD\n    A("Say "hi" (twice)")'

        assert sanitize_mermaid(raw) == "flowchart TD\n    A(\"Say 'hi' (twice)\")"

    def test_deeply_encoded_entities(self):
        raw = "flowchart TD\n    A[&" + "amp;" * 6 + "lt;b>]"

        once = sanitize_mermaid(raw)

        assert once == "flowchart TD\n    A[<b>]"
        assert sanitize_mermaid(once) == once

    def test_init_block_survives_entities_and_symbols(self):
        block = "%%{init: {'themeVariables': {'fontFamily': 'Arial; sans', 'note': '&amp; $'}}}%%"
        raw = f"{block}\nflowchart TD\n    A[Start]"

        assert sanitize_mermaid(raw).startswith(block + "\n")

    @pytest.mark.parametrize('raw', [
        f'{INIT_BLOCK}\nflowchart TD\n    A["Say "hi""] --> B[Done]',
        "```mermaid\nflowchartLR\nA[Tom &amp;amp; Jerry] --> B[Costs $5];\n```",
        "graph TD A((Center)) --> B{Choose \"one\"}",
        "flowchart TD\n    subgraph 1st Phase\n    A[x]\n    end",
        "sequenceDiagram participant A\n    A->>A: self \u2014 note",
    ])
    def test_idempotent(self, raw):
        once = sanitize_mermaid(raw)

        assert sanitize_mermaid(once) == once


class TestSubgraphRepair:
    """Subgraph header normalization."""

    def test_plain_title(self):
        assert fix_subgraph_line('subgraph My Group') == 'subgraph My["My Group"]'

    def test_invalid_identifier_keeps_text_as_title(self):
        assert fix_subgraph_line('subgraph 1st Phase') == 'subgraph Subgraph["1st Phase"]'

    def test_quoted_title(self):
        assert fix_subgraph_line('subgraph "Quoted Title"') == 'subgraph Subgraph["Quoted Title"]'

    def test_bracket_title(self):
        assert fix_subgraph_line('subgraph S1[Phase One]') == 'subgraph S1["Phase One"]'

    def test_identifier_only(self):
        assert fix_subgraph_line('subgraph Setup') == 'subgraph Setup'

    def test_subgraph_inside_diagram(self):
        raw = "flowchart TD\n    subgraph 1st Phase\n    A[x]\n    end"

        assert sanitize_mermaid(raw) == 'flowchart TD\n    subgraph Subgraph["1st Phase"]\n    A[x]\n    end'


class TestHelpers:
    def test_strip_fences_without_language(self):
        assert strip_fences("```\nflowchart TD\n```").strip() == "flowchart TD"

    def test_decode_entities_until_stable(self):
        assert decode_entities("&amp;amp;lt;") == "<"
        assert decode_entities("plain text") == "plain text"
