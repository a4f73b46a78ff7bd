"""
Utility helpers

- Mermaid sanitizer: deterministic repair of generated diagram source
"""
