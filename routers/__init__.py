"""
FastAPI Routers
===============

This package contains the FastAPI route modules.

Routers:
- api.py: Diagram generation, deep-dive and LLM metrics endpoints
"""

__all__ = [
    "api",
]
