"""
Internal Services Package

This package contains internal services:
- Model Router: per-call model, protocol, budget and effort selection
- Error Handler: exception taxonomy, timeouts, response checks
- Performance Tracker: per-model metrics and per-request step timing
"""

from .model_router import model_router
from .error_handler import error_handler
from .performance_tracker import performance_tracker

__all__ = [
    'model_router',
    'error_handler',
    'performance_tracker',
]
