"""
Configuration Package

Environment-backed settings for the diagram service. Import the shared
``config`` instance rather than constructing ``Config`` directly, except in
tests that need an isolated view of the environment.
"""

from .settings import Config, config

__all__ = [
    'Config',
    'config',
]
