"""
Application Services

Entry points that route tasks to backends.
"""

from .dispatch_service import BackendRegistry, build_default_registry

__all__ = ["BackendRegistry", "build_default_registry"]
