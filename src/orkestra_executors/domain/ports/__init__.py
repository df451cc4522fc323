"""
Domain Ports

Port interfaces defining contracts between layers.
"""

from .executor_port import IExecutorPort

__all__ = ["IExecutorPort"]
