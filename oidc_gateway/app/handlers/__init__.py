"""
Handler registry and the behaviors it can produce.
"""

from .base import Behavior
from .hello import HelloBehavior
from .registry import HandlerName, HandlerRegistry

__all__ = [
    "Behavior",
    "HandlerName",
    "HandlerRegistry",
    "HelloBehavior",
]
