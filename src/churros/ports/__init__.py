"""Ports - interfaces/protocols for external dependencies."""

from .shop_backend import ShopBackend
from .llm_service import LLMService

__all__ = [
    "ShopBackend",
    "LLMService",
]
