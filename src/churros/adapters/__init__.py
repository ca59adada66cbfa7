"""Adapters - I/O implementations of ports."""

from .supabase_rest import SupabaseAdapter, BackendError
from .ai_gateway import ChatCompletionService

__all__ = [
    "SupabaseAdapter",
    "BackendError",
    "ChatCompletionService",
]
