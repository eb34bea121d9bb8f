"""Text normalization helpers for the streaming detector."""

from .normalizer import normalize_stream_text, build_stream_buffer

__all__ = [
    'normalize_stream_text',
    'build_stream_buffer',
]
