"""
Identity subpackage: counterpart keys and display names.
"""

from .normalizer import normalize, normalize_phone, split_recipients
from .resolver import (
    CachedDisplayNameResolver,
    DisplayNameResolver,
    NullDisplayNameResolver,
    StaticDisplayNameResolver,
    fallback_display_name,
)

__all__ = [
    "CachedDisplayNameResolver",
    "DisplayNameResolver",
    "NullDisplayNameResolver",
    "StaticDisplayNameResolver",
    "fallback_display_name",
    "normalize",
    "normalize_phone",
    "split_recipients",
]
