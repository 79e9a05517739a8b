"""
Display-name resolution for counterparts.

Resolution is pluggable: anything with an async resolve_display_name() works.
fallback_display_name() is the pure formatter used when no resolver has an
answer.
"""

import re
from collections.abc import Mapping
from typing import Protocol

from kinship.features.relationship_intel.identity.normalizer import normalize
from kinship.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

_LOCAL_PART_SEPARATORS = re.compile(r"[._+\-]+")
_DIGIT_RUNS = re.compile(r"\d+")


class DisplayNameResolver(Protocol):
    async def resolve_display_name(self, identifier: str) -> str | None: ...


class NullDisplayNameResolver:
    """Resolver used when no contact source is configured."""

    async def resolve_display_name(self, identifier: str) -> str | None:
        return None


class StaticDisplayNameResolver:
    """Looks names up in a fixed mapping keyed by raw or normalized identifier."""

    def __init__(self, names: Mapping[str, str]):
        self._names = {normalize(identifier).key: name for identifier, name in names.items()}

    async def resolve_display_name(self, identifier: str) -> str | None:
        return self._names.get(normalize(identifier).key)


class CachedDisplayNameResolver:
    """
    Wraps a resolver for the duration of one pipeline run.

    Each identifier is looked up at most once. Resolver failures are logged
    and cached as "no name" so a broken contact source never aborts ingestion.
    """

    def __init__(self, resolver: DisplayNameResolver):
        self._resolver = resolver
        self._cache: dict[str, str | None] = {}

    async def resolve_display_name(self, identifier: str) -> str | None:
        if identifier in self._cache:
            return self._cache[identifier]

        try:
            name = await self._resolver.resolve_display_name(identifier)
        except Exception as e:
            logger.warning(
                "Display name resolution failed",
                identifier=identifier,
                error=str(e),
                error_type=type(e).__name__,
            )
            name = None

        name = name.strip() if isinstance(name, str) and name.strip() else None
        self._cache[identifier] = name
        return name


def fallback_display_name(identifier: str) -> str:
    """
    Derive a readable name from an identifier alone.

    jane.doe@example.com -> "Jane Doe"; 5551234567 -> "(555) 123-4567".
    Anything else is returned unchanged.
    """
    if not identifier:
        return identifier

    if "@" in identifier:
        local_part = identifier.split("@", 1)[0]
        words = _DIGIT_RUNS.sub("", _LOCAL_PART_SEPARATORS.sub(" ", local_part)).split()
        return " ".join(word.capitalize() for word in words) or identifier

    digits = re.sub(r"\D", "", identifier)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return identifier
