"""Identifier value objects for type-safe identifier handling.

Org units are referenced either by canonical UUID (the console's own tables)
or by a lowercase slug (imported directories). Identity ids are always UUIDs.

Example:
    >>> from staffline.foundation.domain.identifiers import OrgUnitId
    >>> OrgUnitId("org-1")
    OrgUnitId(value='org-1')
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import ClassVar
from uuid import UUID


@dataclass(frozen=True)
class OrgUnitId:
    """Organizational unit identifier with format validation.

    Accepts a canonical hyphenated UUID (case-insensitive) or a lowercase
    alphanumeric slug with inner hyphens, 2-63 characters. Surrounding
    whitespace must be stripped by the caller.

    Attributes:
        value: The validated identifier string.

    Raises:
        ValueError: If value is neither a canonical UUID nor a slug.

    Example:
        >>> OrgUnitId("550e8400-e29b-41d4-a716-446655440000")
        OrgUnitId(value='550e8400-e29b-41d4-a716-446655440000')
        >>> OrgUnitId("Org 1")
        Traceback (most recent call last):
        ValueError: Invalid org unit ID format: 'Org 1'. ...
    """

    value: str

    _UUID_PATTERN: ClassVar[re.Pattern[str]] = re.compile(
        r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
        re.IGNORECASE,
    )
    _SLUG_PATTERN: ClassVar[re.Pattern[str]] = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$")

    def __post_init__(self) -> None:
        """Validate org unit ID format on construction."""
        if not self.is_well_formed(self.value):
            msg = (
                f"Invalid org unit ID format: {self.value!r}. "
                "Must be a UUID or a lowercase slug of 2-63 characters."
            )
            raise ValueError(msg)

    @classmethod
    def is_well_formed(cls, value: str) -> bool:
        """Check format without raising.

        Args:
            value: Candidate identifier.

        Returns:
            True if ``value`` is a canonical UUID or a valid slug.
        """
        if cls._UUID_PATTERN.match(value):
            return True
        return 2 <= len(value) <= 63 and cls._SLUG_PATTERN.match(value) is not None

    @property
    def is_uuid(self) -> bool:
        """Whether the identifier is UUID-shaped."""
        return self._UUID_PATTERN.match(self.value) is not None

    def __str__(self) -> str:
        """Return identifier string for serialization."""
        return self.value


@dataclass(frozen=True)
class IdentityId:
    """Identity provider account identifier wrapping UUID.

    Attributes:
        value: The wrapped UUID instance.

    Example:
        >>> from uuid import UUID
        >>> IdentityId.parse("550e8400-e29b-41d4-a716-446655440000")
        IdentityId(value=UUID('550e8400-e29b-41d4-a716-446655440000'))
    """

    value: UUID

    @classmethod
    def parse(cls, raw: str | UUID) -> IdentityId:
        """Build from a UUID or its string form.

        Raises:
            ValueError: If ``raw`` is not a valid UUID string.
        """
        if isinstance(raw, UUID):
            return cls(raw)
        return cls(UUID(str(raw)))

    def __str__(self) -> str:
        """Return UUID string for serialization."""
        return str(self.value)
