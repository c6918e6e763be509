"""Value objects for staff account requests.

Immutable, validated domain primitives. All validation occurs at construction.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

DEFAULT_MINIMUM_PASSWORD_LENGTH = 6


@dataclass(frozen=True, slots=True)
class Email:
    """Validated, trimmed email address.

    Unlike optional OIDC claims, a staff account email is mandatory.

    Attributes:
        value: The validated email string with surrounding whitespace removed.

    Raises:
        ValueError: If email is empty, exceeds 255 chars, or has an invalid format.
    """

    value: str

    def __post_init__(self) -> None:
        stripped = self.value.strip()
        object.__setattr__(self, "value", stripped)
        if not stripped:
            msg = "Email is required"
            raise ValueError(msg)
        if len(stripped) > 255:
            msg = f"Email too long: {len(stripped)} chars (max 255)"
            raise ValueError(msg)
        if not _EMAIL_PATTERN.match(stripped):
            msg = f"Invalid email format: '{stripped}'"
            raise ValueError(msg)

    @property
    def normalized(self) -> str:
        """Lowercased form used for case-insensitive comparisons."""
        return self.value.lower()

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Password:
    """Initial account password.

    The value is excluded from ``repr`` so it never leaks into logs.

    Raises:
        ValueError: If the password is empty or shorter than ``minimum_length``.
    """

    value: str
    minimum_length: int = DEFAULT_MINIMUM_PASSWORD_LENGTH

    def __post_init__(self) -> None:
        if not self.value:
            msg = "Password is required"
            raise ValueError(msg)
        if len(self.value) < self.minimum_length:
            msg = f"Password must be at least {self.minimum_length} characters long"
            raise ValueError(msg)

    def __repr__(self) -> str:
        return "Password(value='***')"


@dataclass(frozen=True, slots=True)
class SalaryTerms:
    """Salary amount and payday (day of month).

    Both parts are optional; whichever is present is validated.

    Raises:
        ValueError: If amount is not finite, is negative, or day is outside 1-31.
    """

    amount: Decimal | None = None
    day_of_month: int | None = None

    def __post_init__(self) -> None:
        if self.amount is not None and not self.amount.is_finite():
            msg = f"Salary amount must be a finite number: {self.amount}"
            raise ValueError(msg)
        if self.amount is not None and self.amount < 0:
            msg = f"Salary amount cannot be negative: {self.amount}"
            raise ValueError(msg)
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            msg = f"Salary date must be a day of month between 1 and 31, got {self.day_of_month}"
            raise ValueError(msg)
