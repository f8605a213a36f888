"""
Jurisdiction descriptors and territory matching.

A jurisdiction is a country plus an optional subdivision (state,
province, region). Territories describe which jurisdictions a tax zone
covers and report how specifically they matched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# Match specificity, higher wins within a zone family
COUNTRY_MATCH = 1
SUBDIVISION_MATCH = 2


def _normalize_subdivision(country_code: str, subdivision: Optional[str]) -> Optional[str]:
    if not subdivision:
        return None
    subdivision = subdivision.strip().upper()
    # Accept both "CA" and "US-CA" for a US state
    prefix = f"{country_code}-"
    if subdivision.startswith(prefix):
        subdivision = subdivision[len(prefix):]
    return subdivision or None


@dataclass(frozen=True)
class Jurisdiction:
    """A country and optional subdivision, e.g. ``US-CA`` or ``NL``."""

    country_code: str
    subdivision_code: Optional[str] = None

    def __post_init__(self) -> None:
        country = self.country_code.strip().upper()
        if len(country) != 2 or not country.isalpha():
            raise ValueError(f"Invalid country code: {self.country_code!r}")
        object.__setattr__(self, "country_code", country)
        object.__setattr__(
            self,
            "subdivision_code",
            _normalize_subdivision(country, self.subdivision_code),
        )

    @classmethod
    def parse(cls, code: str) -> "Jurisdiction":
        """Parse ``"NL"`` or ``"US-CA"``."""
        country, _, subdivision = code.strip().partition("-")
        return cls(country, subdivision or None)

    @property
    def code(self) -> str:
        if self.subdivision_code:
            return f"{self.country_code}-{self.subdivision_code}"
        return self.country_code

    def __str__(self) -> str:
        return self.code


@dataclass(frozen=True)
class TerritoryMatcher:
    """
    One territory of a tax zone.

    Without a subdivision the whole country matches (minus any excluded
    subdivisions). With a subdivision only that subdivision matches.
    """

    country_code: str
    subdivision_code: Optional[str] = None
    excluded_subdivisions: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        country = self.country_code.strip().upper()
        object.__setattr__(self, "country_code", country)
        object.__setattr__(
            self,
            "subdivision_code",
            _normalize_subdivision(country, self.subdivision_code),
        )
        object.__setattr__(
            self,
            "excluded_subdivisions",
            frozenset(
                _normalize_subdivision(country, s) for s in self.excluded_subdivisions
            ),
        )

    @classmethod
    def parse(cls, code: str, exclude: tuple[str, ...] = ()) -> "TerritoryMatcher":
        country, _, subdivision = code.strip().partition("-")
        return cls(country, subdivision or None, frozenset(exclude))

    @property
    def specificity(self) -> int:
        return SUBDIVISION_MATCH if self.subdivision_code else COUNTRY_MATCH

    def match(self, jurisdiction: Jurisdiction) -> Optional[int]:
        """Return the match specificity, or None if it does not match."""
        if jurisdiction.country_code != self.country_code:
            return None
        if self.subdivision_code:
            if jurisdiction.subdivision_code != self.subdivision_code:
                return None
            return SUBDIVISION_MATCH
        if jurisdiction.subdivision_code in self.excluded_subdivisions:
            return None
        return COUNTRY_MATCH

    @property
    def code(self) -> str:
        if self.subdivision_code:
            return f"{self.country_code}-{self.subdivision_code}"
        return self.country_code
