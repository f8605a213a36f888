"""
Jurisdiction resolution: which tax zones apply to an order.

Origin-sourced tax types look at where the store is; destination-sourced
ones look at where the customer is and only keep zones the store is
registered to collect in. Within a zone family the most specific match
wins (a state beats its country); a tie is ambiguous.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, Sequence

from order_tax.exceptions import AmbiguousJurisdiction
from order_tax.jurisdiction import Jurisdiction
from order_tax.orders import CustomerProfile, Store
from order_tax.rates import TaxZone

logger = logging.getLogger(__name__)


class Sourcing(Enum):
    ORIGIN = "origin"  # store location decides
    DESTINATION = "destination"  # customer location decides


def select_most_specific(matches: Iterable[tuple[TaxZone, int]]) -> list[TaxZone]:
    """
    Keep the most specific zone of every family.

    Raises AmbiguousJurisdiction when two different zones of one family
    tie for the highest specificity.
    """
    best: dict[str, tuple[int, list[TaxZone]]] = {}
    for zone, specificity in matches:
        current = best.get(zone.family)
        if current is None or specificity > current[0]:
            best[zone.family] = (specificity, [zone])
        elif specificity == current[0] and zone not in current[1]:
            current[1].append(zone)

    selected: list[TaxZone] = []
    for family, (_, zones) in best.items():
        if len(zones) > 1:
            raise AmbiguousJurisdiction(family, [z.zone_id for z in zones])
        selected.append(zones[0])
    return selected


class JurisdictionResolver:
    """Resolve the applicable zones of one tax type for a store and customer."""

    def __init__(
        self,
        zones: Sequence[TaxZone],
        sourcing: Sourcing = Sourcing.DESTINATION,
    ) -> None:
        self.zones = tuple(zones)
        self.sourcing = sourcing

    def _matches(self, jurisdictions: Iterable[Jurisdiction]) -> list[tuple[TaxZone, int]]:
        matches: list[tuple[TaxZone, int]] = []
        for jurisdiction in jurisdictions:
            for zone in self.zones:
                specificity = zone.match(jurisdiction)
                if specificity is not None:
                    matches.append((zone, specificity))
        return matches

    def match_address(self, jurisdiction: Jurisdiction) -> list[TaxZone]:
        """Zones covering a single address, most specific per family."""
        return select_most_specific(self._matches([jurisdiction]))

    def is_registered(self, store: Store, zone: TaxZone) -> bool:
        """
        True when the store's address or a registration falls in ``zone``.

        A country-level registration covers every subdivision of that
        country; a store address without a subdivision does not.
        """
        if zone.match(store.address) is not None:
            return True
        for jurisdiction in store.registrations:
            if zone.match(jurisdiction) is not None:
                return True
            if jurisdiction.subdivision_code is None and any(
                t.country_code == jurisdiction.country_code for t in zone.territories
            ):
                return True
        return False

    def resolve_origin(self, store: Store) -> list[TaxZone]:
        zones = self.match_address(store.address)
        if zones:
            return zones
        # Store located outside every zone: fall back to its registrations
        return select_most_specific(self._matches(store.registrations))

    def resolve_destination(
        self, store: Store, customer_profile: CustomerProfile
    ) -> list[TaxZone]:
        matches = [
            (zone, specificity)
            for zone, specificity in self._matches([customer_profile.address])
            if self.is_registered(store, zone)
        ]
        return select_most_specific(matches)

    def resolve(self, store: Store, customer_profile: CustomerProfile) -> list[TaxZone]:
        """
        Return the applicable zones under this resolver's sourcing policy.

        Raises AmbiguousJurisdiction; callers decide how to recover.
        """
        if self.sourcing is Sourcing.ORIGIN:
            zones = self.resolve_origin(store)
        else:
            zones = self.resolve_destination(store, customer_profile)
        logger.debug(
            "Resolved %s zones for store %s / customer %s: %s",
            self.sourcing.value,
            store.address,
            customer_profile.address,
            [z.zone_id for z in zones] or "none",
        )
        return zones
