"""
Tax zones, dated rates and the rule snapshot handed to tax types.

A snapshot is an immutable set of zones per tax type, evaluated as of one
date. The built-in tables cover the zones the EU VAT and US sales tax types
ship with; deployments usually load their own through ``from_frame`` or
``load_rates_csv``.

Rates are decimal fractions (0.21 = 21%). Date ranges are inclusive on
both ends; an open end date means the rate is still in force.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Iterable, Optional, Union

import pandas as pd

from order_tax.exceptions import RuleLookupFailed
from order_tax.jurisdiction import Jurisdiction, TerritoryMatcher


@dataclass(frozen=True)
class TaxRate:
    """A percentage in force between two dates."""

    rate_id: str
    percentage: Decimal
    start_date: date
    end_date: Optional[date] = None
    label: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.percentage, Decimal):
            object.__setattr__(self, "percentage", Decimal(str(self.percentage)))
        if self.percentage < 0:
            raise ValueError(f"Negative tax rate {self.percentage} for {self.rate_id}")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError(f"Rate {self.rate_id} ends before it starts")

    def is_active(self, on: date) -> bool:
        if on < self.start_date:
            return False
        return self.end_date is None or on <= self.end_date


@dataclass(frozen=True)
class TaxZone:
    """A group of territories sharing one rate schedule."""

    zone_id: str
    label: str
    territories: tuple[TerritoryMatcher, ...]
    rates: tuple[TaxRate, ...]
    display_label: str = "Tax"
    family: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "territories", tuple(self.territories))
        object.__setattr__(self, "rates", tuple(self.rates))
        if not self.family:
            object.__setattr__(self, "family", self.zone_id)

    def match(self, jurisdiction: Jurisdiction) -> Optional[int]:
        """Best specificity over all territories, None when none match."""
        best: Optional[int] = None
        for territory in self.territories:
            specificity = territory.match(jurisdiction)
            if specificity is not None and (best is None or specificity > best):
                best = specificity
        return best

    def active_rate(self, on: date) -> TaxRate:
        """
        Return the single rate in force on ``on``.

        Raises RuleLookupFailed when no rate, or more than one, is active.
        """
        active = [r for r in self.rates if r.is_active(on)]
        if not active:
            raise RuleLookupFailed(
                f"No active rate for zone {self.zone_id} on {on.isoformat()}"
            )
        if len(active) > 1:
            ids = ", ".join(r.rate_id for r in active)
            raise RuleLookupFailed(
                f"Overlapping rates for zone {self.zone_id} on {on.isoformat()}: {ids}"
            )
        return active[0]


# ---------------------------------------------------------------------------
# Built-in zone tables
# ---------------------------------------------------------------------------

_EPOCH = date(2000, 1, 1)

# country: (name, territories, [(percentage, start, end), ...])
_EU_VAT_DATA: dict[str, tuple[str, list[str], list[tuple[str, date, Optional[date]]]]] = {
    "AT": ("Austria", ["AT"], [("0.20", _EPOCH, None)]),
    "BE": ("Belgium", ["BE"], [("0.21", _EPOCH, None)]),
    "BG": ("Bulgaria", ["BG"], [("0.20", _EPOCH, None)]),
    "CY": ("Cyprus", ["CY"], [("0.19", _EPOCH, None)]),
    "CZ": ("Czech Republic", ["CZ"], [("0.21", _EPOCH, None)]),
    "DE": (
        "Germany",
        ["DE"],
        [
            ("0.19", _EPOCH, date(2020, 6, 30)),
            ("0.16", date(2020, 7, 1), date(2020, 12, 31)),
            ("0.19", date(2021, 1, 1), None),
        ],
    ),
    "DK": ("Denmark", ["DK"], [("0.25", _EPOCH, None)]),
    "EE": (
        "Estonia",
        ["EE"],
        [
            ("0.20", _EPOCH, date(2023, 12, 31)),
            ("0.22", date(2024, 1, 1), date(2025, 6, 30)),
            ("0.24", date(2025, 7, 1), None),
        ],
    ),
    "ES": ("Spain", ["ES!ES-CN!ES-CE!ES-ML"], [("0.21", _EPOCH, None)]),
    "FI": (
        "Finland",
        ["FI!FI-01"],
        [("0.24", _EPOCH, date(2024, 8, 31)), ("0.255", date(2024, 9, 1), None)],
    ),
    "FR": ("France", ["FR", "MC"], [("0.20", _EPOCH, None)]),
    "GR": ("Greece", ["GR!GR-69"], [("0.24", _EPOCH, None)]),
    "HR": ("Croatia", ["HR"], [("0.25", _EPOCH, None)]),
    "HU": ("Hungary", ["HU"], [("0.27", _EPOCH, None)]),
    "IE": ("Ireland", ["IE"], [("0.23", _EPOCH, None)]),
    "IT": ("Italy", ["IT"], [("0.22", _EPOCH, None)]),
    "LT": ("Lithuania", ["LT"], [("0.21", _EPOCH, None)]),
    "LU": (
        "Luxembourg",
        ["LU"],
        [
            ("0.17", _EPOCH, date(2022, 12, 31)),
            ("0.16", date(2023, 1, 1), date(2023, 12, 31)),
            ("0.17", date(2024, 1, 1), None),
        ],
    ),
    "LV": ("Latvia", ["LV"], [("0.21", _EPOCH, None)]),
    "MT": ("Malta", ["MT"], [("0.18", _EPOCH, None)]),
    "NL": (
        "Netherlands",
        ["NL"],
        [("0.19", _EPOCH, date(2012, 9, 30)), ("0.21", date(2012, 10, 1), None)],
    ),
    "PL": ("Poland", ["PL"], [("0.23", _EPOCH, None)]),
    "PT": ("Portugal", ["PT"], [("0.23", _EPOCH, None)]),
    "RO": (
        "Romania",
        ["RO"],
        [("0.19", _EPOCH, date(2025, 7, 31)), ("0.21", date(2025, 8, 1), None)],
    ),
    "SE": ("Sweden", ["SE"], [("0.25", _EPOCH, None)]),
    "SI": ("Slovenia", ["SI"], [("0.22", _EPOCH, None)]),
    "SK": (
        "Slovakia",
        ["SK"],
        [("0.20", _EPOCH, date(2024, 12, 31)), ("0.23", date(2025, 1, 1), None)],
    ),
}

# state: (name, base rate)
_US_SALES_TAX_DATA: dict[str, tuple[str, str]] = {
    "CA": ("California", "0.0725"),
    "CO": ("Colorado", "0.029"),
    "FL": ("Florida", "0.06"),
    "IL": ("Illinois", "0.0625"),
    "MA": ("Massachusetts", "0.0625"),
    "NJ": ("New Jersey", "0.06625"),
    "NY": ("New York", "0.04"),
    "PA": ("Pennsylvania", "0.06"),
    "TX": ("Texas", "0.0625"),
    "WA": ("Washington", "0.065"),
}


def parse_territory(token: str) -> TerritoryMatcher:
    """Parse ``"ES!ES-CN!ES-CE"``: a territory followed by exclusions."""
    code, *excluded = token.strip().split("!")
    return TerritoryMatcher.parse(code, tuple(excluded))


def _eu_vat_zones() -> tuple[TaxZone, ...]:
    zones: list[TaxZone] = []
    for country, (name, territories, percentages) in sorted(_EU_VAT_DATA.items()):
        rates = tuple(
            TaxRate(
                rate_id=f"standard_{start.year}" if i else "standard",
                percentage=Decimal(pct),
                start_date=start,
                end_date=end,
                label="Standard",
            )
            for i, (pct, start, end) in enumerate(percentages)
        )
        zones.append(
            TaxZone(
                zone_id=country.lower(),
                label=name,
                territories=tuple(parse_territory(t) for t in territories),
                rates=rates,
                display_label="VAT",
                family="eu_vat",
            )
        )
    return tuple(zones)


def _us_sales_tax_zones() -> tuple[TaxZone, ...]:
    return tuple(
        TaxZone(
            zone_id=f"us_{state.lower()}",
            label=name,
            territories=(TerritoryMatcher("US", state),),
            rates=(TaxRate("state", Decimal(rate), _EPOCH, label="State"),),
            display_label="Sales tax",
            family="us_sales_tax",
        )
        for state, (name, rate) in sorted(_US_SALES_TAX_DATA.items())
    )


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxRuleSnapshot:
    """
    Immutable tax rule tables as of one evaluation date.

    Zones are keyed by tax type id. Lookups for a tax type the snapshot
    does not carry raise RuleLookupFailed.
    """

    as_of: date
    zones: dict[str, tuple[TaxZone, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "zones", {k: tuple(v) for k, v in self.zones.items()}
        )

    @classmethod
    def default(cls, as_of: Optional[date] = None) -> "TaxRuleSnapshot":
        return cls(
            as_of=as_of or date.today(),
            zones={
                "european_union_vat": _eu_vat_zones(),
                "us_sales_tax": _us_sales_tax_zones(),
            },
        )

    @property
    def tax_type_ids(self) -> list[str]:
        return sorted(self.zones)

    def has_tax_type(self, tax_type_id: str) -> bool:
        return tax_type_id in self.zones

    def zones_for(self, tax_type_id: str) -> tuple[TaxZone, ...]:
        try:
            zones = self.zones[tax_type_id]
        except KeyError:
            raise RuleLookupFailed(
                f"Rule snapshot has no zones for tax type {tax_type_id!r}"
            ) from None
        if not zones:
            raise RuleLookupFailed(f"Tax type {tax_type_id!r} has an empty zone list")
        return zones

    def zone(self, tax_type_id: str, zone_id: str) -> TaxZone:
        for zone in self.zones_for(tax_type_id):
            if zone.zone_id == zone_id:
                return zone
        raise RuleLookupFailed(f"Unknown zone {zone_id!r} for tax type {tax_type_id!r}")

    def with_zones(
        self, tax_type_id: str, zones: Iterable[TaxZone]
    ) -> "TaxRuleSnapshot":
        merged = dict(self.zones)
        merged[tax_type_id] = tuple(zones)
        return TaxRuleSnapshot(as_of=self.as_of, zones=merged)

    # ------------------------------------------------------------------
    # Tabular loading
    # ------------------------------------------------------------------

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, as_of: date) -> "TaxRuleSnapshot":
        """
        Build a snapshot from one row per (zone, rate).

        Required columns: tax_type, zone_id, territories, rate_id,
        percentage, start_date. Optional: zone_label, display_label,
        family, end_date, rate_label. Territories are separated by ``;``.
        """
        required = {"tax_type", "zone_id", "territories", "rate_id", "percentage", "start_date"}
        missing = required - set(frame.columns)
        if missing:
            raise RuleLookupFailed(
                f"Rate table is missing columns: {', '.join(sorted(missing))}"
            )

        frame = frame.fillna("").astype(str)
        zones: dict[str, list[TaxZone]] = {}
        for (tax_type, zone_id), rows in frame.groupby(
            ["tax_type", "zone_id"], sort=False
        ):
            first = rows.iloc[0]
            rates = tuple(_rate_from_row(row) for _, row in rows.iterrows())
            zones.setdefault(tax_type, []).append(
                TaxZone(
                    zone_id=zone_id,
                    label=_column(first, "zone_label") or zone_id,
                    territories=tuple(
                        parse_territory(t)
                        for t in first["territories"].split(";")
                        if t.strip()
                    ),
                    rates=rates,
                    display_label=_column(first, "display_label") or "Tax",
                    family=_column(first, "family"),
                )
            )
        return cls(as_of=as_of, zones={k: tuple(v) for k, v in zones.items()})


def _column(row: pd.Series, name: str) -> str:
    return str(row.get(name, "") or "").strip()


def _rate_from_row(row: pd.Series) -> TaxRate:
    try:
        percentage = Decimal(row["percentage"].strip())
        start = date.fromisoformat(row["start_date"].strip())
        end_raw = _column(row, "end_date")
        end = date.fromisoformat(end_raw) if end_raw else None
    except (InvalidOperation, ValueError) as e:
        raise RuleLookupFailed(
            f"Invalid rate row for zone {row['zone_id']}: {e}"
        ) from e
    return TaxRate(
        rate_id=row["rate_id"].strip(),
        percentage=percentage,
        start_date=start,
        end_date=end,
        label=_column(row, "rate_label"),
    )


def load_rates_csv(path: Union[str, Path], as_of: Optional[date] = None) -> TaxRuleSnapshot:
    """Load a rate table CSV into a snapshot. All columns are read as text."""
    csv_path = Path(path)
    if not csv_path.exists():
        raise RuleLookupFailed(f"Rate table not found: {csv_path}")
    frame = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    return TaxRuleSnapshot.from_frame(frame, as_of or date.today())
