"""
Record Store Schema Definitions

One array of countries plus one array per indicator series. Every series
shares the same observation shape:

    {id, country_iso, <value field>, <extra fields>, source, effective_date?, updated_at}
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SeriesSpec:
    """Immutable descriptor for one indicator series in the store."""

    key: str  # public series name, also used for the read cache key
    table: str  # array name in the snapshot
    description: str
    value_field: str = "rate"
    identity_fields: tuple[str, ...] = ("country_iso",)
    defaults: dict = field(default_factory=dict)

    @property
    def cache_key(self) -> str:
        return f"rates:{self.key}"


COUNTRIES_TABLE = "countries"
COUNTRIES_CACHE_KEY = "countries:all"


# -------------------------------------------------------------------
# Series registry
# -------------------------------------------------------------------

_SERIES = [
    SeriesSpec(
        key="exchange",
        table="exchange_rates",
        description="Exchange rate to USD",
        value_field="rate_to_usd",
        identity_fields=("country_iso", "currency_code"),
    ),
    SeriesSpec(key="interest", table="interest_rates", description="Real interest rate (%)"),
    SeriesSpec(
        key="inflation",
        table="inflation_rates",
        description="Inflation, consumer prices (annual %)",
        defaults={"period": "yearly"},
    ),
    SeriesSpec(key="gdp", table="gdp_growth_rates", description="GDP growth (annual %)"),
    SeriesSpec(key="unemployment", table="unemployment_rates", description="Unemployment (% of labor force)"),
    SeriesSpec(
        key="government-debt",
        table="government_debt_rates",
        description="Central government debt (% of GDP)",
    ),
    SeriesSpec(key="gdp-per-capita", table="gdp_per_capita_rates", description="GDP per capita (current US$)"),
    SeriesSpec(key="trade-balance", table="trade_balance_rates", description="External balance (% of GDP)"),
    SeriesSpec(
        key="current-account",
        table="current_account_rates",
        description="Current account balance (% of GDP)",
    ),
    SeriesSpec(key="fdi", table="fdi_rates", description="FDI net inflows (% of GDP)"),
    SeriesSpec(
        key="population-growth",
        table="population_growth_rates",
        description="Population growth (annual %)",
    ),
    SeriesSpec(
        key="life-expectancy",
        table="life_expectancy_rates",
        description="Life expectancy at birth (years)",
    ),
    SeriesSpec(key="gini-coefficient", table="gini_coefficient_rates", description="Gini index"),
    SeriesSpec(key="exports", table="exports_rates", description="Exports (% of GDP)"),
]

SERIES: dict[str, SeriesSpec] = {spec.key: spec for spec in _SERIES}


def get_series(key: str) -> SeriesSpec:
    """Look up a series by public key or table name.

    Raises:
        KeyError: If no such series is registered.
    """
    if key in SERIES:
        return SERIES[key]
    for spec in _SERIES:
        if spec.table == key:
            return spec
    raise KeyError(f"Unknown series: {key}")


def empty_snapshot() -> dict[str, list]:
    """Canonical empty store: countries plus one empty array per series."""
    snapshot: dict[str, list] = {COUNTRIES_TABLE: []}
    for spec in _SERIES:
        snapshot[spec.table] = []
    return snapshot
