"""
World Bank Indicator Registry

Maps each stored series to the World Bank v2 indicator code it is fed from.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class WorldBankIndicator:
    """Immutable descriptor for a World Bank indicator feeding one series."""

    code: str
    series: str  # series key in the record store
    name: str
    unit: str


WORLD_BANK_INDICATORS: dict[str, WorldBankIndicator] = {
    ind.series: ind
    for ind in (
        WorldBankIndicator("FR.INR.RINR", "interest", "Real interest rate", "percent"),
        WorldBankIndicator("FP.CPI.TOTL.ZG", "inflation", "Inflation, consumer prices", "percent"),
        WorldBankIndicator("NY.GDP.MKTP.KD.ZG", "gdp", "GDP growth", "percent"),
        WorldBankIndicator("SL.UEM.TOTL.ZS", "unemployment", "Unemployment, total", "percent"),
        WorldBankIndicator(
            "GC.DOD.TOTL.GD.ZS", "government-debt", "Central government debt", "percent_gdp"
        ),
        WorldBankIndicator("NY.GDP.PCAP.CD", "gdp-per-capita", "GDP per capita", "usd"),
        WorldBankIndicator(
            "NE.RSB.GNFS.ZS", "trade-balance", "External balance on goods and services", "percent_gdp"
        ),
        WorldBankIndicator(
            "BN.CAB.XOKA.GD.ZS", "current-account", "Current account balance", "percent_gdp"
        ),
        WorldBankIndicator(
            "BX.KLT.DINV.WD.GD.ZS", "fdi", "Foreign direct investment, net inflows", "percent_gdp"
        ),
        WorldBankIndicator("SP.POP.GROW", "population-growth", "Population growth", "percent"),
        WorldBankIndicator("SP.DYN.LE00.IN", "life-expectancy", "Life expectancy at birth", "years"),
        WorldBankIndicator("SI.POV.GINI", "gini-coefficient", "Gini index", "index"),
        WorldBankIndicator("NE.EXP.GNFS.ZS", "exports", "Exports of goods and services", "percent_gdp"),
    )
}
