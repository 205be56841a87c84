"""
Currency -> Country Reference Table

ISO 4217 currency code to the ISO-3166 alpha-2 codes of every country that
uses it as official currency. Shared currencies fan out to several countries.
"""

CURRENCY_COUNTRIES: dict[str, tuple[str, ...]] = {
    "AED": ("AE",),
    "AFN": ("AF",),
    "ALL": ("AL",),
    "AMD": ("AM",),
    "ANG": ("CW", "SX"),
    "AOA": ("AO",),
    "ARS": ("AR",),
    "AUD": ("AU", "KI", "NR", "TV"),
    "AWG": ("AW",),
    "AZN": ("AZ",),
    "BAM": ("BA",),
    "BBD": ("BB",),
    "BDT": ("BD",),
    "BGN": ("BG",),
    "BHD": ("BH",),
    "BIF": ("BI",),
    "BMD": ("BM",),
    "BND": ("BN",),
    "BOB": ("BO",),
    "BRL": ("BR",),
    "BSD": ("BS",),
    "BTN": ("BT",),
    "BWP": ("BW",),
    "BYN": ("BY",),
    "BZD": ("BZ",),
    "CAD": ("CA",),
    "CDF": ("CD",),
    "CHF": ("CH", "LI"),
    "CLP": ("CL",),
    "CNY": ("CN",),
    "COP": ("CO",),
    "CRC": ("CR",),
    "CUP": ("CU",),
    "CVE": ("CV",),
    "CZK": ("CZ",),
    "DJF": ("DJ",),
    "DKK": ("DK", "FO", "GL"),
    "DOP": ("DO",),
    "DZD": ("DZ",),
    "EGP": ("EG",),
    "ERN": ("ER",),
    "ETB": ("ET",),
    "EUR": (
        "AD", "AT", "BE", "CY", "DE", "EE", "ES", "FI", "FR", "GR", "HR", "IE",
        "IT", "LT", "LU", "LV", "MC", "ME", "MT", "NL", "PT", "SI", "SK", "SM",
        "VA", "XK",
    ),
    "FJD": ("FJ",),
    "GBP": ("GB", "IM"),
    "GEL": ("GE",),
    "GHS": ("GH",),
    "GMD": ("GM",),
    "GNF": ("GN",),
    "GTQ": ("GT",),
    "GYD": ("GY",),
    "HKD": ("HK",),
    "HNL": ("HN",),
    "HTG": ("HT",),
    "HUF": ("HU",),
    "IDR": ("ID",),
    "ILS": ("IL", "PS"),
    "INR": ("IN",),
    "IQD": ("IQ",),
    "IRR": ("IR",),
    "ISK": ("IS",),
    "JMD": ("JM",),
    "JOD": ("JO",),
    "JPY": ("JP",),
    "KES": ("KE",),
    "KGS": ("KG",),
    "KHR": ("KH",),
    "KMF": ("KM",),
    "KPW": ("KP",),
    "KRW": ("KR",),
    "KWD": ("KW",),
    "KYD": ("KY",),
    "KZT": ("KZ",),
    "LAK": ("LA",),
    "LBP": ("LB",),
    "LKR": ("LK",),
    "LRD": ("LR",),
    "LSL": ("LS",),
    "LYD": ("LY",),
    "MAD": ("MA",),
    "MDL": ("MD",),
    "MGA": ("MG",),
    "MKD": ("MK",),
    "MMK": ("MM",),
    "MNT": ("MN",),
    "MOP": ("MO",),
    "MRU": ("MR",),
    "MUR": ("MU",),
    "MVR": ("MV",),
    "MWK": ("MW",),
    "MXN": ("MX",),
    "MYR": ("MY",),
    "MZN": ("MZ",),
    "NAD": ("NA",),
    "NGN": ("NG",),
    "NIO": ("NI",),
    "NOK": ("NO",),
    "NPR": ("NP",),
    "NZD": ("NZ",),
    "OMR": ("OM",),
    "PAB": ("PA",),
    "PEN": ("PE",),
    "PGK": ("PG",),
    "PHP": ("PH",),
    "PKR": ("PK",),
    "PLN": ("PL",),
    "PYG": ("PY",),
    "QAR": ("QA",),
    "RON": ("RO",),
    "RSD": ("RS",),
    "RUB": ("RU",),
    "RWF": ("RW",),
    "SAR": ("SA",),
    "SBD": ("SB",),
    "SCR": ("SC",),
    "SDG": ("SD",),
    "SEK": ("SE",),
    "SGD": ("SG",),
    "SLE": ("SL",),
    "SOS": ("SO",),
    "SRD": ("SR",),
    "SSP": ("SS",),
    "STN": ("ST",),
    "SYP": ("SY",),
    "SZL": ("SZ",),
    "THB": ("TH",),
    "TJS": ("TJ",),
    "TMT": ("TM",),
    "TND": ("TN",),
    "TOP": ("TO",),
    "TRY": ("TR",),
    "TTD": ("TT",),
    "TWD": ("TW",),
    "TZS": ("TZ",),
    "UAH": ("UA",),
    "UGX": ("UG",),
    "USD": (
        "US", "EC", "SV", "PR", "TL", "FM", "MH", "PW", "TC", "VG", "AS", "GU",
        "MP", "VI",
    ),
    "UYU": ("UY",),
    "UZS": ("UZ",),
    "VES": ("VE",),
    "VND": ("VN",),
    "VUV": ("VU",),
    "WST": ("WS",),
    "XAF": ("CM", "CF", "TD", "CG", "GQ", "GA"),
    "XCD": ("AG", "DM", "GD", "KN", "LC", "VC"),
    "XOF": ("BJ", "BF", "CI", "GW", "ML", "NE", "SN", "TG"),
    "XPF": ("PF", "NC"),
    "YER": ("YE",),
    "ZAR": ("ZA",),
    "ZMW": ("ZM",),
    "ZWL": ("ZW",),
}


def countries_for_currency(currency_code: str) -> tuple[str, ...]:
    """ISO2 codes of the countries using ``currency_code`` (empty if unknown)."""
    return CURRENCY_COUNTRIES.get(currency_code.upper(), ())
