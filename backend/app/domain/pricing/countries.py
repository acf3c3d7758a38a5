"""
Country name normalization for pricing lookups.

Addresses usually carry a country name ("South Africa") while pricing rows
are keyed by ISO 3166-1 alpha-2 codes ("ZA").
"""

from typing import Optional

from backend.app.models.delivery_pricing import ANY_COUNTRY

COUNTRY_NAME_TO_CODE = {
    "zimbabwe": "ZW",
    "south africa": "ZA",
    "united kingdom": "GB",
    "uk": "GB",
    "united states": "US",
    "usa": "US",
    "america": "US",
    "united arab emirates": "AE",
    "uae": "AE",
    "australia": "AU",
    "germany": "DE",
    "france": "FR",
    "netherlands": "NL",
    "kenya": "KE",
    "nigeria": "NG",
    "ghana": "GH",
    "botswana": "BW",
    "mozambique": "MZ",
    "zambia": "ZM",
    "malawi": "MW",
    "tanzania": "TZ",
    "uganda": "UG",
    "canada": "CA",
    "india": "IN",
    "china": "CN",
    "japan": "JP",
    "brazil": "BR",
    "mexico": "MX",
    "spain": "ES",
    "italy": "IT",
    "portugal": "PT",
    "belgium": "BE",
    "switzerland": "CH",
    "austria": "AT",
    "poland": "PL",
    "ireland": "IE",
    "new zealand": "NZ",
    "singapore": "SG",
    "malaysia": "MY",
    "hong kong": "HK",
    "south korea": "KR",
    "thailand": "TH",
    "vietnam": "VN",
    "indonesia": "ID",
    "philippines": "PH",
    "estonia": "EE",
    "egypt": "EG",
    "morocco": "MA",
    "saudi arabia": "SA",
    "israel": "IL",
    "turkey": "TR",
    "russia": "RU",
    "ukraine": "UA",
    "pakistan": "PK",
    "bangladesh": "BD",
    "sri lanka": "LK",
    "namibia": "NA",
    "angola": "AO",
    "cote d'ivoire": "CI",
    "ivory coast": "CI",
    "senegal": "SN",
    "ethiopia": "ET",
    "rwanda": "RW",
    "cameroon": "CM",
    "congo (democratic republic)": "CD",
    "drc": "CD",
    "congo": "CG",
    "republic of congo": "CG",
}


def country_to_code(country: Optional[str]) -> str:
    """
    Normalize a country name or code to an ISO alpha-2 code.

    Blank input maps to the wildcard code. Unknown names fall back to their
    first two letters, upper-cased.
    """
    if not country or not country.strip():
        return ANY_COUNTRY

    normalized = country.strip().lower()
    code = COUNTRY_NAME_TO_CODE.get(normalized)
    if code:
        return code

    # Already a code, or an unknown name
    return normalized.upper()[:2]
