"""
   This file contains the code for the transformation of NPPES rows into physician records.
"""

import re
from datetime import date
from typing import Dict, List, Optional, Tuple

import pandas as pd
from dagster import asset, get_dagster_logger

from dagster_pipeline.assets.ingestion import MAX_TAXONOMIES

NPPES_DATE_FORMAT = "%m/%d/%Y"

GENDER_CODES = {"M", "F", "X"}

PRACTICE = "Provider Business Practice Location Address"
MAILING = "Provider Business Mailing Address"

STG_COLUMNS = [
    "npi",
    "first_name",
    "last_name",
    "middle_name",
    "suffix",
    "credential",
    "gender",
    "status",
    "enumeration_date",
    "last_updated_nppes",
    "deactivation_date",
    "deactivation_reason",
    "reactivation_date",
    "primary_specialty",
    "secondary_specialties",
    "addresses",
    "phone_numbers",
    "address_state",
    "address_zip5",
]


def clean(value) -> Optional[str]:
    """ Strip strings; NaN, None and blanks become None. """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    s = str(value).strip()
    return s or None


def parse_nppes_date(value) -> Optional[date]:
    """ NPPES dates are MM/DD/YYYY. """
    value = clean(value)
    if value is None:
        return None
    parsed = pd.to_datetime(value, format=NPPES_DATE_FORMAT, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def zip5(postal_code) -> Optional[str]:
    """ First five digits of a ZIP or ZIP+4 ("606111234" -> "60611"). """
    digits = re.sub(r"\D", "", clean(postal_code) or "")
    if len(digits) < 5:
        return None
    return digits[:5]


def format_zip(postal_code) -> Optional[str]:
    """ ZIP+4 as "12345-6789", plain ZIPs unchanged. """
    postal_code = clean(postal_code)
    if postal_code is None:
        return None
    digits = re.sub(r"\D", "", postal_code)
    if len(digits) == 9:
        return f"{digits[:5]}-{digits[5:]}"
    return postal_code


def build_taxonomy_lookup(raw_taxonomy: pd.DataFrame) -> Dict[str, str]:
    """ NUCC code -> display name, falling back to "Classification, Specialization". """
    lookup: Dict[str, str] = {}
    for _, row in raw_taxonomy.iterrows():
        code = clean(row.get("Code"))
        if code is None:
            continue
        description = clean(row.get("Display Name"))
        if description is None:
            parts = [clean(row.get("Classification")), clean(row.get("Specialization"))]
            description = ", ".join(p for p in parts if p)
        lookup[code] = description or code
    return lookup


def build_specialties(row, taxonomy_lookup: Dict[str, str]) -> Tuple[Optional[dict], List[dict]]:
    """
    Collect the numbered taxonomy columns into (primary, secondaries).

    The entry flagged by the primary taxonomy switch wins; without a flag the
    first listed taxonomy is primary.
    """
    specialties = []
    for i in range(1, MAX_TAXONOMIES + 1):
        code = clean(row.get(f"Healthcare Provider Taxonomy Code_{i}"))
        if code is None:
            continue
        specialties.append(
            {
                "taxonomy_code": code,
                "taxonomy_description": taxonomy_lookup.get(code, code),
                "license_number": clean(row.get(f"Provider License Number_{i}")),
                "license_state": clean(row.get(f"Provider License Number State Code_{i}")),
                "primary_specialty": clean(row.get(f"Healthcare Provider Primary Taxonomy Switch_{i}")) == "Y",
            }
        )

    if not specialties:
        return None, []

    primary_index = next(
        (i for i, s in enumerate(specialties) if s["primary_specialty"]), 0
    )
    for i, specialty in enumerate(specialties):
        specialty["primary_specialty"] = i == primary_index

    primary = specialties.pop(primary_index)
    return primary, specialties


def _address(row, prefix: str, **kwargs) -> Optional[dict]:
    line1 = clean(row.get(prefix.replace("Provider ", "Provider First Line ", 1)))
    if line1 is None:
        return None
    return {
        "address_line1": line1,
        "address_line2": clean(row.get(prefix.replace("Provider ", "Provider Second Line ", 1))),
        "city": clean(row.get(f"{prefix} City Name")) or "",
        "state": (clean(row.get(f"{prefix} State Name")) or "").upper(),
        "zip_code": format_zip(row.get(f"{prefix} Postal Code")) or "",
        "country_code": clean(row.get(f"{prefix} Country Code (If outside U.S.)")) or "US",
        **kwargs,
    }


def build_addresses(row) -> List[dict]:
    """ Practice location first (primary), then the mailing address if it differs. """
    addresses = []
    practice = _address(
        row, PRACTICE, address_type="LOCATION", address_purpose="PRACTICE", is_primary=True
    )
    if practice:
        addresses.append(practice)

    mailing = _address(
        row, MAILING, address_type="MAILING", address_purpose="ADMINISTRATIVE", is_primary=False
    )
    if mailing and (
        practice is None
        or (mailing["address_line1"], mailing["zip_code"])
        != (practice["address_line1"], practice["zip_code"])
    ):
        addresses.append(mailing)

    return addresses


def build_phone_numbers(row) -> List[dict]:
    phones = []
    telephone = clean(row.get(f"{PRACTICE} Telephone Number"))
    if telephone:
        phones.append({"number": telephone, "type": "PRACTICE", "is_primary": True})
    fax = clean(row.get(f"{PRACTICE} Fax Number"))
    if fax:
        phones.append({"number": fax, "type": "FAX", "is_primary": False})
    return phones


def derive_status(deactivation_date: Optional[date], reactivation_date: Optional[date]) -> str:
    """ "D" while deactivated, otherwise "A". """
    if deactivation_date and (reactivation_date is None or reactivation_date < deactivation_date):
        return "D"
    return "A"


def transform_nppes_row(row, taxonomy_lookup: Dict[str, str]) -> dict:
    """ Map one raw NPPES row to a physicians-table record. """
    primary, secondaries = build_specialties(row, taxonomy_lookup)
    addresses = build_addresses(row)
    primary_address = addresses[0] if addresses and addresses[0]["is_primary"] else {}

    gender = clean(row.get("Provider Sex Code")) or clean(row.get("Provider Gender Code"))
    deactivation_date = parse_nppes_date(row.get("NPI Deactivation Date"))
    reactivation_date = parse_nppes_date(row.get("NPI Reactivation Date"))

    return {
        "npi": clean(row.get("NPI")),
        "first_name": clean(row.get("Provider First Name")),
        "last_name": clean(row.get("Provider Last Name (Legal Name)")),
        "middle_name": clean(row.get("Provider Middle Name")),
        "suffix": clean(row.get("Provider Name Suffix Text")),
        "credential": clean(row.get("Provider Credential Text")),
        "gender": gender.upper() if gender and gender.upper() in GENDER_CODES else None,
        "status": derive_status(deactivation_date, reactivation_date),
        "enumeration_date": parse_nppes_date(row.get("Provider Enumeration Date")),
        "last_updated_nppes": parse_nppes_date(row.get("Last Update Date")),
        "deactivation_date": deactivation_date,
        "deactivation_reason": clean(row.get("NPI Deactivation Reason Code")),
        "reactivation_date": reactivation_date,
        "primary_specialty": primary,
        "secondary_specialties": secondaries,
        "addresses": addresses,
        "phone_numbers": build_phone_numbers(row),
        "address_state": primary_address.get("state") or None,
        "address_zip5": zip5(primary_address.get("zip_code")),
    }


## ------------------- ASSETS ------------------- ##

@asset(
    group_name="transform",
    description="Normalized physician records (specialties, addresses, state/zip5)",
)
def stg_physicians(raw_nppes: pd.DataFrame, raw_taxonomy: pd.DataFrame) -> pd.DataFrame:
    """ Transform NPPES rows, drop unusable ones and keep the latest row per NPI. """
    log = get_dagster_logger()

    taxonomy_lookup = build_taxonomy_lookup(raw_taxonomy)
    records = [transform_nppes_row(row, taxonomy_lookup) for _, row in raw_nppes.iterrows()]

    df = pd.DataFrame.from_records(records, columns=STG_COLUMNS)

    before = len(df)
    df = df.dropna(subset=["npi", "first_name", "last_name"])
    df = df[df["npi"].str.fullmatch(r"\d{10}")]
    if len(df) < before:
        log.warning(f"Dropped {before - len(df)} rows without a valid NPI or name")

    # Most recently updated row wins when an NPI repeats
    df = (
        df.assign(_updated=pd.to_datetime(df["last_updated_nppes"]))
        .sort_values("_updated", ascending=False, na_position="last", kind="stable")
        .drop_duplicates(subset=["npi"], keep="first")
        .drop(columns=["_updated"])
        .reset_index(drop=True)
    )

    # Validate
    assert df["npi"].is_unique, "Duplicate NPIs after deduplication"
    assert df["first_name"].notna().all(), "Found null first_name"
    assert df["last_name"].notna().all(), "Found null last_name"

    log.info(f"Prepared {len(df):,} physician records")
    return df
