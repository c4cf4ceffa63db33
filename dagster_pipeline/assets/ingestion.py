"""
    This file contains the code for the ingestion of NPPES data into the data pipeline.
"""

import os
from pathlib import Path

import pandas as pd
from dagster import asset, get_dagster_logger

DATA_DIR = Path(__file__).parent.parent.parent / "data"

NPPES_CSV_PATH = Path(os.getenv("NPPES_CSV_PATH") or DATA_DIR / "npidata.csv")
NUCC_TAXONOMY_PATH = Path(os.getenv("NUCC_TAXONOMY_PATH") or DATA_DIR / "nucc_taxonomy.csv")

CHUNK_SIZE = 100_000

# Entity type 1 = individual provider; 20xxxxxxxX = Allopathic & Osteopathic Physicians
INDIVIDUAL_ENTITY_TYPE = "1"
PHYSICIAN_TAXONOMY_PREFIX = "20"
MAX_TAXONOMIES = 15

TAXONOMY_CODE_COLS = [f"Healthcare Provider Taxonomy Code_{i}" for i in range(1, MAX_TAXONOMIES + 1)]

NPPES_COLUMNS = {
    "NPI",
    "Entity Type Code",
    "Provider Last Name (Legal Name)",
    "Provider First Name",
    "Provider Middle Name",
    "Provider Name Suffix Text",
    "Provider Credential Text",
    "Provider Gender Code",
    "Provider Sex Code",
    "Provider Enumeration Date",
    "Last Update Date",
    "NPI Deactivation Reason Code",
    "NPI Deactivation Date",
    "NPI Reactivation Date",
    "Provider First Line Business Practice Location Address",
    "Provider Second Line Business Practice Location Address",
    "Provider Business Practice Location Address City Name",
    "Provider Business Practice Location Address State Name",
    "Provider Business Practice Location Address Postal Code",
    "Provider Business Practice Location Address Country Code (If outside U.S.)",
    "Provider Business Practice Location Address Telephone Number",
    "Provider Business Practice Location Address Fax Number",
    "Provider First Line Business Mailing Address",
    "Provider Second Line Business Mailing Address",
    "Provider Business Mailing Address City Name",
    "Provider Business Mailing Address State Name",
    "Provider Business Mailing Address Postal Code",
    "Provider Business Mailing Address Country Code (If outside U.S.)",
}

# Numbered per-taxonomy columns (_1 .. _15)
NPPES_COLUMN_PREFIXES = (
    "Healthcare Provider Taxonomy Code_",
    "Provider License Number_",
    "Provider License Number State Code_",
    "Healthcare Provider Primary Taxonomy Switch_",
)


def is_wanted_column(name: str) -> bool:
    return name in NPPES_COLUMNS or name.startswith(NPPES_COLUMN_PREFIXES)


def filter_physician_rows(chunk: pd.DataFrame) -> pd.DataFrame:
    """Keep individual providers with at least one physician taxonomy code."""
    taxonomy_cols = [c for c in TAXONOMY_CODE_COLS if c in chunk.columns]
    if not taxonomy_cols:
        return chunk.iloc[0:0]

    is_individual = chunk["Entity Type Code"] == INDIVIDUAL_ENTITY_TYPE
    has_physician_taxonomy = (
        chunk[taxonomy_cols]
        .apply(lambda codes: codes.str.startswith(PHYSICIAN_TAXONOMY_PREFIX, na=False))
        .any(axis=1)
    )
    return chunk[is_individual & has_physician_taxonomy]


@asset(
    group_name="ingestion",
    description="Individual physicians from the NPPES data dissemination CSV (npidata_pfile)",
)
def raw_nppes() -> pd.DataFrame:
    """Load physician rows from the NPPES CSV, reading it in chunks of strings."""
    log = get_dagster_logger()

    if not NPPES_CSV_PATH.exists():
        raise FileNotFoundError(f"NPPES CSV not found at: {NPPES_CSV_PATH.resolve()}")

    frames = []
    for chunk_count, chunk in enumerate(
        pd.read_csv(NPPES_CSV_PATH, dtype=str, chunksize=CHUNK_SIZE, usecols=is_wanted_column),
        start=1,
    ):
        filtered = filter_physician_rows(chunk)
        if len(filtered) > 0:
            frames.append(filtered)
        if chunk_count % 10 == 0:
            log.info(f"Processed {chunk_count} chunks of {CHUNK_SIZE:,} rows")

    if not frames:
        log.warning("No physician rows found in NPPES CSV")
        return pd.DataFrame(columns=sorted(NPPES_COLUMNS))

    df = pd.concat(frames, ignore_index=True)
    log.info(f"Loaded {len(df):,} physician rows from {NPPES_CSV_PATH.name}")
    return df


@asset(
    group_name="ingestion",
    description="NUCC health care provider taxonomy code set (code -> description)",
)
def raw_taxonomy() -> pd.DataFrame:
    """Loads the NUCC taxonomy CSV; empty when the file is not present."""
    log = get_dagster_logger()

    if not NUCC_TAXONOMY_PATH.exists():
        log.warning(
            f"NUCC taxonomy file not found at {NUCC_TAXONOMY_PATH}; "
            "specialty descriptions will fall back to taxonomy codes"
        )
        return pd.DataFrame(columns=["Code", "Classification", "Specialization", "Display Name"])

    df = pd.read_csv(NUCC_TAXONOMY_PATH, dtype=str, encoding="latin-1")
    log.info(f"Loaded {len(df):,} taxonomy codes")
    return df
