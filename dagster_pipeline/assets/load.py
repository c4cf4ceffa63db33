"""
This file contains load assets for the physician directory.

"""

from typing import List

import pandas as pd
from dagster import MaterializeResult, MetadataValue, asset, get_dagster_logger
from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert

from dagster_pipeline.models.database import (
    Physician,
    get_engine,
    install_search_extensions,
)

BATCH_SIZE = 1000

# Columns refreshed from NPPES on every load. Enrichment columns (AI bio,
# geocoding, languages, telehealth) are owned by other processes.
NPPES_COLUMNS = [
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


def to_records(stg_physicians: pd.DataFrame) -> List[dict]:
    """DataFrame rows -> insert parameter dicts (NaN/NaT become None)."""
    records = []
    for row in stg_physicians.to_dict("records"):
        record = {"npi": row["npi"]}
        for column in NPPES_COLUMNS:
            value = row.get(column)
            if not isinstance(value, (list, dict)) and pd.isna(value):
                value = None
            record[column] = value
        if record["secondary_specialties"] is None:
            record["secondary_specialties"] = []
        if record["addresses"] is None:
            record["addresses"] = []
        if record["phone_numbers"] is None:
            record["phone_numbers"] = []
        record["languages"] = []
        record["accepts_telehealth"] = False
        records.append(record)
    return records


def build_upsert(records: List[dict]):
    """INSERT ... ON CONFLICT (npi) DO UPDATE for the NPPES-owned columns."""
    stmt = pg_insert(Physician.__table__).values(records)
    update_columns = {column: stmt.excluded[column] for column in NPPES_COLUMNS}
    update_columns["updated_at"] = func.now()
    return stmt.on_conflict_do_update(index_elements=["npi"], set_=update_columns)


@asset(
    group_name="load",
    description="Enable pg_trgm/postgis, create tables, the full-name tsvector trigger and search indexes",
)
def db_search_setup() -> None:
    """Idempotent schema provisioning for physician search."""
    install_search_extensions(get_engine())
    get_dagster_logger().info("Search extensions, tables, trigger and indexes are in place")


@asset(
    group_name="load",
    description="Upsert physicians into PostgreSQL",
    deps=["db_search_setup"],
)
def db_physicians(stg_physicians: pd.DataFrame) -> MaterializeResult:
    """Upsert physicians in batches; the trigger fills full_name_tsv."""
    log = get_dagster_logger()
    engine = get_engine()

    records = to_records(stg_physicians)
    for i in range(0, len(records), BATCH_SIZE):
        batch = records[i : i + BATCH_SIZE]
        with engine.begin() as conn:
            conn.execute(build_upsert(batch))

        loaded = min(i + BATCH_SIZE, len(records))
        log.info(f"Upserted {loaded}/{len(records)} physicians...")

    states = stg_physicians["address_state"].value_counts().head(10)
    return MaterializeResult(
        metadata={
            "num_physicians": len(records),
            "top_states": MetadataValue.json({str(k): int(v) for k, v in states.items()}),
        }
    )
