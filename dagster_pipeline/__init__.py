"""
Dagster definitions for the Physician Finder data pipeline.

This is the entry point Dagster uses to discover all assets.
Run with: dagster dev -m dagster_pipeline
"""

from dagster import Definitions
from dagster_pipeline.assets.ingestion import (
    raw_nppes,
    raw_taxonomy,
)
from dagster_pipeline.assets.transform import (
    stg_physicians,
)
from dagster_pipeline.assets.load import (
    db_search_setup,
    db_physicians,
)

all_assets = [
    # Raw Ingestion
    raw_nppes,
    raw_taxonomy,
    # Transform & Normalize
    stg_physicians,
    # Load to PostgreSQL
    db_search_setup,
    db_physicians,
]

defs = Definitions(assets=all_assets)
