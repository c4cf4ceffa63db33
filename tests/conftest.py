"""Pytest configuration and fixtures."""

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from api.database import get_session
from api.main import app
from dagster_pipeline.models.database import Physician

# (npi, first, last, state, zip5, specialty)
PHYSICIAN_ROWS = [
    ("1000000001", "Alice", "Anderson", "IL", "60611", "Cardiovascular Disease"),
    ("1000000002", "Brian", "Baker", "IL", "60614", "Internal Medicine"),
    ("1000000003", "Carla", "Chen", "IL", "62701", "Family Medicine"),
    ("1000000004", "David", "Diaz", "NY", "10001", "Cardiovascular Disease"),
    ("1000000005", "Elena", "Evans", "NY", "10002", "Dermatology"),
    ("1000000006", "Frank", "Fischer", "CA", "94110", "Pediatrics"),
    ("1000000007", "Grace", "Garcia", "CA", "90012", "Internal Medicine"),
    ("1000000008", "Henry", "Hughes", "IL", "60601", "Neurology"),
    ("1000000009", "Irene", "Ito", "NY", "11201", "Family Medicine"),
    ("1000000010", "James", "Jones", "CA", "94105", "Cardiovascular Disease"),
    ("1000000011", "Karen", "Kim", "IL", "60622", "Pediatrics"),
    ("1000000012", "Louis", "Lopez", "TX", "73301", "Dermatology"),
    ("1000000013", "Maria", "Martin", "TX", "75201", "Internal Medicine"),
    ("1000000014", "Nadia", "Nguyen", "IL", "60611", "Cardiovascular Disease"),
    ("1000000015", "Oscar", "Owens", "CA", "90210", "Neurology"),
    ("1000000016", "Paula", "Patel", "NY", "10003", "Pediatrics"),
    ("1000000017", "Quinn", "Quade", "TX", "77002", "Family Medicine"),
    ("1000000018", "Rosa", "Reyes", "IL", "60615", "Dermatology"),
    ("1000000019", "Samuel", "Smith", "NY", "10004", "Internal Medicine"),
    ("1000000020", "Tara", "Smith", "CA", "94016", "Neurology"),
    ("1000000021", "Umar", "Usman", "IL", "61801", "Family Medicine"),
    ("1000000022", "Vera", "Vance", "TX", "78701", "Pediatrics"),
    ("1000000023", "Walter", "White", "NY", "10005", "Cardiovascular Disease"),
    ("1000000024", "Xena", "Xu", "CA", "95814", "Dermatology"),
    ("1000000025", "Yusuf", "Young", "IL", "60616", "Internal Medicine"),
]


def make_physician(npi, first_name, last_name, state, zip5, specialty, **kwargs) -> Physician:
    return Physician(
        npi=npi,
        first_name=first_name,
        last_name=last_name,
        credential="M.D.",
        enumeration_date=date(2010, 1, 15),
        primary_specialty={
            "taxonomy_code": "207R00000X",
            "taxonomy_description": specialty,
            "primary_specialty": True,
        },
        addresses=[
            {
                "address_line1": "100 Main St",
                "city": "Springfield",
                "state": state,
                "zip_code": zip5,
                "country_code": "US",
                "address_type": "LOCATION",
                "address_purpose": "PRACTICE",
                "is_primary": True,
            }
        ],
        phone_numbers=[{"number": "312-555-0100", "type": "PRACTICE", "is_primary": True}],
        address_state=state,
        address_zip5=zip5,
        **kwargs,
    )


@pytest.fixture
def engine():
    """In-memory SQLite shared across threads (TestClient runs handlers in a thread pool)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def physicians(session):
    """Seed the directory with 25 physicians across IL, NY, CA and TX."""
    rows = [make_physician(*row) for row in PHYSICIAN_ROWS]
    session.add_all(rows)
    session.commit()
    return rows


@pytest.fixture
def client(engine):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
