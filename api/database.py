"""
Engine and request-scoped sessions for the API.

The engine is shared by the whole process; FastAPI routes get a fresh
Session per request through the get_session dependency.
"""

from sqlmodel import Session, create_engine

from api.config import DATABASE_URL, SQL_ECHO

# pool_pre_ping drops dead connections before a request gets one
engine = create_engine(DATABASE_URL, echo=SQL_ECHO, pool_pre_ping=True)


def get_session():
    """Session for one request; closed once the response is sent."""
    with Session(engine) as session:
        yield session
