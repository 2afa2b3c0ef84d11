"""
pytest fixtures shared across all tests.

Uses an in-memory SQLite database for fast, isolated test runs.
Each test function gets a fresh database.
"""

from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from sitio_review.core.review_controller import ReviewController
from sitio_review.data.models import Base
from sitio_review.data.repositories import ResourceRepository


SITIO_RECORD: dict = {
    "id": 7,
    "sitioName": "Sitio Malipayon",
    "municipality": "Gingoog",
    "barangay": "Anakan",
    "coding": "GNG-ANK-007",
    "yearlyData": {
        "2023": {"population": 410, "households": 92, "averageDailyIncome": 180},
        "2024": {"population": 432, "households": 95, "averageDailyIncome": 200},
    },
    "availableYears": [2023, 2024],
    "createdAt": "2024-01-05T08:00:00.000000+00:00",
    "updatedAt": "2024-06-01T08:00:00.000000+00:00",
}

SUBMITTER_ID = 11
REVIEWER_ID = 42


@pytest.fixture(scope="function")
def db_engine():
    """In-memory SQLite engine, fresh per test function."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Transactional session; rolls back after each test."""
    SessionFactory = sessionmaker(bind=db_engine)
    session = SessionFactory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Context-manager session factory with the same contract as get_session()."""
    Factory = sessionmaker(bind=db_engine, expire_on_commit=False)

    @contextmanager
    def _session():
        s = Factory()
        try:
            yield s
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    return _session


@pytest.fixture(scope="function")
def controller(session_factory):
    """ReviewController wired to the in-memory database and its resources table."""
    return ReviewController(session_factory=session_factory)


@pytest.fixture(scope="function")
def seeded_sitio(session_factory):
    """Store SITIO_RECORD as the live state of sitio 7."""
    with session_factory() as s:
        ResourceRepository(s).save("sitio", 7, SITIO_RECORD, name="Sitio Malipayon")
        s.commit()
    return SITIO_RECORD
