"""
Shared test fixtures — SQLite database, test client, material lookup,
shape library, cost rates.
"""

import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ["DATABASE_URL"] = "sqlite:///./test.db"

from bomcost.bom import BOMService
from bomcost.database import Base, get_db
from bomcost.main import app
from bomcost.materials import StaticMaterialLookup
from bomcost.rates import CostRates
from bomcost.shapes import default_library


TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def db():
    """Direct database session for test setup/assertions."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_client(client):
    """Test client with the default material catalog loaded."""
    response = client.get("/api/materials/seed")
    assert response.status_code == 200
    return client


@pytest.fixture
def materials():
    """Default catalog only — no seeded overrides from disk."""
    return StaticMaterialLookup(seed_path=None)


@pytest.fixture
def library():
    return default_library()


@pytest.fixture
def rates():
    return CostRates(
        labor_rate_per_hour=600.0,
        welding_rate_per_meter=400.0,
        machining_rate_per_hour=900.0,
        cutting_rate_per_meter=100.0,
        edge_preparation_rate_per_meter=60.0,
        surface_treatment_rate_per_sqm=200.0,
    )


@pytest.fixture
def service(library, materials, rates):
    return BOMService(library, materials, rates)


@pytest.fixture
def material_only_service(library, materials):
    """No rates supplied: costs material and fixed assembly costs only."""
    return BOMService(library, materials)
