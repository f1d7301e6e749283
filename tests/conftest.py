import os

# Settings are read at import; point the app engine at SQLite before that
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from msrc_reporting.db.database import Base, get_db, get_session_factory
from msrc_reporting.hierarchy.models import Circuit, District, Region, School, Teacher
from msrc_reporting.main import app

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def hierarchy(db):
    """
    Two regions, one district and circuit each, three schools:
    Osu (GALOP) and Labone in Accra, Asokwa (GALOP) in Kumasi.
    """
    db.add_all([
        Region(id=1, name="Greater Accra"),
        Region(id=2, name="Ashanti"),
        District(id=1, name="Accra Metro", region_id=1),
        District(id=2, name="Kumasi Metro", region_id=2),
        Circuit(id=1, name="Osu Circuit", district_id=1),
        Circuit(id=2, name="Asokwa Circuit", district_id=2),
        School(id=1, name="Osu Primary", circuit_id=1, district_id=1, region_id=1, is_galop=True),
        School(id=2, name="Labone JHS", circuit_id=1, district_id=1, region_id=1, is_galop=False),
        School(id=3, name="Asokwa Basic", circuit_id=2, district_id=2, region_id=2, is_galop=True),
        Teacher(id=1, name="Kofi Mensah", gender="male", school_id=1),
        Teacher(id=2, name="Ama Owusu", gender="female", school_id=1),
        Teacher(id=3, name="Akua Boateng", gender="female", school_id=3),
    ])
    db.commit()
    return db
