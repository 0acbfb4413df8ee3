import os

# must be set before anything imports app.config
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-key-with-enough-length-for-hs256")

import pytest
from sqlmodel import SQLModel

from app.database import engine, create_db_and_tables


@pytest.fixture(autouse=True)
def reset_db():
    """Give every test an empty in-memory database."""
    SQLModel.metadata.drop_all(engine)
    create_db_and_tables()
    yield
