"""
tests/conftest.py

Shared fixtures: an in-memory SQLite store and configuration factory.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401  registers models on Base.metadata
from db.base import Base
from db.models.import_configuration import ImportConfiguration, ScheduleFrequency


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_configuration(
    session_factory: sessionmaker[Session],
) -> Callable[..., ImportConfiguration]:
    """
    Persist an ImportConfiguration with sensible defaults and return it.
    """

    def _make(**overrides: Any) -> ImportConfiguration:
        values: dict[str, Any] = {
            "id": uuid.uuid4(),
            "name": "Products feed",
            "target_source_id": "prd",
            "target_content_type": "Product",
            "api_url": "https://api.example.com/products",
            "http_method": "GET",
            "auth_type": "none",
            "id_field_mapping": "id",
            "field_mappings": [
                {"source_path": "name", "target_property": "Title", "transformation": "none"},
            ],
            "is_active": True,
            "schedule_frequency": ScheduleFrequency.HOURLY,
            "schedule_interval_value": 1,
            "max_retries": 3,
            "consecutive_failures": 0,
        }
        values.update(overrides)
        config = ImportConfiguration(**values)
        with session_factory() as session:
            session.add(config)
            session.commit()
        return config

    return _make
