"""Shared test fixtures."""
import copy
import json
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from assembly_tracker.models.part import AssemblyPart
from assembly_tracker.models.status import Bolting, Delivery, Installation  # noqa: F401
from assembly_tracker.models.log import PartLog  # noqa: F401
from assembly_tracker.services.sync_service import PartSyncService

FIXTURES_DIR = Path(__file__).parent / "fixtures"

IFC_GUID = "3FcXboENn1ZO0u4B9xk4w2"
IFC_GUID_2 = "2O2Fr$t4X7Zf8NOew3FLOH"
MS_GUID = "550e8400-e29b-41d4-a716-446655440000"


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    """Provides a DB session connected to in-memory SQLite."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="sync_service")
def sync_service_fixture(engine) -> PartSyncService:
    return PartSyncService(engine)


@pytest.fixture(name="dump")
def dump_fixture() -> dict:
    """The recorded three-object Tekla batch (fresh copy per test)."""
    return json.loads((FIXTURES_DIR / "tekla_dump.json").read_text())


@pytest.fixture(name="beam_properties")
def beam_properties_fixture(dump) -> dict:
    """Property tree of beam B-12, whose GUID sits inside the Tekla Common set."""
    return copy.deepcopy(dump["objects"][0]["properties"])


@pytest.fixture(name="seeded_part")
def seeded_part_fixture(test_session: Session) -> AssemblyPart:
    """A persisted AssemblyPart for status and cascade tests."""
    part = AssemblyPart(
        identity=IFC_GUID,
        identity_kind="ifc",
        identity_source="flat.Tekla_Common.GUID",
        project_id="proj-1",
        project_name="Harbour Hall",
        model_id="model-a",
        model_name="steel.ifc",
        object_id="101",
        mark="B-12",
        type="Beam",
        weight=250.5,
    )
    test_session.add(part)
    test_session.commit()
    test_session.refresh(part)
    return part
