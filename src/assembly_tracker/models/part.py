"""Assembly part model: one row per real-world part, keyed by its GUID."""
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

from assembly_tracker.models.clock import utcnow

if TYPE_CHECKING:
    from assembly_tracker.models.log import PartLog
    from assembly_tracker.models.status import Bolting, Delivery, Installation

# Columns written by PartSyncService.sync(); everything else is bookkeeping.
SYNCED_COLUMNS = (
    "identity_kind",
    "identity_source",
    "project_id",
    "project_name",
    "model_id",
    "model_name",
    "object_id",
    "mark",
    "name",
    "type",
    "assembly",
    "weight",
    "phase",
    "profile",
    "material",
    "length",
    "extra_attributes_json",
)


class AssemblyPart(SQLModel, table=True):
    """
    Canonical snapshot of one model object.

    identity is the stable GUID (or a synthetic runtime-* fallback); object_id
    is the viewer's session handle and may change between sessions.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    identity: str = Field(unique=True, index=True)
    identity_kind: str = "synthetic"  # "ifc", "ms", "synthetic"
    identity_source: Optional[str] = None

    project_id: str = Field(index=True)
    project_name: str = ""
    model_id: str = Field(index=True)
    model_name: str = ""
    object_id: str = Field(index=True)

    mark: str = Field(default="N/A", index=True)
    name: str = ""
    type: str = "Unknown"
    assembly: str = ""
    weight: Optional[float] = None
    phase: str = ""
    profile: str = ""
    material: str = ""
    length: Optional[float] = None

    # Properties outside the canonical set, keyed by flattened path
    extra_attributes_json: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Relationships (1:1 status rows, append-only log history)
    installation: Optional["Installation"] = Relationship(
        back_populates="part",
        sa_relationship_kwargs={"uselist": False, "cascade": "all, delete-orphan"},
    )
    delivery: Optional["Delivery"] = Relationship(
        back_populates="part",
        sa_relationship_kwargs={"uselist": False, "cascade": "all, delete-orphan"},
    )
    bolting: Optional["Bolting"] = Relationship(
        back_populates="part",
        sa_relationship_kwargs={"uselist": False, "cascade": "all, delete-orphan"},
    )
    logs: List["PartLog"] = Relationship(
        back_populates="part",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "PartLog.timestamp"},
    )


# Child tables must be registered before the mapper resolves the relationships above
from assembly_tracker.models import log, status  # noqa: E402,F401
