"""Status models: at most one installation, delivery and bolting row per part."""
import datetime as dt
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel

from assembly_tracker.models.clock import utcnow

if TYPE_CHECKING:
    from assembly_tracker.models.part import AssemblyPart


class Installation(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    part_id: int = Field(foreign_key="assemblypart.id", unique=True, index=True)

    installers: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    date: dt.date
    method: str  # crane, lift, manual, ...

    created_by: str
    created_at: dt.datetime = Field(default_factory=utcnow)

    part: Optional["AssemblyPart"] = Relationship(back_populates="installation")


class Delivery(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    part_id: int = Field(foreign_key="assemblypart.id", unique=True, index=True)

    vehicle: str
    date: dt.date
    arrival_time: Optional[dt.time] = None
    unloading_time: Optional[dt.time] = None

    created_by: str
    created_at: dt.datetime = Field(default_factory=utcnow)

    part: Optional["AssemblyPart"] = Relationship(back_populates="delivery")


class Bolting(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    part_id: int = Field(foreign_key="assemblypart.id", unique=True, index=True)

    installer: str
    date: dt.date

    created_by: str
    created_at: dt.datetime = Field(default_factory=utcnow)

    part: Optional["AssemblyPart"] = Relationship(back_populates="bolting")


# Register the parent table for mappers configured from this module alone
from assembly_tracker.models import part  # noqa: E402,F401
