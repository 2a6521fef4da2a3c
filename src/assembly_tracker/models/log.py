"""Append-only audit trail for part status changes."""
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

from assembly_tracker.models.clock import utcnow

if TYPE_CHECKING:
    from assembly_tracker.models.part import AssemblyPart


class PartLog(SQLModel, table=True):
    """One row per mutating action on a part. Never updated; removed only with its part."""

    id: Optional[int] = Field(default=None, primary_key=True)
    part_id: int = Field(foreign_key="assemblypart.id", index=True)
    action: str
    user_name: str
    timestamp: datetime = Field(default_factory=utcnow, index=True)

    part: Optional["AssemblyPart"] = Relationship(back_populates="logs")


from assembly_tracker.models import part  # noqa: E402,F401
