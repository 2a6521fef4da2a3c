"""
Status rollups for a project (optionally one model).

Four independent count queries: total parts, and parts with an
installation, delivery and bolting row. Each count reflects the store at
the moment its own query ran; there is no snapshot across the four.
"""
from dataclasses import asdict, dataclass
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from assembly_tracker.errors import StoreError
from assembly_tracker.models.part import AssemblyPart
from assembly_tracker.services.payloads import STATUS_TABLES, StatusKind


@dataclass(frozen=True)
class StatisticsScope:
    project_id: str
    model_id: Optional[str] = None


@dataclass
class PartStatistics:
    total: int = 0
    installed: int = 0
    delivered: int = 0
    bolted: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def _scoped(statement, scope: StatisticsScope):
    statement = statement.where(AssemblyPart.project_id == scope.project_id)
    if scope.model_id:
        statement = statement.where(AssemblyPart.model_id == scope.model_id)
    return statement


def count_parts(engine, scope: StatisticsScope) -> int:
    with Session(engine) as s:
        return s.exec(_scoped(select(func.count(AssemblyPart.id)), scope)).one()


def count_status(engine, scope: StatisticsScope, kind: StatusKind) -> int:
    table = STATUS_TABLES[kind]
    with Session(engine) as s:
        statement = select(func.count(table.id)).join(
            AssemblyPart, AssemblyPart.id == table.part_id
        )
        return s.exec(_scoped(statement, scope)).one()


def get_statistics(engine, scope: StatisticsScope) -> PartStatistics:
    """Count parts and status rows in scope.

    Raises:
        StoreError: if any of the count queries fails.
    """
    try:
        return PartStatistics(
            total=count_parts(engine, scope),
            installed=count_status(engine, scope, StatusKind.INSTALLATION),
            delivered=count_status(engine, scope, StatusKind.DELIVERY),
            bolted=count_status(engine, scope, StatusKind.BOLTING),
        )
    except SQLAlchemyError as exc:
        raise StoreError(f"Failed to load statistics: {exc}", operation="statistics") from exc
