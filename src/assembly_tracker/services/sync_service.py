"""
PartSyncService: persists canonical part records and their status.

Operations:

  sync(records)                                 set-based upsert keyed by identity
  apply_status(identities, kind, payload, actor) upsert one status row per part,
                                                then append one log row per part
  remove_status(identities, kind, actor)        delete status rows, then log
  get_parts(identities)                         parts with status rows and logs
  delete_parts(identities)                      parts, cascading to status and logs

Idempotency: sync() overwrites existing rows field by field and only moves
updated_at when something actually changed, so syncing the same record set
twice leaves the store exactly as syncing it once.

Failure policy:
  - ValidationError is raised before anything is written.
  - Any SQLAlchemy error on a primary write rolls the whole call back and is
    re-raised as StoreError.
  - The audit log is written in its own transaction after the primary write
    has committed. If that fails the primary write stays, the failure is
    logged and returned on MutationResult.audit_error; it is never raised.

Mutations take per-identity locks (services.locks); reads do not.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from assembly_tracker.errors import AuditError, StoreError, ValidationError
from assembly_tracker.extraction.attributes import PartRecord
from assembly_tracker.models.clock import utcnow
from assembly_tracker.models.log import PartLog
from assembly_tracker.models.part import SYNCED_COLUMNS, AssemblyPart
from assembly_tracker.services.locks import IdentityLocks
from assembly_tracker.services.payloads import (
    REMOVAL_ACTIONS,
    STATUS_TABLES,
    StatusKind,
    parse_kind,
    parse_payload,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    created: int = 0
    updated: int = 0
    unchanged: int = 0

    @property
    def total(self) -> int:
        return self.created + self.updated + self.unchanged


@dataclass
class MutationResult:
    kind: StatusKind
    identities: List[str] = field(default_factory=list)
    written: int = 0
    audit_error: Optional[AuditError] = None

    @property
    def audited(self) -> bool:
        return self.audit_error is None


def _clean_identities(identities: Optional[Iterable[str]]) -> List[str]:
    """Distinct, non-blank identities in first-seen order."""
    seen: Dict[str, None] = {}
    for identity in identities or []:
        if isinstance(identity, str) and identity.strip():
            seen.setdefault(identity.strip(), None)
    return list(seen)


class PartSyncService:
    """Writes PartRecords and status changes to the store."""

    def __init__(self, engine, locks: Optional[IdentityLocks] = None, log: Optional[logging.Logger] = None):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result).
            locks: shared lock registry; services built over the same engine
                   should share one.
            log: diagnostics logger; defaults to this module's logger.
        """
        self.engine = engine
        self.locks = locks or IdentityLocks()
        self.log = log or logger

    # ─── Parts ────────────────────────────────────────────────────────────────

    async def sync(self, records: Sequence[PartRecord]) -> SyncResult:
        """Upsert records by identity in one transaction.

        Records without an identity are rejected. When a batch holds the same
        identity twice, the later record wins.

        Raises:
            ValidationError: a record has no identity.
            StoreError: the batch could not be written; nothing was applied.
        """
        result = SyncResult()
        if not records:
            return result

        missing = [r.object_id or "?" for r in records if not r.identity]
        if missing:
            raise ValidationError(
                [f"record for object {object_id} has no identity" for object_id in missing]
            )

        rows: Dict[str, Dict[str, Any]] = {}
        for record in records:
            rows[record.identity] = record.to_row()

        async with self.locks.hold(rows):
            try:
                with Session(self.engine) as s:
                    existing = {
                        part.identity: part
                        for part in s.exec(
                            select(AssemblyPart).where(AssemblyPart.identity.in_(list(rows)))
                        ).all()
                    }
                    now = utcnow()
                    for identity, row in rows.items():
                        part = existing.get(identity)
                        if part is None:
                            s.add(AssemblyPart(**row, created_at=now, updated_at=now))
                            result.created += 1
                        elif self._apply_row(part, row):
                            part.updated_at = now
                            s.add(part)
                            result.updated += 1
                        else:
                            result.unchanged += 1
                    s.commit()
            except SQLAlchemyError as exc:
                self.log.error("Part sync of %d records failed: %s", len(rows), exc)
                raise StoreError(f"Failed to sync parts: {exc}", operation="sync") from exc

        self.log.info(
            "Synced %d parts (%d new, %d updated, %d unchanged)",
            result.total, result.created, result.updated, result.unchanged,
        )
        return result

    @staticmethod
    def _apply_row(part: AssemblyPart, row: Mapping[str, Any]) -> bool:
        """Copy synced columns onto part. Returns True if anything changed."""
        changed = False
        for column in SYNCED_COLUMNS:
            value = row.get(column)
            if getattr(part, column) != value:
                setattr(part, column, value)
                changed = True
        return changed

    def get_parts(self, identities: Iterable[str]) -> List[AssemblyPart]:
        """Parts for identities with status rows and logs loaded, ordered by mark."""
        wanted = _clean_identities(identities)
        if not wanted:
            return []
        return self._load_parts(AssemblyPart.identity.in_(wanted))

    def get_parts_by_object_ids(
        self, project_id: str, model_id: str, object_ids: Iterable[str]
    ) -> List[AssemblyPart]:
        """Parts currently bound to the given viewer handles in one model."""
        wanted = [str(o) for o in object_ids or [] if o not in (None, "")]
        if not wanted:
            return []
        return self._load_parts(
            AssemblyPart.project_id == project_id,
            AssemblyPart.model_id == model_id,
            AssemblyPart.object_id.in_(wanted),
        )

    def _load_parts(self, *conditions) -> List[AssemblyPart]:
        try:
            with Session(self.engine) as s:
                return list(
                    s.exec(
                        select(AssemblyPart)
                        .where(*conditions)
                        .options(
                            selectinload(AssemblyPart.installation),
                            selectinload(AssemblyPart.delivery),
                            selectinload(AssemblyPart.bolting),
                            selectinload(AssemblyPart.logs),
                        )
                        .order_by(AssemblyPart.mark, AssemblyPart.identity)
                    ).all()
                )
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to fetch parts: {exc}", operation="fetch") from exc

    async def delete_parts(self, identities: Iterable[str]) -> int:
        """Delete parts; their status rows and logs go with them."""
        wanted = _clean_identities(identities)
        if not wanted:
            raise ValidationError(["no parts selected"])
        async with self.locks.hold(wanted):
            try:
                with Session(self.engine) as s:
                    parts = s.exec(
                        select(AssemblyPart).where(AssemblyPart.identity.in_(wanted))
                    ).all()
                    for part in parts:
                        s.delete(part)
                    s.commit()
                    return len(parts)
            except SQLAlchemyError as exc:
                raise StoreError(f"Failed to delete parts: {exc}", operation="delete") from exc

    # ─── Status ───────────────────────────────────────────────────────────────

    async def apply_status(
        self,
        identities: Iterable[str],
        kind: Union[str, StatusKind],
        payload: Any,
        actor: str,
    ) -> MutationResult:
        """Set one status of kind on every identity (1:1 replace), then audit.

        Raises:
            ValidationError: no identities, unknown identities, blank actor or
                an invalid payload; nothing is written.
            StoreError: the status rows could not be written; nothing is written.
        """
        kind = parse_kind(kind)
        status = parse_payload(kind, payload)
        wanted = self._validate_target(identities, actor)
        table = STATUS_TABLES[kind]
        columns = status.model_dump()

        async with self.locks.hold(wanted):
            try:
                with Session(self.engine) as s:
                    parts = self._require_parts(s, wanted)
                    part_ids = [part.id for part in parts]
                    current = {
                        row.part_id: row
                        for row in s.exec(select(table).where(table.part_id.in_(part_ids))).all()
                    }
                    now = utcnow()
                    for part_id in part_ids:
                        row = current.get(part_id) or table(part_id=part_id, **columns, created_by=actor)
                        for column, value in columns.items():
                            setattr(row, column, value)
                        row.created_by = actor
                        row.created_at = now
                        s.add(row)
                    s.commit()
            except SQLAlchemyError as exc:
                self.log.error("Saving %s for %d parts failed: %s", kind.value, len(wanted), exc)
                raise StoreError(f"Failed to save {kind.value}: {exc}", operation=kind.value) from exc

            result = MutationResult(kind=kind, identities=wanted, written=len(part_ids))
            result.audit_error = self._append_logs(part_ids, wanted, status.log_action(), actor)

        self.log.info("Saved %s for %d parts", kind.value, result.written)
        return result

    async def remove_status(
        self,
        identities: Iterable[str],
        kind: Union[str, StatusKind],
        actor: str,
    ) -> MutationResult:
        """Delete the status of kind from every identity, then audit.

        Raises:
            ValidationError: no identities, unknown identities or a blank actor.
            StoreError: the delete failed; nothing is removed.
        """
        kind = parse_kind(kind)
        wanted = self._validate_target(identities, actor)
        table = STATUS_TABLES[kind]

        async with self.locks.hold(wanted):
            try:
                with Session(self.engine) as s:
                    parts = self._require_parts(s, wanted)
                    part_ids = [part.id for part in parts]
                    rows = s.exec(select(table).where(table.part_id.in_(part_ids))).all()
                    for row in rows:
                        s.delete(row)
                    s.commit()
                    removed = len(rows)
            except SQLAlchemyError as exc:
                self.log.error("Removing %s for %d parts failed: %s", kind.value, len(wanted), exc)
                raise StoreError(f"Failed to delete {kind.value}: {exc}", operation=kind.value) from exc

            result = MutationResult(kind=kind, identities=wanted, written=removed)
            result.audit_error = self._append_logs(part_ids, wanted, REMOVAL_ACTIONS[kind], actor)

        self.log.info("Removed %s from %d parts", kind.value, removed)
        return result

    # ─── Internal helpers ─────────────────────────────────────────────────────

    @staticmethod
    def _validate_target(identities: Optional[Iterable[str]], actor: str) -> List[str]:
        wanted = _clean_identities(identities)
        problems = []
        if not wanted:
            problems.append("no parts selected")
        if not actor or not str(actor).strip():
            problems.append("actor is required")
        if problems:
            raise ValidationError(problems)
        return wanted

    @staticmethod
    def _require_parts(s: Session, wanted: List[str]) -> List[AssemblyPart]:
        parts = s.exec(select(AssemblyPart).where(AssemblyPart.identity.in_(wanted))).all()
        unknown = sorted(set(wanted) - {part.identity for part in parts})
        if unknown:
            raise ValidationError([f"unknown part identity: {identity}" for identity in unknown])
        return list(parts)

    def _append_logs(
        self, part_ids: List[int], identities: List[str], action: str, actor: str
    ) -> Optional[AuditError]:
        """Write one log row per part. Failures are logged and returned, not raised."""
        try:
            with Session(self.engine) as s:
                now = utcnow()
                for part_id in part_ids:
                    s.add(PartLog(part_id=part_id, action=action, user_name=actor, timestamp=now))
                s.commit()
            return None
        except SQLAlchemyError as exc:
            self.log.exception("Audit log for %d parts failed (%s)", len(part_ids), action)
            return AuditError(f"Failed to write audit log: {exc}", identities=identities)
