"""
Integration tests for PartSyncService.

Runs against an in-memory SQLite DB. Store and audit failures are provoked
by dropping the table the operation needs.
"""
import asyncio
import logging
from datetime import date

import pytest
from sqlmodel import Session, select

from assembly_tracker.errors import AuditError, StoreError, ValidationError
from assembly_tracker.extraction.attributes import ModelContext, PartRecord
from assembly_tracker.extraction.identity import IdentityKind
from assembly_tracker.extraction.pipeline import RawObject, extract_parts
from assembly_tracker.models.log import PartLog
from assembly_tracker.models.part import AssemblyPart
from assembly_tracker.models.status import Bolting, Delivery, Installation
from assembly_tracker.services.payloads import StatusKind

IFC = "3FcXboENn1ZO0u4B9xk4w2"
IFC_2 = "2O2Fr$t4X7Zf8NOew3FLOH"

INSTALLATION = {"installers": ["Mari", "Jaan"], "date": "2025-03-01", "method": "crane"}
DELIVERY = {"vehicle": "TRUCK-12", "date": "2025-02-27", "arrival_time": "08:30"}


def _record(identity=IFC, mark="B-12", **overrides):
    fields = dict(
        identity=identity,
        identity_kind=IdentityKind.IFC,
        identity_source="flat.Tekla_Common.GUID",
        project_id="proj-1",
        project_name="Harbour Hall",
        model_id="model-a",
        model_name="steel.ifc",
        object_id="101",
        mark=mark,
        type="Beam",
        weight=250.5,
    )
    fields.update(overrides)
    return PartRecord(**fields)


def _parts(engine):
    with Session(engine) as s:
        return s.exec(select(AssemblyPart).order_by(AssemblyPart.identity)).all()


# ─── sync ─────────────────────────────────────────────────────────────────────

class TestSync:
    @pytest.mark.asyncio
    async def test_creates_parts(self, sync_service, engine):
        result = await sync_service.sync([_record(), _record(IFC_2, mark="C-3", object_id="102")])
        assert (result.created, result.updated, result.unchanged) == (2, 0, 0)
        assert [p.mark for p in _parts(engine)] == ["C-3", "B-12"]

    @pytest.mark.asyncio
    async def test_siblings_sharing_a_parent_stay_separate_parts(self, sync_service, engine):
        def sibling(object_id, mark):
            return RawObject(object_id=object_id, properties={
                "id": int(object_id),
                "parent": {"GlobalId": IFC, "name": "Truss T-1"},
                "properties": [{"name": "Tekla Assembly", "properties": [
                    {"name": "Cast_unit_Mark", "value": mark},
                ]}],
            })

        context = ModelContext(project_id="proj-1", model_id="model-a")
        extracted = extract_parts([sibling("201", "T-1a"), sibling("202", "T-1b")], context)
        result = await sync_service.sync([part.record for part in extracted])

        assert result.created == 2
        parts = _parts(engine)
        assert [p.identity for p in parts] == ["runtime-model-a-201", "runtime-model-a-202"]
        assert [p.mark for p in parts] == ["T-1a", "T-1b"]

    @pytest.mark.asyncio
    async def test_second_sync_is_a_no_op(self, sync_service, engine):
        records = [_record(), _record(IFC_2, mark="C-3", object_id="102")]
        await sync_service.sync(records)
        before = [(p.id, p.mark, p.updated_at) for p in _parts(engine)]

        result = await sync_service.sync(records)

        assert (result.created, result.updated, result.unchanged) == (0, 0, 2)
        assert [(p.id, p.mark, p.updated_at) for p in _parts(engine)] == before

    @pytest.mark.asyncio
    async def test_changed_field_overwrites_and_moves_updated_at(self, sync_service, engine):
        await sync_service.sync([_record()])
        (before,) = _parts(engine)

        result = await sync_service.sync([_record(mark="B-12A", object_id="9001")])

        (after,) = _parts(engine)
        assert result.updated == 1
        assert after.id == before.id
        assert after.mark == "B-12A"
        assert after.object_id == "9001"
        assert after.updated_at >= before.updated_at
        assert after.created_at == before.created_at

    @pytest.mark.asyncio
    async def test_duplicate_identity_in_batch_last_wins(self, sync_service, engine):
        result = await sync_service.sync([_record(mark="old"), _record(mark="new")])
        assert result.total == 1
        assert [p.mark for p in _parts(engine)] == ["new"]

    @pytest.mark.asyncio
    async def test_record_without_identity_rejected_before_write(self, sync_service, engine):
        with pytest.raises(ValidationError):
            await sync_service.sync([_record(), _record(identity="", object_id="55")])
        assert _parts(engine) == []

    @pytest.mark.asyncio
    async def test_empty_batch(self, sync_service):
        result = await sync_service.sync([])
        assert result.total == 0

    @pytest.mark.asyncio
    async def test_store_failure_is_store_error(self, sync_service, engine):
        AssemblyPart.__table__.drop(engine)
        with pytest.raises(StoreError) as exc_info:
            await sync_service.sync([_record()])
        assert exc_info.value.operation == "sync"
        assert exc_info.value.__cause__ is not None

    @pytest.mark.asyncio
    async def test_sync_writes_no_log_entries(self, sync_service, engine):
        await sync_service.sync([_record()])
        with Session(engine) as s:
            assert s.exec(select(PartLog)).all() == []


# ─── reads ────────────────────────────────────────────────────────────────────

class TestReads:
    @pytest.mark.asyncio
    async def test_get_parts_loads_status_and_logs(self, sync_service):
        await sync_service.sync([_record(), _record(IFC_2, mark="A-1", object_id="102")])
        await sync_service.apply_status([IFC], "installation", INSTALLATION, "Mari")

        parts = sync_service.get_parts([IFC, IFC_2, "unknown"])

        assert [p.mark for p in parts] == ["A-1", "B-12"]
        beam = parts[1]
        assert beam.installation.method == "crane"
        assert beam.delivery is None
        assert [log.action for log in beam.logs] == ["Installed: crane (Mari, Jaan)"]

    def test_get_parts_empty_input(self, sync_service):
        assert sync_service.get_parts([]) == []
        assert sync_service.get_parts(["  "]) == []

    @pytest.mark.asyncio
    async def test_get_parts_by_object_ids(self, sync_service):
        await sync_service.sync([_record(), _record(IFC_2, object_id="102", model_id="model-b")])
        parts = sync_service.get_parts_by_object_ids("proj-1", "model-a", ["101", "102"])
        assert [p.identity for p in parts] == [IFC]

    @pytest.mark.asyncio
    async def test_delete_parts_cascades(self, sync_service, engine):
        await sync_service.sync([_record()])
        await sync_service.apply_status([IFC], "delivery", DELIVERY, "Mari")

        assert await sync_service.delete_parts([IFC]) == 1

        with Session(engine) as s:
            assert s.exec(select(Delivery)).all() == []
            assert s.exec(select(PartLog)).all() == []
        assert _parts(engine) == []


# ─── apply_status / remove_status ─────────────────────────────────────────────

class TestApplyStatus:
    @pytest.mark.asyncio
    async def test_sets_status_and_logs_once_per_part(self, sync_service, engine):
        await sync_service.sync([_record(), _record(IFC_2, object_id="102")])

        result = await sync_service.apply_status([IFC, IFC_2, IFC], StatusKind.INSTALLATION, INSTALLATION, "Mari")

        assert result.written == 2
        assert result.audited
        assert result.identities == [IFC, IFC_2]
        with Session(engine) as s:
            rows = s.exec(select(Installation)).all()
            logs = s.exec(select(PartLog)).all()
        assert len(rows) == 2
        assert {row.created_by for row in rows} == {"Mari"}
        assert [log.action for log in logs] == ["Installed: crane (Mari, Jaan)"] * 2

    @pytest.mark.asyncio
    async def test_second_save_replaces_row(self, sync_service, engine):
        await sync_service.sync([_record()])
        await sync_service.apply_status([IFC], "delivery", DELIVERY, "Mari")
        await sync_service.apply_status([IFC], "delivery", dict(DELIVERY, vehicle="TRUCK-7"), "Jaan")

        with Session(engine) as s:
            (row,) = s.exec(select(Delivery)).all()
            assert row.vehicle == "TRUCK-7"
            assert row.created_by == "Jaan"
            assert len(s.exec(select(PartLog)).all()) == 2

    @pytest.mark.asyncio
    async def test_empty_identities_rejected_without_writes(self, sync_service, engine):
        await sync_service.sync([_record()])
        with pytest.raises(ValidationError) as exc_info:
            await sync_service.apply_status([], "installation", INSTALLATION, "Mari")
        assert "no parts selected" in exc_info.value.problems
        with Session(engine) as s:
            assert s.exec(select(Installation)).all() == []
            assert s.exec(select(PartLog)).all() == []

    @pytest.mark.asyncio
    async def test_unknown_identity_rejected_without_writes(self, sync_service, engine):
        await sync_service.sync([_record()])
        with pytest.raises(ValidationError) as exc_info:
            await sync_service.apply_status([IFC, IFC_2], "installation", INSTALLATION, "Mari")
        assert exc_info.value.problems == [f"unknown part identity: {IFC_2}"]
        with Session(engine) as s:
            assert s.exec(select(Installation)).all() == []

    @pytest.mark.asyncio
    async def test_blank_actor_rejected(self, sync_service):
        await sync_service.sync([_record()])
        with pytest.raises(ValidationError):
            await sync_service.apply_status([IFC], "installation", INSTALLATION, "  ")

    @pytest.mark.asyncio
    async def test_invalid_payload_rejected(self, sync_service):
        await sync_service.sync([_record()])
        with pytest.raises(ValidationError):
            await sync_service.apply_status([IFC], "bolting", {"date": "2025-03-01"}, "Mari")

    @pytest.mark.asyncio
    async def test_store_failure_raises_and_writes_no_log(self, sync_service, engine):
        await sync_service.sync([_record()])
        Delivery.__table__.drop(engine)

        with pytest.raises(StoreError):
            await sync_service.apply_status([IFC], "delivery", DELIVERY, "Mari")
        with Session(engine) as s:
            assert s.exec(select(PartLog)).all() == []

    @pytest.mark.asyncio
    async def test_audit_failure_keeps_status_and_is_reported(self, sync_service, engine, caplog):
        await sync_service.sync([_record()])
        PartLog.__table__.drop(engine)

        with caplog.at_level(logging.ERROR):
            result = await sync_service.apply_status([IFC], "installation", INSTALLATION, "Mari")

        assert not result.audited
        assert isinstance(result.audit_error, AuditError)
        assert result.audit_error.identities == [IFC]
        assert "Audit log" in caplog.text
        with Session(engine) as s:
            (row,) = s.exec(select(Installation)).all()
            assert row.date == date(2025, 3, 1)

    @pytest.mark.asyncio
    async def test_concurrent_saves_keep_one_row(self, sync_service, engine):
        await sync_service.sync([_record()])
        await asyncio.gather(*[
            sync_service.apply_status([IFC], "bolting", {"installer": name, "date": "2025-03-02"}, name)
            for name in ("Mari", "Jaan", "Kati")
        ])
        with Session(engine) as s:
            assert len(s.exec(select(Bolting)).all()) == 1
            assert len(s.exec(select(PartLog)).all()) == 3
        (part,) = sync_service.get_parts([IFC])
        assert part.bolting.installer in {"Mari", "Jaan", "Kati"}


class TestRemoveStatus:
    @pytest.mark.asyncio
    async def test_removes_and_logs(self, sync_service, engine):
        await sync_service.sync([_record()])
        await sync_service.apply_status([IFC], "installation", INSTALLATION, "Mari")

        result = await sync_service.remove_status([IFC], "installation", "Jaan")

        assert result.written == 1
        (part,) = sync_service.get_parts([IFC])
        assert part.installation is None
        removal = [log for log in part.logs if log.action == "Removed from installation"]
        assert [log.user_name for log in removal] == ["Jaan"]

    @pytest.mark.asyncio
    async def test_removing_absent_status_still_logs(self, sync_service):
        await sync_service.sync([_record()])
        result = await sync_service.remove_status([IFC], "bolting", "Jaan")
        assert result.written == 0
        (part,) = sync_service.get_parts([IFC])
        assert [log.action for log in part.logs] == ["Removed from bolting"]

    @pytest.mark.asyncio
    async def test_unknown_kind(self, sync_service):
        with pytest.raises(ValidationError):
            await sync_service.remove_status([IFC], "painting", "Jaan")
