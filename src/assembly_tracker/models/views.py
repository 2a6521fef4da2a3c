"""Read models: a part together with its status rows and log history."""
import datetime as dt
import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from assembly_tracker.models.part import AssemblyPart


class InstallationView(BaseModel):
    installers: List[str]
    date: dt.date
    method: str
    created_by: str
    created_at: dt.datetime


class DeliveryView(BaseModel):
    vehicle: str
    date: dt.date
    arrival_time: Optional[dt.time] = None
    unloading_time: Optional[dt.time] = None
    created_by: str
    created_at: dt.datetime


class BoltingView(BaseModel):
    installer: str
    date: dt.date
    created_by: str
    created_at: dt.datetime


class LogView(BaseModel):
    action: str
    user_name: str
    timestamp: dt.datetime


class PartView(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    identity: str
    identity_kind: str
    project_id: str
    project_name: str
    model_id: str
    model_name: str
    object_id: str
    mark: str
    name: str
    type: str
    assembly: str
    weight: Optional[float] = None
    phase: str
    profile: str
    material: str
    length: Optional[float] = None
    extra_attributes: Dict[str, Any] = {}

    installation: Optional[InstallationView] = None
    delivery: Optional[DeliveryView] = None
    bolting: Optional[BoltingView] = None
    logs: List[LogView] = []

    @classmethod
    def from_part(cls, part: AssemblyPart) -> "PartView":
        """Build from an AssemblyPart whose relationships are already loaded."""
        return cls(
            identity=part.identity,
            identity_kind=part.identity_kind,
            project_id=part.project_id,
            project_name=part.project_name,
            model_id=part.model_id,
            model_name=part.model_name,
            object_id=part.object_id,
            mark=part.mark,
            name=part.name,
            type=part.type,
            assembly=part.assembly,
            weight=part.weight,
            phase=part.phase,
            profile=part.profile,
            material=part.material,
            length=part.length,
            extra_attributes=json.loads(part.extra_attributes_json or "{}"),
            installation=(
                InstallationView.model_validate(part.installation, from_attributes=True)
                if part.installation else None
            ),
            delivery=(
                DeliveryView.model_validate(part.delivery, from_attributes=True)
                if part.delivery else None
            ),
            bolting=(
                BoltingView.model_validate(part.bolting, from_attributes=True)
                if part.bolting else None
            ),
            logs=[LogView.model_validate(log, from_attributes=True) for log in part.logs],
        )

    @property
    def is_installed(self) -> bool:
        return self.installation is not None

    @property
    def is_delivered(self) -> bool:
        return self.delivery is not None

    @property
    def is_bolted(self) -> bool:
        return self.bolting is not None
