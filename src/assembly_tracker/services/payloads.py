"""
Status kinds and their payloads.

Each kind has a pydantic payload with its required fields, the table its
rows live in, and the audit messages written when it is set or removed:

  installation   installers (≥1), date, method     "Installed: crane (Mari, Jaan)"
  delivery       vehicle, date, [arrival_time, unloading_time]
                                                   "Delivered: TRUCK-12"
  bolting        installer, date                   "Bolts tightened (Mari)"
"""
import datetime as dt
import enum
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Type, Union

import pydantic
from pydantic import BaseModel, field_validator
from sqlmodel import SQLModel

from assembly_tracker.errors import ValidationError
from assembly_tracker.models.status import Bolting, Delivery, Installation


class StatusKind(str, enum.Enum):
    INSTALLATION = "installation"
    DELIVERY = "delivery"
    BOLTING = "bolting"


def _required_text(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("must not be blank")
    return value


class InstallationPayload(BaseModel):
    installers: List[str]
    date: dt.date
    method: str

    @field_validator("installers")
    @classmethod
    def _at_least_one_installer(cls, value: List[str]) -> List[str]:
        cleaned = [name.strip() for name in value if name and name.strip()]
        if not cleaned:
            raise ValueError("at least one installer is required")
        return cleaned

    @field_validator("method")
    @classmethod
    def _method_present(cls, value: str) -> str:
        return _required_text(value)

    def log_action(self) -> str:
        return f"Installed: {self.method} ({', '.join(self.installers)})"


class DeliveryPayload(BaseModel):
    vehicle: str
    date: dt.date
    arrival_time: Optional[dt.time] = None
    unloading_time: Optional[dt.time] = None

    @field_validator("vehicle")
    @classmethod
    def _vehicle_present(cls, value: str) -> str:
        return _required_text(value)

    @field_validator("arrival_time", "unloading_time", mode="before")
    @classmethod
    def _blank_time_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def log_action(self) -> str:
        return f"Delivered: {self.vehicle}"


class BoltingPayload(BaseModel):
    installer: str
    date: dt.date

    @field_validator("installer")
    @classmethod
    def _installer_present(cls, value: str) -> str:
        return _required_text(value)

    def log_action(self) -> str:
        return f"Bolts tightened ({self.installer})"


StatusPayload = Union[InstallationPayload, DeliveryPayload, BoltingPayload]

PAYLOAD_TYPES: Dict[StatusKind, Type[BaseModel]] = {
    StatusKind.INSTALLATION: InstallationPayload,
    StatusKind.DELIVERY: DeliveryPayload,
    StatusKind.BOLTING: BoltingPayload,
}

STATUS_TABLES: Dict[StatusKind, Type[SQLModel]] = {
    StatusKind.INSTALLATION: Installation,
    StatusKind.DELIVERY: Delivery,
    StatusKind.BOLTING: Bolting,
}

REMOVAL_ACTIONS: Dict[StatusKind, str] = {
    StatusKind.INSTALLATION: "Removed from installation",
    StatusKind.DELIVERY: "Removed from delivery",
    StatusKind.BOLTING: "Removed from bolting",
}


def parse_kind(kind: Union[str, StatusKind]) -> StatusKind:
    try:
        return StatusKind(kind)
    except ValueError:
        raise ValidationError([f"unknown status kind: {kind!r}"]) from None


def parse_payload(kind: StatusKind, data: Union[Mapping, BaseModel, None]) -> StatusPayload:
    """Validate data against the payload for kind.

    Raises:
        ValidationError: listing every missing or malformed field.
    """
    payload_type = PAYLOAD_TYPES[kind]
    if isinstance(data, payload_type):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    if not isinstance(data, Mapping):
        raise ValidationError([f"{kind.value} payload must be a mapping"])
    try:
        return payload_type.model_validate(dict(data))
    except pydantic.ValidationError as exc:
        problems = [
            f"{'.'.join(str(part) for part in err['loc']) or kind.value}: {err['msg']}"
            for err in exc.errors()
        ]
        raise ValidationError(problems) from None
