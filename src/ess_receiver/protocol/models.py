"""Pydantic models for records pushed by ESS / ZKTeco terminals."""
from __future__ import annotations

from enum import Enum, IntEnum
from typing import Annotated, Any, Dict, List, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class VerifyMode(IntEnum):
    """Credential used to authenticate a punch."""

    FINGERPRINT = 1
    FACE_RECOGNITION = 2
    CARD = 3
    PASSWORD = 4
    FINGERPRINT_TEMPLATE = 15
    FACE_TEMPLATE = 25

    @property
    def code(self) -> int:
        return int(self.value)

    @property
    def label(self) -> str:
        return _VERIFY_LABELS[self]


_VERIFY_LABELS = {
    VerifyMode.FINGERPRINT: "Fingerprint",
    VerifyMode.FACE_RECOGNITION: "Face Recognition",
    VerifyMode.CARD: "Card",
    VerifyMode.PASSWORD: "Password",
    VerifyMode.FINGERPRINT_TEMPLATE: "Fingerprint Template",
    VerifyMode.FACE_TEMPLATE: "Face Template",
}


class UnknownVerifyMode(BaseModel):
    """Verify code outside the known table."""

    model_config = ConfigDict(frozen=True)

    code: int

    @property
    def label(self) -> str:
        return f"Unknown ({self.code})"


AnyVerifyMode = Union[VerifyMode, UnknownVerifyMode]


def lookup_verify_mode(code: int) -> AnyVerifyMode:
    """Map a numeric verify code to a VerifyMode, or UnknownVerifyMode."""
    try:
        return VerifyMode(code)
    except ValueError:
        return UnknownVerifyMode(code=code)


class PunchStatus(str, Enum):
    """Direction of a punch. Only ``0`` means check-in on the wire."""

    CHECK_IN = "Check-In"
    CHECK_OUT = "Check-Out"


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class UserRecord(_Record):
    """``USER`` line: a user enrolled on the device."""

    kind: Literal["user"] = "user"
    pin: str = Field(description="User PIN on the device")
    name: str = Field(default="", description="Display name")
    privilege: int = Field(default=0, description="Privilege level (0=user, 14=admin)")
    password: str = Field(default="")
    card: str = Field(default="", description="Card number")
    group: str = Field(default="")
    timezone: str = Field(default="")
    expires: str = Field(default="")
    start_datetime: str = Field(default="")
    end_datetime: str = Field(default="")
    valid_count: str = Field(default="")

    def describe(self) -> str:
        return f"User {self.pin} ({self.name or 'unnamed'}) privilege {self.privilege}"


class FingerprintRecord(_Record):
    """``FP`` line: one fingerprint template."""

    kind: Literal["fingerprint"] = "fingerprint"
    pin: str = Field(description="Owner PIN")
    template_id: int = Field(description="Finger index (FID)")
    size_bytes: Union[int, None] = Field(default=None, description="Template size, None if not a number")
    valid: Union[int, None] = Field(default=None, description="Validity flag, None if not a number")
    template: str = Field(default="", description="Base64 template data")

    def describe(self) -> str:
        return (
            f"Fingerprint {self.template_id} for user {self.pin} "
            f"({self.size_bytes} bytes, valid={self.valid})"
        )


class _Punch(_Record):
    status: PunchStatus
    verify_mode: AnyVerifyMode

    @field_serializer("verify_mode")
    def serialize_verify_mode(self, mode: AnyVerifyMode) -> Dict[str, Any]:
        return {"code": mode.code, "label": mode.label}


class AttendanceRecord(_Punch):
    """Bare attendance line from the current grammar."""

    kind: Literal["attendance"] = "attendance"
    user_pin: str
    timestamp: str = Field(description="Device local time, YYYY-MM-DD HH:MM:SS")
    work_code: int = 0
    reserved: Tuple[str, ...] = ("", "", "0", "0")

    def describe(self) -> str:
        return (
            f"User {self.user_pin} - {self.status.value} at {self.timestamp} "
            f"via {self.verify_mode.label}"
        )


class LegacyAttendanceRecord(_Punch):
    """``RECORD=`` line from the legacy ``DATA`` field grammar."""

    kind: Literal["legacy_attendance"] = "legacy_attendance"
    record_num: str
    user_id: str
    timestamp: str

    def describe(self) -> str:
        return (
            f"Record {self.record_num}: User {self.user_id} - {self.status.value} "
            f"at {self.timestamp} via {self.verify_mode.label}"
        )


DeviceRecord = Annotated[
    Union[UserRecord, FingerprintRecord, AttendanceRecord, LegacyAttendanceRecord],
    Field(discriminator="kind"),
]

Grammar = Literal["current", "legacy"]


class LineError(BaseModel):
    """A payload line that produced no record."""

    model_config = ConfigDict(frozen=True)

    line_number: int = Field(description="1-based line number in the payload")
    line: str
    reason: str


class ParseResult(BaseModel):
    """Records and diagnostics for one payload."""

    grammar: Grammar
    records: List[DeviceRecord] = Field(default_factory=list)
    errors: List[LineError] = Field(default_factory=list)

    @property
    def record_count(self) -> int:
        return len(self.records)

    @property
    def error_count(self) -> int:
        return len(self.errors)
