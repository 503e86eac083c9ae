import json
from dataclasses import dataclass, field
from enum import Enum


STATUS_OK = 200
STATUS_UNAUTHORIZED = 401
COMPLETE = "complete"


class Decision(str, Enum):
    APPROVED = "approved"
    CANCELED = "canceled"
    PENDING = "pending"
    AUTH_REJECTED = "auth_rejected"
    FATAL = "fatal"

    @property
    def is_terminal(self) -> bool:
        return self in (Decision.APPROVED, Decision.CANCELED)


@dataclass(frozen=True)
class ApprovalRecord:
    completion_status: str
    approved: bool

    @classmethod
    def from_payload(cls, payload) -> "ApprovalRecord":
        if not isinstance(payload, dict):
            raise ValueError("approval record must be an object")
        status = payload.get("status")
        approved = payload.get("is_approved")
        if not isinstance(status, str):
            raise ValueError("approval record is missing string 'status'")
        if not isinstance(approved, bool):
            raise ValueError("approval record is missing boolean 'is_approved'")
        return cls(completion_status=status, approved=approved)


def _decode_records(data) -> list:
    """Strictly decodes the first record; undecodable extras are dropped."""
    if not data:
        return []
    records = [ApprovalRecord.from_payload(data[0])]
    for item in data[1:]:
        try:
            records.append(ApprovalRecord.from_payload(item))
        except ValueError:
            continue
    return records


@dataclass(frozen=True)
class ApprovalResponse:
    """Decoded approval-status body.

    ``status_code`` is the service-level code from ``status_info``, not the
    HTTP status of the response that carried it.
    """

    status_code: int = 0
    records: list[ApprovalRecord] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload) -> "ApprovalResponse":
        if not isinstance(payload, dict):
            raise ValueError("approval response must be an object")
        status_info = payload.get("status_info")
        if not isinstance(status_info, dict):
            raise ValueError("approval response is missing 'status_info'")
        status_code = status_info.get("status_code")
        if isinstance(status_code, bool) or not isinstance(status_code, int):
            raise ValueError("approval response is missing integer 'status_code'")
        data = payload.get("data")
        if not isinstance(data, list):
            raise ValueError("approval response is missing 'data' list")
        return cls(status_code=status_code, records=_decode_records(data))

    @classmethod
    def decode(cls, body) -> "ApprovalResponse":
        """Decodes a raw body; anything undecodable becomes the zero response."""
        try:
            return cls.from_payload(json.loads(body or ""))
        except (TypeError, ValueError):
            return cls()

    def is_status_ok(self) -> bool:
        return self.status_code == STATUS_OK

    def is_unauthorized(self) -> bool:
        return self.status_code == STATUS_UNAUTHORIZED

    def is_nodata(self) -> bool:
        if not self.records:
            return True
        return self.records[0].completion_status != COMPLETE

    def is_approved(self) -> bool:
        if self.is_nodata():
            return False
        return self.records[0].approved


def classify_response(body) -> Decision:
    response = ApprovalResponse.decode(body)
    if response.is_unauthorized():
        return Decision.AUTH_REJECTED
    if not response.is_status_ok() or response.is_nodata():
        return Decision.PENDING
    return Decision.APPROVED if response.is_approved() else Decision.CANCELED
