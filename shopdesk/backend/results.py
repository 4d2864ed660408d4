# shopdesk/backend/results.py
# ---------------------------------------------------------
# Tagged results for every backend call: Ok(value) or Err(code, message).
# Transport failures and {"success": false} replies both end up as Err.
# ---------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    code: str
    message: str
    status: int | None = None

    @property
    def ok(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


Result = Union[Ok[T], Err]

# Err codes
TRANSPORT = "transport"          # httpx could not complete the request
HTTP_STATUS = "http_status"      # non-2xx response
REJECTED = "rejected"            # 2xx with success=false
BAD_PAYLOAD = "bad_payload"      # reply did not match the expected shape


def rejected(payload: Any) -> Err:
    """Build an Err from a {"success": false, ...} reply."""
    msg = None
    if isinstance(payload, dict):
        msg = payload.get("error") or payload.get("message")
    return Err(REJECTED, str(msg or "backend rejected the request"))
