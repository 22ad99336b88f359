"""Per-request identity resolved by the authentication provider."""

import uuid
from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    """Role claim issued with the session."""
    TUTOR = "tutor"
    VETERINARY = "veterinary"
    ADMIN = "admin"


@dataclass(frozen=True)
class RequestContext:
    """
    Authenticated caller for a single request.

    Built once per request by the presentation layer from the session and
    passed explicitly to every operation that needs to know who is acting.
    """
    identity_id: str
    role: Role
    request_id: str = field(default_factory=lambda: f"REQ-{uuid.uuid4().hex[:8]}")
