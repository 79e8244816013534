"""JSON-lines protocol messages exchanged with the host application.

One JSON object per line in each direction. Requests carry an ``id`` that
is echoed on the matching response; notifications have no id.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional


class ProtocolError(ValueError):
    """A line could not be decoded into a request."""


@dataclass
class Request:
    id: int
    method: str
    params: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> Request:
        return cls(
            id=data.get("id", 0),
            method=data["method"],
            params=data.get("params") or {},
        )

    @classmethod
    def from_line(cls, line: str) -> Request:
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"Invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ProtocolError("Request must be a JSON object")
        if not isinstance(data.get("method"), str):
            raise ProtocolError("Request is missing a method")
        if not isinstance(data.get("params") or {}, dict):
            raise ProtocolError("Request params must be an object")
        return cls.from_dict(data)


@dataclass
class Response:
    id: int
    result: Optional[dict] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def failure(cls, request_id: int, exc: Exception) -> Response:
        # errorType lets the host tell an illegal quiz action from a bad id
        return cls(id=request_id, error=str(exc), error_type=type(exc).__name__)

    def to_json_line(self) -> str:
        d = {"id": self.id}
        if self.error is not None:
            d["error"] = self.error
            if self.error_type:
                d["errorType"] = self.error_type
        else:
            d["result"] = self.result
        return json.dumps(d) + "\n"


@dataclass
class Notification:
    """Server-initiated message, e.g. ``attemptRecorded``."""
    method: str
    params: dict = field(default_factory=dict)

    def to_json_line(self) -> str:
        return json.dumps({"method": self.method, "params": self.params}) + "\n"
