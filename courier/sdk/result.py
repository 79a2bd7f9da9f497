"""Normalized request results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

from .exceptions import DecodeError, ProtocolError, TransportError

ENVELOPE_KEYS = ("status", "message", "data")

GENERIC_ERROR_MESSAGE = "The service is busy, please try again later"

# Longer backend messages are assumed to leak internals.
MAX_PUBLIC_MESSAGE_LENGTH = 150


class ErrorKind(Enum):
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    DECODE = "decode"


class Envelope(BaseModel):
    """The standard ``{status, message, data}`` API response.

    Keys outside the envelope returned by non-standard endpoints are kept
    in ``extra``.
    """

    status: int = Field(default=500)
    message: str = Field(default="error")
    data: Any = Field(default=None)
    extra: dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Envelope":
        values = dict(payload)
        fields: dict[str, Any] = {}
        if values.get("status") is not None:
            try:
                fields["status"] = int(values["status"])
            except (TypeError, ValueError):
                pass
            else:
                del values["status"]
        if values.get("message") is not None:
            fields["message"] = str(values.pop("message"))
        if values.get("data") is not None:
            fields["data"] = values.pop("data")
        return cls(extra=values, **fields)

    def get_extra(self, name: str, default: Any = None) -> Any:
        return self.extra.get(name, default)

    def sanitized(self, production: bool) -> "Envelope":
        """Return a copy safe to hand to front-end callers.

        Backend error codes are mapped onto public ones and, in production,
        internal error messages are replaced by a generic one.
        """
        message = GENERIC_ERROR_MESSAGE if production else self.message
        status = self.status
        if self.status == 4001:
            status = 501
        elif self.status == 4002:
            status = 201
            message = self.message
        elif self.status in (5000, 5001):
            status = 500
        elif len(self.message) <= MAX_PUBLIC_MESSAGE_LENGTH:
            message = self.message
        return self.model_copy(update={"status": status, "message": message})


@dataclass(frozen=True)
class Result:
    """Outcome of exactly one execution attempt.

    ``body`` holds the raw response text, or the decoded JSON value when the
    request asked for JSON decoding. ``envelope`` is set when the decoded
    body follows the standard envelope.
    """

    request_id: int
    success: bool
    kind: Optional[ErrorKind] = None
    status_code: int = 0
    error_code: int = 0
    error_message: str = ""
    elapsed_ms: int = 0
    body: Any = ""
    envelope: Optional[Envelope] = None
    url: str = field(default="", compare=False)

    def get(self, default: Any = None) -> Any:
        """Return the body, or *default* when the request failed."""
        return self.body if self.success else default

    def api_result(self) -> Envelope:
        """Return the response envelope, or the default error envelope."""
        if self.envelope is not None:
            return self.envelope
        if self.success and isinstance(self.body, dict):
            return Envelope(extra=dict(self.body))
        return Envelope()

    def raise_for_error(self) -> None:
        """Raise the exception matching a failed result."""
        if self.kind is ErrorKind.TRANSPORT:
            raise TransportError(self, self.url)
        if self.kind is ErrorKind.PROTOCOL:
            raise ProtocolError(self, self.body if isinstance(self.body, str) else "")
        if self.kind is ErrorKind.DECODE:
            raise DecodeError(self)
