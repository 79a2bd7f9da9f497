"""Classification of finished transfers.

Every finished transfer, whatever went wrong with it, becomes exactly one
``Result`` and exactly one log line: ``info`` for successes, ``error`` for
everything else.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .codes import error_name
from .config import GatewayConfig
from .request import RequestDescriptor
from .result import ENVELOPE_KEYS, Envelope, ErrorKind, Result

logger = logging.getLogger(__name__)


class CompletionHandler:
    """Turns raw transfer outcomes into ``Result`` objects and log lines."""

    def __init__(self, config: GatewayConfig, log: logging.Logger | None = None):
        self.config = config
        self.log = log or logger

    def is_accepted_status(self, status_code: int) -> bool:
        if self.config.accept_any_2xx:
            return 200 <= status_code < 300
        return status_code == 200

    def complete(
        self,
        descriptor: RequestDescriptor,
        error_code: int,
        error_message: str,
        status_code: int,
        body: str,
        elapsed_ms: int = 0,
        *,
        step: int = 0,
        multi: bool = False,
    ) -> Result:
        """Classify one finished transfer and log it.

        Parameters
        ----------
        descriptor : RequestDescriptor
            The request the transfer belonged to
        error_code, error_message :
            Transport failure, ``0`` / ``""`` when the transfer went through
        status_code : int
            HTTP status, ``0`` when no response was received
        body : str
            Raw response text
        elapsed_ms : int
            Duration of the transfer itself
        step : int
            IO step number, used to tag the log line
        multi : bool
            Whether the transfer ran as part of a concurrent batch

        Returns
        -------
        Result
            The classified result; the descriptor is not modified
        """
        common = dict(
            request_id=descriptor.id,
            elapsed_ms=elapsed_ms,
            url=descriptor.url,
        )
        head = self.format_head(descriptor, elapsed_ms, step=step, multi=multi)

        if error_code or error_message:
            result = Result(
                success=False,
                kind=ErrorKind.TRANSPORT,
                error_code=error_code,
                error_message=error_message or error_name(error_code),
                **common,
            )
            self.log.error(
                "%s[STATUS] => ERROR %s %s", head, error_name(error_code), result.error_message
            )
            return result

        if not self.is_accepted_status(status_code):
            result = Result(
                success=False,
                kind=ErrorKind.PROTOCOL,
                status_code=status_code,
                body=body,
                **common,
            )
            self.log.error("%s[STATUS] => HTTP_CODE: %s", head, status_code)
            return result

        status_line = f"{head}[STATUS] => HTTP_CODE: {status_code}"

        if not descriptor.decode_json:
            self._log_success(status_line, body)
            return Result(success=True, status_code=status_code, body=body, **common)

        if not body:
            message = "data is empty"
            self.log.error("%s\n[JSON_DECODE] => error, %s", status_line, message)
            return Result(
                success=False,
                kind=ErrorKind.DECODE,
                status_code=status_code,
                error_message=message,
                **common,
            )

        decoded: Any = None
        try:
            decoded = json.loads(body)
            message = None if isinstance(decoded, (dict, list)) else "result is not an object or array"
        except ValueError as exc:
            message = str(exc)
        if message is not None:
            self.log.error(
                "%s\n[JSON_DECODE] => error, %s\n[TEXT] => %s", status_line, message, body
            )
            return Result(
                success=False,
                kind=ErrorKind.DECODE,
                status_code=status_code,
                error_message=message,
                body=body,
                **common,
            )

        self._log_success(status_line, body)
        envelope = None
        if isinstance(decoded, dict) and any(key in decoded for key in ENVELOPE_KEYS):
            envelope = Envelope.from_payload(decoded)
        return Result(
            success=True,
            status_code=status_code,
            body=decoded,
            envelope=envelope,
            **common,
        )

    def _log_success(self, status_line: str, body: str) -> None:
        if self.config.debug:
            self.log.info("%s\n[RESPONSE] => %s", status_line, body)
        else:
            self.log.info("%s", status_line)

    def format_head(
        self,
        descriptor: RequestDescriptor,
        elapsed_ms: int,
        *,
        step: int = 0,
        multi: bool = False,
    ) -> str:
        """Format everything in a log line that precedes the status."""
        markers = ""
        if multi:
            markers += "MULTI "
        if descriptor.lazy:
            markers += "LAZY "
        lines = [
            f"[IO:{step}] [HTTP] [{markers}{descriptor.method}] {descriptor.url}",
            f"[TIME] => cost_time:{elapsed_ms}ms",
        ]
        payload = descriptor.spec.payload if descriptor.spec else None
        if payload and descriptor.method != "GET":
            lines.append(f"[QUERY] => {_summary(payload)}")
        return "\n".join(lines) + "\n"


def _summary(payload: Any) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return repr(payload)
