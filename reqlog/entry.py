"""Request-scoped log entry.

A ``LogEntry`` wraps a structlog logger whose bound context is the field
set of one request. It is created when the request arrives (emitting
"request started"), picks up fields while handlers run, and is finalized
exactly once with the outcome of the request.

Lifecycle::

    created -> started -> (set_field / set_fields)* -> finalized

Finalization goes through either ``complete`` (normal response) or
``record_panic`` (the handler raised). Whichever runs first wins; any
later attempt is ignored.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import structlog

logger = structlog.get_logger(__name__)

REQUEST_STARTED = "request started"
REQUEST_COMPLETE = "request complete"
REQUEST_PANICKED = "request panicked"


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Success:
    """The handler returned and the response was sent."""

    status: int
    bytes_written: int
    elapsed_ns: int


@dataclass(frozen=True)
class Failure:
    """The handler raised."""

    error: Any
    stack: Union[str, bytes]


RequestOutcome = Union[Success, Failure]


def format_panic(value: Any) -> str:
    """Render a panic value for the ``panic`` field.

    Strings are kept as-is, everything else (exceptions included) goes
    through ``str()``. The exception type is already part of ``stack``.
    """
    if isinstance(value, str):
        return value
    return str(value)


# ---------------------------------------------------------------------------
# LogEntry
# ---------------------------------------------------------------------------


class LogEntry:
    """Mutable per-request log context.

    Attributes:
        log: The live bound logger. Handlers may log through it directly
            and every line carries the request's fields.
    """

    def __init__(self, log: Any, fields: Optional[Mapping[str, Any]] = None) -> None:
        self.log = log.bind(**dict(fields or {}))
        self._finalized = False
        self.log.info(REQUEST_STARTED)

    @property
    def fields(self) -> dict[str, Any]:
        """Snapshot of the accumulated fields, in insertion order."""
        return dict(structlog.get_context(self.log))

    @property
    def finalized(self) -> bool:
        return self._finalized

    def set_field(self, key: str, value: Any) -> None:
        """Add or overwrite one field. Nothing is emitted."""
        self.log = self.log.bind(**{key: value})

    def set_fields(self, fields: Optional[Mapping[str, Any]] = None, /, **kwargs: Any) -> None:
        """Add or overwrite several fields, like ``dict.update``."""
        merged = dict(fields or {})
        merged.update(kwargs)
        if merged:
            self.log = self.log.bind(**merged)

    def complete(self, status: int, bytes_written: int, elapsed_ns: int) -> None:
        """Record the response and emit "request complete".

        Args:
            status: HTTP status code sent to the client.
            bytes_written: Number of response body bytes sent.
            elapsed_ns: Time spent serving the request, in nanoseconds.
        """
        if not self._claim_finalization():
            return
        self.log = self.log.bind(
            resp_status=status,
            resp_bytes_length=bytes_written,
            resp_elapsed_ms=elapsed_ns / 1_000_000.0,
        )
        self.log.info(REQUEST_COMPLETE)

    def record_panic(self, value: Any, stack: Union[str, bytes]) -> None:
        """Record a handler failure and emit "request panicked".

        The caller still owns the exception and is expected to re-raise
        it; this only annotates the entry.
        """
        if not self._claim_finalization():
            return
        if isinstance(stack, bytes):
            stack = stack.decode("utf-8", errors="replace")
        self.log = self.log.bind(stack=stack, panic=format_panic(value))
        self.log.error(REQUEST_PANICKED)

    def finalize(self, outcome: RequestOutcome) -> None:
        """Finish the entry from a request outcome."""
        if isinstance(outcome, Success):
            self.complete(outcome.status, outcome.bytes_written, outcome.elapsed_ns)
        elif isinstance(outcome, Failure):
            self.record_panic(outcome.error, outcome.stack)
        else:
            raise TypeError(f"unknown request outcome: {outcome!r}")

    def _claim_finalization(self) -> bool:
        if self._finalized:
            logger.debug("log_entry_already_finalized")
            return False
        self._finalized = True
        return True
