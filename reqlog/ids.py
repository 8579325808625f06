"""Request identifier generation and resolution.

Identifiers are ULIDs: 26-character Crockford base32 strings that are
safe in URLs and headers and sort lexically by creation time, which
keeps log lines for consecutive requests in order when grepping.

An upstream ``X-Request-ID`` always wins over a generated value so that
correlation with a reverse proxy or calling service is preserved.
"""

import threading
import uuid
from typing import Optional, Protocol

import structlog
from ulid import ULID

logger = structlog.get_logger(__name__)

# Largest value a 128-bit ULID can hold
_MAX_ULID = (1 << 128) - 1


class IdentifierProvider(Protocol):
    """Anything that can hand out a fresh request identifier."""

    def new_id(self) -> str: ...


class MonotonicULIDProvider:
    """Thread-safe ULID generator with monotonic ordering.

    Two ULIDs minted in the same millisecond only differ in their random
    part, so they may sort in the wrong order. The provider remembers the
    last value it returned and bumps it by one whenever a fresh ULID would
    not sort after it.

    Create one instance per process and pass it to the middleware.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last = 0

    def new_id(self) -> str:
        """Return a new identifier. Never raises."""
        try:
            with self._lock:
                candidate = int(ULID())
                if candidate <= self._last and self._last < _MAX_ULID:
                    candidate = self._last + 1
                self._last = candidate
                return str(ULID.from_int(candidate))
        except Exception as exc:
            # Clock or entropy trouble; a random id still keeps requests apart
            logger.warning("ulid_generation_failed", error=str(exc))
            return uuid.uuid4().hex


def resolve_request_id(header_value: Optional[str], provider: IdentifierProvider) -> str:
    """Pick the identifier for a request.

    A non-empty inbound header value is returned unchanged. Upstream ids
    are not validated: rejecting them would break correlation with the
    system that assigned them.

    Args:
        header_value: Raw value of the inbound correlation header, if any.
        provider: Source of fresh identifiers.

    Returns:
        The identifier for this request.
    """
    if header_value:
        return header_value
    return provider.new_id()
