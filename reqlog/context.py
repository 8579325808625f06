"""Request-scoped context shared by the middlewares and handlers.

Each HTTP request gets one ``RequestContext`` holding its identifier and
its ``LogEntry``. It is stored in the ASGI scope state, so anything
holding the ``Request`` can reach it, and in a context variable for
service code further down the call chain that does not.

Handlers add fields to the request's log line with::

    from reqlog.context import set_field

    set_field(request, "user_id", user.id)

All helpers are no-ops when called outside a logged request.
"""

from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Any, Mapping, MutableMapping, Optional, Union

from starlette.requests import HTTPConnection

from reqlog.entry import LogEntry

STATE_KEY = "reqlog_context"

_current: ContextVar[Optional["RequestContext"]] = ContextVar(
    "reqlog_request_context", default=None
)

RequestLike = Union[HTTPConnection, MutableMapping[str, Any], None]


@dataclass
class RequestContext:
    """Per-request logging state."""

    request_id: str = ""
    log_entry: Optional[LogEntry] = None


def _scope_of(request: RequestLike) -> Optional[MutableMapping[str, Any]]:
    if request is None:
        return None
    if isinstance(request, HTTPConnection):
        return request.scope
    return request


def get_request_context(request: RequestLike = None) -> Optional[RequestContext]:
    """Return the context for *request*, or for the current task if omitted."""
    scope = _scope_of(request)
    if scope is None:
        return _current.get()
    ctx = scope.get("state", {}).get(STATE_KEY)
    if isinstance(ctx, RequestContext):
        return ctx
    return None


def ensure_request_context(scope: MutableMapping[str, Any]) -> RequestContext:
    """Return the scope's context, creating and storing an empty one if needed."""
    ctx = get_request_context(scope)
    if ctx is None:
        ctx = RequestContext()
        scope.setdefault("state", {})[STATE_KEY] = ctx
    return ctx


def activate(ctx: RequestContext) -> Token:
    """Make *ctx* the current context for this task. Pair with ``deactivate``."""
    return _current.set(ctx)


def deactivate(token: Token) -> None:
    _current.reset(token)


def get_request_id(request: RequestLike = None) -> str:
    """Return the request identifier, or ``""`` if none was assigned."""
    ctx = get_request_context(request)
    if ctx is None:
        return ""
    return ctx.request_id


def get_log_entry(request: RequestLike = None) -> Optional[Any]:
    """Return the live bound logger of the request's entry, if any.

    Logging through it includes every field accumulated so far.
    """
    ctx = get_request_context(request)
    if ctx is None or ctx.log_entry is None:
        return None
    return ctx.log_entry.log


def set_field(request: RequestLike, key: str, value: Any) -> None:
    """Add a field to the request's log entry."""
    ctx = get_request_context(request)
    if ctx is not None and ctx.log_entry is not None:
        ctx.log_entry.set_field(key, value)


def set_fields(
    request: RequestLike, fields: Optional[Mapping[str, Any]] = None, /, **kwargs: Any
) -> None:
    """Add several fields to the request's log entry."""
    ctx = get_request_context(request)
    if ctx is not None and ctx.log_entry is not None:
        ctx.log_entry.set_fields(fields, **kwargs)
