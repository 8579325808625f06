"""API routes for the reqlog demo service.

``/whoami`` shows how handlers enrich the request's access log line.
"""

from fastapi import APIRouter, Request

from reqlog import __version__
from reqlog.api.models import HealthResponse, WhoAmIResponse
from reqlog.context import get_log_entry, get_request_id, set_field

router = APIRouter()


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check(request: Request) -> HealthResponse:
    """Report service status and whether geo enrichment is active."""
    return HealthResponse(
        version=__version__,
        geoip=getattr(request.app.state, "geo_db", None) is not None,
    )


@router.get("/whoami", response_model=WhoAmIResponse, summary="Echo caller identity")
async def whoami(request: Request, name: str = "anonymous") -> WhoAmIResponse:
    """Echo the request id and record the caller's name on the log entry."""
    set_field(request, "caller", name)

    log = get_log_entry(request)
    if log is not None:
        log.debug("whoami_handled")

    return WhoAmIResponse(request_id=get_request_id(request), name=name)
