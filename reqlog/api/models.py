"""Pydantic models for the demo service's response bodies."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for health check endpoint.

    Attributes:
        status: Service status.
        version: Package version.
        timestamp: Current server time.
        geoip: Whether geo enrichment is active.
    """

    status: str = Field(default="ok", description="Service status")
    version: str = Field(description="Package version")
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="Current server time",
    )
    geoip: bool = Field(default=False, description="Whether GeoIP enrichment is enabled")


class WhoAmIResponse(BaseModel):
    """What the service knows about the caller.

    Attributes:
        request_id: Identifier assigned to this request.
        name: Caller-supplied name, also added to the access log.
    """

    request_id: str
    name: str
