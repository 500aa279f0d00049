"""Pydantic response schemas for the provenance tagger webhook.

Inputs are raw Event Grid / CloudEvents objects and are parsed leniently by
core.events so that malformed events become skips instead of 422 responses.
"""

from pydantic import BaseModel, Field

from provenance_tagger.core.models import TaggingResult


class SubscriptionValidationResponse(BaseModel):
    """Reply to the Event Grid subscription validation handshake."""

    validationResponse: str = Field(description="Echo of data.validationCode")  # noqa: N815


class EventBatchResponse(BaseModel):
    """One result per delivered event, in delivery order."""

    results: list[TaggingResult] = Field(default_factory=list, description="Per-event outcomes")
    tagged: int = Field(default=0, description="Number of events that produced a tag write")
    skipped: int = Field(default=0, description="Number of events skipped")


class HealthResponse(BaseModel):
    status: str = Field(default="ok")
    service: str = Field(description="Service name")
